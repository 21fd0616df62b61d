import pytest

from lokoctl.config import Config
from lokoctl.errors import LokoctlError
from lokoctl.modules import assets


def test_backend_file_written_only_when_needed(tmp_path):
    assets.prepare_terraform_dir(tmp_path)
    assert assets.write_backend(tmp_path, "  \n") is None
    assert not assets.backend_file(tmp_path).exists()

    assets.write_backend(tmp_path, 'terraform {\n  backend "s3" {}\n}\n')
    assert assets.backend_file(tmp_path).exists()

    # Switching back to local state removes the stale file.
    assets.write_backend(tmp_path, "")
    assert not assets.backend_file(tmp_path).exists()


def test_install_modules(tmp_path, monkeypatch):
    source = tmp_path / "source"
    (source / assets.MODULES_DIR / "packet").mkdir(parents=True)
    (source / assets.MODULES_DIR / "packet" / "main.tf").write_text("# module")
    monkeypatch.setattr(Config, "ASSETS_SOURCE", source)

    target = assets.install_modules(tmp_path / "cluster")
    assert (target / "packet" / "main.tf").read_text() == "# module"
    # Installing again over existing files works.
    assets.install_modules(tmp_path / "cluster")


def test_install_modules_missing_source(tmp_path, monkeypatch):
    monkeypatch.setattr(Config, "ASSETS_SOURCE", tmp_path / "missing")
    with pytest.raises(LokoctlError):
        assets.install_modules(tmp_path / "cluster")


def test_install_control_plane_charts(tmp_path, monkeypatch):
    source = tmp_path / "source"
    for chart in ("calico", "kubelet"):
        (source / "charts" / assets.CONTROL_PLANE_SOURCE_DIR / chart).mkdir(parents=True)
        (source / "charts" / assets.CONTROL_PLANE_SOURCE_DIR / chart / "Chart.yaml").write_text(f"name: {chart}\n")
    monkeypatch.setattr(Config, "ASSETS_SOURCE", source)

    cluster = tmp_path / "cluster"
    # Values written by Terraform live next to the charts and are kept.
    assets.control_plane_values_file(cluster, "calico").parent.mkdir(parents=True)
    assets.control_plane_values_file(cluster, "calico").write_text("mtu: 1480\n")

    assets.install_control_plane_charts(cluster, ["calico"])
    assert (assets.control_plane_chart(cluster, "calico") / "Chart.yaml").read_text() == "name: calico\n"
    assert not assets.control_plane_chart(cluster, "kubelet").exists()
    assert assets.control_plane_values_file(cluster, "calico").read_text() == "mtu: 1480\n"

    with pytest.raises(LokoctlError):
        assets.install_control_plane_charts(cluster, ["kube-proxy"])


def test_kubeconfig_precedence(tmp_path, monkeypatch):
    monkeypatch.setenv("HOME", str(tmp_path))
    assert assets.get_kubeconfig() == str(tmp_path / ".kube" / "config")

    monkeypatch.setenv("KUBECONFIG", "/env/kubeconfig")
    assert assets.get_kubeconfig(asset_dir=str(tmp_path)) == "/env/kubeconfig"

    generated = assets.kubeconfig_file(tmp_path)
    generated.parent.mkdir(parents=True)
    generated.write_text("apiVersion: v1\n")
    assert assets.get_kubeconfig(asset_dir=str(tmp_path)) == str(generated)

    assert assets.get_kubeconfig("/flag/kubeconfig", str(tmp_path)) == "/flag/kubeconfig"


def test_control_plane_paths(tmp_path):
    chart = assets.control_plane_chart(tmp_path, "calico")
    assert chart == tmp_path / "cluster-assets" / "charts" / "kube-system" / "calico"
    assert assets.control_plane_values_file(tmp_path, "calico") == chart.parent / "calico.yaml"
