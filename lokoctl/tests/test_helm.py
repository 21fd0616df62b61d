import subprocess

import pytest

from lokoctl.errors import ReleaseOperationError
from lokoctl.modules import helm
from lokoctl.modules.helm import HelmClient, check_chart


class FakeRun:
    """Stands in for subprocess.run, answering helm commands from a table."""

    def __init__(self, responses):
        self.responses = responses
        self.commands = []

    def __call__(self, cmd, **kwargs):
        self.commands.append(cmd)
        returncode, stdout, stderr = self.responses.get(cmd[1], (0, "", ""))
        return subprocess.CompletedProcess(cmd, returncode, stdout=stdout, stderr=stderr)


def client():
    return HelmClient("/tmp/kubeconfig", "external-dns", binary="helm", timeout="60s")


def test_history_missing_release(monkeypatch):
    run = FakeRun({"history": (1, "", "Error: release: not found")})
    monkeypatch.setattr(helm.subprocess, "run", run)

    assert client().history("external-dns") is None
    cmd = run.commands[0]
    assert cmd[cmd.index("--namespace") + 1] == "external-dns"
    assert cmd[cmd.index("--kubeconfig") + 1] == "/tmp/kubeconfig"


def test_history_other_failure_is_an_error(monkeypatch):
    run = FakeRun({"history": (1, "", "Error: Kubernetes cluster unreachable")})
    monkeypatch.setattr(helm.subprocess, "run", run)

    with pytest.raises(ReleaseOperationError) as excinfo:
        client().history("external-dns")
    assert "cluster unreachable" in str(excinfo.value)


def test_history_existing_release(monkeypatch):
    run = FakeRun({"history": (0, '[{"revision": 1, "status": "deployed"}]', "")})
    monkeypatch.setattr(helm.subprocess, "run", run)

    assert client().history("external-dns") == [{"revision": 1, "status": "deployed"}]


def test_install_is_atomic_and_passes_values_file(monkeypatch):
    seen_values = []

    def run(cmd, **kwargs):
        values_path = cmd[cmd.index("--values") + 1]
        with open(values_path) as f:
            seen_values.append(f.read())
        return subprocess.CompletedProcess(cmd, 0, stdout="", stderr="")

    monkeypatch.setattr(helm.subprocess, "run", run)
    client().install("external-dns", "/charts/external-dns", {"replicas": 2}, wait=True)

    assert seen_values == ["replicas: 2\n"]


def test_upgrade_failure(monkeypatch):
    run = FakeRun({"upgrade": (1, "", "Error: UPGRADE FAILED: timed out")})
    monkeypatch.setattr(helm.subprocess, "run", run)

    with pytest.raises(ReleaseOperationError) as excinfo:
        client().upgrade("external-dns", "/charts/external-dns", {})
    assert "upgrade of release 'external-dns'" in str(excinfo.value)
    assert "--atomic" in run.commands[0]


def test_check_chart(tmp_path):
    with pytest.raises(ReleaseOperationError):
        check_chart(tmp_path)

    (tmp_path / "Chart.yaml").write_text("apiVersion: v2\nname: demo\n")
    with pytest.raises(ReleaseOperationError) as excinfo:
        check_chart(tmp_path)
    assert "missing version" in str(excinfo.value)

    (tmp_path / "Chart.yaml").write_text("apiVersion: v2\nname: demo\nversion: 0.1.0\n")
    assert check_chart(tmp_path) == tmp_path
