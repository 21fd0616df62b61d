"""Layout of the cluster asset directory.

    <asset_dir>/
        terraform/                  root module and backend configuration
        cluster-assets/             files generated by Terraform
            auth/kubeconfig
            charts/kube-system/     control plane charts and their values
        lokomotive-kubernetes/      Terraform modules shipped with lokoctl

Modules and control plane charts are copied in from the assets source
(``LOKOCTL_ASSETS_SOURCE``) on every apply.
"""
import logging
import os
import shutil
from pathlib import Path
from typing import Optional, Sequence, Union

from ..config import Config
from ..errors import LokoctlError
from .utils import expand_path, write_to_file

logger = logging.getLogger("lokoctl.assets")

TERRAFORM_DIR = "terraform"
CLUSTER_ASSETS_DIR = "cluster-assets"
MODULES_DIR = "lokomotive-kubernetes"
CONTROL_PLANE_NAMESPACE = "kube-system"
CONTROL_PLANE_SOURCE_DIR = "control-plane"
DEFAULT_KUBECONFIG = "~/.kube/config"


def terraform_dir(asset_dir: Union[str, Path]) -> Path:
    return Path(expand_path(str(asset_dir))) / TERRAFORM_DIR


def cluster_file(asset_dir: Union[str, Path]) -> Path:
    return terraform_dir(asset_dir) / "cluster.tf"


def backend_file(asset_dir: Union[str, Path]) -> Path:
    return terraform_dir(asset_dir) / "backend.tf"


def kubeconfig_file(asset_dir: Union[str, Path]) -> Path:
    return Path(expand_path(str(asset_dir))) / CLUSTER_ASSETS_DIR / "auth" / "kubeconfig"


def control_plane_chart(asset_dir: Union[str, Path], name: str) -> Path:
    return Path(expand_path(str(asset_dir))) / CLUSTER_ASSETS_DIR / "charts" / CONTROL_PLANE_NAMESPACE / name


def control_plane_values_file(asset_dir: Union[str, Path], name: str) -> Path:
    chart = control_plane_chart(asset_dir, name)
    return chart.with_name(f"{chart.name}.yaml")


def prepare_terraform_dir(asset_dir: Union[str, Path]) -> Path:
    """Create the Terraform working directory if needed and return it."""
    path = terraform_dir(asset_dir)
    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise LokoctlError(f"creating Terraform directory {str(path)!r}: {e}") from e
    return path


def write_root_module(asset_dir: Union[str, Path], content: str) -> Path:
    path = cluster_file(asset_dir)
    write_to_file(path, content)
    logger.debug(f"Wrote root module to {path}")
    return path


def write_backend(asset_dir: Union[str, Path], content: str) -> Optional[Path]:
    """Write ``backend.tf``, or remove a stale one when ``content`` is blank."""
    path = backend_file(asset_dir)
    if not content.strip():
        if path.exists():
            logger.debug(f"Removing stale backend configuration {path}")
            path.unlink()
        return None
    write_to_file(path, content)
    return path


def install_modules(asset_dir: Union[str, Path], source: Optional[Path] = None) -> Path:
    """Copy the Terraform modules shipped with lokoctl into the asset directory.

    Existing files are overwritten so an upgraded lokoctl brings its modules
    along.
    """
    source = Path(source or Config.ASSETS_SOURCE) / MODULES_DIR
    target = Path(expand_path(str(asset_dir))) / MODULES_DIR
    if not source.is_dir():
        raise LokoctlError(
            f"Terraform modules not found at {str(source)!r}; "
            "set LOKOCTL_ASSETS_SOURCE to the directory holding lokoctl assets"
        )
    try:
        shutil.copytree(source, target, dirs_exist_ok=True)
    except (OSError, shutil.Error) as e:
        raise LokoctlError(f"installing Terraform modules to {str(target)!r}: {e}") from e
    return target


def install_control_plane_charts(
    asset_dir: Union[str, Path],
    charts: Sequence[str],
    source: Optional[Path] = None,
) -> Path:
    """Copy the control plane charts shipped with lokoctl into the asset directory.

    Charts are placed next to the values files Terraform generates for them,
    so later upgrades use the charts of the lokoctl version doing the apply.
    """
    source = Path(source or Config.ASSETS_SOURCE) / "charts" / CONTROL_PLANE_SOURCE_DIR
    target = Path(expand_path(str(asset_dir))) / CLUSTER_ASSETS_DIR / "charts" / CONTROL_PLANE_NAMESPACE
    for chart in charts:
        chart_source = source / chart
        if not chart_source.is_dir():
            raise LokoctlError(
                f"control plane chart {chart!r} not found at {str(chart_source)!r}; "
                "set LOKOCTL_ASSETS_SOURCE to the directory holding lokoctl assets"
            )
        try:
            shutil.copytree(chart_source, target / chart, dirs_exist_ok=True)
        except (OSError, shutil.Error) as e:
            raise LokoctlError(f"installing control plane chart {chart!r} to {str(target)!r}: {e}") from e
    logger.debug(f"Installed control plane charts {', '.join(charts)} to {target}")
    return target


def get_kubeconfig(kubeconfig_flag: str = "", asset_dir: str = "") -> str:
    """Pick the kubeconfig to talk to the cluster with.

    In order of precedence: the ``--kubeconfig-file`` flag, the kubeconfig
    generated in the asset directory, the ``KUBECONFIG`` environment variable
    and finally ``~/.kube/config``.
    """
    if kubeconfig_flag:
        return expand_path(kubeconfig_flag)

    if asset_dir:
        generated = kubeconfig_file(asset_dir)
        if generated.is_file():
            return str(generated)

    env = os.getenv("KUBECONFIG")
    if env:
        return expand_path(env)

    return expand_path(DEFAULT_KUBECONFIG)
