"""Components and their Helm release lifecycle.

A component is installed as a Helm release whose name equals the component
name. Deletion and upgrades rely on that: a release is always looked up by
the component name.
"""
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, Optional

from ..config import Config
from ..errors import LokoctlError
from .helm import HelmClient
from .k8s import NAME_LABEL, KubeClient
from .utils import deep_merge

logger = logging.getLogger("lokoctl.components")


@dataclass(frozen=True)
class Metadata:
    """Basic information about a component.

    Attributes:
        name: Component and Helm release name.
        namespace: Namespace the release is installed into.
        wait: Whether helm should wait for the release's resources.
        deployments: Deployments in ``namespace`` which must become available
            once the component is applied with ``wait`` set.
    """
    name: str
    namespace: str
    wait: bool = False
    deployments: tuple = ()


# Components lokoctl ships charts for.
COMPONENTS: Dict[str, Metadata] = {m.name: m for m in [
    Metadata("aws-ebs-csi-driver", "kube-system"),
    Metadata("cert-manager", "cert-manager", wait=True,
             deployments=("cert-manager", "cert-manager-webhook")),
    Metadata("cluster-autoscaler", "kube-system", deployments=("cluster-autoscaler",)),
    Metadata("contour", "projectcontour", wait=True, deployments=("contour",)),
    Metadata("dex", "dex", deployments=("dex",)),
    Metadata("external-dns", "external-dns", deployments=("external-dns",)),
    Metadata("flatcar-linux-update-operator", "reboot-coordinator"),
    Metadata("gangway", "gangway", deployments=("gangway",)),
    Metadata("httpbin", "httpbin", deployments=("httpbin",)),
    Metadata("metallb", "metallb-system", deployments=("controller",)),
    Metadata("metrics-server", "kube-system", deployments=("metrics-server",)),
    Metadata("openebs-operator", "openebs", wait=True),
    Metadata("prometheus-operator", "monitoring", wait=True),
    Metadata("rook", "rook", wait=True, deployments=("rook-ceph-operator",)),
    Metadata("rook-ceph", "rook"),
    Metadata("velero", "velero", deployments=("velero",)),
]}


@dataclass
class Component:
    """A component as configured for a cluster."""
    metadata: Metadata
    values: Dict[str, Any] = field(default_factory=dict)

    @property
    def name(self) -> str:
        return self.metadata.name

    @property
    def namespace(self) -> str:
        return self.metadata.namespace

    def chart_path(self) -> Path:
        return Config.ASSETS_SOURCE / "charts" / "components" / self.name

    def namespace_labels(self) -> Dict[str, str]:
        return {NAME_LABEL: self.namespace}


def get_metadata(name: str) -> Metadata:
    """Look up a known component.

    Raises:
        LokoctlError: If no component with this name exists.
    """
    try:
        return COMPONENTS[name]
    except KeyError:
        raise LokoctlError(f"component {name!r} not found; available components: {', '.join(sorted(COMPONENTS))}")


def new_component(name: str, config: Optional[Dict[str, Any]] = None) -> Component:
    """Build a component from its configuration block.

    ``namespace`` and ``wait`` keys override the defaults; all other keys are
    Helm values.
    """
    metadata = get_metadata(name)
    values = dict(config or {})
    overrides = {}
    if "namespace" in values:
        overrides["namespace"] = str(values.pop("namespace"))
    if "wait" in values:
        overrides["wait"] = bool(values.pop("wait"))
    if overrides:
        metadata = Metadata(**{**metadata.__dict__, **overrides})
    return Component(metadata=metadata, values=deep_merge({}, values))


class ReleaseManager:
    """Install, upgrade and delete Helm releases of one cluster.

    Release state is read from the cluster on every call.
    """

    def __init__(self, kubeconfig: str, helm_factory: Callable[..., HelmClient] = HelmClient):
        self.kubeconfig = kubeconfig
        self._helm_factory = helm_factory

    def helm(self, namespace: str) -> HelmClient:
        return self._helm_factory(self.kubeconfig, namespace)

    def exists(self, name: str, namespace: str) -> bool:
        """Whether the release has any history.

        Only a missing release counts as not existing. Other failures are
        raised as ReleaseOperationError.
        """
        return self.helm(namespace).history(name) is not None

    def install(self, name: str, namespace: str, chart: Path, values: Dict[str, Any], wait: bool = False) -> None:
        self.helm(namespace).install(name, chart, values, wait=wait)

    def upgrade(self, name: str, namespace: str, chart: Path, values: Dict[str, Any], wait: bool = False) -> None:
        self.helm(namespace).upgrade(name, chart, values, wait=wait)

    def apply(self, name: str, namespace: str, chart: Path, values: Dict[str, Any], wait: bool = False) -> bool:
        """Install the release if it is missing, then always upgrade it.

        Upgrading with unchanged values is a no-op for helm, so first
        deployments and updates share this single path.

        Returns:
            True if the release had to be installed.
        """
        installed = False
        if not self.exists(name, namespace):
            logger.info(f"📦 Release {name!r} not found in namespace {namespace!r}, installing")
            self.install(name, namespace, chart, values, wait=wait)
            installed = True

        logger.info(f"🔄 Ensuring release {name!r} is up to date")
        self.upgrade(name, namespace, chart, values, wait=wait)
        return installed

    def delete(
        self,
        name: str,
        namespace: str,
        delete_namespace: bool = False,
        kube: Optional[KubeClient] = None,
    ) -> bool:
        """Delete a release, treating a missing release as already deleted.

        Returns:
            True if a release was uninstalled.
        """
        helm = self.helm(namespace)
        uninstalled = False
        if helm.history(name) is not None:
            helm.uninstall(name)
            uninstalled = True
        else:
            logger.info(f"Release {name!r} not found in namespace {namespace!r}, nothing to uninstall")

        if delete_namespace:
            kube = kube or KubeClient(self.kubeconfig)
            kube.delete_namespace(namespace)

        return uninstalled
