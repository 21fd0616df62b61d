"""Cluster and component reconciliation.

The functions here drive Terraform, the Kubernetes API and Helm in the order
needed to bring a cluster to its configured state. Clients are created
through factories which tests replace with fakes.
"""
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence

import typer
import yaml

from ..errors import LokoctlError, ReleaseOperationError
from . import assets
from .backend import Backend, render_backend_file
from .components import Component, ReleaseManager
from .helm import check_chart
from .k8s import KubeClient, Namespace
from .platform import Cluster
from .terraform import Executor, cluster_exists, execute_plan
from .utils import ask_for_confirmation
from .verify import Poller, verify_cluster, wait_for_deployment

logger = logging.getLogger("lokoctl.lifecycle")

KUBELET_CHART = "kubelet"


@dataclass
class ApplyOptions:
    """Flags of ``cluster apply`` and ``component apply``."""
    confirm: bool = False
    verbose: bool = False
    skip_components: bool = False
    upgrade_kubelets: bool = False
    kubeconfig_file: str = ""


@dataclass
class DestroyOptions:
    confirm: bool = False
    verbose: bool = False


@dataclass
class DeleteOptions:
    """Flags of ``component delete``."""
    confirm: bool = False
    delete_namespace: bool = False


def prepare_terraform(
    cluster: Cluster,
    backend: Backend,
    verbose: bool = False,
    executor_factory: Callable[..., Executor] = Executor,
) -> Executor:
    """Write the Terraform configuration of a cluster and initialize it."""
    backend.validate()
    cluster.validate()

    asset_dir = cluster.asset_dir()
    working_dir = assets.prepare_terraform_dir(asset_dir)
    if not cluster.managed():
        assets.install_modules(asset_dir)
        assets.install_control_plane_charts(asset_dir, cluster.control_plane_charts())

    if assets.write_backend(asset_dir, render_backend_file(backend)) is None:
        logger.debug("No backend configured, using local Terraform state")
    assets.write_root_module(asset_dir, cluster.terraform_root_module())

    executor = executor_factory(working_dir, verbose=verbose)
    executor.init()
    return executor


def apply_cluster(
    cluster: Cluster,
    backend: Backend,
    components: Sequence[Component],
    options: ApplyOptions,
    executor_factory: Callable[..., Executor] = Executor,
    kube_factory: Callable[[str], KubeClient] = KubeClient,
    releases_factory: Callable[[str], ReleaseManager] = ReleaseManager,
    confirm: Callable[[str], bool] = ask_for_confirmation,
    poller: Optional[Poller] = None,
    deployment_poller: Optional[Poller] = None,
) -> bool:
    """Create or update a cluster, then apply its components.

    Returns:
        False if the user declined to apply changes to an existing cluster.
    """
    executor = prepare_terraform(cluster, backend, options.verbose, executor_factory)

    exists = cluster_exists(executor)
    if exists and not options.confirm:
        executor.plan()
        if not confirm("Do you want to proceed with cluster apply?"):
            typer.echo("Cluster apply cancelled")
            return False

    execute_plan(executor, cluster.terraform_execution_plan())
    typer.echo("✅ Your configurations are stored in " + cluster.asset_dir())

    kubeconfig = assets.get_kubeconfig(options.kubeconfig_file, cluster.asset_dir())
    kube = kube_factory(kubeconfig)
    typer.echo("⏳ Waiting for the cluster to become ready...")
    verify_cluster(kube, cluster.nodes(), poller)

    releases = releases_factory(kubeconfig)
    if exists and not cluster.managed():
        upgrade_control_plane(cluster, releases, options.upgrade_kubelets)

    if options.skip_components:
        logger.info("Skipping component installation")
        return True

    apply_components(components, releases, kube, deployment_poller)
    return True


def load_values(path: Path) -> Dict[str, Any]:
    """Read the Helm values file of a control plane chart.

    The files are generated by Terraform. Upgrading without them would reset
    the control plane to chart defaults, so a missing file is an error.
    """
    if not path.is_file():
        raise ReleaseOperationError(
            f"values file {str(path)!r} not found; it is generated by Terraform when the cluster is applied"
        )
    try:
        with open(path) as f:
            return yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        raise LokoctlError(f"reading values file {str(path)!r}: {e}") from e


def upgrade_control_plane(cluster: Cluster, releases: ReleaseManager, upgrade_kubelets: bool = False) -> None:
    """Upgrade the control plane charts of a self-hosted cluster in order.

    The kubelet chart is only upgraded on request since restarting kubelets
    disrupts workloads on every node.
    """
    for chart in cluster.control_plane_charts():
        if chart == KUBELET_CHART and not upgrade_kubelets:
            logger.info("Skipping kubelet upgrade, use --upgrade-kubelets to upgrade it")
            continue

        typer.echo(f"🔄 Ensuring that control plane component {chart!r} is up to date")
        path = check_chart(assets.control_plane_chart(cluster.asset_dir(), chart))
        values = load_values(assets.control_plane_values_file(cluster.asset_dir(), chart))
        releases.apply(chart, assets.CONTROL_PLANE_NAMESPACE, path, values, wait=True)


def apply_component(
    component: Component,
    releases: ReleaseManager,
    kube: KubeClient,
    deployment_poller: Optional[Poller] = None,
) -> None:
    chart = check_chart(component.chart_path())
    kube.ensure_namespace(Namespace(component.namespace, labels=component.namespace_labels()))
    releases.apply(component.name, component.namespace, chart, component.values, wait=component.metadata.wait)

    if component.metadata.wait:
        for deployment in component.metadata.deployments:
            wait_for_deployment(kube, component.namespace, deployment, deployment_poller)


def apply_components(
    components: Sequence[Component],
    releases: ReleaseManager,
    kube: KubeClient,
    deployment_poller: Optional[Poller] = None,
) -> None:
    """Apply components in order, stopping at the first failure."""
    for component in components:
        typer.echo(f"📦 Applying component {component.name!r}...")
        apply_component(component, releases, kube, deployment_poller)
        typer.echo(f"✅ Successfully applied component {component.name!r} configuration!")


def delete_components(
    components: Sequence[Component],
    options: DeleteOptions,
    releases: ReleaseManager,
    kube: Optional[KubeClient] = None,
    confirm: Callable[[str], bool] = ask_for_confirmation,
) -> bool:
    """Delete the releases of the given components.

    Returns:
        False if the user declined.
    """
    if not components:
        typer.echo("No components to delete")
        return True

    if not options.confirm:
        names = ", ".join(c.name for c in components)
        if not confirm(f"The following components will be deleted: {names}. Are you sure?"):
            typer.echo("Components deletion cancelled")
            return False

    for component in components:
        typer.echo(f"🗑️  Deleting component {component.name!r}...")
        releases.delete(component.name, component.namespace, options.delete_namespace, kube)
        typer.echo(f"✅ Successfully deleted component {component.name!r}!")
    return True


def destroy_cluster(
    cluster: Cluster,
    backend: Backend,
    options: DestroyOptions,
    executor_factory: Callable[..., Executor] = Executor,
    confirm: Callable[[str], bool] = ask_for_confirmation,
) -> bool:
    """Destroy all infrastructure of a cluster.

    Returns:
        False if the user declined.
    """
    if not options.confirm and not confirm("WARNING: This action cannot be undone. Do you really want to destroy the cluster?"):
        typer.echo("Cluster destroy cancelled")
        return False

    executor = prepare_terraform(cluster, backend, options.verbose, executor_factory)
    if not cluster_exists(executor):
        typer.echo("Cluster does not exist, nothing to destroy")
        return True

    executor.destroy()
    typer.echo("✅ Cluster destroyed successfully")
    return True


def select_components(names: List[str], configured: List[str]) -> List[str]:
    """Pick the components an invocation acts on.

    With no explicit names every configured component is selected.

    Raises:
        LokoctlError: If a requested component is not configured.
    """
    if not names:
        return list(configured)
    missing = [name for name in names if name not in configured]
    if missing:
        raise LokoctlError(f"components not found in configuration: {', '.join(missing)}")
    return list(names)
