from typing import List, Optional

import typer

from ..modules import assets, lifecycle
from ..modules.components import ReleaseManager
from ..modules.k8s import KubeClient
from . import build_components, load_config

app = typer.Typer(help="Manage components.")


@app.command("apply")
def apply_components(
    ctx: typer.Context,
    names: Optional[List[str]] = typer.Argument(None, help="Components to apply, all configured ones if omitted"),
    kubeconfig_file: str = typer.Option("", "--kubeconfig-file", help="Path to a kubeconfig file"),
):
    """Deploy or update components."""
    config = load_config(ctx)
    selected = lifecycle.select_components(names or [], config.component_names())
    components = build_components(config, selected)

    kubeconfig = assets.get_kubeconfig(kubeconfig_file, config.cluster.get("asset_dir", ""))
    typer.echo(f"Using kubeconfig {kubeconfig}")
    lifecycle.apply_components(components, ReleaseManager(kubeconfig), KubeClient(kubeconfig))


@app.command("delete")
def delete_components(
    ctx: typer.Context,
    names: Optional[List[str]] = typer.Argument(None, help="Components to delete, all configured ones if omitted"),
    confirm: bool = typer.Option(False, "--confirm", help="Delete components without asking for confirmation"),
    delete_namespace: bool = typer.Option(False, "--delete-namespace", help="Delete the namespaces of the components"),
    kubeconfig_file: str = typer.Option("", "--kubeconfig-file", help="Path to a kubeconfig file"),
):
    """Delete components.

    Components no longer present in the configuration can still be deleted
    by name.
    """
    config = load_config(ctx)
    components = build_components(config, names or config.component_names())

    kubeconfig = assets.get_kubeconfig(kubeconfig_file, config.cluster.get("asset_dir", ""))
    options = lifecycle.DeleteOptions(confirm=confirm, delete_namespace=delete_namespace)
    if not lifecycle.delete_components(components, options, ReleaseManager(kubeconfig)):
        raise typer.Exit()
