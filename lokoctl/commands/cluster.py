import typer

from ..modules import lifecycle
from ..modules.backend import create_backend
from . import build_cluster, build_components, load_config

app = typer.Typer(help="Manage clusters.")


@app.command("apply")
def apply_cluster(
    ctx: typer.Context,
    confirm: bool = typer.Option(False, "--confirm", help="Upgrade cluster without asking for confirmation"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show output from Terraform"),
    skip_components: bool = typer.Option(False, "--skip-components", help="Skip applying component configuration"),
    upgrade_kubelets: bool = typer.Option(False, "--upgrade-kubelets", help="Upgrade the kubelet chart as well"),
    kubeconfig_file: str = typer.Option("", "--kubeconfig-file", help="Path to a kubeconfig file"),
):
    """Deploy or update a cluster."""
    config = load_config(ctx)
    cluster = build_cluster(config)
    backend = create_backend(config.backend_name, config.backend)
    components = build_components(config, config.component_names())

    options = lifecycle.ApplyOptions(
        confirm=confirm,
        verbose=verbose,
        skip_components=skip_components,
        upgrade_kubelets=upgrade_kubelets,
        kubeconfig_file=kubeconfig_file,
    )
    typer.echo(f"🚀 Applying cluster configuration from {ctx.obj['lokocfg']}...")
    if not lifecycle.apply_cluster(cluster, backend, components, options):
        raise typer.Exit()


@app.command("destroy")
def destroy_cluster(
    ctx: typer.Context,
    confirm: bool = typer.Option(False, "--confirm", help="Destroy cluster without asking for confirmation"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show output from Terraform"),
):
    """Destroy a cluster."""
    config = load_config(ctx)
    cluster = build_cluster(config)
    backend = create_backend(config.backend_name, config.backend)

    options = lifecycle.DestroyOptions(confirm=confirm, verbose=verbose)
    if not lifecycle.destroy_cluster(cluster, backend, options):
        raise typer.Exit()
