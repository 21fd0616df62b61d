import logging
import sys

import typer

from . import __version__
from .commands import cluster, component
from .config import Config
from .errors import LokoctlError
from .logging import setup_logging

logger = logging.getLogger("lokoctl")

app = typer.Typer(help="Lokomotive cluster management CLI.", no_args_is_help=True)

# Add all command groups
app.add_typer(cluster.app, name="cluster")
app.add_typer(component.app, name="component")


def _print_version(value: bool):
    if value:
        typer.echo(f"lokoctl version {__version__}")
        raise typer.Exit()


# Global options callback
@app.callback()
def callback(
    ctx: typer.Context,
    debug: bool = typer.Option(False, "--debug", "-d", help="Enable debug logging"),
    lokocfg: str = typer.Option(Config.LOKOCFG, "--lokocfg", help="Path to a lokocfg file or a directory of lokocfg files"),
    lokocfg_vars: str = typer.Option(Config.LOKOCFG_VARS, "--lokocfg-vars", help="Path to the lokocfg variables file"),
    version: bool = typer.Option(False, "--version", callback=_print_version, is_eager=True, help="Show version and exit"),
):
    """lokoctl - provision Kubernetes clusters and deploy components on them."""
    setup_logging(debug)
    if debug:
        logger.debug("Debug mode enabled")
    ctx.obj = {"debug": debug, "lokocfg": lokocfg, "lokocfg_vars": lokocfg_vars}


def main():
    """Entry point. The only place errors are turned into exit codes."""
    try:
        app()
    except LokoctlError as e:
        if logger.isEnabledFor(logging.DEBUG):
            logger.exception(f"❌ {e}")
        else:
            logger.error(f"❌ {e}")
        sys.exit(e.exit_code)
    except Exception as e:
        if logger.isEnabledFor(logging.DEBUG):
            logger.exception(f"Unhandled exception: {e}")
        else:
            logger.error(f"Error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
