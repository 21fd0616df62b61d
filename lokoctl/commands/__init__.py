"""CLI command groups and the helpers they share."""
from typing import List

import typer

from ..errors import ConfigValidationError, Diagnostic
from ..modules import lokocfg
from ..modules.components import Component, new_component
from ..modules.platform import Cluster, create_cluster


def load_config(ctx: typer.Context) -> lokocfg.LokoConfig:
    """Load the configuration selected by the global options."""
    obj = ctx.obj or {}
    return lokocfg.load(obj["lokocfg"], obj["lokocfg_vars"])


def build_cluster(config: lokocfg.LokoConfig) -> Cluster:
    if not config.platform:
        raise ConfigValidationError(
            [Diagnostic("no cluster configured", "add a 'cluster' block with a platform")],
            "Errors found while loading cluster configuration",
        )
    return create_cluster(config.platform, config.cluster)


def build_components(config: lokocfg.LokoConfig, names: List[str]) -> List[Component]:
    return [new_component(name, config.component_config(name)) for name in names]
