"""
Cluster platforms.

Each supported platform provides a configuration model and a Cluster
implementation. ``create_cluster`` is the single place mapping a platform
name to its implementation.
"""
from typing import Any, Dict, Optional

from ...errors import ConfigValidationError, Diagnostic
from . import aks, baremetal, packet
from .base import COMMON_CONTROL_PLANE_CHARTS, Cluster, Platform

__all__ = [
    'COMMON_CONTROL_PLANE_CHARTS',
    'Cluster',
    'Platform',
    'create_cluster',
]


def create_cluster(platform: str, raw: Optional[Dict[str, Any]]) -> Cluster:
    """Construct a Cluster from decoded configuration.

    Raises:
        ConfigValidationError: If the platform is unknown or its
            configuration is invalid.
        RenderError: If the root module can't be rendered.
    """
    try:
        p = Platform(platform)
    except ValueError:
        known = ", ".join(repr(p.value) for p in Platform)
        raise ConfigValidationError(
            [Diagnostic(f"unknown platform {platform!r}", f"supported platforms: {known}")],
            "Errors found while loading cluster configuration",
        )

    if p is Platform.AKS:
        return aks.AKSCluster(aks.new_config(raw))
    if p is Platform.PACKET:
        return packet.PacketCluster(packet.new_config(raw))
    if p is Platform.BAREMETAL:
        return baremetal.BareMetalCluster(baremetal.new_config(raw))

    raise AssertionError(f"unhandled platform {p!r}")
