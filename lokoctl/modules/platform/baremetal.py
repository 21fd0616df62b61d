"""Bare metal platform, provisioned through Matchbox."""
import logging
import os
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from ...errors import ConfigValidationError, Diagnostic, RenderError
from ..terraform import ExecutionStep
from .base import (
    COMMON_CONTROL_PLANE_CHARTS,
    Cluster,
    append_version_tag,
    check_required_fields,
    check_unique_names,
    parse_config,
    render_template,
)

logger = logging.getLogger("lokoctl.platform.baremetal")


class BareMetalConfig(BaseModel):
    """Configuration of a bare metal cluster.

    Machines are listed as parallel lists of names, MAC addresses and
    domains, one entry per machine.
    """
    model_config = ConfigDict(extra="forbid")

    asset_dir: str = ""
    cluster_name: str = ""
    tags: Dict[str, str] = Field(default_factory=dict)

    cached_install: bool = False
    k8s_domain_name: str = ""

    controller_names: List[str] = Field(default_factory=list)
    controller_macs: List[str] = Field(default_factory=list)
    controller_domains: List[str] = Field(default_factory=list)
    worker_names: List[str] = Field(default_factory=list)
    worker_macs: List[str] = Field(default_factory=list)
    worker_domains: List[str] = Field(default_factory=list)

    matchbox_ca_path: str = ""
    matchbox_client_cert_path: str = ""
    matchbox_client_key_path: str = ""
    matchbox_endpoint: str = ""
    matchbox_http_endpoint: str = ""

    os_channel: str = "flatcar-stable"
    os_version: str = "current"
    network_mtu: int = 1500
    ssh_pubkeys: List[str] = Field(default_factory=list)
    labels: Dict[str, str] = Field(default_factory=dict)

    def validate_config(self) -> List[Diagnostic]:
        """Return every problem found in the configuration."""
        diagnostics: List[Diagnostic] = []

        if not self.controller_names:
            diagnostics.append(Diagnostic("At least one controller must be defined"))
        if not self.worker_names:
            diagnostics.append(Diagnostic(
                "At least one worker must be defined",
                "Make sure to list at least one machine in worker_names",
            ))

        diagnostics += self._check_parallel_lists(
            "controller", self.controller_names, self.controller_macs, self.controller_domains
        )
        diagnostics += self._check_parallel_lists(
            "worker", self.worker_names, self.worker_macs, self.worker_domains
        )
        diagnostics += check_unique_names(self.controller_names + self.worker_names, kind="Node")

        if not self.ssh_pubkeys:
            diagnostics.append(Diagnostic("At least one SSH public key must be defined"))

        diagnostics += check_required_fields({
            "asset_dir": self.asset_dir,
            "cluster_name": self.cluster_name,
            "k8s_domain_name": self.k8s_domain_name,
            "matchbox_ca_path": self.matchbox_ca_path,
            "matchbox_client_cert_path": self.matchbox_client_cert_path,
            "matchbox_client_key_path": self.matchbox_client_key_path,
            "matchbox_endpoint": self.matchbox_endpoint,
            "matchbox_http_endpoint": self.matchbox_http_endpoint,
        })
        return diagnostics

    @staticmethod
    def _check_parallel_lists(role: str, names: List[str], macs: List[str], domains: List[str]) -> List[Diagnostic]:
        if len(names) == len(macs) == len(domains):
            return []
        return [Diagnostic(
            f"{role} names, MAC addresses and domains must have the same length",
            f"got {len(names)} names, {len(macs)} MAC addresses and {len(domains)} domains",
        )]


def new_config(raw: Optional[Dict[str, Any]]) -> BareMetalConfig:
    """Decode and validate a bare metal configuration.

    Raises:
        ConfigValidationError: With all problems found.
    """
    config = parse_config(BareMetalConfig, raw)

    diagnostics = config.validate_config()
    if diagnostics:
        raise ConfigValidationError(diagnostics, "Errors found while loading cluster configuration")

    return config


def render_root_module(config: BareMetalConfig) -> str:
    return render_template(
        "baremetal.tf.j2",
        config=config,
        tags=append_version_tag(config.tags),
    )


class BareMetalCluster(Cluster):
    """Cluster implementation for bare metal machines."""

    def __init__(self, config: BareMetalConfig):
        self.config = config
        try:
            self._root_module = render_root_module(config)
        except RenderError as e:
            raise RenderError(f"rendering root module: {e}") from e

    def asset_dir(self) -> str:
        return self.config.asset_dir

    def control_plane_charts(self) -> List[str]:
        return COMMON_CONTROL_PLANE_CHARTS + ["kubelet"]

    def managed(self) -> bool:
        return False

    def nodes(self) -> int:
        return len(self.config.controller_names) + len(self.config.worker_names)

    def terraform_execution_plan(self) -> List[ExecutionStep]:
        return [
            ExecutionStep(
                description="Create infrastructure",
                args=["apply", "-auto-approve"],
            ),
        ]

    def terraform_root_module(self) -> str:
        return self._root_module

    def validate(self) -> None:
        diagnostics = []
        for field_name in ("matchbox_ca_path", "matchbox_client_cert_path", "matchbox_client_key_path"):
            path = os.path.expanduser(getattr(self.config, field_name))
            if not os.path.isfile(path):
                diagnostics.append(Diagnostic(f"{field_name}: file {path!r} does not exist"))
        if diagnostics:
            raise ConfigValidationError(diagnostics, "Cluster config validation failed")
        logger.debug("Bare metal cluster %s validated", self.config.cluster_name)
