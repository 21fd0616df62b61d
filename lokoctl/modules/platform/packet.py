"""Packet (Equinix Metal) platform."""
import json
import logging
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

import typer
from pydantic import BaseModel, ConfigDict, Field

from ...errors import ConfigValidationError, Diagnostic, LokoctlError, RenderError
from ..terraform import ExecutionStep, Executor
from ..utils import ask_for_confirmation
from .base import (
    COMMON_CONTROL_PLANE_CHARTS,
    Cluster,
    WorkerPool,
    append_version_tag,
    check_credential,
    check_not_empty_workers,
    check_required_fields,
    check_unique_names,
    check_worker_pool_counts,
    parse_config,
    render_template,
)

logger = logging.getLogger("lokoctl.platform.packet")

AUTH_TOKEN_ENV = "PACKET_AUTH_TOKEN"  # nosec B105


class DNSProvider(str, Enum):
    ROUTE53 = 'route53'
    CLOUDFLARE = 'cloudflare'
    MANUAL = 'manual'


class DNSConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    zone: str = ""
    provider: DNSProvider = DNSProvider.ROUTE53


class PacketWorkerPool(WorkerPool):
    node_type: str = "c3.small.x86"
    os_channel: str = "stable"
    disable_bgp: bool = False


class PacketConfig(BaseModel):
    """Configuration of a Packet cluster."""
    model_config = ConfigDict(extra="forbid")

    asset_dir: str = ""
    cluster_name: str = ""
    tags: Dict[str, str] = Field(default_factory=dict)

    auth_token: str = ""
    project_id: str = ""
    facility: str = ""

    controller_count: int = 1
    controller_type: str = "c3.small.x86"
    os_channel: str = "stable"
    ipxe_script_url: str = ""
    ssh_pubkeys: List[str] = Field(default_factory=list)

    dns: DNSConfig = Field(default_factory=DNSConfig)
    cluster_domain_suffix: str = "cluster.local"
    management_cidrs: List[str] = Field(default_factory=lambda: ["0.0.0.0/0"])
    node_private_cidr: str = "10.0.0.0/8"
    enable_aggregation: bool = True

    worker_pools: List[PacketWorkerPool] = Field(default_factory=list)

    def validate_config(self) -> List[Diagnostic]:
        """Return every problem found in the configuration."""
        diagnostics: List[Diagnostic] = []
        diagnostics += check_not_empty_workers(self.worker_pools)
        diagnostics += check_unique_names(pool.name for pool in self.worker_pools)
        diagnostics += check_worker_pool_counts(self.worker_pools)
        if self.controller_count <= 0:
            diagnostics.append(Diagnostic("controller_count must be bigger than 0"))
        if not self.ssh_pubkeys:
            diagnostics.append(Diagnostic(
                "At least one SSH public key must be defined",
                "Set the ssh_pubkeys field to be able to log in to the nodes",
            ))
        diagnostics += check_required_fields({
            "asset_dir": self.asset_dir,
            "cluster_name": self.cluster_name,
            "project_id": self.project_id,
            "facility": self.facility,
            "dns.zone": self.dns.zone,
        })
        return diagnostics


def new_config(raw: Optional[Dict[str, Any]]) -> PacketConfig:
    """Decode and validate a Packet configuration.

    Raises:
        ConfigValidationError: With all problems found.
    """
    config = parse_config(PacketConfig, raw)

    diagnostics = config.validate_config()
    if diagnostics:
        raise ConfigValidationError(diagnostics, "Errors found while loading cluster configuration")

    return config


def render_root_module(config: PacketConfig) -> str:
    return render_template(
        "packet.tf.j2",
        config=config,
        tags=append_version_tag(config.tags),
        manual_dns=config.dns.provider == DNSProvider.MANUAL,
    )


def format_dns_entries(entries: Any) -> str:
    """Format the ``dns_entries`` Terraform output for display."""
    if not isinstance(entries, list):
        raise LokoctlError(f"unexpected format of DNS entries: {json.dumps(entries)}")

    lines = []
    for entry in entries:
        records = ", ".join(entry.get("records", []))
        lines.append(f"  {entry.get('name')}  {entry.get('type', 'A')}  {entry.get('ttl', 300)}  {records}")
    return "\n".join(lines)


class PacketCluster(Cluster):
    """Cluster implementation for Packet."""

    def __init__(self, config: PacketConfig, confirm: Callable[[str], bool] = ask_for_confirmation):
        self.config = config
        self._confirm = confirm
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
        return self.config.controller_count + sum(pool.count for pool in self.config.worker_pools)

    def terraform_execution_plan(self) -> List[ExecutionStep]:
        if self.config.dns.provider != DNSProvider.MANUAL:
            return [
                ExecutionStep(
                    description="Create infrastructure",
                    args=["apply", "-auto-approve"],
                ),
            ]

        # Controllers must exist before their DNS records can be created by
        # the user, and the rest of the cluster needs those records.
        return [
            ExecutionStep(
                description="Create controllers",
                args=[
                    "apply",
                    "-auto-approve",
                    f"-target=module.packet-{self.config.cluster_name}.packet_device.controllers",
                ],
            ),
            ExecutionStep(
                description="Create remaining infrastructure",
                args=["apply", "-auto-approve"],
                pre_execution_hook=self._wait_for_manual_dns,
            ),
        ]

    def _wait_for_manual_dns(self, executor: Executor) -> None:
        entries = executor.output("dns_entries")
        typer.echo("Please configure the following DNS entries at the DNS provider which hosts "
                   f"zone {self.config.dns.zone!r}:")
        typer.echo(format_dns_entries(entries))
        if not self._confirm("Are the DNS entries in place?"):
            raise LokoctlError("DNS entries were not confirmed")

    def terraform_root_module(self) -> str:
        return self._root_module

    def validate(self) -> None:
        diagnostics = check_credential(
            self.config.auth_token, "auth_token", AUTH_TOKEN_ENV, "cannot find the Packet auth token"
        )
        if diagnostics:
            raise ConfigValidationError(diagnostics, "Cluster config validation failed")
        logger.debug("Packet cluster %s validated", self.config.cluster_name)
