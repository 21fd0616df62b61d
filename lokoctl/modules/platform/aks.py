"""Azure AKS platform.

AKS operates the Kubernetes control plane itself, so no control plane charts
are deployed or upgraded on it.
"""
import logging
import os
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from ...errors import ConfigValidationError, Diagnostic, RenderError
from ..terraform import ExecutionStep
from .base import (
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

logger = logging.getLogger("lokoctl.platform.aks")

# Environment variables used to load sensitive parts of the configuration.
CLIENT_ID_ENV = "LOKOMOTIVE_AKS_CLIENT_ID"
CLIENT_SECRET_ENV = "LOKOMOTIVE_AKS_CLIENT_SECRET"  # nosec B105
SUBSCRIPTION_ID_ENV = "LOKOMOTIVE_AKS_SUBSCRIPTION_ID"
TENANT_ID_ENV = "LOKOMOTIVE_AKS_TENANT_ID"

KUBERNETES_VERSION = "1.16.10"


class AKSWorkerPool(WorkerPool):
    vm_size: str = ""


class AKSConfig(BaseModel):
    """Configuration of an AKS cluster."""
    model_config = ConfigDict(extra="forbid")

    asset_dir: str = ""
    cluster_name: str = ""
    tags: Dict[str, str] = Field(default_factory=dict)

    tenant_id: str = ""
    subscription_id: str = ""
    client_id: str = ""
    client_secret: str = ""

    location: str = "West Europe"
    # Name of the service principal application to create.
    application_name: str = ""

    resource_group_name: str = ""
    manage_resource_group: bool = True

    worker_pools: List[AKSWorkerPool] = Field(default_factory=list)

    kubernetes_version: str = KUBERNETES_VERSION

    def validate_config(self) -> List[Diagnostic]:
        """Return every problem found in the configuration."""
        diagnostics: List[Diagnostic] = []
        diagnostics += check_not_empty_workers(self.worker_pools)
        diagnostics += check_unique_names(pool.name for pool in self.worker_pools)
        diagnostics += self._check_worker_pools()
        diagnostics += self._check_credentials()
        diagnostics += self._check_required_fields()
        return diagnostics

    def _check_worker_pools(self) -> List[Diagnostic]:
        diagnostics = [
            Diagnostic(f'pool "{pool.name}": VMSize field can\'t be empty')
            for pool in self.worker_pools
            if not pool.vm_size
        ]
        return diagnostics + check_worker_pool_counts(self.worker_pools)

    def _check_credentials(self) -> List[Diagnostic]:
        # With an application name set we work as an account privileged to
        # create a new Azure AD application, so client credentials must not
        # be given.
        if self.application_name:
            diagnostics = []
            if self.client_id:
                diagnostics.append(Diagnostic("ClientID and ApplicationName are mutually exclusive"))
            if self.client_secret:
                diagnostics.append(Diagnostic("ClientSecret and ApplicationName are mutually exclusive"))
            return diagnostics

        return (
            check_credential(self.client_secret, "client_secret", CLIENT_SECRET_ENV,
                             "cannot find the Azure client secret")
            + check_credential(self.client_id, "client_id", CLIENT_ID_ENV,
                               "cannot find the Azure client ID")
        )

    def _check_required_fields(self) -> List[Diagnostic]:
        diagnostics = check_credential(self.subscription_id, "subscription_id", SUBSCRIPTION_ID_ENV,
                                       "cannot find the Azure subscription ID")
        diagnostics += check_credential(self.tenant_id, "tenant_id", TENANT_ID_ENV,
                                        "cannot find the Azure tenant ID")
        diagnostics += check_required_fields({
            "asset_dir": self.asset_dir,
            "cluster_name": self.cluster_name,
            "resource_group_name": self.resource_group_name,
        })
        return diagnostics


def new_config(raw: Optional[Dict[str, Any]]) -> AKSConfig:
    """Decode and validate an AKS configuration.

    Credentials missing from the configuration are taken from the
    environment.

    Raises:
        ConfigValidationError: With all problems found.
    """
    config = parse_config(AKSConfig, raw)

    diagnostics = config.validate_config()
    if diagnostics:
        raise ConfigValidationError(diagnostics, "Errors found while loading cluster configuration")

    return config.model_copy(update={
        "client_secret": config.client_secret or os.getenv(CLIENT_SECRET_ENV, ""),
        "subscription_id": config.subscription_id or os.getenv(SUBSCRIPTION_ID_ENV, ""),
        "client_id": config.client_id or os.getenv(CLIENT_ID_ENV, ""),
        "tenant_id": config.tenant_id or os.getenv(TENANT_ID_ENV, ""),
    })


def render_root_module(config: AKSConfig) -> str:
    return render_template(
        "aks.tf.j2",
        config=config,
        tags=append_version_tag(config.tags),
        default_pool=config.worker_pools[0],
        additional_pools=config.worker_pools[1:],
    )


class AKSCluster(Cluster):
    """Cluster implementation for AKS."""

    def __init__(self, config: AKSConfig):
        self.config = config
        try:
            self._root_module = render_root_module(config)
        except RenderError as e:
            raise RenderError(f"rendering root module: {e}") from e

    def asset_dir(self) -> str:
        return self.config.asset_dir

    def control_plane_charts(self) -> List[str]:
        return []

    def managed(self) -> bool:
        return True

    def nodes(self) -> int:
        return sum(pool.count for pool in self.config.worker_pools)

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
        # Credentials may have been unset since the configuration was read.
        diagnostics = self.config._check_credentials() + self.config._check_required_fields()
        if diagnostics:
            raise ConfigValidationError(diagnostics, "Cluster config validation failed")
        logger.debug("AKS cluster %s validated", self.config.cluster_name)
