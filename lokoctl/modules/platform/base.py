"""Platform-independent parts of the cluster abstraction."""
import os
from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional

from jinja2 import (
    Environment,
    FileSystemLoader,
    StrictUndefined,
    TemplateNotFound,
    TemplateSyntaxError,
    UndefinedError,
)
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ... import __version__
from ...errors import ConfigValidationError, Diagnostic, RenderError
from ..terraform import ExecutionStep


class Platform(str, Enum):
    """Supported infrastructure platforms."""
    AKS = 'aks'
    PACKET = 'packet'
    BAREMETAL = 'bare-metal'


# Control plane Helm charts deployed on every self-hosted platform. Later
# charts may depend on earlier ones being healthy.
COMMON_CONTROL_PLANE_CHARTS = [
    "calico",
    "kube-apiserver",
    "kubernetes",
    "pod-checkpointer",
]

VERSION_TAG = "lokoctl-version"


class Cluster(ABC):
    """A Lokomotive cluster on a specific platform.

    Implementations render their Terraform root module once, at construction
    time, and are never mutated afterwards.
    """

    @abstractmethod
    def asset_dir(self) -> str:
        """Path to the directory holding all generated assets."""

    @abstractmethod
    def control_plane_charts(self) -> List[str]:
        """Ordered Helm charts which compose the Kubernetes control plane."""

    @abstractmethod
    def managed(self) -> bool:
        """Whether the platform operates the control plane (e.g. AKS)."""

    @abstractmethod
    def nodes(self) -> int:
        """Expected number of nodes, controllers and all workers included."""

    @abstractmethod
    def terraform_execution_plan(self) -> List[ExecutionStep]:
        """Steps to run to get a working cluster.

        The plan is used on cluster creation and update only. Destroying a
        cluster always runs a plain ``terraform destroy``.
        """

    @abstractmethod
    def terraform_root_module(self) -> str:
        """Contents of the Terraform root module for this cluster."""

    @abstractmethod
    def validate(self) -> None:
        """Ensure runtime conditions for managing the cluster are met.

        Configuration validation happens when the cluster is constructed, not
        here. This checks things like environment variables or files the
        configuration points at.
        """


class WorkerPool(BaseModel):
    """A named group of identical worker nodes."""
    model_config = ConfigDict(extra="forbid")

    name: str
    count: int = 0
    labels: Dict[str, str] = Field(default_factory=dict)
    taints: List[str] = Field(default_factory=list)


def parse_config(model, raw: Optional[Dict[str, Any]], what: str = "cluster"):
    """Decode a raw configuration mapping into ``model``.

    Raises:
        ConfigValidationError: With one diagnostic per invalid field.
    """
    try:
        return model(**(raw or {}))
    except ValidationError as e:
        diagnostics = []
        for error in e.errors():
            loc = ".".join(str(part) for part in error["loc"]) or "<root>"
            diagnostics.append(Diagnostic(f"invalid value for {loc!r}", error["msg"]))
        raise ConfigValidationError(diagnostics, f"Errors found while decoding {what} configuration")


def check_not_empty_workers(pools: List[Any]) -> List[Diagnostic]:
    """Check that at least one worker pool is defined."""
    if not pools:
        return [Diagnostic(
            "At least one worker pool must be defined",
            "Make sure to define at least one worker pool in your cluster configuration",
        )]
    return []


def check_unique_names(names: Iterable[str], kind: str = "Worker pool") -> List[Diagnostic]:
    """Report every repeated occurrence of a name; first occurrences are fine."""
    diagnostics = []
    seen = set()
    for name in names:
        if name not in seen:
            seen.add(name)
            continue
        diagnostics.append(Diagnostic(
            f"{kind} names should be unique",
            f"{kind} '{name}' is duplicated",
        ))
    return diagnostics


def check_worker_pool_counts(pools: List[WorkerPool]) -> List[Diagnostic]:
    return [
        Diagnostic(f'pool "{pool.name}": count must be bigger than 0')
        for pool in pools
        if pool.count <= 0
    ]


def check_required_fields(fields: Dict[str, str]) -> List[Diagnostic]:
    return [
        Diagnostic(f"field {name!r} can't be empty")
        for name, value in sorted(fields.items())
        if not value
    ]


def check_credential(value: str, field_name: str, env: str, summary: str) -> List[Diagnostic]:
    """Check that a credential is set in the configuration or environment."""
    if value or os.getenv(env):
        return []
    return [Diagnostic(
        summary,
        f"{field_name!r} field is empty and {env!r} environment variable is not defined. "
        "At least one of these should be defined",
    )]


def append_version_tag(tags: Optional[Dict[str, str]]) -> Dict[str, str]:
    """Return a copy of ``tags`` with the lokoctl version tag added."""
    result = dict(tags or {})
    if __version__:
        result[VERSION_TAG] = __version__
    return result


def get_template_path() -> str:
    """Get the absolute path to the templates directory."""
    return os.path.join(os.path.dirname(os.path.abspath(__file__)), 'templates')


def render_template(name: str, **context: Any) -> str:
    """Render a Terraform template from the templates directory.

    Raises:
        RenderError: If the template is missing, malformed or references an
            undefined value.
    """
    env = Environment(
        loader=FileSystemLoader(get_template_path()),
        trim_blocks=True,
        lstrip_blocks=True,
        keep_trailing_newline=True,
        undefined=StrictUndefined,
    )
    try:
        template = env.get_template(name)
        return template.render(**context)
    except TemplateNotFound as e:
        raise RenderError(f"template not found: {e}") from e
    except TemplateSyntaxError as e:
        raise RenderError(f"template syntax error in {name}: {e}") from e
    except UndefinedError as e:
        raise RenderError(f"missing required template variable in {name}: {e}") from e
