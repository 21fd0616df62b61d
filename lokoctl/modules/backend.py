"""Terraform state backends.

When no backend is configured the local backend is used, which renders to an
empty string so Terraform falls back to its default local state file.
"""
import os
from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict

from ..errors import ConfigValidationError, Diagnostic
from .platform.base import parse_config


class BackendName(str, Enum):
    LOCAL = 'local'
    S3 = 's3'


class Backend(ABC):
    """Where Terraform keeps the cluster state."""

    @abstractmethod
    def render(self) -> str:
        """Render the body of the ``terraform {}`` block, or an empty string."""

    @abstractmethod
    def validate(self) -> None:
        """Raise ConfigValidationError if the backend can't be used."""


class LocalConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    path: str = ""


class LocalBackend(Backend):
    def __init__(self, config: Optional[LocalConfig] = None):
        self.config = config or LocalConfig()

    def render(self) -> str:
        if not self.config.path:
            return ""
        return f'\n  backend "local" {{\n    path = "{self.config.path}"\n  }}\n'

    def validate(self) -> None:
        return None


class S3Config(BaseModel):
    model_config = ConfigDict(extra="forbid")

    bucket: str = ""
    key: str = ""
    region: str = ""
    aws_creds_path: str = ""
    dynamodb_table: str = ""


class S3Backend(Backend):
    def __init__(self, config: S3Config):
        self.config = config

    def render(self) -> str:
        lines = [
            f'bucket = "{self.config.bucket}"',
            f'key    = "{self.config.key}"',
        ]
        if self.config.region:
            lines.append(f'region = "{self.config.region}"')
        if self.config.aws_creds_path:
            lines.append(f'shared_credentials_file = "{self.config.aws_creds_path}"')
        if self.config.dynamodb_table:
            lines.append(f'dynamodb_table = "{self.config.dynamodb_table}"')

        body = "".join(f"    {line}\n" for line in lines)
        return f'\n  backend "s3" {{\n{body}  }}\n'

    def validate(self) -> None:
        diagnostics: List[Diagnostic] = []
        if not self.config.bucket:
            diagnostics.append(Diagnostic("no bucket specified"))
        if not self.config.key:
            diagnostics.append(Diagnostic("no key specified"))
        if not self.config.region and not os.getenv("AWS_DEFAULT_REGION"):
            diagnostics.append(Diagnostic(
                "no region specified",
                "set the region field or the AWS_DEFAULT_REGION environment variable",
            ))
        if self.config.aws_creds_path and not os.path.isfile(os.path.expanduser(self.config.aws_creds_path)):
            diagnostics.append(Diagnostic(f"AWS credentials file {self.config.aws_creds_path!r} does not exist"))
        if diagnostics:
            raise ConfigValidationError(diagnostics, "Backend config validation failed")


def create_backend(name: Optional[str], raw: Optional[Dict[str, Any]] = None) -> Backend:
    """Construct the configured backend, defaulting to the local one."""
    if not name:
        return LocalBackend()

    try:
        backend_name = BackendName(name)
    except ValueError:
        raise ConfigValidationError(
            [Diagnostic(f"unknown backend {name!r}")],
            "Errors found while loading backend configuration",
        )

    if backend_name is BackendName.LOCAL:
        return LocalBackend(parse_config(LocalConfig, raw, "backend"))
    if backend_name is BackendName.S3:
        return S3Backend(parse_config(S3Config, raw, "backend"))

    raise AssertionError(f"unhandled backend {backend_name!r}")


def render_backend_file(backend: Backend) -> str:
    """Return the contents of ``backend.tf``, or an empty string if none is needed."""
    rendered = backend.render()
    if not rendered.strip():
        return ""
    return f"terraform {{{rendered}}}\n"
