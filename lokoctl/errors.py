"""Error types raised by lokoctl.

Every error carries an ``exit_code`` so the CLI can map it to a process
status in a single place.
"""
from dataclasses import dataclass
from typing import Iterable, List, Optional


@dataclass(frozen=True)
class Diagnostic:
    """A single configuration problem."""
    summary: str
    detail: str = ""

    def __str__(self) -> str:
        if self.detail:
            return f"{self.summary}: {self.detail}"
        return self.summary


class LokoctlError(Exception):
    """Base exception for lokoctl errors."""
    exit_code = 1


class ConfigValidationError(LokoctlError):
    """Raised when one or more configuration problems were found.

    All diagnostics are collected before raising so they can be reported
    together.
    """
    exit_code = 2

    def __init__(self, diagnostics: Iterable[Diagnostic], message: Optional[str] = None):
        self.diagnostics: List[Diagnostic] = list(diagnostics)
        self.message = message or "Errors found while loading configuration"
        super().__init__(str(self))

    def __str__(self) -> str:
        lines = [self.message]
        lines.extend(f"  - {d}" for d in self.diagnostics)
        return "\n".join(lines)


class RenderError(LokoctlError):
    """Raised when a template can't be rendered."""
    exit_code = 3


class ReconciliationError(LokoctlError):
    """Raised when Terraform fails or returns malformed output."""
    exit_code = 4


class VerificationTimeoutError(LokoctlError):
    """Raised when the cluster does not become ready before the deadline."""
    exit_code = 5


class ReleaseOperationError(LokoctlError):
    """Raised when a Helm install, upgrade or delete fails."""
    exit_code = 6
