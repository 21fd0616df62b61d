"""Helm release operations, run through the ``helm`` binary."""
import json
import logging
import os
import subprocess
import tempfile
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml

from ..config import Config
from ..errors import ReleaseOperationError

logger = logging.getLogger("lokoctl.helm")

# helm prints this when a release has no history.
RELEASE_NOT_FOUND = "release: not found"


def check_chart(path: Union[str, Path]) -> Path:
    """Ensure ``path`` holds a Helm chart.

    Raises:
        ReleaseOperationError: If the directory or its Chart.yaml is missing
            or Chart.yaml is not valid.
    """
    path = Path(path)
    chart_file = path / "Chart.yaml"
    if not chart_file.is_file():
        raise ReleaseOperationError(f"loading chart from {path} failed: Chart.yaml not found")

    try:
        with open(chart_file) as f:
            metadata = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ReleaseOperationError(f"chart {path} is invalid: {e}") from e

    missing = [key for key in ("apiVersion", "name", "version") if not metadata.get(key)]
    if missing:
        raise ReleaseOperationError(f"chart {path} is invalid: missing {', '.join(missing)} in Chart.yaml")
    return path


class HelmClient:
    """Runs helm commands against one namespace of a cluster."""

    def __init__(
        self,
        kubeconfig: str,
        namespace: str,
        binary: Optional[str] = None,
        timeout: Optional[str] = None,
    ):
        self.kubeconfig = kubeconfig
        self.namespace = namespace
        self.binary = binary or Config.HELM_BIN
        self.timeout = timeout or Config.HELM_TIMEOUT

    def _run(self, args: List[str]) -> subprocess.CompletedProcess:
        cmd = [
            self.binary, *args,
            "--namespace", self.namespace,
            "--kubeconfig", self.kubeconfig,
        ]
        cmd_str = ' '.join(cmd)
        logger.debug(f"💻 Running: {cmd_str}")
        try:
            return subprocess.run(cmd, text=True, capture_output=True, check=False)
        except OSError as e:
            raise ReleaseOperationError(f"running {cmd_str}: {e}") from e

    def _check(self, result: subprocess.CompletedProcess, action: str, name: str) -> None:
        if result.returncode != 0:
            raise ReleaseOperationError(
                f"{action} of release {name!r} in namespace {self.namespace!r} failed: "
                f"{(result.stderr or result.stdout or '').strip()}"
            )

    def history(self, name: str) -> Optional[List[Dict[str, Any]]]:
        """Return the revision history of a release, or None if it has none.

        Raises:
            ReleaseOperationError: On any failure other than a missing release.
        """
        result = self._run(["history", name, "--max", "1", "--output", "json"])
        if result.returncode != 0 and RELEASE_NOT_FOUND in (result.stderr or ""):
            return None
        self._check(result, "history lookup", name)

        try:
            return json.loads(result.stdout or "[]")
        except json.JSONDecodeError as e:
            raise ReleaseOperationError(f"parsing history of release {name!r}: {e}") from e

    def _run_with_values(self, args: List[str], values: Dict[str, Any]) -> subprocess.CompletedProcess:
        fd, values_path = tempfile.mkstemp(prefix="lokoctl-values-", suffix=".yaml")
        try:
            with os.fdopen(fd, "w") as f:
                yaml.safe_dump(values or {}, f, default_flow_style=False)
            return self._run([*args, "--values", values_path])
        finally:
            os.unlink(values_path)

    def install(self, name: str, chart: Union[str, Path], values: Dict[str, Any], wait: bool = False) -> None:
        """Install a release. A failed install is rolled back by helm."""
        args = ["install", name, str(chart), "--atomic", "--timeout", self.timeout]
        if wait:
            args.append("--wait")
        self._check(self._run_with_values(args, values), "install", name)

    def upgrade(self, name: str, chart: Union[str, Path], values: Dict[str, Any], wait: bool = False) -> None:
        """Upgrade a release. A failed upgrade rolls back to the previous revision."""
        args = ["upgrade", name, str(chart), "--atomic", "--timeout", self.timeout]
        if wait:
            args.append("--wait")
        self._check(self._run_with_values(args, values), "upgrade", name)

    def uninstall(self, name: str) -> None:
        self._check(self._run(["uninstall", name]), "uninstall", name)
