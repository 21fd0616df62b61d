"""Terraform execution.

An execution plan is an ordered list of :class:`ExecutionStep` objects. Each
step is passed to the ``terraform`` binary through an :class:`Executor`
rooted at the cluster's Terraform working directory.
"""
import json
import logging
import os
import shutil
import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence, Union

from ..config import Config
from ..errors import LokoctlError, ReconciliationError

logger = logging.getLogger("lokoctl.terraform")


@dataclass
class ExecutionStep:
    """A step in a Terraform execution plan.

    Attributes:
        description: Short, user-facing description of the step, e.g.
            "Create DNS resources". Included in errors when the step fails.
        args: Arguments for the ``terraform`` command. ``apply`` steps should
            include ``-auto-approve`` so Terraform never prompts.
        pre_execution_hook: Called with the executor before ``args`` are run.
            Raising from the hook halts the plan.
    """
    description: str
    args: List[str] = field(default_factory=list)
    pre_execution_hook: Optional[Callable[["Executor"], None]] = None


class Executor:
    """Runs ``terraform`` commands in a working directory."""

    def __init__(
        self,
        working_dir: Union[str, Path],
        verbose: bool = False,
        binary: Optional[str] = None,
    ):
        self.working_dir = Path(working_dir)
        self.verbose = verbose
        self.binary = binary or Config.TERRAFORM_BIN

        if shutil.which(self.binary) is None:
            raise ReconciliationError(f"Terraform binary {self.binary!r} not found in PATH")
        if not self.working_dir.is_dir():
            raise ReconciliationError(f"Terraform working directory {self.working_dir} does not exist")

        self.env = {**os.environ, "TF_IN_AUTOMATION": "1"}

    def _run(self, args: Sequence[str], capture_output: bool = False) -> subprocess.CompletedProcess:
        cmd = [self.binary, *args]
        cmd_str = ' '.join(cmd)
        logger.debug(f"💻 Running: {cmd_str}")

        # Output is streamed to the terminal only in verbose mode, except for
        # commands whose output we need to parse.
        capture = capture_output or not self.verbose
        try:
            result = subprocess.run(
                cmd,
                cwd=self.working_dir,
                env=self.env,
                text=True,
                stdout=subprocess.PIPE if capture else None,
                stderr=subprocess.PIPE if capture else None,
                check=False,
            )
        except OSError as e:
            raise ReconciliationError(f"running {cmd_str}: {e}") from e

        if result.returncode != 0:
            msg = f"command {cmd_str!r} exited with code {result.returncode}"
            if capture and result.stderr:
                msg += f":\n{result.stderr.strip()}"
            raise ReconciliationError(msg)

        return result

    def init(self) -> None:
        """Initialize the working directory. Safe to call on every run."""
        self._run(["init", "-input=false"])

    def plan(self) -> None:
        """Show the changes Terraform would make.

        The plan is always printed since its only purpose is to let the user
        review it.
        """
        cmd = [self.binary, "plan", "-input=false", "-refresh=true"]
        try:
            result = subprocess.run(cmd, cwd=self.working_dir, env=self.env, text=True, check=False)
        except OSError as e:
            raise ReconciliationError(f"running {' '.join(cmd)}: {e}") from e
        if result.returncode != 0:
            raise ReconciliationError(f"command {' '.join(cmd)!r} exited with code {result.returncode}")

    def execute(self, *args: str) -> None:
        """Run ``terraform`` with the given arguments."""
        self._run(list(args))

    def output(self, key: str = "") -> Any:
        """Return a decoded Terraform output.

        With an empty ``key`` all outputs are returned as a mapping of output
        name to value.
        """
        args = ["output", "-json"]
        if key:
            args.append(key)

        result = self._run(args, capture_output=True)
        raw = (result.stdout or "").strip()
        if not raw:
            return {} if not key else None

        try:
            decoded = json.loads(raw)
        except json.JSONDecodeError as e:
            raise ReconciliationError(f"parsing output of 'terraform {' '.join(args)}': {e}") from e

        if key:
            return decoded

        if not isinstance(decoded, dict):
            raise ReconciliationError("unexpected 'terraform output' format: expected an object")
        return {name: o.get("value") if isinstance(o, dict) else o for name, o in decoded.items()}

    def destroy(self) -> None:
        """Destroy all resources managed in the working directory."""
        self._run(["destroy", "-auto-approve"])


def cluster_exists(executor: Executor) -> bool:
    """Determine whether the cluster has been created already.

    A cluster which has been applied at least once is assumed to have at
    least one Terraform output.
    """
    outputs: Dict[str, Any] = executor.output("")
    return len(outputs) != 0


def execute_plan(executor: Executor, steps: Sequence[ExecutionStep]) -> None:
    """Execute steps strictly in order, stopping at the first failure.

    Already applied steps are not rolled back.
    """
    for step in steps:
        if step.pre_execution_hook is not None:
            logger.info(f"Running pre-execution hook for step {step.description!r}")
            try:
                step.pre_execution_hook(executor)
            except Exception as e:
                raise ReconciliationError(
                    f"pre-execution hook for step {step.description!r} failed: {e}"
                ) from e

        logger.info(f"Executing step {step.description!r}")
        try:
            executor.execute(*step.args)
        except LokoctlError as e:
            raise ReconciliationError(f"execution of step {step.description!r} failed: {e}") from e
