import json
import subprocess

import pytest

from lokoctl.errors import ReconciliationError
from lokoctl.modules import terraform
from lokoctl.modules.terraform import ExecutionStep, Executor, cluster_exists, execute_plan


class FakeExecutor:
    def __init__(self, outputs=None, fail_on=None):
        self.calls = []
        self.outputs = outputs or {}
        self.fail_on = fail_on

    def execute(self, *args):
        self.calls.append(list(args))
        if self.fail_on and self.fail_on in args:
            raise ReconciliationError("command exited with code 1")

    def output(self, key=""):
        return self.outputs if not key else self.outputs.get(key)


def test_steps_run_in_order():
    executor = FakeExecutor()
    hooks = []
    steps = [
        ExecutionStep("first", ["apply", "-target=a"]),
        ExecutionStep("second", ["apply"], pre_execution_hook=lambda e: hooks.append(list(e.calls))),
    ]
    execute_plan(executor, steps)

    assert executor.calls == [["apply", "-target=a"], ["apply"]]
    # The hook of the second step ran after the first step's args.
    assert hooks == [[["apply", "-target=a"]]]


def test_hook_failure_aborts_before_args():
    executor = FakeExecutor()

    def hook(_):
        raise RuntimeError("DNS entries missing")

    steps = [
        ExecutionStep("Create controllers", ["apply", "-target=controllers"]),
        ExecutionStep("Create everything", ["apply"], pre_execution_hook=hook),
    ]
    with pytest.raises(ReconciliationError) as excinfo:
        execute_plan(executor, steps)

    assert "Create everything" in str(excinfo.value)
    assert executor.calls == [["apply", "-target=controllers"]]


def test_step_failure_names_step_and_stops():
    executor = FakeExecutor(fail_on="-target=a")
    steps = [
        ExecutionStep("Create DNS resources", ["apply", "-target=a"]),
        ExecutionStep("Create rest", ["apply"]),
    ]
    with pytest.raises(ReconciliationError) as excinfo:
        execute_plan(executor, steps)

    assert "Create DNS resources" in str(excinfo.value)
    assert len(executor.calls) == 1


def test_cluster_exists():
    assert not cluster_exists(FakeExecutor())
    assert cluster_exists(FakeExecutor(outputs={"initialized": True}))


def test_first_step_hook_failure_runs_nothing():
    executor = FakeExecutor()

    def hook(_):
        raise RuntimeError("boom")

    steps = [
        ExecutionStep("Create DNS resources", ["apply", "-target=dns"], pre_execution_hook=hook),
        ExecutionStep("Create rest", ["apply"]),
    ]
    with pytest.raises(ReconciliationError) as excinfo:
        execute_plan(executor, steps)

    assert "Create DNS resources" in str(excinfo.value)
    assert "boom" in str(excinfo.value)
    assert executor.calls == []


class FakeRun:
    """Stands in for subprocess.run, answering terraform commands from a table."""

    def __init__(self, responses=None):
        self.responses = responses or {}
        self.calls = []

    def __call__(self, cmd, **kwargs):
        self.calls.append((cmd, kwargs))
        returncode, stdout, stderr = self.responses.get(cmd[1], (0, "", ""))
        return subprocess.CompletedProcess(cmd, returncode, stdout=stdout, stderr=stderr)


@pytest.fixture
def terraform_on_path(monkeypatch):
    monkeypatch.setattr(terraform.shutil, "which", lambda binary: f"/usr/bin/{binary}")


def executor_with(monkeypatch, tmp_path, responses=None, verbose=False):
    run = FakeRun(responses)
    monkeypatch.setattr(terraform.subprocess, "run", run)
    return Executor(tmp_path, verbose=verbose, binary="terraform"), run


def test_executor_requires_binary(monkeypatch, tmp_path):
    monkeypatch.setattr(terraform.shutil, "which", lambda binary: None)
    with pytest.raises(ReconciliationError) as excinfo:
        Executor(tmp_path, binary="terraform")
    assert "not found in PATH" in str(excinfo.value)


def test_executor_requires_working_dir(terraform_on_path, tmp_path):
    with pytest.raises(ReconciliationError):
        Executor(tmp_path / "missing", binary="terraform")


def test_output_unwraps_values(terraform_on_path, monkeypatch, tmp_path):
    stdout = json.dumps({
        "initialized": {"sensitive": False, "type": "bool", "value": True},
        "dns_entries": {"sensitive": False, "type": "list", "value": [{"name": "api"}]},
    })
    executor, run = executor_with(monkeypatch, tmp_path, {"output": (0, stdout, "")})

    assert executor.output() == {"initialized": True, "dns_entries": [{"name": "api"}]}
    cmd, kwargs = run.calls[0]
    assert cmd == ["terraform", "output", "-json"]
    assert kwargs["cwd"] == tmp_path
    assert kwargs["env"]["TF_IN_AUTOMATION"] == "1"


def test_output_of_single_key(terraform_on_path, monkeypatch, tmp_path):
    executor, run = executor_with(monkeypatch, tmp_path, {"output": (0, '[{"name": "api"}]', "")})

    assert executor.output("dns_entries") == [{"name": "api"}]
    assert run.calls[0][0] == ["terraform", "output", "-json", "dns_entries"]


def test_output_of_fresh_state(terraform_on_path, monkeypatch, tmp_path):
    executor, _ = executor_with(monkeypatch, tmp_path, {"output": (0, "{}\n", "")})
    assert executor.output() == {}
    assert not cluster_exists(executor)

    executor, _ = executor_with(monkeypatch, tmp_path, {"output": (0, "", "")})
    assert executor.output() == {}
    assert executor.output("dns_entries") is None


def test_cluster_exists_with_outputs(terraform_on_path, monkeypatch, tmp_path):
    stdout = json.dumps({"initialized": {"value": True}})
    executor, _ = executor_with(monkeypatch, tmp_path, {"output": (0, stdout, "")})
    assert cluster_exists(executor)


def test_output_not_json(terraform_on_path, monkeypatch, tmp_path):
    executor, _ = executor_with(monkeypatch, tmp_path, {"output": (0, "Warning: no outputs", "")})
    with pytest.raises(ReconciliationError) as excinfo:
        executor.output()
    assert "parsing output" in str(excinfo.value)


def test_failed_command_reports_stderr(terraform_on_path, monkeypatch, tmp_path):
    executor, _ = executor_with(monkeypatch, tmp_path, {"apply": (1, "", "Error: Invalid provider credentials")})
    with pytest.raises(ReconciliationError) as excinfo:
        executor.execute("apply", "-auto-approve")

    assert "exited with code 1" in str(excinfo.value)
    assert "Invalid provider credentials" in str(excinfo.value)


def test_verbose_commands_stream_output(terraform_on_path, monkeypatch, tmp_path):
    executor, run = executor_with(monkeypatch, tmp_path, verbose=True)
    executor.init()
    executor.destroy()

    assert [cmd for cmd, _ in run.calls] == [
        ["terraform", "init", "-input=false"],
        ["terraform", "destroy", "-auto-approve"],
    ]
    assert all(kwargs["stdout"] is None for _, kwargs in run.calls)


def test_failed_step_of_real_executor_stops_plan(terraform_on_path, monkeypatch, tmp_path):
    executor, run = executor_with(monkeypatch, tmp_path, {"apply": (1, "", "Error: quota exceeded")})
    steps = [
        ExecutionStep("Create DNS resources", ["apply", "-target=dns", "-auto-approve"]),
        ExecutionStep("Create rest", ["apply", "-auto-approve"]),
    ]
    with pytest.raises(ReconciliationError) as excinfo:
        execute_plan(executor, steps)

    assert "Create DNS resources" in str(excinfo.value)
    assert "quota exceeded" in str(excinfo.value)
    assert len(run.calls) == 1
