import pytest

from lokoctl.errors import ConfigValidationError
from lokoctl.modules.backend import LocalBackend, S3Backend, create_backend, render_backend_file


def test_no_backend_defaults_to_local():
    backend = create_backend(None)
    assert isinstance(backend, LocalBackend)
    assert render_backend_file(backend) == ""


def test_local_backend_with_path():
    backend = create_backend("local", {"path": "/tmp/state.tfstate"})
    rendered = render_backend_file(backend)
    assert rendered.startswith("terraform {")
    assert 'backend "local"' in rendered
    assert 'path = "/tmp/state.tfstate"' in rendered


def test_s3_backend_renders_optional_fields_only_when_set():
    backend = create_backend("s3", {"bucket": "b", "key": "k", "region": "eu-central-1"})
    rendered = render_backend_file(backend)
    assert 'bucket = "b"' in rendered
    assert 'region = "eu-central-1"' in rendered
    assert "dynamodb_table" not in rendered


def test_s3_backend_validation_collects_problems():
    backend = create_backend("s3", {"aws_creds_path": "/does/not/exist"})
    assert isinstance(backend, S3Backend)
    with pytest.raises(ConfigValidationError) as excinfo:
        backend.validate()

    summaries = [d.summary for d in excinfo.value.diagnostics]
    assert "no bucket specified" in summaries
    assert "no key specified" in summaries
    assert "no region specified" in summaries
    assert len(summaries) == 4


def test_s3_region_from_environment(monkeypatch):
    monkeypatch.setenv("AWS_DEFAULT_REGION", "us-east-1")
    create_backend("s3", {"bucket": "b", "key": "k"}).validate()


def test_unknown_backend():
    with pytest.raises(ConfigValidationError):
        create_backend("consul", {})
