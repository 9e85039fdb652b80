"""Tests for the stratus CLI."""

import json

import pytest
import structlog
from typer.testing import CliRunner

import stratus.aws.session
from stratus import __version__
from stratus.cli import app as cli_app
from stratus.cli.app import app, load_service
from stratus.core.errors import ConfigError
from stratus.core.logging import configure_logging
from tests._support.fakes import FakeTarget, make_clients

runner = CliRunner()

ROLES = {"existing-role": "arn:aws:iam::123456789012:role/existing-role"}


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch, tmp_path):
    """No .env, no STRATUS_ variables and no global logging configuration."""
    monkeypatch.chdir(tmp_path)
    for name in ("STRATUS_S3_BUCKET", "STRATUS_LOG_FORMAT", "STRATUS_LOG_LEVEL", "STRATUS_WORK_DIR"):
        monkeypatch.delenv(name, raising=False)
    calls = []
    monkeypatch.setattr(cli_app, "configure_logging", lambda **kwargs: calls.append(kwargs))
    return calls


@pytest.fixture
def fake_aws(monkeypatch):
    """Replace the boto3 wiring with in-memory clients."""
    holder = {"clients": make_clients(ROLES)}
    monkeypatch.setattr(stratus.aws.session, "create_session", lambda region=None, profile=None: None)
    monkeypatch.setattr(stratus.aws.session, "aws_clients", lambda session, bucket, toolchain=None: holder["clients"])
    return holder


class TestVersion:
    def test_version_flag(self):
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert f"stratus {__version__}" in result.output


class TestLoadService:
    def test_attribute(self):
        assert load_service("tests._support.services:SERVICE").name == "hello-svc"

    def test_factory(self):
        assert load_service("tests._support.services:build_service").name == "built-svc"

    @pytest.mark.parametrize(
        "spec",
        [
            "no-colon",
            "tests._support.no_such_module:SERVICE",
            "tests._support.services:MISSING",
            "tests._support.services:NOT_A_SERVICE",
        ],
    )
    def test_invalid(self, spec):
        with pytest.raises(ConfigError):
            load_service(spec)


class TestValidateCommand:
    def test_valid(self):
        result = runner.invoke(app, ["validate", "--service", "tests._support.services:SERVICE"])
        assert result.exit_code == 0
        assert "hello-svc: 2 function(s) valid" in result.output

    def test_invalid(self):
        result = runner.invoke(app, ["validate", "--service", "tests._support.services:EMPTY"])
        assert result.exit_code == 1
        assert "No functions declared" in result.output

    def test_bad_handler(self):
        result = runner.invoke(app, ["validate", "--service", "tests._support.services:BROKEN"])
        assert result.exit_code == 1
        assert "PreconditionError" in result.output


class TestProvisionCommand:
    def test_bucket_required(self, fake_aws):
        result = runner.invoke(app, ["provision", "--service", "tests._support.services:SERVICE"])
        assert result.exit_code == 1
        assert "bucket is required" in result.output

    def test_dry_run_json(self, fake_aws, isolated_env):
        result = runner.invoke(
            app,
            [
                "provision",
                "--service",
                "tests._support.services:SERVICE",
                "-s",
                "b",
                "-i",
                "1",
                "--noop",
                "--json",
                "--level",
                "warning",
                "--format",
                "json",
            ],
        )
        assert result.exit_code == 0, result.output
        assert '"dry_run": true' in result.output
        assert '"archive_key": "hello-svc/hellosvc-code.zip"' in result.output
        assert fake_aws["clients"].target.calls == []
        assert isolated_env[-1]["level"] == "warning"
        assert isolated_env[-1]["json_format"] is True

    def test_bucket_from_environment(self, fake_aws, monkeypatch, tmp_path):
        monkeypatch.setenv("STRATUS_S3_BUCKET", "env-bucket")
        out = tmp_path / "template.json"
        result = runner.invoke(
            app,
            ["provision", "--service", "tests._support.services:build_service", "--template-out", str(out)],
        )
        assert result.exit_code == 0, result.output
        assert json.loads(out.read_text())["AWSTemplateFormatVersion"] == "2010-09-09"
        assert fake_aws["clients"].target.calls[0].stack_name == "built-svc"
        assert "CREATE_COMPLETE" in result.output

    def test_converge_failure_exits_nonzero(self, fake_aws):
        fake_aws["clients"] = make_clients(ROLES, target=FakeTarget(fail=True))
        result = runner.invoke(
            app,
            ["provision", "--service", "tests._support.services:build_service", "-s", "b"],
        )
        assert result.exit_code == 1
        assert "Role: denied" in result.output
        assert fake_aws["clients"].storage.deleted == ["built-svc/builtsvc-code.zip"]


class TestConfiguredLogging:
    """Runs the CLI with the real structlog configuration."""

    def teardown_method(self):
        structlog.reset_defaults()

    def test_dry_run_emits_json_logs(self, fake_aws, monkeypatch):
        monkeypatch.setattr(cli_app, "configure_logging", configure_logging)
        result = runner.invoke(
            app,
            [
                "provision",
                "--service",
                "tests._support.services:SERVICE",
                "-s",
                "b",
                "-i",
                "1",
                "--noop",
                "--level",
                "info",
                "--format",
                "json",
            ],
        )
        assert result.exit_code == 0, result.output
        events = [json.loads(line) for line in result.stdout.splitlines() if line.startswith("{")]
        start = next(e for e in events if e["event"] == "workflow.start")
        assert start["log.logger"] == "stratus.cli"
        assert start["service"] == "hello-svc"
        assert start["build_id"] == "1"
        assert any(e["event"] == "workflow.complete" for e in events)
        assert fake_aws["clients"].target.calls == []
