"""
Tests for the run use case — config loading, recipe run, persisted outcome.
"""

from pathlib import Path

import pytest
import yaml

from jenkins_provision.core.persistence.audit import AuditWriter
from jenkins_provision.core.persistence.state_file import load_state
from jenkins_provision.core.use_cases.run import run_provision

pytestmark = pytest.mark.usefixtures("pid_files")


@pytest.fixture
def config_file(tmp_path: Path, config_data: dict) -> Path:
    path = tmp_path / "jenkins.yml"
    path.write_text(yaml.safe_dump({"jenkins": config_data}))
    return path


class TestRunProvision:
    def test_saves_state_and_audit(self, config_file, registry, http, jenkins_home, pubkey, tmp_path):
        http.set_output("package:fetch", changed=True)

        result = run_provision(config_path=config_file, os_id="debian", registry=registry, sleep=lambda s: None)

        assert result.ok
        assert result.config_path == config_file
        state = load_state(tmp_path / ".state" / "jenkins.json")
        assert state.pubkey == pubkey
        assert state.last_run.status == "ok"
        assert state.last_run.cascade_fired is True
        [entry] = AuditWriter(state_dir=tmp_path / ".state").read_all()
        assert entry.operation_type == "provision"

    def test_failure_is_recorded(self, config_file, registry, shell, jenkins_home, tmp_path):
        shell.set_failure("prereq:debian", error="E: Unable to locate package daemon")

        result = run_provision(config_path=config_file, os_id="debian", registry=registry)

        assert not result.ok
        assert "prereq:debian" in result.error
        assert result.report.status == "failed"
        state = load_state(tmp_path / ".state" / "jenkins.json")
        assert state.last_run.status == "failed"
        [entry] = AuditWriter(state_dir=tmp_path / ".state").read_all()
        assert entry.status == "failed"
        assert entry.errors

    def test_unsupported_platform(self, config_file, registry, tmp_state_dir):
        result = run_provision(config_path=config_file, os_id="gentoo", registry=registry, state_dir=tmp_state_dir)
        assert not result.ok
        assert "Unsupported platform" in result.error
        assert result.report.receipts == []

    def test_dry_run_saves_no_state(self, config_file, registry, tmp_state_dir):
        result = run_provision(
            config_path=config_file,
            os_id="redhat",
            dry_run=True,
            registry=registry,
            state_dir=tmp_state_dir,
        )
        assert result.ok
        assert not (tmp_state_dir / "jenkins.json").exists()
        [entry] = AuditWriter(state_dir=tmp_state_dir).read_all()
        assert entry.operation_type == "dry-run"

    def test_invalid_config(self, tmp_path, registry):
        path = tmp_path / "jenkins.yml"
        path.write_text("server:\n  port: -1\n")
        result = run_provision(config_path=path, os_id="debian", registry=registry)
        assert not result.ok
        assert result.report is None
        assert "Invalid configuration" in result.error

    def test_to_dict(self, config_file, registry, tmp_state_dir):
        result = run_provision(config_path=config_file, os_id="ubuntu", dry_run=True, registry=registry, state_dir=tmp_state_dir)
        data = result.to_dict()
        assert data["report"]["os_id"] == "ubuntu"
        assert data["report"]["dry_run"] is True
        assert "triggered" in data["report"]["cascade"]
