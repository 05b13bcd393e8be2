"""
Tests for the recipe executor — full runs per platform, dry-run, failures, audit.
"""

import os
import time
from pathlib import Path

import pytest

from jenkins_provision.adapters.http.fetch import HttpAdapter
from jenkins_provision.adapters.registry import AdapterRegistry
from jenkins_provision.adapters.shell.filesystem import FilesystemAdapter
from jenkins_provision.core.engine.executor import (
    ProvisionReport,
    generate_operation_id,
    run_recipe,
    write_audit_entry,
)
from jenkins_provision.core.host import ProvisionError
from jenkins_provision.core.persistence.audit import AuditWriter
from jenkins_provision.core.recipe.context import CascadeState
from jenkins_provision.core.recipe.platform import UnsupportedPlatformError

pytestmark = pytest.mark.usefixtures("pid_files")

ACCOUNT = [
    "account:user-exists",
    "account:home",
    "account:ssh-dir",
    "account:key-exists",
    "account:pubkey",
]


def _ids(report: ProvisionReport) -> list[str]:
    return [r.action_id for r in report.receipts]


class TestFullRun:
    def test_debian_upgrade(self, config, registry, shell, http, jenkins_home, pubkey, sleeps):
        shell.running = True
        shell.install_starts = True
        http.set_output("package:fetch", changed=True)

        report = run_recipe(config, registry, os_id="debian", sleep=sleeps.append)

        assert _ids(report) == ACCOUNT + [
            "prereq:debian",
            "prereq:debian-key",
            "package:fetch",
            "service:status",
            "service:stop",
            "drain-wait:1",
            "trust-key:import",
            "package:install",
            "service:status",
            "firewall:rule",
        ]
        assert report.status == "ok"
        assert report.os_id == "debian"
        assert report.pubkey == pubkey
        assert report.cascade_fired
        assert report.cascade_states[-1] is CascadeState.AUTO_STARTED
        assert not report.restarted_for_plugins

    def test_redhat_fresh_install(self, config, registry, shell, http, jenkins_home):
        http.set_output("package:fetch", changed=True)

        report = run_recipe(config, registry, os_id="centos", sleep=lambda s: None)

        assert _ids(report) == ACCOUNT + [
            "package:fetch",
            "service:status",
            "drain-wait:1",
            "trust-key:import",
            "package:install",
            "service:status",
            "service:start",
            "firewall:rule",
        ]
        assert report.cascade_states[-1] is CascadeState.STARTING
        assert shell.running

    def test_ubuntu(self, config, registry, shell, http, jenkins_home):
        shell.install_starts = True
        report = run_recipe(config, registry, os_id="ubuntu", sleep=lambda s: None)

        assert _ids(report) == ACCOUNT + [
            "prereq:ubuntu",
            "prereq:apt-update",
            "prereq:java",
            "prereq:apt-source",
            "package:setup-marker",
            "service:status",
            "drain-wait:1",
            "trust-key:import",
            "trust-key:apt-update",
            "package:install",
            "service:status",
            "firewall:rule",
        ]
        assert report.cascade_fired
        assert http.call_count == 0

    def test_up_to_date_debian_changes_nothing(self, config, registry, shell, jenkins_home):
        report = run_recipe(config, registry, os_id="debian", sleep=lambda s: None)
        assert not report.cascade_fired
        assert "package:install" not in shell.action_ids
        assert report.cascade_states == [CascadeState.IDLE]

    def test_plugin_update_restarts_once(self, config, registry, shell, http, jenkins_home, pid_files):
        shell.running = True
        cfg = config.model_copy(update={"server": config.server.model_copy(update={"plugins": ("git",)})})
        plugins_dir = Path(cfg.server.plugins_dir)
        plugins_dir.mkdir()
        (plugins_dir / "git.hpi").write_bytes(b"hpi")
        pid = pid_files["debian"]
        pid.parent.mkdir(parents=True)
        pid.write_text("4242")
        os.utime(pid, (1000, 1000))
        http.set_output("plugins:fetch:git", changed=True)

        report = run_recipe(cfg, registry, os_id="debian", sleep=lambda s: None)

        assert report.plugins_changed == ["git"]
        assert report.restarted_for_plugins
        assert not report.cascade_fired
        assert shell.action_ids.count("service:stop") == 1
        assert shell.action_ids.count("service:start") == 1

    def test_proxy_and_firewall(self, config, registry, shell, jenkins_home):
        cfg = config.model_copy(
            update={
                "iptables_allow": "enable",
                "nginx": config.nginx.model_copy(update={"proxy": "enable", "host_name": "ci.example.com"}),
            }
        )

        report = run_recipe(cfg, registry, os_id="redhat", sleep=lambda s: None)

        assert _ids(report)[-6:] == [
            "proxy:site-enabled",
            "proxy:site-config",
            "proxy:enable",
            "proxy:reload",
            "firewall:rule",
            "firewall:rebuild",
        ]
        assert (Path(cfg.firewall.rules_dir) / "port_jenkins").is_file()


def _with_plugins(config, *names, **extra):
    return config.model_copy(
        update={"server": config.server.model_copy(update={"plugins": names}), **extra}
    )


class TestPluginRestart:
    def test_cascade_restart_covers_new_plugins(self, config, registry, shell, http, jenkins_home, pid_files):
        shell.running = True
        cfg = _with_plugins(config, "git")
        plugins_dir = Path(cfg.server.plugins_dir)
        plugins_dir.mkdir()
        (plugins_dir / "git.hpi").write_bytes(b"hpi")
        pid = pid_files["redhat"]
        pid.parent.mkdir(parents=True)
        pid.write_text("4242")
        os.utime(pid, (1000, 1000))
        http.set_output("plugins:fetch:git", changed=True)
        http.set_output("package:fetch", changed=True)

        report = run_recipe(cfg, registry, os_id="redhat", sleep=lambda s: None)

        assert report.cascade_fired
        assert not report.restarted_for_plugins
        assert shell.action_ids.count("service:stop") == 1
        assert shell.action_ids.count("service:start") == 1

    def test_plugin_from_mirror_restarts_running_jenkins(self, config, shell, jenkins_home, pid_files, mirror):
        root, base = mirror
        upstream = 1_704_067_200  # Mon, 01 Jan 2024
        (root / "latest" / "redhat").mkdir(parents=True)
        for name, body in (("latest/git.hpi", b"plugin"), ("latest/redhat/jenkins.rpm", b"rpm")):
            (root / name).write_bytes(body)
            os.utime(root / name, (upstream, upstream))

        cfg = _with_plugins(config, "git", mirror=base)
        local_rpm = Path(cfg.tmp_dir) / "jenkins.rpm"
        local_rpm.parent.mkdir(parents=True)
        local_rpm.write_bytes(b"rpm")

        shell.running = True
        pid = pid_files["redhat"]
        pid.parent.mkdir(parents=True)
        pid.write_text("4242")
        started = time.time() - 5
        os.utime(pid, (started, started))

        registry = AdapterRegistry()
        registry.register(shell)
        registry.register(FilesystemAdapter())
        registry.register(HttpAdapter())

        report = run_recipe(cfg, registry, os_id="redhat", sleep=lambda s: None)

        assert report.plugins_changed == ["git"]
        assert not report.cascade_fired
        assert (Path(cfg.server.plugins_dir) / "git.hpi").stat().st_mtime > started
        assert report.restarted_for_plugins
        assert shell.action_ids.count("service:stop") == 1
        assert shell.action_ids.count("service:start") == 1


class TestDryRun:
    def test_changes_nothing(self, config, registry, shell, http):
        report = run_recipe(config, registry, os_id="redhat", dry_run=True, sleep=lambda s: None)

        assert report.dry_run
        assert report.status == "ok"
        assert report.pubkey is None
        assert not Path(config.server.home).exists()
        assert shell.action_ids == ["account:user-exists"]
        assert http.call_count == 0
        skipped = [r.action_id for r in report.receipts if r.status == "skipped"]
        assert skipped == [
            "account:home",
            "account:ssh-dir",
            "account:ssh-keygen",
            "package:fetch",
            "firewall:rule",
        ]

    def test_ubuntu_cascade_is_planned(self, config, registry, shell):
        report = run_recipe(config, registry, os_id="ubuntu", dry_run=True, sleep=lambda s: None)
        assert report.cascade_fired
        assert "package:install" not in shell.action_ids
        assert "package:install" in [r.action_id for r in report.receipts if r.status == "skipped"]


class TestFailures:
    def test_unsupported_platform_touches_nothing(self, config, registry, shell):
        report = ProvisionReport()
        with pytest.raises(UnsupportedPlatformError):
            run_recipe(config, registry, os_id="arch", report=report)
        assert report.receipts == []
        assert report.ended_at
        assert shell.call_count == 0

    def test_partial_report_on_failure(self, config, registry, shell, http, jenkins_home):
        http.set_output("package:fetch", changed=True)
        shell.set_failure("package:install", error="dpkg: dependency problems")
        report = ProvisionReport()

        with pytest.raises(ProvisionError, match="package:install"):
            run_recipe(config, registry, os_id="debian", report=report, sleep=lambda s: None)

        assert report.failed == 1
        assert report.cascade_states[-1] is CascadeState.INSTALLING
        assert _ids(report)[-1] == "package:install"
        assert report.pubkey is not None


class TestAudit:
    def test_write_audit_entry(self, tmp_state_dir, config, registry, http, jenkins_home):
        http.set_output("package:fetch", changed=True)
        report = run_recipe(config, registry, os_id="debian", sleep=lambda s: None)
        writer = AuditWriter(state_dir=tmp_state_dir)

        write_audit_entry(report, writer)

        [entry] = writer.read_all()
        assert entry.operation_id == report.operation_id
        assert entry.operation_type == "provision"
        assert entry.platform == "debian"
        assert entry.status == "ok"
        assert entry.actions_total == report.total
        assert entry.cascade[:2] == ["idle", "triggered"]

    def test_failed_report_entry(self, tmp_state_dir):
        report = ProvisionReport(operation_id="op-x", os_id="arch", dry_run=True, error="Unsupported platform 'arch'")
        writer = AuditWriter(state_dir=tmp_state_dir)
        write_audit_entry(report, writer)
        [entry] = writer.read_all()
        assert entry.operation_type == "dry-run"
        assert entry.status == "failed"
        assert entry.errors == ["Unsupported platform 'arch'"]

    def test_operation_id_format(self):
        op_id = generate_operation_id()
        assert op_id.startswith("op-")
        assert op_id != generate_operation_id()
