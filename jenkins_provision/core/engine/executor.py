"""
Engine executor — runs the recipe from start to finish.

Flow:
    resolve platform → account → plugins → prerequisites
    → install trigger (+ cascade) → plugin restart → proxy → firewall

Platform resolution comes first because it has no side effects: an
unsupported OS aborts the run before anything on the host is touched.
A ProvisionError from any step propagates; the caller decides what to
persist.
"""

from __future__ import annotations

import logging
import time
import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Callable

from jenkins_provision.adapters.registry import AdapterRegistry
from jenkins_provision.core.host import Host
from jenkins_provision.core.models.action import Receipt
from jenkins_provision.core.models.config import RecipeConfig
from jenkins_provision.core.models.state import RunRecord
from jenkins_provision.core.persistence.audit import AuditEntry, AuditWriter
from jenkins_provision.core.recipe.account import bootstrap_account
from jenkins_provision.core.recipe.context import CascadeState, RunContext
from jenkins_provision.core.recipe.firewall import configure_firewall
from jenkins_provision.core.recipe.install import trigger_install
from jenkins_provision.core.recipe.platform import detect_os_id, install_prerequisites, resolve_platform
from jenkins_provision.core.recipe.plugins import restart_if_plugins_updated, stage_plugins
from jenkins_provision.core.recipe.proxy import configure_proxy

logger = logging.getLogger(__name__)


@dataclass
class ProvisionReport:
    """Result of one recipe run."""

    operation_id: str = ""
    started_at: str = ""
    ended_at: str = ""
    os_id: str = ""
    dry_run: bool = False
    receipts: list[Receipt] = field(default_factory=list)
    cascade_states: list[CascadeState] = field(default_factory=list)
    plugins_changed: list[str] = field(default_factory=list)
    restarted_for_plugins: bool = False
    pubkey: str | None = None
    error: str | None = None

    @property
    def total(self) -> int:
        return len(self.receipts)

    @property
    def changed(self) -> int:
        return sum(1 for r in self.receipts if r.ok and r.changed)

    @property
    def failed(self) -> int:
        return sum(1 for r in self.receipts if r.failed)

    @property
    def skipped(self) -> int:
        return sum(1 for r in self.receipts if r.status == "skipped")

    @property
    def cascade_fired(self) -> bool:
        return CascadeState.TRIGGERED in self.cascade_states

    @property
    def status(self) -> str:
        return "failed" if self.error else "ok"

    def to_record(self) -> RunRecord:
        return RunRecord(
            operation_id=self.operation_id,
            started_at=self.started_at,
            ended_at=self.ended_at,
            status=self.status,
            platform=self.os_id,
            cascade_fired=self.cascade_fired,
            restarted_for_plugins=self.restarted_for_plugins,
            actions_total=self.total,
            actions_changed=self.changed,
            actions_failed=self.failed,
        )

    def to_dict(self) -> dict:
        return {
            "operation_id": self.operation_id,
            "status": self.status,
            "os_id": self.os_id,
            "dry_run": self.dry_run,
            "error": self.error,
            "total": self.total,
            "changed": self.changed,
            "failed": self.failed,
            "skipped": self.skipped,
            "cascade": [s.value for s in self.cascade_states],
            "plugins_changed": self.plugins_changed,
            "restarted_for_plugins": self.restarted_for_plugins,
            "pubkey": self.pubkey,
            "receipts": [r.model_dump(mode="json") for r in self.receipts],
        }


def run_recipe(
    config: RecipeConfig,
    registry: AdapterRegistry,
    os_id: str | None = None,
    dry_run: bool = False,
    sleep: Callable[[float], None] = time.sleep,
    report: ProvisionReport | None = None,
) -> ProvisionReport:
    """Provision Jenkins on the host behind ``registry``.

    Args:
        config: Recipe configuration.
        registry: Adapter registry used for every side effect.
        os_id: OS identity; read from /etc/os-release when omitted.
        dry_run: Probe the host but skip every modifying action.
        sleep: Sleep function for the drain wait.
        report: Report to fill in. Lets a caller keep the partial
            report when a step raises.

    Raises:
        ProvisionError: On any fatal step failure, including
            UnsupportedPlatformError.
    """
    if report is None:
        report = ProvisionReport()
    report.operation_id = report.operation_id or generate_operation_id()
    report.started_at = datetime.now(UTC).isoformat()
    report.dry_run = dry_run

    host = Host(registry, dry_run=dry_run)
    ctx = RunContext(config=config, host=host, sleep=sleep)
    report.receipts = host.receipts
    report.cascade_states = ctx.cascade_states
    report.plugins_changed = ctx.plugins_changed

    try:
        report.os_id = os_id if os_id is not None else detect_os_id()
        ctx.profile = resolve_platform(report.os_id, config.mirror)
        logger.info("Platform %s (%s)", ctx.profile.os_id, ctx.profile.package_backend)

        bootstrap_account(ctx)
        stage_plugins(ctx)
        install_prerequisites(ctx)
        trigger_install(ctx)
        restart_if_plugins_updated(ctx)
        configure_proxy(ctx)
        configure_firewall(ctx)
    finally:
        report.ended_at = datetime.now(UTC).isoformat()
        report.pubkey = ctx.pubkey
        report.restarted_for_plugins = ctx.restarted_for_plugins

    logger.info(
        "Run %s finished: %d actions, %d changed, cascade=%s",
        report.operation_id,
        report.total,
        report.changed,
        ctx.cascade_state.value,
    )
    return report


def write_audit_entry(report: ProvisionReport, audit_writer: AuditWriter) -> None:
    """Append a summary of the run to the audit ledger."""
    entry = AuditEntry(
        operation_id=report.operation_id,
        operation_type="dry-run" if report.dry_run else "provision",
        platform=report.os_id,
        status=report.status,
        actions_total=report.total,
        actions_changed=report.changed,
        actions_failed=report.failed,
        cascade=[s.value for s in report.cascade_states],
        errors=[report.error] if report.error else [],
    )
    audit_writer.write(entry)


def generate_operation_id() -> str:
    """Generate a unique operation ID."""
    now = datetime.now(UTC).strftime("%Y%m%d-%H%M%S")
    short = uuid.uuid4().hex[:6]
    return f"op-{now}-{short}"
