"""
Run use case — provision this host end to end.

Loads the configuration, runs the recipe through an adapter registry,
then records the outcome: an audit ledger line for every run, and the
node state (public key, last run) for runs that got far enough to
learn something.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable

from jenkins_provision.adapters.registry import AdapterRegistry, default_registry
from jenkins_provision.core.config.loader import ConfigError, find_config_file, load_config
from jenkins_provision.core.engine.executor import ProvisionReport, run_recipe, write_audit_entry
from jenkins_provision.core.host import ProvisionError
from jenkins_provision.core.persistence.audit import AuditWriter
from jenkins_provision.core.persistence.state_file import (
    DEFAULT_STATE_FILE,
    default_state_dir,
    load_state,
    save_state,
)

logger = logging.getLogger(__name__)


@dataclass
class RunResult:
    """Result of a provisioning run."""

    report: ProvisionReport | None = None
    config_path: Path | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_dict(self) -> dict:
        result: dict = {"config_path": str(self.config_path) if self.config_path else None}
        if self.error:
            result["error"] = self.error
        if self.report:
            result["report"] = self.report.to_dict()
        return result


def run_provision(
    config_path: Path | None = None,
    os_id: str | None = None,
    dry_run: bool = False,
    state_dir: Path | None = None,
    registry: AdapterRegistry | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> RunResult:
    """Provision Jenkins and persist the outcome.

    Args:
        config_path: Explicit jenkins.yml. Searched upward when omitted;
            defaults apply when none is found.
        os_id: Override the detected OS identity.
        dry_run: Probe only, change nothing (state is not saved).
        state_dir: Where state and audit files go (default: .state
            next to the config).
        registry: Adapter registry; the real adapters when omitted.
        sleep: Sleep function for the drain wait.
    """
    result = RunResult()

    try:
        if config_path is None:
            config_path = find_config_file()
        config = load_config(config_path, required=config_path is not None)
    except ConfigError as e:
        result.error = str(e)
        return result
    result.config_path = config_path

    if registry is None:
        registry = default_registry()
    if state_dir is None:
        state_dir = default_state_dir(config_path)

    report = ProvisionReport()
    result.report = report
    try:
        run_recipe(config, registry, os_id=os_id, dry_run=dry_run, sleep=sleep, report=report)
    except ProvisionError as e:
        logger.error("Provisioning aborted: %s", e)
        report.error = str(e)
        result.error = str(e)

    write_audit_entry(report, AuditWriter(state_dir=state_dir))

    if not dry_run:
        state_path = state_dir / DEFAULT_STATE_FILE
        state = load_state(state_path)
        if report.pubkey:
            state.pubkey = report.pubkey
        state.last_run = report.to_record()
        save_state(state, state_path)

    return result
