"""
Adapter registry — central dispatch for all host side effects.

The registry is the single point of adapter management. Recipe steps
never talk to adapters directly — always through the registry (via the
Host facade).
"""

from __future__ import annotations

import logging
import time

from jenkins_provision.adapters.base import Adapter, ExecutionContext
from jenkins_provision.core.models.action import Action, Receipt

logger = logging.getLogger(__name__)


class AdapterRegistry:
    """Central registry and dispatcher for adapters."""

    def __init__(self) -> None:
        self._adapters: dict[str, Adapter] = {}

    def register(self, adapter: Adapter) -> None:
        """Register an adapter, replacing any with the same name."""
        name = adapter.name
        if name in self._adapters:
            logger.warning("Overwriting existing adapter: %s", name)
        self._adapters[name] = adapter
        logger.debug("Registered adapter: %s", name)

    def get(self, name: str) -> Adapter | None:
        """Look up an adapter by name."""
        return self._adapters.get(name)

    def execute_action(self, action: Action, dry_run: bool = False) -> Receipt:
        """Execute an action through the appropriate adapter.

        1. Resolves the adapter
        2. Validates the action
        3. Executes it, or skips it in dry-run unless it is a probe
        4. Returns a Receipt (never raises)
        """
        start_time = time.monotonic()

        adapter = self._adapters.get(action.adapter)
        if adapter is None:
            return Receipt.failure(
                adapter=action.adapter,
                action_id=action.id,
                error=f"No adapter registered for '{action.adapter}'",
            )

        context = ExecutionContext(action=action, dry_run=dry_run, params=action.params)

        try:
            is_valid, error_msg = adapter.validate(context)
        except Exception as e:
            return Receipt.failure(
                adapter=action.adapter,
                action_id=action.id,
                error=f"Validation error: {e}",
            )
        if not is_valid:
            return Receipt.failure(
                adapter=action.adapter,
                action_id=action.id,
                error=f"Validation failed: {error_msg}",
            )

        if dry_run and not action.probe:
            return Receipt.skip(
                adapter=action.adapter,
                action_id=action.id,
                reason=f"[dry-run] Would execute {action.adapter}:{action.id}",
                metadata={"dry_run": True, **action.params},
            )

        try:
            receipt = adapter.execute(context)
        except Exception as e:
            logger.error("Adapter %s raised during execution: %s", action.adapter, e)
            receipt = Receipt.failure(
                adapter=action.adapter,
                action_id=action.id,
                error=f"Unexpected error: {e}",
            )

        receipt.duration_ms = int((time.monotonic() - start_time) * 1000)
        return receipt


def default_registry() -> AdapterRegistry:
    """Registry wired with the real shell, filesystem and HTTP adapters."""
    from jenkins_provision.adapters.http.fetch import HttpAdapter
    from jenkins_provision.adapters.shell.command import ShellCommandAdapter
    from jenkins_provision.adapters.shell.filesystem import FilesystemAdapter

    registry = AdapterRegistry()
    registry.register(ShellCommandAdapter())
    registry.register(FilesystemAdapter())
    registry.register(HttpAdapter())
    return registry
