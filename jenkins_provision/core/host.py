"""
Host facade — the recipe's only handle on the machine.

Wraps the adapter registry with small helpers (run a command, probe,
file and HTTP operations) and turns failed receipts of mutating
actions into ProvisionError. Every receipt is kept so the run report
can list exactly what happened.

Probes (status checks, existence tests, reads) are marked as such and
keep executing in dry-run mode, so a dry run follows the same branches
a real run would.
"""

from __future__ import annotations

import logging
from typing import Any

from jenkins_provision.adapters.registry import AdapterRegistry
from jenkins_provision.core.models.action import Action, Receipt

logger = logging.getLogger(__name__)


class ProvisionError(Exception):
    """A fatal provisioning failure. Aborts the run."""

    def __init__(self, message: str, receipt: Receipt | None = None):
        super().__init__(message)
        self.receipt = receipt


class Host:
    """Dispatches recipe actions and records their receipts."""

    def __init__(self, registry: AdapterRegistry, dry_run: bool = False):
        self._registry = registry
        self._dry_run = dry_run
        self.receipts: list[Receipt] = []

    @property
    def dry_run(self) -> bool:
        return self._dry_run

    def execute(self, action: Action, check: bool = True) -> Receipt:
        """Dispatch one action. Raises ProvisionError if it failed and ``check`` is set."""
        receipt = self._registry.execute_action(action, dry_run=self._dry_run)
        self.receipts.append(receipt)

        if receipt.failed:
            if check:
                raise ProvisionError(f"{action.id}: {receipt.error}", receipt)
            logger.debug("%s failed (ignored): %s", action.id, receipt.error)
        elif receipt.changed:
            logger.info("%s → changed", action.id)
        return receipt

    # ── Shell ───────────────────────────────────────────────────

    def run(
        self,
        action_id: str,
        command: str | list[str],
        check: bool = True,
        **params: Any,
    ) -> Receipt:
        """Run a command that modifies the host."""
        return self.execute(
            Action(id=action_id, adapter="shell", params={"command": command, **params}),
            check=check,
        )

    def probe(self, action_id: str, command: str | list[str], **params: Any) -> Receipt:
        """Run a read-only command. Never raises; inspect ``receipt.ok``."""
        return self.execute(
            Action(id=action_id, adapter="shell", probe=True, params={"command": command, **params}),
            check=False,
        )

    # ── Filesystem ──────────────────────────────────────────────

    def fs(self, action_id: str, operation: str, path: str, check: bool = True, **params: Any) -> Receipt:
        """Run a filesystem operation that modifies the host."""
        return self.execute(
            Action(
                id=action_id,
                adapter="filesystem",
                params={"operation": operation, "path": path, **params},
            ),
            check=check,
        )

    def exists(self, action_id: str, path: str) -> bool:
        receipt = self._fs_probe(action_id, "exists", path)
        return bool(receipt.metadata.get("exists"))

    def mtime(self, action_id: str, path: str) -> float | None:
        """Modification time of ``path``, or None if it does not exist."""
        receipt = self._fs_probe(action_id, "mtime", path)
        return receipt.metadata.get("mtime")

    def glob(self, action_id: str, path: str, pattern: str) -> list[str]:
        receipt = self._fs_probe(action_id, "glob", path, pattern=pattern)
        return list(receipt.metadata.get("matches", []))

    def read(self, action_id: str, path: str) -> str:
        """Read a text file. Raises ProvisionError if it cannot be read."""
        receipt = self.execute(
            Action(
                id=action_id,
                adapter="filesystem",
                probe=True,
                params={"operation": "read", "path": path},
            ),
        )
        return receipt.output

    def _fs_probe(self, action_id: str, operation: str, path: str, **params: Any) -> Receipt:
        return self.execute(
            Action(
                id=action_id,
                adapter="filesystem",
                probe=True,
                params={"operation": operation, "path": path, **params},
            ),
            check=False,
        )

    # ── HTTP ────────────────────────────────────────────────────

    def fetch(
        self,
        action_id: str,
        url: str,
        path: str,
        check: bool = True,
        preserve_mtime: bool = True,
    ) -> Receipt:
        """Download ``url`` to ``path`` if upstream changed."""
        return self.execute(
            Action(
                id=action_id,
                adapter="http",
                params={"operation": "fetch", "url": url, "path": path, "preserve_mtime": preserve_mtime},
            ),
            check=check,
        )

    def head(self, action_id: str, url: str, if_modified_since: float | None = None) -> Receipt:
        """Conditional HEAD request. Never raises."""
        return self.execute(
            Action(
                id=action_id,
                adapter="http",
                probe=True,
                params={"operation": "head", "url": url, "if_modified_since": if_modified_since},
            ),
            check=False,
        )
