"""
NodeState — what a provisioning run leaves behind for later runs.

Serialized to .state/jenkins.json next to the configuration. Holds the
service account's public key (for copying to agents and other hosts)
and a summary of the last run. Disposable: deleting it only loses the
cached key until the next run reads it again.
"""

from __future__ import annotations

from datetime import UTC, datetime

from pydantic import BaseModel, Field


def _now_iso() -> str:
    """Current UTC time as ISO string."""
    return datetime.now(UTC).isoformat()


class RunRecord(BaseModel):
    """Summary of the last provisioning run."""

    operation_id: str = ""
    started_at: str = ""
    ended_at: str = ""
    status: str = ""  # ok, failed
    platform: str = ""
    cascade_fired: bool = False
    restarted_for_plugins: bool = False
    actions_total: int = 0
    actions_changed: int = 0
    actions_failed: int = 0


class NodeState(BaseModel):
    """Root state model for one provisioned host."""

    schema_version: int = 1

    created_at: str = Field(default_factory=_now_iso)
    updated_at: str = Field(default_factory=_now_iso)

    pubkey: str | None = None
    last_run: RunRecord = Field(default_factory=RunRecord)

    def touch(self) -> None:
        """Update the updated_at timestamp."""
        self.updated_at = _now_iso()
