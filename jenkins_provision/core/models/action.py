"""
Action and Receipt models — the execution contract.

Actions describe one side effect on the host (run a command, write a
file, fetch a URL). Receipts describe what actually happened. Recipe
steps build Actions, the adapter registry dispatches them, adapters
answer with Receipts. Adapters never raise.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any, Literal

from pydantic import BaseModel, Field


def _now_iso() -> str:
    """Current UTC time as ISO string."""
    return datetime.now(UTC).isoformat()


class Action(BaseModel):
    """A requested side effect, handled by a named adapter."""

    id: str                         # e.g. "account:useradd", "drain-wait:3"
    adapter: str                    # shell, filesystem, http
    params: dict[str, Any] = Field(default_factory=dict)
    probe: bool = False             # read-only: runs even in dry-run


class Receipt(BaseModel):
    """Result of an adapter execution.

    ``changed`` tells whether the host was modified. Idempotent steps
    (conditional fetch, file writes) report ``changed=False`` when the
    target was already in the desired state, and the recipe uses that
    to decide whether dependent actions must fire.
    """

    adapter: str
    action_id: str
    status: Literal["ok", "skipped", "failed"] = "ok"
    changed: bool = False

    started_at: str = Field(default_factory=_now_iso)
    ended_at: str = Field(default_factory=_now_iso)
    duration_ms: int = 0

    output: str = ""
    error: str | None = None

    metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def ok(self) -> bool:
        """Whether the action succeeded."""
        return self.status == "ok"

    @property
    def failed(self) -> bool:
        """Whether the action failed."""
        return self.status == "failed"

    @classmethod
    def success(
        cls,
        adapter: str,
        action_id: str,
        output: str = "",
        **kwargs: Any,
    ) -> Receipt:
        """Create a success receipt."""
        return cls(
            adapter=adapter,
            action_id=action_id,
            status="ok",
            output=output,
            **kwargs,
        )

    @classmethod
    def failure(
        cls,
        adapter: str,
        action_id: str,
        error: str,
        **kwargs: Any,
    ) -> Receipt:
        """Create a failure receipt."""
        return cls(
            adapter=adapter,
            action_id=action_id,
            status="failed",
            error=error,
            **kwargs,
        )

    @classmethod
    def skip(
        cls,
        adapter: str,
        action_id: str,
        reason: str = "",
        **kwargs: Any,
    ) -> Receipt:
        """Create a skip receipt."""
        return cls(
            adapter=adapter,
            action_id=action_id,
            status="skipped",
            output=reason,
            **kwargs,
        )
