"""
Mock adapter — test double for any adapter name.

Registered under "shell" or "http" it lets tests drive a whole recipe
run without touching the host: every action is recorded, and replies
can be scripted per action ID.
"""

from __future__ import annotations

from typing import Any

from jenkins_provision.adapters.base import Adapter, ExecutionContext
from jenkins_provision.core.models.action import Receipt


class MockAdapter(Adapter):
    """Universal mock adapter for testing.

    By default, returns success for everything. Can be configured
    with custom responses per action ID.
    """

    def __init__(
        self,
        adapter_name: str = "mock",
        available: bool = True,
        default_output: str = "[mock] executed",
        default_changed: bool = False,
    ):
        self._name = adapter_name
        self._available = available
        self._default_output = default_output
        self._default_changed = default_changed
        self._responses: dict[str, Receipt] = {}
        self._call_log: list[ExecutionContext] = []

    @property
    def name(self) -> str:
        return self._name

    @property
    def call_log(self) -> list[ExecutionContext]:
        """All execution contexts this mock has received."""
        return self._call_log

    @property
    def call_count(self) -> int:
        """Number of times execute has been called."""
        return len(self._call_log)

    @property
    def action_ids(self) -> list[str]:
        """IDs of all executed actions, in call order."""
        return [ctx.action.id for ctx in self._call_log]

    def is_available(self) -> bool:
        return self._available

    def set_response(self, action_id: str, receipt: Receipt) -> None:
        """Set a custom response for a specific action ID."""
        self._responses[action_id] = receipt

    def set_output(self, action_id: str, output: str = "", changed: bool = False, **metadata: Any) -> None:
        """Configure a successful reply with the given output and metadata."""
        self._responses[action_id] = Receipt.success(
            adapter=self._name,
            action_id=action_id,
            output=output,
            changed=changed,
            metadata=metadata,
        )

    def set_failure(self, action_id: str, error: str = "Mock failure") -> None:
        """Configure a specific action to fail."""
        self._responses[action_id] = Receipt.failure(
            adapter=self._name,
            action_id=action_id,
            error=error,
        )

    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        return True, ""

    def execute(self, context: ExecutionContext) -> Receipt:
        self._call_log.append(context)

        if context.action.id in self._responses:
            return self._responses[context.action.id].model_copy()

        return Receipt.success(
            adapter=self._name,
            action_id=context.action.id,
            output=self._default_output,
            changed=self._default_changed,
            metadata={"mock": True},
        )

    def reset(self) -> None:
        """Clear call log and custom responses."""
        self._call_log.clear()
        self._responses.clear()
