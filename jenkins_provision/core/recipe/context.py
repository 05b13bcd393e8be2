"""
Run context — the mutable record threaded through every recipe step.

Configuration is frozen; everything learned or decided during the run
(resolved platform, public key, cascade progress) is written here and
read by later steps. One context per run, never shared.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable

from jenkins_provision.core.host import Host
from jenkins_provision.core.models.config import RecipeConfig
from jenkins_provision.core.models.platform import PlatformProfile


class CascadeState(str, Enum):
    """Progress of the install/restart cascade."""

    IDLE = "idle"
    TRIGGERED = "triggered"
    STOPPING = "stopping"
    DRAINING = "draining"
    KEY_IMPORTING = "key_importing"
    INSTALLING = "installing"
    STARTING = "starting"
    AUTO_STARTED = "auto_started"


@dataclass
class RunContext:
    """Per-run state shared by the recipe steps."""

    config: RecipeConfig
    host: Host
    profile: PlatformProfile | None = None
    pubkey: str | None = None
    cascade_states: list[CascadeState] = field(default_factory=lambda: [CascadeState.IDLE])
    plugins_changed: list[str] = field(default_factory=list)
    restarted_for_plugins: bool = False
    sleep: Callable[[float], None] = time.sleep

    @property
    def platform(self) -> PlatformProfile:
        """The resolved platform. Only valid after platform resolution."""
        if self.profile is None:
            raise RuntimeError("Platform has not been resolved yet")
        return self.profile

    @property
    def user(self) -> str:
        return self.config.server.user

    @property
    def group(self) -> str:
        """Configured group, or the platform default once resolved."""
        if self.config.server.group:
            return self.config.server.group
        return self.platform.default_group

    @property
    def cascade_state(self) -> CascadeState:
        return self.cascade_states[-1]

    @property
    def cascade_fired(self) -> bool:
        return CascadeState.TRIGGERED in self.cascade_states

    def enter(self, state: CascadeState) -> None:
        self.cascade_states.append(state)
