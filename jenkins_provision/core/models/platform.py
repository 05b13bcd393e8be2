"""
Platform models — the OS-specific parameters of a Jenkins install.
"""

from __future__ import annotations

from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict


class PlatformFamily(str, Enum):
    """Supported OS families."""

    DEBIAN = "debian"
    UBUNTU = "ubuntu"
    REDHAT = "redhat"


class PlatformProfile(BaseModel):
    """Resolved install parameters for one host.

    Derived once per run from the OS identity, never stored.
    ``package_source`` is None when the package comes from an apt
    repository instead of a downloaded artifact.
    """

    model_config = ConfigDict(frozen=True)

    family: PlatformFamily
    os_id: str
    package_source: str | None
    package_backend: Literal["dpkg", "apt", "rpm"]
    pid_file: str
    install_starts_service: bool
    default_group: str

    def to_dict(self) -> dict:
        return {
            "family": self.family.value,
            "os_id": self.os_id,
            "package_source": self.package_source,
            "package_backend": self.package_backend,
            "pid_file": self.pid_file,
            "install_starts_service": self.install_starts_service,
            "default_group": self.default_group,
        }
