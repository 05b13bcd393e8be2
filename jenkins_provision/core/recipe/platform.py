"""
Platform resolution and OS prerequisites.

One resolver maps the OS identity to a PlatformProfile. Everything
platform-specific downstream branches on ``profile.family``.
"""

from __future__ import annotations

import logging
from pathlib import Path

from jenkins_provision.core.host import ProvisionError
from jenkins_provision.core.models.platform import PlatformFamily, PlatformProfile
from jenkins_provision.core.recipe.context import RunContext

logger = logging.getLogger(__name__)

OS_RELEASE = Path("/etc/os-release")

_FAMILIES: dict[str, PlatformFamily] = {
    "debian": PlatformFamily.DEBIAN,
    "ubuntu": PlatformFamily.UBUNTU,
    "redhat": PlatformFamily.REDHAT,
    "centos": PlatformFamily.REDHAT,
}

SUPPORTED_OS_IDS = ("debian", "ubuntu", "redhat", "centos")

DEBIAN_PID_FILE = "/var/run/jenkins/jenkins.pid"
REDHAT_PID_FILE = "/var/run/jenkins.pid"


class UnsupportedPlatformError(ProvisionError):
    """The host OS is not one the recipe knows how to install on."""


def detect_os_id(os_release: Path = OS_RELEASE) -> str:
    """Read the ``ID=`` field of /etc/os-release.

    Raises:
        UnsupportedPlatformError: If the file is missing or has no ID.
    """
    try:
        with open(os_release, encoding="utf-8") as f:
            for line in f:
                if line.startswith("ID="):
                    return line.strip().split("=", 1)[1].strip('"').lower()
    except (FileNotFoundError, OSError) as e:
        raise UnsupportedPlatformError(f"Cannot identify OS: {e}") from e
    raise UnsupportedPlatformError(f"No ID= entry in {os_release}")


def resolve_platform(os_id: str, mirror: str) -> PlatformProfile:
    """Map an OS identity to its install profile.

    Raises:
        UnsupportedPlatformError: For any OS outside the supported families.
    """
    os_id = os_id.strip().lower()
    family = _FAMILIES.get(os_id)
    if family is None:
        raise UnsupportedPlatformError(
            f"Unsupported platform '{os_id}'. Supported: {', '.join(SUPPORTED_OS_IDS)}"
        )

    if family is PlatformFamily.DEBIAN:
        return PlatformProfile(
            family=family,
            os_id=os_id,
            package_source=f"{mirror}/latest/debian/jenkins.deb",
            package_backend="dpkg",
            pid_file=DEBIAN_PID_FILE,
            install_starts_service=True,
            default_group="nogroup",
        )
    if family is PlatformFamily.UBUNTU:
        return PlatformProfile(
            family=family,
            os_id=os_id,
            package_source=None,
            package_backend="apt",
            pid_file=DEBIAN_PID_FILE,
            install_starts_service=True,
            default_group="nogroup",
        )
    return PlatformProfile(
        family=family,
        os_id=os_id,
        package_source=f"{mirror}/latest/redhat/jenkins.rpm",
        package_backend="rpm",
        pid_file=REDHAT_PID_FILE,
        install_starts_service=False,
        default_group="jenkins",
    )


def install_prerequisites(ctx: RunContext) -> None:
    """Install what the jenkins package needs before the install trigger runs."""
    family = ctx.platform.family
    packages = ctx.config.packages

    if family is PlatformFamily.UBUNTU:
        _apt_install(ctx, "prereq:ubuntu", packages.ubuntu_prerequisites)
        ctx.host.run("prereq:apt-update", ["apt-get", "update"])
        _apt_install(ctx, "prereq:java", (packages.java_package,))
        ctx.host.fs(
            "prereq:apt-source",
            "write",
            packages.apt_source_file,
            content=packages.apt_source + "\n",
            mode=0o644,
        )
    elif family is PlatformFamily.DEBIAN:
        _apt_install(ctx, "prereq:debian", packages.debian_packages)
        ctx.host.fetch(
            "prereq:debian-key",
            f"{ctx.config.mirror}/debian/jenkins-ci.org.key",
            debian_key_path(ctx),
        )
    else:
        logger.debug("No prerequisites for %s", family.value)


def debian_key_path(ctx: RunContext) -> str:
    return f"{ctx.config.tmp_dir}/jenkins-ci.org.key"


def _apt_install(ctx: RunContext, action_id: str, names: tuple[str, ...]) -> None:
    if not names:
        return
    ctx.host.run(
        action_id,
        ["apt-get", "install", "-y", "-q", *names],
        env={"DEBIAN_FRONTEND": "noninteractive"},
    )
