"""
Install trigger and the restart cascade.

The package install never runs on its own. A trigger decides whether
this run has something to install, and if so the cascade runs, in
this exact order:

    stop → drain wait → trust-key import → package install → start

Where the package's maintainer scripts start the service (dpkg/apt)
the start step only confirms it is up: apt does nothing for a package
that is already installed, so the service may still be stopped.

The key import and artifact download must precede the install: the
package managers refuse a source file that is missing or signed with
an unknown key.

Triggers:
    ubuntu          a marker command that always succeeds, so the
                    cascade fires every run (each step is idempotent)
    debian/redhat   the package artifact changed upstream
"""

from __future__ import annotations

import logging
import posixpath
import shlex

from jenkins_provision.core.host import ProvisionError
from jenkins_provision.core.models.platform import PlatformFamily
from jenkins_provision.core.recipe.context import CascadeState, RunContext
from jenkins_provision.core.recipe.drain import wait_for_port_release
from jenkins_provision.core.recipe.platform import debian_key_path
from jenkins_provision.core.recipe.service import start_service, stop_service

logger = logging.getLogger(__name__)


def local_package_path(ctx: RunContext) -> str:
    """Where the downloaded .deb/.rpm is kept between runs."""
    source = ctx.platform.package_source
    if source is None:
        raise ProvisionError(f"{ctx.platform.os_id} installs from a repository, not a file")
    return posixpath.join(ctx.config.tmp_dir, posixpath.basename(source))


def import_trust_key(ctx: RunContext) -> None:
    """Register the Jenkins package signing key with the package manager."""
    family = ctx.platform.family
    if family is PlatformFamily.DEBIAN:
        ctx.host.run("trust-key:import", ["apt-key", "add", debian_key_path(ctx)])
    elif family is PlatformFamily.UBUNTU:
        key_url = shlex.quote(ctx.config.packages.ubuntu_key_url)
        ctx.host.run("trust-key:import", f"curl -fsSL {key_url} | apt-key add -")
        ctx.host.run("trust-key:apt-update", ["apt-get", "update"])
    else:
        ctx.host.run(
            "trust-key:import",
            ["rpm", "--import", f"{ctx.config.mirror}/redhat/jenkins-ci.org.key"],
        )


def install_package(ctx: RunContext) -> None:
    """Install or upgrade the jenkins package. Failure is fatal."""
    backend = ctx.platform.package_backend
    if backend == "dpkg":
        command = ["dpkg", "-i", local_package_path(ctx)]
    elif backend == "apt":
        command = ["apt-get", "install", "-y", "-q", "jenkins"]
    else:
        command = ["rpm", "-Uvh", "--replacepkgs", local_package_path(ctx)]
    ctx.host.run("package:install", command, env={"DEBIAN_FRONTEND": "noninteractive"})


def drain(ctx: RunContext) -> int:
    return wait_for_port_release(
        ctx.host,
        ctx.config.server.port,
        command=ctx.config.socket_table_command,
        attempts=ctx.config.drain_attempts,
        interval=ctx.config.drain_interval,
        sleep=ctx.sleep,
    )


def run_install_cascade(ctx: RunContext) -> CascadeState:
    """Run the full stop → drain → key → install → start chain."""
    ctx.enter(CascadeState.TRIGGERED)
    logger.info("Package install triggered on %s", ctx.platform.os_id)

    ctx.enter(CascadeState.STOPPING)
    stop_service(ctx)

    ctx.enter(CascadeState.DRAINING)
    drain(ctx)

    ctx.enter(CascadeState.KEY_IMPORTING)
    import_trust_key(ctx)

    ctx.enter(CascadeState.INSTALLING)
    install_package(ctx)

    if ctx.platform.install_starts_service:
        ctx.enter(CascadeState.AUTO_STARTED)
    else:
        ctx.enter(CascadeState.STARTING)
    start_service(ctx)

    return ctx.cascade_state


def package_changed(ctx: RunContext) -> bool:
    """Fetch the package artifact and report whether it changed.

    With ``use_head`` a conditional HEAD is sent first and the download
    only happens when upstream answers 2xx. A 304, or any HEAD error,
    counts as "not modified".
    """
    local = local_package_path(ctx)
    source = ctx.platform.package_source

    if ctx.config.server.use_head:
        since = ctx.host.mtime("package:local-mtime", local)
        head = ctx.host.head("package:head", source, if_modified_since=since)
        if not head.ok or not head.metadata.get("modified", False):
            logger.debug("HEAD %s: not modified", source)
            return False

    receipt = ctx.host.fetch("package:fetch", source, local)
    return receipt.changed


def trigger_install(ctx: RunContext) -> bool:
    """Decide whether to install this run, and run the cascade if so.

    Returns:
        True if the cascade fired.
    """
    if ctx.platform.family is PlatformFamily.UBUNTU:
        ctx.host.run("package:setup-marker", ["echo", "w00t"])
        run_install_cascade(ctx)
        return True

    if package_changed(ctx):
        run_install_cascade(ctx)
        return True

    logger.info("Jenkins package up to date, no install")
    return False
