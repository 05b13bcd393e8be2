"""
Jenkins service control.

``service jenkins status`` exits 0 even when the daemon is dead, so
liveness is judged from the pid file instead: it must exist and name a
live process.
"""

from __future__ import annotations

import logging
import shlex

from jenkins_provision.core.recipe.context import RunContext

logger = logging.getLogger(__name__)


def is_running(ctx: RunContext) -> bool:
    pid_file = shlex.quote(ctx.platform.pid_file)
    receipt = ctx.host.probe("service:status", f"test -f {pid_file} && kill -0 $(cat {pid_file})")
    return receipt.ok


def stop_service(ctx: RunContext) -> bool:
    """Stop Jenkins if it is running. Returns True if a stop was issued."""
    name = ctx.config.server.service_name
    if not is_running(ctx):
        logger.debug("service[%s] not running, nothing to stop", name)
        return False
    ctx.host.run("service:stop", ["service", name, "stop"])
    return True


def start_service(ctx: RunContext) -> bool:
    """Start Jenkins unless it is already running. Returns True if a start was issued."""
    name = ctx.config.server.service_name
    if is_running(ctx):
        logger.debug("service[%s] already running", name)
        return False
    ctx.host.run("service:start", ["service", name, "start"])
    return True
