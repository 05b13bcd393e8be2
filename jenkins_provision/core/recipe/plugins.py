"""
Plugin staging and restart-on-plugin-change.

Plugins are plain ``.hpi`` files dropped into ``<home>/plugins``;
Jenkins only loads them at startup. When a run adds or updates a
plugin without upgrading the package (so no cascade restarted the
service), the service is cycled once at the end of the run.
"""

from __future__ import annotations

import logging

from jenkins_provision.core.recipe.context import RunContext
from jenkins_provision.core.recipe.install import drain
from jenkins_provision.core.recipe.service import start_service, stop_service

logger = logging.getLogger(__name__)


def plugin_url(mirror: str, name: str) -> str:
    return f"{mirror}/latest/{name}.hpi"


def plugin_path(ctx: RunContext, name: str) -> str:
    return f"{ctx.config.server.plugins_dir}/{name}.hpi"


def stage_plugins(ctx: RunContext) -> list[str]:
    """Fetch every configured plugin. Returns the names whose file changed."""
    server = ctx.config.server
    if not server.plugins:
        logger.debug("No plugins configured")
        return []

    ctx.host.fs("plugins:dir", "mkdir", server.plugins_dir, owner=ctx.user, group=ctx.group)

    for name in server.plugins:
        path = plugin_path(ctx, name)
        receipt = ctx.host.fetch(
            f"plugins:fetch:{name}",
            plugin_url(ctx.config.mirror, name),
            path,
            preserve_mtime=False,
        )
        if receipt.changed:
            ctx.plugins_changed.append(name)
        if receipt.ok:
            ctx.host.fs(f"plugins:chown:{name}", "chown", path, owner=ctx.user, group=ctx.group)

    if ctx.plugins_changed:
        logger.info("Plugins updated: %s", ", ".join(ctx.plugins_changed))
    return list(ctx.plugins_changed)


def plugins_newer_than_pid(ctx: RunContext) -> bool:
    """True iff the pid file exists and some plugin file is newer than it."""
    pid_mtime = ctx.host.mtime("plugins:pid-mtime", ctx.platform.pid_file)
    if pid_mtime is None:
        return False

    for path in ctx.host.glob("plugins:list", ctx.config.server.plugins_dir, "*.hpi"):
        mtime = ctx.host.mtime(f"plugins:mtime:{path.rsplit('/', 1)[-1]}", path)
        if mtime is not None and mtime > pid_mtime:
            return True
    return False


def restart_if_plugins_updated(ctx: RunContext) -> bool:
    """Cycle the service when a plugin is newer than the running process.

    Skipped when the install cascade ran this run: that restart already
    loaded every staged plugin.
    """
    if ctx.cascade_fired:
        logger.debug("install cascade restarted jenkins, no plugin restart needed")
        return False
    if not plugins_newer_than_pid(ctx):
        return False

    logger.info("plugins updated, restarting jenkins")
    stop_service(ctx)
    drain(ctx)
    start_service(ctx)
    ctx.restarted_for_plugins = True
    return True
