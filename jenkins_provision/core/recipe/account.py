"""
Service account bootstrap — user, home, .ssh and the SSH keypair.

The keypair is generated once and never replaced: the existence of the
private key gates ssh-keygen. The public key is read back on every run
so later steps (and the node state) always carry the current value.
"""

from __future__ import annotations

import logging

from jenkins_provision.core.host import ProvisionError
from jenkins_provision.core.recipe.context import RunContext

logger = logging.getLogger(__name__)


def ensure_user(ctx: RunContext) -> None:
    """Create the service user if it does not exist."""
    server = ctx.config.server
    if ctx.host.probe("account:user-exists", ["id", "-u", server.user]).ok:
        logger.debug("User %s already exists", server.user)
        return
    ctx.host.run("account:useradd", ["useradd", "--home-dir", server.home, server.user])


def ensure_directories(ctx: RunContext) -> None:
    """Create the home directory and a private .ssh directory inside it."""
    server = ctx.config.server
    ctx.host.fs("account:home", "mkdir", server.home, owner=ctx.user, group=ctx.group)
    ctx.host.fs(
        "account:ssh-dir",
        "mkdir",
        f"{server.home}/.ssh",
        mode=0o700,
        owner=ctx.user,
        group=ctx.group,
    )


def ensure_ssh_key(ctx: RunContext) -> bool:
    """Generate the keypair unless the private key already exists.

    Returns:
        True if ssh-keygen ran.
    """
    pkey = ctx.config.server.ssh_key_path
    if ctx.host.exists("account:key-exists", pkey):
        logger.debug("SSH key %s present, not regenerating", pkey)
        return False
    ctx.host.run(
        "account:ssh-keygen",
        [
            "runuser", "-u", ctx.user, "-g", ctx.group, "--",
            "ssh-keygen", "-q", "-t", "rsa", "-f", pkey, "-N", "",
        ],
    )
    return True


def store_public_key(ctx: RunContext) -> str | None:
    """Read the first line of the public key into the run context."""
    path = f"{ctx.config.server.ssh_key_path}.pub"
    if ctx.host.dry_run and not ctx.host.exists("account:pubkey-exists", path):
        logger.info("[dry-run] %s not generated yet", path)
        return None

    content = ctx.host.read("account:pubkey", path)
    lines = content.splitlines()
    if not lines or not lines[0].strip():
        raise ProvisionError(f"Public key file is empty: {path}")
    ctx.pubkey = lines[0].strip()
    logger.info("Service account public key: %s", ctx.pubkey)
    return ctx.pubkey


def bootstrap_account(ctx: RunContext) -> None:
    ensure_user(ctx)
    ensure_directories(ctx)
    ensure_ssh_key(ctx)
    store_public_key(ctx)
