"""
Filesystem adapter — file and directory operations.

Provides a receipt-returning interface for the file resources of the
recipe (home directory, .ssh, plugin directory, rendered configs,
firewall rule fragments). Writes are idempotent: ``changed`` is only
set when content, mode or ownership actually had to be altered.
"""

from __future__ import annotations

import grp
import logging
import os
import pwd
import shutil
import stat
from pathlib import Path

from jenkins_provision.adapters.base import Adapter, ExecutionContext
from jenkins_provision.core.models.action import Receipt

logger = logging.getLogger(__name__)

_PATH_OPS = {"exists", "read", "write", "mkdir", "chown", "mtime", "glob", "symlink", "remove"}


class FilesystemAdapter(Adapter):
    """File and directory operations with receipts.

    Action params:
        operation (str): One of exists, read, write, mkdir, chown,
            mtime, glob, symlink, remove.
        path (str): Absolute target path.
        content (str): Content to write (for 'write').
        mode (int): Permission bits (for 'write' and 'mkdir').
        owner, group (str): Ownership (for 'write', 'mkdir', 'chown').
        pattern (str): Glob pattern relative to path (for 'glob').
        target (str): Link target (for 'symlink').
    """

    @property
    def name(self) -> str:
        return "filesystem"

    def is_available(self) -> bool:
        return True

    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        params = context.action.params
        operation = params.get("operation", "")
        if not operation:
            return False, "Missing required param: 'operation'"
        if operation not in _PATH_OPS:
            return False, f"Unknown operation '{operation}'. Valid: {', '.join(sorted(_PATH_OPS))}"

        path = params.get("path", "")
        if not path:
            return False, "Missing required param: 'path'"
        if not Path(path).is_absolute():
            return False, f"Path must be absolute: {path}"

        if operation == "write" and "content" not in params:
            return False, "Missing required param: 'content' for write operation"
        if operation == "glob" and not params.get("pattern"):
            return False, "Missing required param: 'pattern' for glob operation"
        if operation == "symlink" and not params.get("target"):
            return False, "Missing required param: 'target' for symlink operation"

        return True, ""

    def execute(self, context: ExecutionContext) -> Receipt:
        operation = context.action.params["operation"]
        target = Path(context.action.params["path"])

        try:
            handler = getattr(self, f"_{operation}")
            return handler(context, target)
        except Exception as e:
            return Receipt.failure(
                adapter=self.name,
                action_id=context.action.id,
                error=f"Filesystem error: {e}",
                metadata={"operation": operation, "path": str(target)},
            )

    def _exists(self, ctx: ExecutionContext, target: Path) -> Receipt:
        exists = target.exists()
        return Receipt.success(
            adapter=self.name,
            action_id=ctx.action.id,
            output=str(exists),
            metadata={"exists": exists, "is_dir": target.is_dir(), "path": str(target)},
        )

    def _read(self, ctx: ExecutionContext, target: Path) -> Receipt:
        if not target.is_file():
            return Receipt.failure(
                adapter=self.name,
                action_id=ctx.action.id,
                error=f"File not found: {target}",
            )
        content = target.read_text(encoding="utf-8")
        return Receipt.success(
            adapter=self.name,
            action_id=ctx.action.id,
            output=content,
            metadata={"path": str(target), "size": len(content)},
        )

    def _write(self, ctx: ExecutionContext, target: Path) -> Receipt:
        params = ctx.action.params
        content = params["content"]
        changed = False

        if not target.is_file() or target.read_text(encoding="utf-8") != content:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(content, encoding="utf-8")
            changed = True

        changed |= _apply_attributes(target, params.get("mode"), params.get("owner"), params.get("group"))
        return Receipt.success(
            adapter=self.name,
            action_id=ctx.action.id,
            output=f"Written {len(content)} bytes to {target}" if changed else f"Up to date: {target}",
            changed=changed,
            metadata={"path": str(target), "size": len(content)},
        )

    def _mkdir(self, ctx: ExecutionContext, target: Path) -> Receipt:
        params = ctx.action.params
        changed = not target.is_dir()
        target.mkdir(parents=True, exist_ok=True)
        changed |= _apply_attributes(target, params.get("mode"), params.get("owner"), params.get("group"))
        return Receipt.success(
            adapter=self.name,
            action_id=ctx.action.id,
            output=f"Directory ready: {target}",
            changed=changed,
            metadata={"path": str(target)},
        )

    def _chown(self, ctx: ExecutionContext, target: Path) -> Receipt:
        params = ctx.action.params
        if not target.exists():
            return Receipt.failure(
                adapter=self.name,
                action_id=ctx.action.id,
                error=f"Path not found: {target}",
            )
        changed = _apply_attributes(target, None, params.get("owner"), params.get("group"))
        return Receipt.success(
            adapter=self.name,
            action_id=ctx.action.id,
            changed=changed,
            metadata={"path": str(target)},
        )

    def _mtime(self, ctx: ExecutionContext, target: Path) -> Receipt:
        if not target.exists():
            return Receipt.success(
                adapter=self.name,
                action_id=ctx.action.id,
                metadata={"path": str(target), "exists": False, "mtime": None},
            )
        mtime = target.stat().st_mtime
        return Receipt.success(
            adapter=self.name,
            action_id=ctx.action.id,
            output=str(mtime),
            metadata={"path": str(target), "exists": True, "mtime": mtime},
        )

    def _glob(self, ctx: ExecutionContext, target: Path) -> Receipt:
        pattern = ctx.action.params["pattern"]
        matches = sorted(str(p) for p in target.glob(pattern)) if target.is_dir() else []
        return Receipt.success(
            adapter=self.name,
            action_id=ctx.action.id,
            output="\n".join(matches),
            metadata={"path": str(target), "matches": matches},
        )

    def _symlink(self, ctx: ExecutionContext, target: Path) -> Receipt:
        link_target = ctx.action.params["target"]
        if target.is_symlink() and os.readlink(target) == link_target:
            return Receipt.success(
                adapter=self.name,
                action_id=ctx.action.id,
                output=f"Link up to date: {target}",
                metadata={"path": str(target)},
            )
        if target.is_symlink() or target.exists():
            target.unlink()
        target.parent.mkdir(parents=True, exist_ok=True)
        target.symlink_to(link_target)
        return Receipt.success(
            adapter=self.name,
            action_id=ctx.action.id,
            output=f"Linked {target} -> {link_target}",
            changed=True,
            metadata={"path": str(target)},
        )

    def _remove(self, ctx: ExecutionContext, target: Path) -> Receipt:
        if not (target.is_symlink() or target.exists()):
            return Receipt.success(
                adapter=self.name,
                action_id=ctx.action.id,
                output=f"Already absent: {target}",
                metadata={"path": str(target)},
            )
        if target.is_dir() and not target.is_symlink():
            shutil.rmtree(target)
        else:
            target.unlink()
        return Receipt.success(
            adapter=self.name,
            action_id=ctx.action.id,
            output=f"Removed {target}",
            changed=True,
            metadata={"path": str(target)},
        )


def _apply_attributes(
    target: Path,
    mode: int | None,
    owner: str | None,
    group: str | None,
) -> bool:
    """Set mode and ownership where they differ. Returns True if anything changed."""
    changed = False
    st = target.stat()

    if mode is not None and stat.S_IMODE(st.st_mode) != mode:
        os.chmod(target, mode)
        changed = True

    uid = pwd.getpwnam(owner).pw_uid if owner else -1
    gid = grp.getgrnam(group).gr_gid if group else -1
    if (uid != -1 and st.st_uid != uid) or (gid != -1 and st.st_gid != gid):
        os.chown(target, uid, gid)
        changed = True

    return changed
