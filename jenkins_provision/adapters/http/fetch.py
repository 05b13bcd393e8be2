"""
HTTP adapter — artifact downloads and freshness checks.

Two operations:

    fetch   GET ``url`` into ``path``. Sends If-Modified-Since from the
            local file's mtime, treats 304 as up to date, and replaces
            the file only when the downloaded bytes differ. With
            ``preserve_mtime`` (the default) the local mtime is set from
            Last-Modified so the next request is conditional on the
            upstream timestamp. Without it a replaced file keeps its
            write time.

    head    HEAD ``url`` with an optional If-Modified-Since. Reports
            ``modified`` (True for 2xx, False for 304).
"""

from __future__ import annotations

import hashlib
import logging
import os
import tempfile
import time
import urllib.error
import urllib.request
from email.utils import formatdate, parsedate_to_datetime
from pathlib import Path

from jenkins_provision import __version__
from jenkins_provision.adapters.base import Adapter, ExecutionContext
from jenkins_provision.core.models.action import Receipt

logger = logging.getLogger(__name__)

_USER_AGENT = f"jenkins-provision/{__version__}"


def http_date(timestamp: float) -> str:
    """Format a POSIX timestamp as an RFC 7231 HTTP date."""
    return formatdate(timestamp, usegmt=True)


class HttpAdapter(Adapter):
    """HTTP GET/HEAD with receipts.

    Action params:
        operation (str): 'fetch' or 'head'.
        url (str): Remote URL.
        path (str): Local destination (for 'fetch').
        if_modified_since (float): POSIX timestamp (for 'head').
        preserve_mtime (bool): Copy Last-Modified onto the file (for 'fetch',
            default: True).
        timeout (int): Socket timeout in seconds (default: 60).
    """

    @property
    def name(self) -> str:
        return "http"

    def is_available(self) -> bool:
        return True

    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        params = context.action.params
        operation = params.get("operation", "")
        if operation not in ("fetch", "head"):
            return False, f"Unknown operation '{operation}'. Valid: fetch, head"
        url = params.get("url", "")
        if not url.startswith(("http://", "https://")):
            return False, f"Unsupported URL: {url!r}"
        if operation == "fetch" and not params.get("path"):
            return False, "Missing required param: 'path' for fetch operation"
        return True, ""

    def execute(self, context: ExecutionContext) -> Receipt:
        operation = context.action.params["operation"]
        url = context.action.params["url"]
        try:
            if operation == "fetch":
                return self._fetch(context, url, Path(context.action.params["path"]))
            return self._head(context, url)
        except Exception as e:
            return Receipt.failure(
                adapter=self.name,
                action_id=context.action.id,
                error=f"HTTP {operation} failed for {url}: {e}",
                metadata={"url": url},
            )

    def _fetch(self, ctx: ExecutionContext, url: str, dest: Path) -> Receipt:
        timeout = ctx.action.params.get("timeout", 60)
        headers = {"User-Agent": _USER_AGENT}
        if dest.is_file():
            headers["If-Modified-Since"] = http_date(dest.stat().st_mtime)

        logger.debug("GET %s -> %s", url, dest)
        start = time.monotonic()
        request = urllib.request.Request(url, headers=headers)
        try:
            resp = urllib.request.urlopen(request, timeout=timeout)
        except urllib.error.HTTPError as e:
            if e.code == 304:
                return Receipt.success(
                    adapter=self.name,
                    action_id=ctx.action.id,
                    output=f"Not modified: {url}",
                    metadata={"url": url, "path": str(dest), "status_code": 304},
                )
            raise

        with resp:
            last_modified = resp.headers.get("Last-Modified")
            dest.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=dest.parent, prefix=f".{dest.name}.", suffix=".tmp")
            tmp = Path(tmp_name)
            digest = hashlib.sha256()
            try:
                with os.fdopen(fd, "wb") as out:
                    for chunk in iter(lambda: resp.read(65536), b""):
                        digest.update(chunk)
                        out.write(chunk)
            except BaseException:
                tmp.unlink(missing_ok=True)
                raise

        elapsed_ms = int((time.monotonic() - start) * 1000)
        changed = not dest.is_file() or _sha256(dest) != digest.hexdigest()
        if changed:
            tmp.replace(dest)
        else:
            tmp.unlink()

        if last_modified and ctx.action.params.get("preserve_mtime", True):
            _set_mtime(dest, last_modified)

        return Receipt.success(
            adapter=self.name,
            action_id=ctx.action.id,
            output=f"Downloaded {url}" if changed else f"Unchanged: {url}",
            changed=changed,
            duration_ms=elapsed_ms,
            metadata={
                "url": url,
                "path": str(dest),
                "status_code": resp.status,
                "sha256": digest.hexdigest(),
            },
        )

    def _head(self, ctx: ExecutionContext, url: str) -> Receipt:
        timeout = ctx.action.params.get("timeout", 60)
        headers = {"User-Agent": _USER_AGENT}
        since = ctx.action.params.get("if_modified_since")
        if since is not None:
            headers["If-Modified-Since"] = http_date(since)

        logger.debug("HEAD %s (%s)", url, headers.get("If-Modified-Since", "unconditional"))
        request = urllib.request.Request(url, headers=headers, method="HEAD")
        try:
            with urllib.request.urlopen(request, timeout=timeout) as resp:
                status = resp.status
        except urllib.error.HTTPError as e:
            if e.code != 304:
                raise
            status = 304

        modified = status != 304
        return Receipt.success(
            adapter=self.name,
            action_id=ctx.action.id,
            output=f"{status} {url}",
            metadata={"url": url, "status_code": status, "modified": modified},
        )


def _sha256(path: Path) -> str:
    h = hashlib.sha256()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(65536), b""):
            h.update(chunk)
    return h.hexdigest()


def _set_mtime(path: Path, last_modified: str) -> None:
    try:
        ts = parsedate_to_datetime(last_modified).timestamp()
    except (TypeError, ValueError):
        logger.debug("Ignoring unparsable Last-Modified %r", last_modified)
        return
    os.utime(path, (ts, ts))
