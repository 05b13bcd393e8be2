"""
Drain wait — let a stopped Jenkins release its port.

``service jenkins stop`` usually returns before the JVM has exited.
Installing or starting again while the old process still holds the
HTTP port ends in a bind failure, so callers poll the socket table
until nothing listens on the port. Best effort: after the last attempt
the caller proceeds regardless.
"""

from __future__ import annotations

import logging
import time
from typing import Callable

from jenkins_provision.core.host import Host

logger = logging.getLogger(__name__)

DEFAULT_ATTEMPTS = 10
DEFAULT_INTERVAL = 1.0


def port_is_listening(socket_table: str, port: int) -> bool:
    """Whether a ``netstat -lnt`` / ``ss -lnt`` listing has a listener on ``port``.

    Both tools put the local address in the fourth column.

    >>> port_is_listening("tcp6 0 0 :::8080 :::* LISTEN", 8080)
    True
    >>> port_is_listening("tcp 0 0 0.0.0.0:18080 0.0.0.0:* LISTEN", 8080)
    False
    """
    suffix = f":{port}"
    for line in socket_table.splitlines():
        fields = line.split()
        if len(fields) < 4 or not fields[3].endswith(suffix):
            continue
        if "LISTEN" in fields or len(fields) < 6:
            return True
    return False


def wait_for_port_release(
    host: Host,
    port: int,
    command: str = "netstat -lnt",
    attempts: int = DEFAULT_ATTEMPTS,
    interval: float = DEFAULT_INTERVAL,
    sleep: Callable[[float], None] = time.sleep,
) -> int:
    """Poll the socket table until ``port`` is free, at most ``attempts`` times.

    Never raises. A failing probe counts as "released".

    Returns:
        The number of socket table checks performed.
    """
    for attempt in range(1, attempts + 1):
        receipt = host.probe(f"drain-wait:{attempt}", command)
        if not receipt.ok:
            logger.debug("Socket table probe failed (%s), not waiting", receipt.error)
            return attempt
        if not port_is_listening(receipt.output, port):
            return attempt
        logger.debug("service[jenkins] still listening (port %d)", port)
        sleep(interval)
    logger.debug("Port %d still busy after %d checks, continuing", port, attempts)
    return attempts
