"""
Outbound TCP connector for the bridge legs.

Opens a non-blocking stream socket to an endpoint. When the connect is
still in progress the call waits for writability for at most ``timeout``
seconds; this bounded wait is the only blocking step in the bridge and is
run off the event loop by the owning leg.
"""

import errno
import os
import select
import socket

from wsbridge.models.bridge_types import Endpoint, RetryCounter
from wsbridge.util.logging_helper import get_logger
from wsbridge.util.nonblocking import NonBlockingSocket

logger = get_logger(__name__)

DEFAULT_CONNECT_TIMEOUT = 2.0

_IN_PROGRESS = {errno.EINPROGRESS, errno.EWOULDBLOCK, errno.EALREADY}


def connect_stream(
    endpoint: Endpoint,
    retry: RetryCounter,
    timeout: float = DEFAULT_CONNECT_TIMEOUT,
    label: str = "TCP",
) -> NonBlockingSocket | None:
    """
    Connect to ``endpoint`` with a bounded, counted attempt.

    Args:
        endpoint: Target host and port
        retry: Retry counter owned by the calling leg
        timeout: Maximum seconds to wait for a pending connect
        label: Leg name for logging

    Returns:
        Connected NonBlockingSocket, or None on any failure. If the retry
        counter has reached its cap it is reset and None is returned
        without attempting to connect.
    """
    if retry.exhausted():
        logger.warning(
            "Too many failed connection attempts to %s server %s; will retry later",
            label,
            endpoint,
        )
        retry.reset()
        return None

    attempt = retry.increment()
    logger.info("Connecting to %s server at %s (attempt %d)...", label, endpoint, attempt)

    sock = None
    try:
        family, socktype, proto, _, sockaddr = socket.getaddrinfo(
            endpoint.host, endpoint.port, type=socket.SOCK_STREAM
        )[0]
        sock = socket.socket(family, socktype, proto)
        sock.setblocking(False)

        err = sock.connect_ex(sockaddr)
        if err in _IN_PROGRESS:
            _, writable, _ = select.select([], [sock], [], timeout)
            if not writable:
                raise TimeoutError(f"connect timed out after {timeout}s")
            err = sock.getsockopt(socket.SOL_SOCKET, socket.SO_ERROR)

        if err != 0:
            raise OSError(err, os.strerror(err))

        if family in (socket.AF_INET, socket.AF_INET6):
            sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)

    except OSError as e:
        logger.warning("Connection to %s server %s failed: %s", label, endpoint, e)
        if sock is not None:
            sock.close()
        return None

    logger.info("Connected to %s server %s", label, endpoint)
    retry.reset()
    return NonBlockingSocket(sock, peer=endpoint.as_tuple())
