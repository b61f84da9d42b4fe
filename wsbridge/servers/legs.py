"""
Outbound TCP leg (IN or OUT) and its reconnection state machine.

    DISCONNECTED -> CONNECTING -> CONNECTED
    CONNECTING   -> DISCONNECTED   (connect failed)
    CONNECTED    -> DISCONNECTED   (peer closed, or I/O error)

A leg never gives up: a failed connect leaves it DISCONNECTED and the
next demand (inbound data, poll tick, background keeper) tries again.
"""

import asyncio

from wsbridge.models.bridge_types import Endpoint, LegStatus, RetryCounter
from wsbridge.servers.connector import DEFAULT_CONNECT_TIMEOUT, connect_stream
from wsbridge.util.logging_helper import get_logger
from wsbridge.util.nonblocking import NonBlockingSocket, ReadResult, ReadStatus

logger = get_logger(__name__)


class Leg:
    """
    Owns one outbound connection: its socket, status and retry counter.

    The socket is None whenever the leg is not CONNECTED, so a closed
    handle is never read from or written to.
    """

    def __init__(
        self,
        name: str,
        endpoint: Endpoint,
        retry_cap: int = 10,
        connect_timeout: float = DEFAULT_CONNECT_TIMEOUT,
    ):
        self.name = name
        self.endpoint = endpoint
        self.retry = RetryCounter(cap=retry_cap)
        self.connect_timeout = connect_timeout

        self.sock: NonBlockingSocket | None = None
        self.status = LegStatus.DISCONNECTED

        # Statistics
        self.bytes_sent = 0
        self.bytes_received = 0
        self.connect_count = 0

        self._connect_lock = asyncio.Lock()

    @property
    def connected(self) -> bool:
        return self.status is LegStatus.CONNECTED and self.sock is not None

    async def ensure_connected(self) -> bool:
        """
        Bring the leg up if it is not connected.

        The blocking connect runs in a worker thread. Concurrent callers
        wait for the attempt in progress and re-check, so a connect is
        never issued for a leg that is already connected.

        Returns:
            True if the leg is connected when the call returns
        """
        if self.connected:
            return True

        async with self._connect_lock:
            if self.connected:
                return True

            self.status = LegStatus.CONNECTING
            sock = None
            attempt = asyncio.ensure_future(
                asyncio.to_thread(connect_stream, self.endpoint, self.retry, self.connect_timeout, self.name)
            )
            try:
                sock = await asyncio.shield(attempt)
            except asyncio.CancelledError:
                # The worker thread cannot be interrupted; close what it returns
                attempt.add_done_callback(self._close_abandoned)
                raise
            finally:
                if sock is None:
                    self.status = LegStatus.DISCONNECTED

            if sock is None:
                return False

            self.sock = sock
            self.status = LegStatus.CONNECTED
            self.connect_count += 1
            return True

    def read(self, max_bytes: int) -> ReadResult:
        """
        Read one chunk without blocking.

        An orderly close or a hard error closes the leg before returning.
        """
        if not self.connected:
            return ReadResult.no_data()

        result = self.sock.read(max_bytes)

        if result.status is ReadStatus.DATA:
            self.bytes_received += len(result.data)
        elif result.status is ReadStatus.CLOSED:
            logger.warning("%s connection closed by server %s", self.name, self.endpoint)
            self.close()
        elif result.status is ReadStatus.ERROR:
            logger.error("Error reading from %s server %s: %s", self.name, self.endpoint, result.error)
            self.close()

        return result

    def write(self, data: bytes) -> int:
        """
        Send ``data`` without blocking.

        Returns:
            Bytes accepted, possibly fewer than ``len(data)``

        Raises:
            ConnectionError: If the leg is not connected or the send fails;
                a failed send closes the leg
        """
        if not self.connected:
            raise ConnectionError(f"{self.name} leg is not connected")

        try:
            sent = self.sock.write(data)
        except OSError as e:
            logger.error("Send to %s server %s failed: %s", self.name, self.endpoint, e)
            self.close()
            raise ConnectionError(f"send to {self.name} server failed: {e}") from e

        self.bytes_sent += sent
        return sent

    def _close_abandoned(self, attempt: asyncio.Future):
        if attempt.cancelled() or attempt.exception() is not None:
            return
        sock = attempt.result()
        if sock is not None:
            logger.info("Closing %s connection to %s opened after the caller went away", self.name, self.endpoint)
            sock.close()

    def close(self):
        """Close the socket and return to DISCONNECTED. The retry counter is kept."""
        if self.sock is not None:
            self.sock.close()
            self.sock = None
            logger.info("%s leg to %s closed", self.name, self.endpoint)
        self.status = LegStatus.DISCONNECTED

    def snapshot(self) -> dict:
        """Describe the leg for the status endpoint."""
        return {
            "name": self.name,
            "endpoint": str(self.endpoint),
            "status": self.status.value,
            "retry_attempts": self.retry.attempts,
            "retry_cap": self.retry.cap,
            "connect_count": self.connect_count,
            "bytes_sent": self.bytes_sent,
            "bytes_received": self.bytes_received,
        }
