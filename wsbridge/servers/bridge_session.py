"""
Front-end session handling for the WebSocket/TCP bridge.

A BridgeSession reacts to the four front-end lifecycle events:

- established: bring up both legs (best effort)
- message: forward the payload verbatim to the IN leg
- writable: read one chunk from the OUT leg and send it to the front end
- closed: stop forwarding and release the legs
"""

from collections import deque
from typing import Protocol

from wsbridge.servers.legs import Leg
from wsbridge.util.logging_helper import format_hex, get_logger
from wsbridge.util.nonblocking import ReadStatus

logger = get_logger(__name__)

DEFAULT_BUFFER_SIZE = 1024

IN_CONNECT_ERROR = "Error: Cannot connect to TCP server"
IN_SEND_ERROR = "Error: Failed to forward data to TCP server"


class FrontendConnection(Protocol):
    """Send primitive of the front-end transport (text and binary)."""

    async def send_text(self, data: str) -> None: ...

    async def send_bytes(self, data: bytes) -> None: ...


class BridgeSession:
    """
    One active front-end session and the two legs it forwards to.

    The legs are lent to the session by its owner for as long as the
    session is active; nothing else reads or writes them meanwhile.
    """

    def __init__(
        self,
        frontend: FrontendConnection,
        in_leg: Leg,
        out_leg: Leg,
        buffer_size: int = DEFAULT_BUFFER_SIZE,
        history: deque | None = None,
        label: str = "frontend",
    ):
        self.frontend: FrontendConnection | None = frontend
        self.in_leg = in_leg
        self.out_leg = out_leg
        self.buffer_size = buffer_size
        self.history = history
        self.label = label
        self.active = False

        # Statistics
        self.messages_forwarded = 0
        self.messages_dropped = 0
        self.chunks_sent = 0

    async def on_established(self):
        """Mark the session active and try to bring both legs up."""
        self.active = True
        logger.info("Front-end session %s established", self.label)

        for leg in (self.in_leg, self.out_leg):
            if not await leg.ensure_connected():
                logger.warning("%s leg unavailable at session start, will retry on demand", leg.name)

    async def on_message(self, data: bytes) -> bool:
        """
        Forward one front-end payload to the IN leg.

        If IN cannot be reached or the send fails, the payload is dropped
        and a single diagnostic text message is sent back to the front end.

        Returns:
            True if the payload was handed to the IN socket
        """
        if not self.active:
            return False

        if not self.in_leg.connected:
            logger.warning("IN TCP connection lost. Reconnecting...")
            if not await self.in_leg.ensure_connected():
                logger.warning("Failed to connect to IN TCP server, dropping %d bytes", len(data))
                await self._report(IN_CONNECT_ERROR)
                return False

        try:
            sent = self.in_leg.write(data)
        except ConnectionError as e:
            logger.warning("Dropping %d bytes for IN: %s", len(data), e)
            await self._report(IN_SEND_ERROR)
            return False

        if sent == 0:
            logger.warning("IN TCP server send buffer full, dropping %d bytes", len(data))
            await self._report(IN_SEND_ERROR)
            return False

        self.messages_forwarded += 1
        if sent != len(data):
            logger.warning("Partial send to IN TCP server: %d of %d bytes", sent, len(data))
        else:
            logger.debug("Forwarded to IN TCP server:\n%s", format_hex(data))
        return True

    async def on_writable(self) -> int:
        """
        Poll the OUT leg once and forward whatever it returned.

        A disconnected OUT leg is reconnected first; if that fails the
        poll simply ends and the caller tries again on the next tick.

        Returns:
            Number of bytes forwarded to the front end (0 if none)
        """
        if not self.active:
            return 0

        if not self.out_leg.connected and not await self.out_leg.ensure_connected():
            return 0

        result = self.out_leg.read(self.buffer_size)
        if result.status is not ReadStatus.DATA or self.frontend is None:
            return 0

        await self.frontend.send_bytes(result.data)
        self.chunks_sent += 1
        if self.history is not None:
            self.history.append(result.data)

        logger.debug("Received from OUT TCP server:\n%s", format_hex(result.data))
        return len(result.data)

    def on_closed(self):
        """Deactivate the session. Leg sockets are left to the owner."""
        if self.active:
            logger.info(
                "Front-end session %s closed (forwarded %d messages, dropped %d, sent %d chunks)",
                self.label,
                self.messages_forwarded,
                self.messages_dropped,
                self.chunks_sent,
            )
        self.active = False
        self.frontend = None

    async def _report(self, message: str):
        """Send a diagnostic back to the front end for a dropped payload."""
        self.messages_dropped += 1
        if self.frontend is None:
            return
        await self.frontend.send_text(message)
