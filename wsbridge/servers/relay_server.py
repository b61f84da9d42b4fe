"""
Dual-port TCP Relay Server.

Stands in for the IN and OUT servers during testing. Each port accepts a
single client; bytes received from one client are forwarded verbatim to
the client on the other port. The two legs run as independent loops that
poll their sockets without blocking and sleep briefly between iterations.
"""

import asyncio
import socket
import time
from dataclasses import dataclass, field

from wsbridge.models.relay_types import RelayLeg, RelayPair
from wsbridge.servers.lifecycle import ShutdownFlag
from wsbridge.util.logging_helper import format_hex, get_logger
from wsbridge.util.nonblocking import NonBlockingSocket, ReadStatus

logger = get_logger(__name__)

LISTEN_BACKLOG = 5


def _open_listener(host: str, port: int) -> socket.socket:
    """Bind a non-blocking TCP listener. Raises OSError if the port is unavailable."""
    listener = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    try:
        listener.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        listener.bind((host, port))
        listener.listen(LISTEN_BACKLOG)
        listener.setblocking(False)
    except OSError:
        listener.close()
        raise
    return listener


@dataclass
class RelayServer:
    """
    TCP Relay Server.

    Owns one RelayPair for the lifetime of the process. ``in_port`` and
    ``out_port`` may be 0 to let the OS pick; the bound ports are available
    from the legs after start().
    """

    host: str = "0.0.0.0"
    in_port: int = 9002
    out_port: int = 9001
    tick: float = 0.01  # Seconds between loop iterations
    accept_backoff: float = 0.5  # Seconds to wait after a failed accept
    buffer_size: int = 1024
    shutdown: ShutdownFlag = field(default_factory=ShutdownFlag)

    pair: RelayPair | None = None

    _tasks: list[asyncio.Task] = field(default_factory=list)

    def start(self):
        """
        Bind both listeners.

        Raises:
            OSError: If either port cannot be bound
        """
        in_listener = _open_listener(self.host, self.in_port)
        try:
            out_listener = _open_listener(self.host, self.out_port)
        except OSError:
            in_listener.close()
            raise

        self.pair = RelayPair(
            leg_a=RelayLeg("IN", in_listener),
            leg_b=RelayLeg("OUT", out_listener),
        )
        logger.info(
            "Relay server listening on %s (IN port %d, OUT port %d)",
            self.host,
            self.pair.leg_a.port,
            self.pair.leg_b.port,
        )

    async def run(self):
        """Run both leg loops until shutdown is requested, then close all sockets."""
        if self.pair is None:
            self.start()

        pair = self.pair
        self._tasks = [
            asyncio.create_task(self._leg_loop(pair.leg_a, pair.leg_b)),
            asyncio.create_task(self._leg_loop(pair.leg_b, pair.leg_a)),
        ]
        try:
            await asyncio.gather(*self._tasks)
        finally:
            self.stop()

    def stop(self):
        """Close both listeners and any accepted clients."""
        if self.pair is None:
            return

        pair = self.pair
        self.pair = None
        pair.close()
        logger.info(
            "Relay server stopped after %ds (forwarded IN->OUT %d bytes, OUT->IN %d bytes)",
            int(time.time() - pair.created_at),
            pair.leg_a.bytes_forwarded,
            pair.leg_b.bytes_forwarded,
        )

    async def _leg_loop(self, leg: RelayLeg, peer: RelayLeg):
        """Accept a client for ``leg`` and forward its bytes to ``peer``'s client."""
        logger.info("Relay %s loop started on port %d", leg.name, leg.port)

        while not self.shutdown.is_set():
            if leg.client is None:
                if not self._try_accept(leg):
                    await asyncio.sleep(self.accept_backoff)
                    continue
            else:
                self._pump(leg, peer)

            await asyncio.sleep(self.tick)

        leg.drop_client()
        logger.info("Relay %s loop stopped", leg.name)

    def _try_accept(self, leg: RelayLeg) -> bool:
        """
        Accept a pending client without blocking.

        Returns:
            False only if accept failed with a real error (caller backs off)
        """
        try:
            conn, addr = leg.listener.accept()
        except (BlockingIOError, InterruptedError):
            return True
        except OSError as e:
            logger.error("Relay %s accept failed: %s", leg.name, e)
            return False

        leg.client = NonBlockingSocket(conn, peer=addr)
        leg.clients_accepted += 1
        logger.info("Relay %s: client connected from %s:%d", leg.name, addr[0], addr[1])
        return True

    def _pump(self, leg: RelayLeg, peer: RelayLeg):
        """Read one chunk from ``leg``'s client and forward it to ``peer``'s client."""
        result = leg.client.read(self.buffer_size)

        if result.status is ReadStatus.NO_DATA:
            return

        if result.status is ReadStatus.CLOSED:
            logger.info("Relay %s: client disconnected, waiting for a new connection", leg.name)
            leg.drop_client()
            return

        if result.status is ReadStatus.ERROR:
            logger.error("Relay %s: read error: %s", leg.name, result.error)
            leg.drop_client()
            return

        data = result.data
        if peer.client is None:
            leg.chunks_dropped += 1
            logger.warning("Relay %s->%s: no %s client, dropping %d bytes", leg.name, peer.name, peer.name, len(data))
            return

        try:
            sent = peer.client.write(data)
        except OSError as e:
            logger.error("Relay %s->%s: send failed: %s", leg.name, peer.name, e)
            peer.drop_client()
            return

        leg.bytes_forwarded += sent
        if sent != len(data):
            logger.warning("Relay %s->%s: partial send, %d of %d bytes", leg.name, peer.name, sent, len(data))
        else:
            logger.debug("Relay %s->%s: %d bytes\n%s", leg.name, peer.name, sent, format_hex(data))


async def start_relay_server(
    host: str = "0.0.0.0",
    in_port: int = 9002,
    out_port: int = 9001,
    shutdown: ShutdownFlag | None = None,
    **options,
) -> RelayServer:
    """
    Bind the relay listeners.

    Args:
        host: Host to bind to.
        in_port: Port for the IN-side client.
        out_port: Port for the OUT-side client.
        shutdown: Process shutdown flag polled by the leg loops.
        **options: tick, accept_backoff, buffer_size.

    Returns:
        The started RelayServer; await run() to serve.
    """
    server = RelayServer(
        host=host,
        in_port=in_port,
        out_port=out_port,
        shutdown=shutdown or ShutdownFlag(),
        **options,
    )
    server.start()
    return server
