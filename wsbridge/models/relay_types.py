"""
Relay Server Types.

Data structures for the dual-port TCP relay.
"""

import socket
import time
from dataclasses import dataclass, field

from wsbridge.util.nonblocking import NonBlockingSocket


@dataclass
class RelayLeg:
    """
    One side of the relay: a listening socket and at most one accepted client.

    ``client`` is None while no client is connected; the accept step runs
    again whenever it is reset.
    """

    name: str
    listener: socket.socket
    client: NonBlockingSocket | None = None

    # Statistics
    clients_accepted: int = 0
    bytes_forwarded: int = 0
    chunks_dropped: int = 0

    @property
    def port(self) -> int:
        """Port the listener is actually bound to."""
        return self.listener.getsockname()[1]

    def drop_client(self):
        """Close the current client, if any, and go back to accepting."""
        if self.client is not None:
            self.client.close()
            self.client = None

    def close(self):
        self.drop_client()
        self.listener.close()


@dataclass
class RelayPair:
    """
    The two relay legs. Bytes read from one leg's client are written to
    the other leg's client.
    """

    leg_a: RelayLeg
    leg_b: RelayLeg
    created_at: float = field(default_factory=time.time)

    def is_ready(self) -> bool:
        """Check if both legs have a client attached."""
        return self.leg_a.client is not None and self.leg_b.client is not None

    def close(self):
        self.leg_a.close()
        self.leg_b.close()
