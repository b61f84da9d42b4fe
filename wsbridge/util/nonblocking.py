"""
Non-blocking stream socket wrapper.

Reads and writes never block the caller. A read reports one of four
outcomes so the owner can drive its state machine:

- DATA: bytes were available
- NO_DATA: nothing to read yet (the descriptor would block)
- CLOSED: the peer closed the connection in an orderly way (zero-length read)
- ERROR: any other socket error; the handle is no longer usable
"""

import socket
from dataclasses import dataclass
from enum import Enum


class ReadStatus(Enum):
    DATA = "data"
    NO_DATA = "no-data"
    CLOSED = "closed"
    ERROR = "error"


@dataclass(frozen=True)
class ReadResult:
    """Outcome of a single non-blocking read."""

    status: ReadStatus
    data: bytes = b""
    error: OSError | None = None

    @classmethod
    def no_data(cls) -> "ReadResult":
        return cls(ReadStatus.NO_DATA)


class NonBlockingSocket:
    """
    Wraps a connected stream socket and switches it to non-blocking mode.

    Once :meth:`close` has been called the wrapper refuses further I/O;
    owners drop their reference at the same time.
    """

    def __init__(self, sock: socket.socket, peer: tuple | None = None):
        sock.setblocking(False)
        self.sock = sock
        self.peer = peer
        self.closed = False

    def read(self, max_bytes: int) -> ReadResult:
        """
        Perform one non-blocking receive of at most ``max_bytes``.

        Returns:
            ReadResult describing data, no-data-yet, orderly close or error
        """
        if self.closed:
            return ReadResult(ReadStatus.ERROR, error=OSError("read on closed socket"))

        try:
            data = self.sock.recv(max_bytes)
        except (BlockingIOError, InterruptedError):
            return ReadResult.no_data()
        except OSError as e:
            return ReadResult(ReadStatus.ERROR, error=e)

        if not data:
            return ReadResult(ReadStatus.CLOSED)
        return ReadResult(ReadStatus.DATA, data=data)

    def write(self, data: bytes) -> int:
        """
        Perform one non-blocking send.

        Returns:
            Number of bytes accepted by the kernel. This may be less than
            ``len(data)`` (zero when the send buffer is full); the caller
            decides how to report the remainder.

        Raises:
            OSError: On any error other than "would block"
        """
        if self.closed:
            raise OSError("write on closed socket")

        try:
            return self.sock.send(data)
        except (BlockingIOError, InterruptedError):
            return 0

    def close(self):
        if self.closed:
            return
        self.closed = True
        try:
            self.sock.close()
        except OSError:
            pass
