"""
Process lifecycle: shutdown flag and signal wiring.

A single ShutdownFlag is created per process and handed to every loop at
construction time. SIGINT/SIGTERM set it; loops poll it once per tick and
close their own sockets when they see it.
"""

import signal
import threading

import uvicorn

from wsbridge.util.logging_helper import get_logger

logger = get_logger(__name__)

EXIT_OK = 0
EXIT_USAGE = 1
EXIT_STARTUP_FAILURE = 2


class ShutdownFlag:
    """Process-wide shutdown request, safe to set from a signal handler."""

    def __init__(self):
        self._event = threading.Event()
        self.signal_number: int | None = None

    def trigger(self, signum: int | None = None) -> bool:
        """
        Request shutdown.

        Returns:
            True if this call set the flag, False if it was already set
        """
        if self._event.is_set():
            return False
        self.signal_number = signum
        self._event.set()
        return True

    def is_set(self) -> bool:
        return self._event.is_set()


def install_signal_handlers(shutdown: ShutdownFlag, signals=(signal.SIGINT, signal.SIGTERM)):
    """Route termination signals to ``shutdown``. Must run in the main thread."""

    def _handle(signum, frame):
        shutdown.trigger(signum)

    for sig in signals:
        signal.signal(sig, _handle)


class BridgeUvicornServer(uvicorn.Server):
    """uvicorn server that also raises the process shutdown flag on exit signals."""

    def __init__(self, config: uvicorn.Config, shutdown: ShutdownFlag):
        super().__init__(config)
        self.shutdown = shutdown

    def handle_exit(self, sig, frame):
        if self.shutdown.trigger(sig):
            logger.info("Received signal %d, shutting down...", sig)
        super().handle_exit(sig, frame)
