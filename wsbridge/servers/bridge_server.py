"""
Bridge Server.

Owns the IN and OUT legs for the lifetime of the process, hands them to
at most one active front-end session at a time, keeps the history of
chunks forwarded from OUT, and reconnects idle legs in the background.
"""

import asyncio
from collections import deque
from dataclasses import dataclass, field

from wsbridge.config.app_settings import BridgeSettings
from wsbridge.models.bridge_types import Endpoint, LegStatus
from wsbridge.servers.bridge_session import BridgeSession, FrontendConnection
from wsbridge.servers.legs import Leg
from wsbridge.servers.lifecycle import ShutdownFlag
from wsbridge.util.logging_helper import get_logger

logger = get_logger(__name__)


@dataclass
class BridgeServer:
    """
    Process-level owner of the bridge legs.

    Only one front-end session is served at a time; open_session returns
    None while another session is active.
    """

    in_endpoint: Endpoint
    out_endpoint: Endpoint
    settings: BridgeSettings = field(default_factory=BridgeSettings)
    shutdown: ShutdownFlag = field(default_factory=ShutdownFlag)

    in_leg: Leg = field(init=False)
    out_leg: Leg = field(init=False)
    history: deque = field(init=False)
    session: BridgeSession | None = field(default=None, init=False)
    sessions_served: int = field(default=0, init=False)

    _reconnect_task: asyncio.Task | None = field(default=None, init=False)

    def __post_init__(self):
        self.in_leg = Leg("IN", self.in_endpoint, self.settings.retry_cap, self.settings.connect_timeout)
        self.out_leg = Leg("OUT", self.out_endpoint, self.settings.retry_cap, self.settings.connect_timeout)
        self.history = deque(maxlen=self.settings.history_size)

    @property
    def legs(self) -> tuple[Leg, Leg]:
        return (self.in_leg, self.out_leg)

    async def start(self):
        """Start the background reconnect task."""
        logger.info("Bridge starting (IN=%s, OUT=%s)", self.in_endpoint, self.out_endpoint)
        logger.info("TCP connections will be established when a WebSocket client connects")
        if self.settings.reconnect_interval > 0:
            self._reconnect_task = asyncio.create_task(self._reconnect_loop())

    async def stop(self):
        """Stop the reconnect task, end the active session and close both legs."""
        logger.info("Bridge stopping...")
        self.shutdown.trigger()

        if self._reconnect_task:
            self._reconnect_task.cancel()
            try:
                await self._reconnect_task
            except asyncio.CancelledError:
                pass
            self._reconnect_task = None

        if self.session is not None:
            self.close_session(self.session)

        for leg in self.legs:
            leg.close()

        logger.info("Bridge stopped")

    def open_session(self, frontend: FrontendConnection, label: str = "frontend") -> BridgeSession | None:
        """
        Create the session for a newly established front end.

        Returns:
            The new BridgeSession, or None if a session is already active
        """
        if self.session is not None and self.session.active:
            return None

        self.sessions_served += 1
        self.session = BridgeSession(
            frontend,
            self.in_leg,
            self.out_leg,
            buffer_size=self.settings.buffer_size,
            history=self.history,
            label=label,
        )
        return self.session

    def close_session(self, session: BridgeSession):
        """Deactivate ``session``. Legs stay up unless configured otherwise."""
        session.on_closed()
        if self.session is not session:
            return

        self.session = None
        if self.settings.close_legs_on_session_end:
            for leg in self.legs:
                leg.close()

    def history_snapshot(self) -> list[bytes]:
        """Chunks forwarded from OUT, oldest first."""
        return list(self.history)

    def status(self) -> dict:
        return {
            "session_active": self.session is not None and self.session.active,
            "sessions_served": self.sessions_served,
            "legs": [leg.snapshot() for leg in self.legs],
        }

    async def _reconnect_loop(self):
        """Periodically retry legs that are down, whether or not a session is active."""
        try:
            while not self.shutdown.is_set():
                await asyncio.sleep(self.settings.reconnect_interval)
                for leg in self.legs:
                    if self.shutdown.is_set():
                        break
                    if leg.status is LegStatus.DISCONNECTED:
                        await leg.ensure_connected()
        except asyncio.CancelledError:
            pass
