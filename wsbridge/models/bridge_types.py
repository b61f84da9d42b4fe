"""
Bridge Types.

Data structures shared by the outbound TCP legs and the front-end session.
"""

from dataclasses import dataclass
from enum import Enum


@dataclass(frozen=True)
class Endpoint:
    """Outbound TCP target for one leg (IN or OUT)."""

    host: str
    port: int

    def as_tuple(self) -> tuple[str, int]:
        """Return as (host, port) tuple for socket operations."""
        return (self.host, self.port)

    def __str__(self) -> str:
        return f"{self.host}:{self.port}"


class LegStatus(str, Enum):
    """Connection lifecycle of a single leg. There is no terminal state."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


@dataclass
class RetryCounter:
    """
    Counts consecutive connect attempts for one leg.

    Once ``attempts`` reaches ``cap`` the next connect call resets the
    counter and fails without touching the network (cool-down), so the
    counter never exceeds the cap.
    """

    cap: int = 10
    attempts: int = 0

    def exhausted(self) -> bool:
        """Check whether the leg must cool down before trying again."""
        return self.attempts >= self.cap

    def increment(self) -> int:
        """Record a new attempt. Returns the attempt number."""
        self.attempts += 1
        return self.attempts

    def reset(self):
        self.attempts = 0
