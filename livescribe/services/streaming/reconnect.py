"""Exponential backoff for duplex channel reconnects."""

from __future__ import annotations

from typing import Optional

from ...config import Settings
from ...errors import ConfigError


class ReconnectPolicy:
    """``delay = min(base * 2**attempt, max)`` for at most ``max_attempts`` reconnects.

    ``attempt_count`` counts consecutive failures and goes back to zero once a
    connection opens.
    """

    def __init__(self, base_delay_ms: int = 1_000, max_delay_ms: int = 30_000, max_attempts: int = 5) -> None:
        if base_delay_ms < 0 or max_delay_ms < 0:
            raise ConfigError("Reconnect delays must not be negative")
        if max_attempts < 0:
            raise ConfigError("max_attempts must not be negative")
        self.base_delay_ms = base_delay_ms
        self.max_delay_ms = max_delay_ms
        self.max_attempts = max_attempts
        self.attempt_count = 0

    @classmethod
    def from_settings(cls, settings: Settings) -> "ReconnectPolicy":
        return cls(
            base_delay_ms=settings.reconnect_base_delay_ms,
            max_delay_ms=settings.reconnect_max_delay_ms,
            max_attempts=settings.reconnect_max_attempts,
        )

    def delay_for(self, attempt: int) -> int:
        return min(self.base_delay_ms * 2**attempt, self.max_delay_ms)

    @property
    def exhausted(self) -> bool:
        return self.attempt_count >= self.max_attempts

    def next_delay(self) -> Optional[int]:
        """Count a failure and return the wait in ms, or ``None`` when out of attempts."""

        if self.exhausted:
            return None
        self.attempt_count += 1
        return self.delay_for(self.attempt_count)

    def reset(self) -> None:
        self.attempt_count = 0


__all__ = ["ReconnectPolicy"]
