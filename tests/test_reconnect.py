from __future__ import annotations

import pytest

from livescribe.config import Settings
from livescribe.errors import ConfigError
from livescribe.services.streaming.reconnect import ReconnectPolicy


def test_delays_double_until_capped() -> None:
    policy = ReconnectPolicy(base_delay_ms=1_000, max_delay_ms=30_000, max_attempts=6)

    delays = [policy.next_delay() for _ in range(6)]

    assert delays == [2_000, 4_000, 8_000, 16_000, 30_000, 30_000]


def test_policy_gives_up_after_max_attempts() -> None:
    policy = ReconnectPolicy(max_attempts=5)

    for _ in range(5):
        assert policy.next_delay() is not None

    assert policy.exhausted
    assert policy.next_delay() is None
    assert policy.attempt_count == 5


def test_reset_restarts_the_backoff() -> None:
    policy = ReconnectPolicy(base_delay_ms=100, max_delay_ms=10_000)
    policy.next_delay()
    policy.next_delay()

    policy.reset()

    assert policy.attempt_count == 0
    assert policy.next_delay() == 200


def test_zero_attempts_never_reconnects() -> None:
    policy = ReconnectPolicy(max_attempts=0)

    assert policy.next_delay() is None


@pytest.mark.parametrize(
    "kwargs",
    [{"base_delay_ms": -1}, {"max_delay_ms": -5}, {"max_attempts": -1}],
)
def test_negative_values_are_rejected(kwargs) -> None:
    with pytest.raises(ConfigError):
        ReconnectPolicy(**kwargs)


def test_from_settings_uses_configured_values() -> None:
    settings = Settings(reconnect_base_delay_ms=50, reconnect_max_delay_ms=75, reconnect_max_attempts=2)

    policy = ReconnectPolicy.from_settings(settings)

    assert [policy.next_delay(), policy.next_delay(), policy.next_delay()] == [75, 75, None]
    assert policy.delay_for(0) == 50
