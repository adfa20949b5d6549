"""Tests for timeout orchestration on a real event loop."""

from __future__ import annotations

import asyncio

import pytest

from pyheading.models.eviction import OnError
from pyheading.models.options import AuthorizationStatus, SubscriptionMode, TimeoutPolicy
from pyheading.models.outcome import Accepted, DeliveryOutcome, Failed, FailureCause
from pyheading.models.reading import Reading
from pyheading.subscription import Subscription
from pyheading.timer import TimeoutTimer


class _Authorization:
    def __init__(self, status: AuthorizationStatus = AuthorizationStatus.DENIED) -> None:
        self.status = status

    def __call__(self) -> AuthorizationStatus:
        return self.status


def test_no_timeout_policy_is_a_no_op() -> None:
    sub = Subscription()
    assert sub.start_timeout_if_needed() is False
    assert sub.is_timer_running is False


def test_start_without_loop_raises() -> None:
    timer = TimeoutTimer()
    with pytest.raises(RuntimeError):
        timer.start(1.0, lambda _generation: None)
    assert timer.is_armed is False


@pytest.mark.asyncio
async def test_start_is_idempotent() -> None:
    sub = Subscription(timeout=TimeoutPolicy.immediate(10))
    assert sub.start_timeout_if_needed() is True
    generation = sub._timer.generation  # noqa: SLF001
    assert sub.start_timeout_if_needed() is False
    assert sub._timer.generation == generation  # noqa: SLF001
    sub.stop()


@pytest.mark.asyncio
async def test_immediate_timeout_fires_failure() -> None:
    seen: list[DeliveryOutcome] = []
    sub = Subscription(timeout=TimeoutPolicy.immediate(0.05), eviction_policy={OnError()})
    sub.add_listener(seen.append)

    assert sub.start_timeout_if_needed() is True
    await asyncio.sleep(0.15)

    assert seen == [Failed(FailureCause.TIMEOUT)]
    assert sub.last_outcome == Failed(FailureCause.TIMEOUT)
    assert sub.is_evicted is True
    assert sub.is_timer_running is False


@pytest.mark.asyncio
async def test_timeout_fires_at_most_once() -> None:
    seen: list[DeliveryOutcome] = []
    sub = Subscription(timeout=TimeoutPolicy.immediate(0.02))
    sub.add_listener(seen.append)

    sub.start_timeout_if_needed()
    await asyncio.sleep(0.08)
    assert sub.start_timeout_if_needed() is False
    await asyncio.sleep(0.08)

    assert seen == [Failed(FailureCause.TIMEOUT)]
    # Continuous without OnError stays alive after a timeout.
    assert sub.is_evicted is False


@pytest.mark.asyncio
async def test_delayed_timeout_waits_for_authorization() -> None:
    authorization = _Authorization(AuthorizationStatus.DENIED)
    seen: list[DeliveryOutcome] = []
    sub = Subscription(
        mode=SubscriptionMode.SINGLE,
        timeout=TimeoutPolicy.delayed(0.05),
        authorization=authorization,
    )
    sub.add_listener(seen.append)

    assert sub.start_timeout_if_needed() is False
    await asyncio.sleep(0.1)
    assert seen == []

    authorization.status = AuthorizationStatus.AUTHORIZED
    assert sub.start_timeout_if_needed() is True
    await asyncio.sleep(0.15)

    assert seen == [Failed(FailureCause.TIMEOUT)]
    assert sub.is_evicted is True


@pytest.mark.asyncio
async def test_stop_invalidates_pending_timer() -> None:
    seen: list[DeliveryOutcome] = []
    sub = Subscription(timeout=TimeoutPolicy.immediate(0.03))
    sub.add_listener(seen.append)
    sub.start_timeout_if_needed()

    sub.stop()
    assert sub.is_timer_running is False
    await asyncio.sleep(0.1)
    assert seen == []
    assert sub.start_timeout_if_needed() is False


@pytest.mark.asyncio
async def test_accepted_reading_wins_race_against_timeout() -> None:
    seen: list[DeliveryOutcome] = []
    sub = Subscription(mode=SubscriptionMode.SINGLE, timeout=TimeoutPolicy.immediate(0.05))
    sub.add_listener(seen.append)
    sub.start_timeout_if_needed()

    outcome = sub.validate(Reading(accuracy=1.0))
    await asyncio.sleep(0.15)

    assert isinstance(outcome, Accepted)
    assert seen == [outcome]
    assert sub.is_evicted is True
    assert sub.is_timer_running is False


@pytest.mark.asyncio
async def test_stale_generation_callback_is_ignored() -> None:
    fired: list[int] = []
    timer = TimeoutTimer(loop=asyncio.get_running_loop())
    generation = timer.start(0.02, fired.append)
    timer.cancel()
    assert timer.is_current(generation) is False

    # Simulate a callback that was already queued when cancel() ran.
    timer._fire(generation, fired.append)  # noqa: SLF001
    await asyncio.sleep(0.06)
    assert fired == []


@pytest.mark.asyncio
async def test_timer_armed_from_another_thread() -> None:
    loop = asyncio.get_running_loop()
    fired: list[int] = []
    timer = TimeoutTimer(loop=loop)

    generation = await loop.run_in_executor(None, timer.start, 0.02, fired.append)
    await asyncio.sleep(0.1)

    assert fired == [generation]
    assert timer.is_armed is False


@pytest.mark.asyncio
async def test_restart_between_fire_and_delivery_does_not_lose_timeout() -> None:
    seen: list[DeliveryOutcome] = []
    sub = Subscription(timeout=TimeoutPolicy.immediate(10))
    sub.add_listener(seen.append)
    assert sub.start_timeout_if_needed() is True
    generation = sub._timer.generation  # noqa: SLF001
    restarted: list[bool] = []

    def fire_with_interleaved_start(fired_generation: int) -> None:
        # Another caller re-evaluates after the timer disarmed but before delivery.
        restarted.append(sub.start_timeout_if_needed())
        sub._on_timeout(fired_generation)  # noqa: SLF001

    sub._timer._fire(generation, fire_with_interleaved_start)  # noqa: SLF001

    assert restarted == [False]
    assert seen == [Failed(FailureCause.TIMEOUT)]
    assert sub.is_timer_running is False
    assert sub.start_timeout_if_needed() is False
