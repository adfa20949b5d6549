from __future__ import annotations

import asyncio

import pytest

from pyheading.config import RegistryConfig
from pyheading.models.eviction import OnError
from pyheading.models.options import AuthorizationStatus, FilterConfig, SubscriptionMode, TimeoutKind, TimeoutPolicy
from pyheading.models.outcome import Accepted, DeliveryOutcome, Discarded, DiscardReason, Failed, FailureCause
from pyheading.models.reading import Reading
from pyheading.registry import SubscriptionRegistry
from pyheading.subscription import Subscription


class _Authorization:
    def __init__(self, status: AuthorizationStatus = AuthorizationStatus.UNKNOWN) -> None:
        self.status = status

    def __call__(self) -> AuthorizationStatus:
        return self.status


def _registry(**kwargs: object) -> SubscriptionRegistry:
    kwargs.setdefault("authorization", _Authorization(AuthorizationStatus.AUTHORIZED))
    return SubscriptionRegistry(**kwargs)  # type: ignore[arg-type]


def test_single_subscription_removed_after_first_accept() -> None:
    registry = _registry()
    single = registry.create(mode=SubscriptionMode.SINGLE)
    continuous = registry.create(mode=SubscriptionMode.CONTINUOUS)

    outcomes = registry.dispatch(Reading(accuracy=1))

    assert isinstance(outcomes[single.id], Accepted)
    assert isinstance(outcomes[continuous.id], Accepted)
    assert single not in registry
    assert continuous in registry
    assert len(registry) == 1


def test_discards_do_not_remove_single_subscription() -> None:
    registry = _registry()
    sub = registry.create(FilterConfig(min_accuracy=5), mode=SubscriptionMode.SINGLE)

    outcomes = registry.dispatch(Reading(accuracy=50))

    assert outcomes[sub.id] == Discarded(DiscardReason.NOT_MIN_ACCURACY)
    assert sub.id in registry


def test_dispatch_error_evicts_on_error_subscriptions() -> None:
    evicted: list[Subscription] = []
    registry = _registry(on_evicted=evicted.append)
    with_policy = registry.create(eviction_policy={OnError()})
    without_policy = registry.create()

    results = registry.dispatch_error(FailureCause.ACQUISITION_FAILED)

    assert results[with_policy.id] == Failed(FailureCause.ACQUISITION_FAILED)
    assert results[without_policy.id] == Failed(FailureCause.ACQUISITION_FAILED)
    assert evicted == [with_policy]
    assert registry.get(with_policy.id) is None
    assert registry.get(without_policy.id) is without_policy


def test_user_listener_receives_outcomes() -> None:
    seen: list[DeliveryOutcome] = []
    registry = _registry()
    registry.create(mode=SubscriptionMode.SINGLE, listener=seen.append)

    registry.dispatch(Reading())
    registry.dispatch(Reading())

    assert len(seen) == 1
    assert isinstance(seen[0], Accepted)


def test_stop_removes_and_closes() -> None:
    registry = _registry()
    sub = registry.create()

    assert registry.stop(sub.id) is sub
    assert sub.is_stopped is True
    assert sub not in registry
    assert registry.stop(sub.id) is None
    assert registry.dispatch(Reading()) == {}


def test_add_is_idempotent_per_id() -> None:
    registry = _registry()
    sub = Subscription(subscription_id="A")
    assert registry.add(sub) is sub
    assert registry.add(Subscription(subscription_id="A")) is sub
    assert len(registry) == 1
    assert [s.id for s in registry] == ["A"]


def test_create_uses_registry_defaults() -> None:
    config = RegistryConfig(default_mode=SubscriptionMode.SINGLE)
    registry = _registry(config=config)
    sub = registry.create(timeout=None)
    assert sub.mode is SubscriptionMode.SINGLE
    assert sub.timeout is None
    assert sub.filters.reference_orientation is config.default_orientation


def test_snapshots_cover_active_subscriptions() -> None:
    registry = _registry()
    registry.add(Subscription(subscription_id="A"))
    registry.add(Subscription(subscription_id="B", mode=SubscriptionMode.SINGLE))
    assert [snapshot.id for snapshot in registry.snapshots()] == ["A", "B"]


@pytest.mark.asyncio
async def test_delayed_timeout_scenario() -> None:
    authorization = _Authorization(AuthorizationStatus.DENIED)
    config = RegistryConfig(default_timeout=0.05, default_timeout_kind=TimeoutKind.DELAYED)
    evicted: list[Subscription] = []
    registry = SubscriptionRegistry(authorization=authorization, config=config, on_evicted=evicted.append)

    sub = registry.create(eviction_policy={OnError()})
    assert sub.timeout == TimeoutPolicy.delayed(0.05)
    assert sub.is_timer_running is False

    await asyncio.sleep(0.1)
    assert sub in registry

    authorization.status = AuthorizationStatus.AUTHORIZED
    assert registry.authorization_changed() == [sub.id]
    assert registry.authorization_changed() == []

    await asyncio.sleep(0.15)
    assert sub.last_outcome == Failed(FailureCause.TIMEOUT)
    assert evicted == [sub]
    assert sub not in registry


@pytest.mark.asyncio
async def test_immediate_timeout_starts_on_add() -> None:
    registry = _registry(authorization=_Authorization(AuthorizationStatus.DENIED))
    sub = registry.create(mode=SubscriptionMode.SINGLE, timeout=TimeoutPolicy.immediate(0.03))
    assert sub.is_timer_running is True

    await asyncio.sleep(0.1)
    assert sub not in registry
    assert sub.last_outcome == Failed(FailureCause.TIMEOUT)


@pytest.mark.asyncio
async def test_stop_all_cancels_timers() -> None:
    registry = _registry()
    subs = [registry.create(timeout=TimeoutPolicy.immediate(0.03)) for _ in range(3)]

    registry.stop_all()
    await asyncio.sleep(0.08)

    assert len(registry) == 0
    assert all(sub.last_outcome is None for sub in subs)


def test_outcome_trace_logs(caplog: pytest.LogCaptureFixture) -> None:
    registry = _registry(config=RegistryConfig(outcome_trace_enabled=True))
    sub = registry.create(FilterConfig(min_accuracy=1))

    with caplog.at_level("DEBUG", logger="pyheading.registry"):
        registry.dispatch(Reading(accuracy=10))

    assert f"subscription={sub.id} kind=discarded notMinAccuracy" in caplog.text
