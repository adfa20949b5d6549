"""Eviction conditions and the mode-dependent policy derivation.

A subscription is evicted (removed from the active set) as soon as any
condition of its effective policy is satisfied. Conditions are plain
hashable values so that a policy is a ``frozenset``.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from typing import Protocol

from pyheading.exceptions import InvalidConfigError
from pyheading.models.options import SubscriptionMode
from pyheading.models.outcome import DeliveryOutcome, Failed


class EvictionState(Protocol):
    """The part of a subscription that eviction conditions look at."""

    @property
    def count_accepted_readings(self) -> int: ...

    @property
    def last_outcome(self) -> DeliveryOutcome | None: ...


@dataclass(frozen=True)
class OnError:
    """Evict after any failed outcome. Discards do not count."""

    def is_satisfied(self, state: EvictionState) -> bool:
        return isinstance(state.last_outcome, Failed)


@dataclass(frozen=True)
class OnReceiveData:
    """Evict once ``count`` readings have been accepted."""

    count: int

    def __post_init__(self) -> None:
        if isinstance(self.count, bool) or not isinstance(self.count, int) or self.count < 1:
            raise InvalidConfigError(f"OnReceiveData.count must be an int >= 1, got {self.count!r}", field="count")

    def is_satisfied(self, state: EvictionState) -> bool:
        return state.count_accepted_readings >= self.count


@dataclass(frozen=True)
class CustomEviction:
    """An opaque named predicate.

    Identity is the ``name``; the predicate itself is excluded from
    equality and hashing so that the same named condition is only held
    once in a policy set. Snapshots store the name only.
    """

    name: str
    predicate: Callable[[EvictionState], bool] = field(compare=False, repr=False)

    def __post_init__(self) -> None:
        if not isinstance(self.name, str) or not self.name.strip():
            raise InvalidConfigError("CustomEviction.name must be a non-empty string", field="name")

    def is_satisfied(self, state: EvictionState) -> bool:
        return bool(self.predicate(state))


EvictionCondition = OnError | OnReceiveData | CustomEviction

#: Effective policy of every single-mode subscription, before custom conditions.
SINGLE_MODE_POLICY: frozenset[EvictionCondition] = frozenset({OnError(), OnReceiveData(count=1)})


def derive_eviction_policy(
    mode: SubscriptionMode,
    conditions: Iterable[EvictionCondition] = (),
) -> frozenset[EvictionCondition]:
    """Return the effective eviction policy for *mode*.

    Continuous subscriptions use the caller's conditions verbatim (an
    empty set means "never auto-evict").

    Single subscriptions resolve once and disappear: every
    ``OnReceiveData`` condition is replaced by ``OnReceiveData(1)`` and
    ``OnError`` is always present. Custom conditions are kept.
    """
    requested = frozenset(conditions)
    for condition in requested:
        if not isinstance(condition, (OnError, OnReceiveData, CustomEviction)):
            raise InvalidConfigError(f"Unsupported eviction condition {condition!r}", field="eviction_policy")

    if SubscriptionMode(mode) is SubscriptionMode.CONTINUOUS:
        return requested

    kept = {condition for condition in requested if not isinstance(condition, OnReceiveData)}
    return frozenset(kept) | SINGLE_MODE_POLICY


def is_evicted(policy: Iterable[EvictionCondition], state: EvictionState) -> bool:
    """OR-combine *policy* against *state*."""
    return any(condition.is_satisfied(state) for condition in policy)
