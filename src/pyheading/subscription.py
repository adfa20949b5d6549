"""Subscription aggregate: validation pipeline, eviction and timeout.

A :class:`Subscription` tracks one listener group's interest in a stream
of readings. The registry that owns it feeds readings through
:meth:`Subscription.validate`, upstream errors through
:meth:`Subscription.fail`, and calls
:meth:`Subscription.start_timeout_if_needed` on activation and on every
authorization change. Every outcome is pushed to the registered
listeners after eviction has been evaluated, so a listener can read
:attr:`Subscription.is_evicted` without polling.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
import threading
import uuid
from collections.abc import Callable, Iterable, Mapping
from datetime import UTC, datetime
from typing import Any

from pyheading.exceptions import InvalidConfigError
from pyheading.models.eviction import EvictionCondition, EvictionState, derive_eviction_policy, is_evicted
from pyheading.models.options import AuthorizationStatus, FilterConfig, SubscriptionMode, TimeoutPolicy
from pyheading.models.outcome import (
    Accepted,
    DeliveryOutcome,
    Discarded,
    DiscardReason,
    Failed,
    FailureCause,
)
from pyheading.models.reading import Reading
from pyheading.models.snapshot import EvictionSnapshot, FilterSnapshot, SubscriptionSnapshot, TimeoutSnapshot
from pyheading.timer import TimeoutTimer

_logger = logging.getLogger(__name__)

Listener = Callable[[DeliveryOutcome], None]


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _unknown_authorization() -> AuthorizationStatus:
    return AuthorizationStatus.UNKNOWN


def _new_id() -> str:
    return uuid.uuid4().hex.upper()


class Subscription:
    """Live configuration and state for one stream of readings.

    Parameters
    ----------
    filters : FilterConfig or None
        Accuracy, distance and interval thresholds. Defaults to no filtering.
    mode : SubscriptionMode
        ``SINGLE`` resolves once then evicts itself; ``CONTINUOUS``
        delivers until stopped or evicted by policy.
    timeout : TimeoutPolicy or None
        ``None`` means the subscription never times out on its own.
    eviction_policy : iterable of EvictionCondition or None
        Caller-requested conditions; see :func:`derive_eviction_policy`
        for how ``mode`` constrains them.
    authorization : callable
        Returns the current :class:`AuthorizationStatus`.
    subscription_id : str or None
        Unique identifier; a random one is generated when omitted.
    name : str or None
        Readable name.
    enabled : bool
        Disabled subscriptions discard every reading.
    clock : callable
        Returns the current aware datetime, used by the interval filter.
    loop : asyncio.AbstractEventLoop or None
        Loop for the timeout timer; defaults to the running loop.

    Notes
    -----
    All state changes happen under a per-subscription ``RLock``. When a
    registry is involved the lock order is subscription, then registry.
    Listeners run while that lock is held: a listener may call back into
    the same subscription on its own thread, but must not block on
    another thread that touches this subscription, or both deadlock.
    """

    def __init__(
        self,
        filters: FilterConfig | None = None,
        *,
        mode: SubscriptionMode = SubscriptionMode.CONTINUOUS,
        timeout: TimeoutPolicy | None = None,
        eviction_policy: Iterable[EvictionCondition] | None = None,
        authorization: Callable[[], AuthorizationStatus] = _unknown_authorization,
        subscription_id: str | None = None,
        name: str | None = None,
        enabled: bool = True,
        clock: Callable[[], datetime] = _utcnow,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        if filters is not None and not isinstance(filters, FilterConfig):
            raise InvalidConfigError("filters must be a FilterConfig", field="filters")
        if timeout is not None and not isinstance(timeout, TimeoutPolicy):
            raise InvalidConfigError("timeout must be a TimeoutPolicy or None", field="timeout")
        try:
            self._mode = SubscriptionMode(mode)
        except ValueError as exc:
            raise InvalidConfigError(f"Unknown subscription mode {mode!r}", field="mode") from exc

        self._id = subscription_id.strip() if subscription_id else _new_id()
        if not self._id:
            raise InvalidConfigError("subscription_id must be non-empty", field="subscription_id")
        self.name = name
        self.enabled = enabled
        self._filters = filters if filters is not None else FilterConfig()
        self._timeout = timeout
        self._eviction_policy = derive_eviction_policy(self._mode, eviction_policy or ())
        self._authorization = authorization
        self._clock = clock

        self._lock = threading.RLock()
        self._timer = TimeoutTimer(loop=loop)
        self._timeout_started = False
        self._listeners: dict[int, Listener] = {}
        self._listener_tokens = itertools.count(1)

        self._count_accepted_readings = 0
        self._last_accepted_reading: Reading | None = None
        self._last_outcome: DeliveryOutcome | None = None
        self._evicted = False
        self._stopped = False

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    @property
    def id(self) -> str:
        return self._id

    @property
    def mode(self) -> SubscriptionMode:
        return self._mode

    @property
    def filters(self) -> FilterConfig:
        return self._filters

    @property
    def timeout(self) -> TimeoutPolicy | None:
        return self._timeout

    @property
    def eviction_policy(self) -> frozenset[EvictionCondition]:
        """The effective policy, already constrained by :attr:`mode`."""
        return self._eviction_policy

    def set_eviction_policy(self, conditions: Iterable[EvictionCondition]) -> frozenset[EvictionCondition]:
        """Replace the requested conditions and return the derived policy."""
        derived = derive_eviction_policy(self._mode, conditions)
        with self._lock:
            self._eviction_policy = derived
        return derived

    # ------------------------------------------------------------------
    # Runtime state
    # ------------------------------------------------------------------

    @property
    def count_accepted_readings(self) -> int:
        return self._count_accepted_readings

    @property
    def last_accepted_reading(self) -> Reading | None:
        return self._last_accepted_reading

    @property
    def last_outcome(self) -> DeliveryOutcome | None:
        return self._last_outcome

    @property
    def is_evicted(self) -> bool:
        """``True`` once any condition of the effective policy holds.

        Eviction is latched: a subscription that was evicted stays
        evicted even if a later state change would no longer satisfy
        the policy.
        """
        with self._lock:
            return self._evicted or is_evicted(self._eviction_policy, self)

    @property
    def is_stopped(self) -> bool:
        return self._stopped

    @property
    def is_closed(self) -> bool:
        """Stopped manually or evicted; no further outcomes are produced."""
        return self._stopped or self._evicted

    @property
    def is_timer_running(self) -> bool:
        return self._timer.is_armed

    # ------------------------------------------------------------------
    # Listeners
    # ------------------------------------------------------------------

    def add_listener(self, listener: Listener) -> int:
        """Register *listener* for every outcome. Returns a removal token."""
        with self._lock:
            token = next(self._listener_tokens)
            self._listeners[token] = listener
            return token

    def remove_listener(self, token: int) -> bool:
        with self._lock:
            return self._listeners.pop(token, None) is not None

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    # ------------------------------------------------------------------
    # Validation pipeline
    # ------------------------------------------------------------------

    def validate(self, reading: Reading) -> DeliveryOutcome:
        """Run *reading* through the filters and deliver the outcome.

        Checks run in order and stop at the first failure: enabled,
        accuracy, then (only when a previous reading was accepted)
        distance and interval. The first accepted reading becomes the
        reference point for later distance/interval checks.
        """
        with self._lock:
            if self.is_closed:
                return Discarded(DiscardReason.SUBSCRIPTION_CLOSED)

            reason = self._discard_reason(reading)
            if reason is not None:
                outcome: DeliveryOutcome = Discarded(reason)
            else:
                self._last_accepted_reading = reading
                self._count_accepted_readings += 1
                outcome = Accepted(reading)

            self._deliver(outcome)
            return outcome

    def _discard_reason(self, reading: Reading) -> DiscardReason | None:
        if not self.enabled:
            return DiscardReason.REQUEST_NOT_ENABLED

        filters = self._filters
        # NaN accuracy never meets the threshold.
        if filters.min_accuracy is not None and not reading.accuracy <= filters.min_accuracy:
            return DiscardReason.NOT_MIN_ACCURACY

        previous = self._last_accepted_reading
        if previous is None:
            # No baseline yet: distance and interval cannot be evaluated.
            return None

        if filters.distance_filter_enabled and previous.distance_to(reading) < filters.min_distance_delta:
            return DiscardReason.NOT_MIN_DISTANCE

        if filters.min_time_interval is not None:
            elapsed = (self._clock() - previous.timestamp).total_seconds()
            if elapsed <= filters.min_time_interval:
                return DiscardReason.NOT_MIN_INTERVAL

        return None

    # ------------------------------------------------------------------
    # Failures and timeout
    # ------------------------------------------------------------------

    def fail(self, cause: FailureCause, error: BaseException | None = None) -> Failed | None:
        """Deliver an upstream failure. Returns ``None`` if already closed."""
        with self._lock:
            if self.is_closed:
                return None
            outcome = Failed(FailureCause(cause), error)
            self._deliver(outcome)
            return outcome

    def start_timeout_if_needed(self) -> bool:
        """Arm the timeout timer when the policy allows it.

        No-op (returns ``False``) when there is no timeout policy, the
        timer was already started once, the subscription is closed, or a
        delayed policy is still waiting for authorization. A timeout is
        started at most once per subscription.
        """
        with self._lock:
            timeout = self._timeout
            if timeout is None or self.is_closed or self._timeout_started:
                return False
            status = self._authorization()
            if not timeout.may_start_now(status):
                _logger.debug("Timeout for subscription=%s waiting for authorization status=%s", self._id, status)
                return False
            self._timer.start(timeout.duration, self._on_timeout)
            self._timeout_started = True
            _logger.debug("Timeout started subscription=%s policy=%s", self._id, timeout)
            return True

    def _on_timeout(self, generation: int) -> None:
        with self._lock:
            if self.is_closed or generation != self._timer.generation:
                return
            self._deliver(Failed(FailureCause.TIMEOUT))

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def stop(self) -> None:
        """Stop manually; invalidates the timer before the registry drops us."""
        with self._lock:
            if self._stopped:
                return
            self._timer.cancel()
            self._stopped = True
        _logger.debug("Subscription stopped subscription=%s", self._id)

    def _deliver(self, outcome: DeliveryOutcome) -> None:
        # Caller holds the lock.
        self._last_outcome = outcome
        if not self._evicted and is_evicted(self._eviction_policy, self):
            self._evicted = True
            self._timer.cancel()
            _logger.debug(
                "Subscription evicted subscription=%s outcome=%s accepted=%d",
                self._id,
                outcome.kind,
                self._count_accepted_readings,
            )

        for listener in list(self._listeners.values()):
            try:
                listener(outcome)
            except Exception:
                _logger.debug("Listener failed for subscription=%s", self._id, exc_info=True)

    # ------------------------------------------------------------------
    # Snapshot
    # ------------------------------------------------------------------

    def to_snapshot(self) -> SubscriptionSnapshot:
        return SubscriptionSnapshot(
            id=self._id,
            name=self.name,
            enabled=self.enabled,
            mode=self._mode,
            filters=FilterSnapshot.from_config(self._filters),
            timeout=TimeoutSnapshot.from_policy(self._timeout) if self._timeout is not None else None,
            eviction_policy=[EvictionSnapshot.from_condition(c) for c in self._eviction_policy],
        )

    @classmethod
    def from_snapshot(
        cls,
        data: SubscriptionSnapshot | Mapping[str, Any] | str | bytes,
        *,
        custom_predicates: Mapping[str, Callable[[EvictionState], bool]] | None = None,
        authorization: Callable[[], AuthorizationStatus] = _unknown_authorization,
        clock: Callable[[], datetime] = _utcnow,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> Subscription:
        """Rebuild a subscription from a stored snapshot.

        Identity, mode, filters, timeout and eviction policy come from
        the snapshot; only the runtime collaborators are passed here.

        Raises
        ------
        DecodeError
            If the snapshot is malformed or references an unknown
            custom eviction name.
        """
        snapshot = data if isinstance(data, SubscriptionSnapshot) else SubscriptionSnapshot.decode(data)
        return cls(
            snapshot.filters.to_config(),
            mode=snapshot.mode,
            timeout=snapshot.timeout.to_policy() if snapshot.timeout is not None else None,
            eviction_policy=snapshot.eviction_conditions(custom_predicates),
            subscription_id=snapshot.id,
            name=snapshot.name,
            enabled=snapshot.enabled,
            authorization=authorization,
            clock=clock,
            loop=loop,
        )

    # ------------------------------------------------------------------
    # Identity
    # ------------------------------------------------------------------

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Subscription):
            return NotImplemented
        return self._id == other._id

    def __hash__(self) -> int:
        return hash(self._id)

    def __repr__(self) -> str:
        return (
            f"Subscription(id={self._id!r}, name={self.name!r}, mode={self._mode.value}, "
            f"enabled={self.enabled}, accepted={self._count_accepted_readings}, "
            f"evicted={self._evicted}, stopped={self._stopped})"
        )
