"""In-memory subscription registry.

Holds the active set of subscriptions, feeds them readings and failures,
re-evaluates timeouts on authorization changes and removes every
subscription that reports itself evicted. Subscriptions never reach back
into the registry: removal is driven by an outcome listener attached in
:meth:`SubscriptionRegistry.add`.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from collections.abc import Callable, Iterable, Iterator
from datetime import UTC, datetime
from typing import Any

from pyheading.config import RegistryConfig
from pyheading.models.eviction import EvictionCondition
from pyheading.models.options import AuthorizationStatus, FilterConfig, SubscriptionMode, TimeoutPolicy
from pyheading.models.outcome import DeliveryOutcome, Discarded, Failed, FailureCause
from pyheading.models.reading import Reading
from pyheading.models.snapshot import SubscriptionSnapshot
from pyheading.subscription import Subscription

_logger = logging.getLogger(__name__)

#: Sentinel meaning "use the registry default" for ``create(timeout=...)``.
_DEFAULT: Any = object()


def _utcnow() -> datetime:
    return datetime.now(UTC)


class SubscriptionRegistry:
    """Active set of subscriptions sharing one authorization source."""

    def __init__(
        self,
        *,
        authorization: Callable[[], AuthorizationStatus],
        config: RegistryConfig | None = None,
        clock: Callable[[], datetime] = _utcnow,
        loop: asyncio.AbstractEventLoop | None = None,
        on_evicted: Callable[[Subscription], None] | None = None,
    ) -> None:
        self._authorization = authorization
        self._config = config or RegistryConfig()
        self._clock = clock
        self._loop = loop
        self._on_evicted = on_evicted
        self._lock = threading.RLock()
        self._subscriptions: dict[str, Subscription] = {}
        self._listener_tokens: dict[str, int] = {}

    @property
    def config(self) -> RegistryConfig:
        return self._config

    def authorization_status(self) -> AuthorizationStatus:
        return self._authorization()

    # ------------------------------------------------------------------
    # Membership
    # ------------------------------------------------------------------

    def create(
        self,
        filters: FilterConfig | None = None,
        *,
        mode: SubscriptionMode | None = None,
        timeout: TimeoutPolicy | None = _DEFAULT,
        eviction_policy: Iterable[EvictionCondition] | None = None,
        name: str | None = None,
        listener: Callable[[DeliveryOutcome], None] | None = None,
    ) -> Subscription:
        """Build a subscription from registry defaults and activate it."""
        subscription = Subscription(
            filters if filters is not None else FilterConfig(reference_orientation=self._config.default_orientation),
            mode=mode if mode is not None else self._config.default_mode,
            timeout=self._config.default_timeout_policy() if timeout is _DEFAULT else timeout,
            eviction_policy=eviction_policy,
            authorization=self._authorization,
            name=name,
            clock=self._clock,
            loop=self._loop,
        )
        if listener is not None:
            subscription.add_listener(listener)
        return self.add(subscription)

    def add(self, subscription: Subscription) -> Subscription:
        """Activate *subscription*; starts its timeout when allowed."""
        with self._lock:
            if subscription.id in self._subscriptions:
                return self._subscriptions[subscription.id]
            self._subscriptions[subscription.id] = subscription
        # Lock order is subscription -> registry; attach outside ours.
        token = subscription.add_listener(lambda outcome, sub=subscription: self._on_outcome(sub, outcome))
        with self._lock:
            self._listener_tokens[subscription.id] = token
        _logger.debug("Subscription added subscription=%s mode=%s", subscription.id, subscription.mode.value)
        subscription.start_timeout_if_needed()
        return subscription

    def get(self, subscription_id: str) -> Subscription | None:
        return self._subscriptions.get(subscription_id)

    def __contains__(self, item: object) -> bool:
        if isinstance(item, Subscription):
            return item.id in self._subscriptions
        return item in self._subscriptions

    def __len__(self) -> int:
        return len(self._subscriptions)

    def __iter__(self) -> Iterator[Subscription]:
        return iter(self._active())

    def _active(self) -> list[Subscription]:
        with self._lock:
            return list(self._subscriptions.values())

    # ------------------------------------------------------------------
    # Event fan-out
    # ------------------------------------------------------------------

    def dispatch(self, reading: Reading) -> dict[str, DeliveryOutcome]:
        """Feed one reading to every active subscription in insertion order."""
        return {subscription.id: subscription.validate(reading) for subscription in self._active()}

    def dispatch_error(self, cause: FailureCause, error: BaseException | None = None) -> dict[str, Failed]:
        """Feed an upstream failure to every active subscription."""
        results: dict[str, Failed] = {}
        for subscription in self._active():
            outcome = subscription.fail(cause, error)
            if outcome is not None:
                results[subscription.id] = outcome
        return results

    def authorization_changed(self) -> list[str]:
        """Re-evaluate timeouts; returns ids whose timer started now."""
        status = self._authorization()
        _logger.debug("Authorization changed status=%s subscriptions=%d", status, len(self))
        return [subscription.id for subscription in self._active() if subscription.start_timeout_if_needed()]

    # ------------------------------------------------------------------
    # Removal
    # ------------------------------------------------------------------

    def stop(self, subscription_id: str) -> Subscription | None:
        """Stop manually: invalidate the timer, then remove."""
        subscription = self.get(subscription_id)
        if subscription is None:
            return None
        subscription.stop()
        self._remove(subscription)
        return subscription

    def stop_all(self) -> None:
        for subscription in self._active():
            self.stop(subscription.id)

    def _remove(self, subscription: Subscription) -> bool:
        with self._lock:
            current = self._subscriptions.get(subscription.id)
            if current is not subscription:
                return False
            del self._subscriptions[subscription.id]
            token = self._listener_tokens.pop(subscription.id, None)
        if token is not None:
            subscription.remove_listener(token)
        return True

    def _on_outcome(self, subscription: Subscription, outcome: DeliveryOutcome) -> None:
        if self._config.outcome_trace_enabled:
            detail = ""
            if isinstance(outcome, Discarded):
                detail = outcome.reason.value
            elif isinstance(outcome, Failed):
                detail = outcome.cause.value
            _logger.debug("Outcome subscription=%s kind=%s %s", subscription.id, outcome.kind, detail)
        if not subscription.is_evicted:
            return
        if self._remove(subscription):
            _logger.debug("Subscription removed on eviction subscription=%s", subscription.id)
            if self._on_evicted is not None:
                try:
                    self._on_evicted(subscription)
                except Exception:
                    _logger.debug("on_evicted callback failed", exc_info=True)

    # ------------------------------------------------------------------
    # Persistence support
    # ------------------------------------------------------------------

    def snapshots(self) -> list[SubscriptionSnapshot]:
        """Configuration snapshots of every active subscription."""
        return [subscription.to_snapshot() for subscription in self._active()]
