"""Delivery outcomes produced for every incoming reading or failure."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import ClassVar, TypeAlias

from pyheading.models.reading import Reading


class DiscardReason(enum.StrEnum):
    """Why a reading was not delivered. A discard is not an error."""

    REQUEST_NOT_ENABLED = "requestNotEnabled"
    NOT_MIN_ACCURACY = "notMinAccuracy"
    NOT_MIN_DISTANCE = "notMinDistance"
    NOT_MIN_INTERVAL = "notMinInterval"
    # The subscription was already stopped or evicted when the reading arrived.
    SUBSCRIPTION_CLOSED = "subscriptionClosed"


class FailureCause(enum.StrEnum):
    """Terminal failure signals that participate in ``OnError`` eviction."""

    TIMEOUT = "timeout"
    AUTHORIZATION_DENIED = "authorizationDenied"
    ACQUISITION_FAILED = "acquisitionFailed"


@dataclass(frozen=True)
class Accepted:
    """The reading passed every filter and was delivered."""

    kind: ClassVar[str] = "accepted"

    reading: Reading


@dataclass(frozen=True)
class Discarded:
    """The reading was filtered out."""

    kind: ClassVar[str] = "discarded"

    reason: DiscardReason


@dataclass(frozen=True)
class Failed:
    """A failure reached the subscription (timeout or upstream error)."""

    kind: ClassVar[str] = "failed"

    cause: FailureCause
    error: BaseException | None = field(default=None, compare=False)


DeliveryOutcome: TypeAlias = Accepted | Discarded | Failed
