"""Subscription options: filters, timeout policy and related enums."""

from __future__ import annotations

import dataclasses
import enum
import math
from datetime import timedelta
from typing import Any

from pyheading.exceptions import InvalidConfigError
from pyheading.models._base import HeadingEnum

#: Distance filter value meaning "deliver every reading regardless of movement".
DISTANCE_FILTER_NONE: float = 0.0


class DeviceOrientation(HeadingEnum):
    """Physical device orientation used as the heading reference.

    Numbering follows the platform device-orientation codes.
    """

    UNKNOWN = 0
    PORTRAIT = 1
    PORTRAIT_UPSIDE_DOWN = 2
    LANDSCAPE_LEFT = 3
    LANDSCAPE_RIGHT = 4
    FACE_UP = 5
    FACE_DOWN = 6


class SubscriptionMode(enum.StrEnum):
    """How long a subscription stays alive."""

    SINGLE = "single"
    CONTINUOUS = "continuous"


class AuthorizationStatus(enum.StrEnum):
    """Current status reported by the authorization service."""

    UNKNOWN = "unknown"
    AUTHORIZED = "authorized"
    DENIED = "denied"
    RESTRICTED = "restricted"

    @property
    def is_authorized(self) -> bool:
        return self is AuthorizationStatus.AUTHORIZED


class TimeoutKind(enum.IntEnum):
    """Timeout countdown policy. Values are the wire codes."""

    DELAYED = 0
    IMMEDIATE = 1


def _as_float(value: Any, *, field: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise InvalidConfigError(f"{field} must be a number, got {value!r}", field=field)
    result = float(value)
    if math.isnan(result):
        raise InvalidConfigError(f"{field} must not be NaN", field=field)
    return result


def _as_seconds(value: Any, *, field: str) -> float:
    if isinstance(value, timedelta):
        return value.total_seconds()
    return _as_float(value, field=field)


@dataclasses.dataclass(frozen=True)
class TimeoutPolicy:
    """When and for how long a subscription waits before timing out.

    - ``IMMEDIATE``: the countdown may start as soon as the subscription
      is activated, regardless of the authorization status.
    - ``DELAYED``: the countdown may start only once the authorization
      status is ``AUTHORIZED``.
    """

    kind: TimeoutKind
    duration: float

    def __post_init__(self) -> None:
        try:
            kind = TimeoutKind(self.kind)
        except ValueError as exc:
            raise InvalidConfigError(f"Unknown timeout kind {self.kind!r}", field="kind") from exc
        duration = _as_seconds(self.duration, field="duration")
        if duration <= 0 or math.isinf(duration):
            raise InvalidConfigError(f"Timeout duration must be > 0, got {duration}", field="duration")
        object.__setattr__(self, "kind", kind)
        object.__setattr__(self, "duration", duration)

    @classmethod
    def immediate(cls, duration: float | timedelta) -> TimeoutPolicy:
        return cls(TimeoutKind.IMMEDIATE, duration)  # type: ignore[arg-type]

    @classmethod
    def delayed(cls, duration: float | timedelta) -> TimeoutPolicy:
        return cls(TimeoutKind.DELAYED, duration)  # type: ignore[arg-type]

    def may_start_now(self, status: AuthorizationStatus) -> bool:
        """Return ``True`` when the countdown is allowed to start."""
        if self.kind is TimeoutKind.IMMEDIATE:
            return True
        return AuthorizationStatus(status).is_authorized

    def describe(self) -> str:
        return f"{self.kind.name.lower()} {abs(self.duration)}s"

    def __str__(self) -> str:
        return self.describe()


@dataclasses.dataclass(frozen=True)
class FilterConfig:
    """Thresholds applied to every incoming reading.

    Parameters
    ----------
    min_accuracy : float or None
        Readings whose accuracy is numerically larger (worse) are
        discarded. ``None`` disables the accuracy filter.
    min_distance_delta : float
        Minimum distance from the last accepted reading.
        :data:`DISTANCE_FILTER_NONE` (``0.0``) disables the check.
    min_time_interval : float or None
        Minimum seconds since the last accepted reading's timestamp.
        ``None`` disables the check. ``timedelta`` values are accepted.
    reference_orientation : DeviceOrientation
        Passed through to the acquisition service.
    """

    min_accuracy: float | None = None
    min_distance_delta: float = DISTANCE_FILTER_NONE
    min_time_interval: float | None = None
    reference_orientation: DeviceOrientation = DeviceOrientation.PORTRAIT

    def __post_init__(self) -> None:
        if self.min_accuracy is not None:
            accuracy = _as_float(self.min_accuracy, field="min_accuracy")
            if accuracy < 0:
                raise InvalidConfigError(f"min_accuracy must be >= 0, got {accuracy}", field="min_accuracy")
            object.__setattr__(self, "min_accuracy", accuracy)

        distance = _as_float(self.min_distance_delta, field="min_distance_delta")
        if distance < 0:
            raise InvalidConfigError(
                f"min_distance_delta must be >= 0, got {distance}",
                field="min_distance_delta",
            )
        object.__setattr__(self, "min_distance_delta", distance)

        if self.min_time_interval is not None:
            interval = _as_seconds(self.min_time_interval, field="min_time_interval")
            if interval < 0:
                raise InvalidConfigError(
                    f"min_time_interval must be >= 0, got {interval}",
                    field="min_time_interval",
                )
            object.__setattr__(self, "min_time_interval", interval)

        if not isinstance(self.reference_orientation, DeviceOrientation):
            raise InvalidConfigError(
                f"reference_orientation must be a DeviceOrientation, got {self.reference_orientation!r}",
                field="reference_orientation",
            )

    @property
    def distance_filter_enabled(self) -> bool:
        return self.min_distance_delta > DISTANCE_FILTER_NONE
