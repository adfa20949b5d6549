"""Value models for subscriptions, readings and delivery outcomes."""

from pyheading.models._base import HeadingBaseModel, HeadingEnum
from pyheading.models.eviction import (
    SINGLE_MODE_POLICY,
    CustomEviction,
    EvictionCondition,
    EvictionState,
    OnError,
    OnReceiveData,
    derive_eviction_policy,
    is_evicted,
)
from pyheading.models.options import (
    DISTANCE_FILTER_NONE,
    AuthorizationStatus,
    DeviceOrientation,
    FilterConfig,
    SubscriptionMode,
    TimeoutKind,
    TimeoutPolicy,
)
from pyheading.models.outcome import Accepted, DeliveryOutcome, Discarded, DiscardReason, Failed, FailureCause
from pyheading.models.reading import Reading
from pyheading.models.snapshot import EvictionSnapshot, FilterSnapshot, SubscriptionSnapshot, TimeoutSnapshot

__all__ = [
    "Accepted",
    "AuthorizationStatus",
    "CustomEviction",
    "DeliveryOutcome",
    "DeviceOrientation",
    "DiscardReason",
    "Discarded",
    "EvictionCondition",
    "EvictionSnapshot",
    "EvictionState",
    "Failed",
    "FailureCause",
    "FilterConfig",
    "FilterSnapshot",
    "HeadingBaseModel",
    "HeadingEnum",
    "OnError",
    "OnReceiveData",
    "Reading",
    "SubscriptionMode",
    "SubscriptionSnapshot",
    "TimeoutKind",
    "TimeoutPolicy",
    "TimeoutSnapshot",
    "derive_eviction_policy",
    "is_evicted",
    "DISTANCE_FILTER_NONE",
    "SINGLE_MODE_POLICY",
]
