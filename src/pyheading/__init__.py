"""pyheading - filtered, rate-limited sensor reading subscriptions."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("pyheading")
except PackageNotFoundError:
    __version__ = "0+local"
from pyheading.config import RegistryConfig
from pyheading.exceptions import DecodeError, HeadingError, InvalidConfigError
from pyheading.models import (
    DISTANCE_FILTER_NONE,
    Accepted,
    AuthorizationStatus,
    CustomEviction,
    DeliveryOutcome,
    DeviceOrientation,
    DiscardReason,
    Discarded,
    EvictionCondition,
    Failed,
    FailureCause,
    FilterConfig,
    OnError,
    OnReceiveData,
    Reading,
    SubscriptionMode,
    SubscriptionSnapshot,
    TimeoutKind,
    TimeoutPolicy,
    derive_eviction_policy,
)
from pyheading.registry import SubscriptionRegistry
from pyheading.subscription import Subscription

__all__ = [
    "__version__",
    "Accepted",
    "AuthorizationStatus",
    "CustomEviction",
    "DecodeError",
    "DeliveryOutcome",
    "DeviceOrientation",
    "DiscardReason",
    "Discarded",
    "EvictionCondition",
    "Failed",
    "FailureCause",
    "FilterConfig",
    "HeadingError",
    "InvalidConfigError",
    "OnError",
    "OnReceiveData",
    "Reading",
    "RegistryConfig",
    "Subscription",
    "SubscriptionMode",
    "SubscriptionRegistry",
    "SubscriptionSnapshot",
    "TimeoutKind",
    "TimeoutPolicy",
    "derive_eviction_policy",
    "DISTANCE_FILTER_NONE",
]
