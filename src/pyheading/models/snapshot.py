"""Serializable snapshots of subscription configuration.

The byte/text format is the external store's concern; these models only
guarantee that every configuration field round-trips and that legacy
encodings decode to defined values. ``model_dump(by_alias=True,
mode="json")`` produces camelCase keys.

Decoding rules:

* timeout ``kind`` accepts the integer wire codes (``0`` delayed,
  ``1`` immediate) and the names ``"delayed"`` / ``"immediate"``;
  anything else is a :class:`~pyheading.exceptions.DecodeError`.
* orientation accepts codes or names; unknown values become
  ``DeviceOrientation.UNKNOWN``.
* legacy ``headingFilter`` / ``headingOrientation`` keys are read as
  ``minDistanceDelta`` / ``referenceOrientation``.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import Any

from pydantic import AliasChoices, Field, ValidationError, field_validator, model_validator

from pyheading.exceptions import DecodeError, InvalidConfigError
from pyheading.models._base import HeadingBaseModel
from pyheading.models.eviction import CustomEviction, EvictionCondition, EvictionState, OnError, OnReceiveData
from pyheading.models.options import (
    DISTANCE_FILTER_NONE,
    DeviceOrientation,
    FilterConfig,
    SubscriptionMode,
    TimeoutKind,
    TimeoutPolicy,
)

_EVICTION_KINDS = frozenset({"onError", "onReceiveData", "custom"})


class TimeoutSnapshot(HeadingBaseModel):
    kind: TimeoutKind
    interval: float = Field(gt=0, allow_inf_nan=False)

    @field_validator("kind", mode="before")
    @classmethod
    def _decode_kind(cls, value: Any) -> TimeoutKind:
        if isinstance(value, TimeoutKind):
            return value
        if isinstance(value, str):
            member = TimeoutKind.__members__.get(value.strip().upper())
            if member is not None:
                return member
        if isinstance(value, int) and not isinstance(value, bool):
            try:
                return TimeoutKind(value)
            except ValueError:
                pass
        raise ValueError(f"unknown timeout kind {value!r}")

    @classmethod
    def from_policy(cls, policy: TimeoutPolicy) -> TimeoutSnapshot:
        return cls(kind=policy.kind, interval=policy.duration)

    def to_policy(self) -> TimeoutPolicy:
        return TimeoutPolicy(self.kind, self.interval)


class FilterSnapshot(HeadingBaseModel):
    min_accuracy: float | None = Field(default=None, ge=0)
    min_distance_delta: float = Field(
        default=DISTANCE_FILTER_NONE,
        ge=0,
        validation_alias=AliasChoices("minDistanceDelta", "min_distance_delta", "headingFilter"),
        serialization_alias="minDistanceDelta",
    )
    min_time_interval: float | None = Field(default=None, ge=0)
    reference_orientation: DeviceOrientation = Field(
        default=DeviceOrientation.PORTRAIT,
        validation_alias=AliasChoices("referenceOrientation", "reference_orientation", "headingOrientation"),
        serialization_alias="referenceOrientation",
    )

    @field_validator("reference_orientation", mode="before")
    @classmethod
    def _decode_orientation(cls, value: Any) -> DeviceOrientation:
        return DeviceOrientation.coerce(value)  # type: ignore[return-value]

    @field_validator("min_distance_delta", mode="before")
    @classmethod
    def _none_means_disabled(cls, value: Any) -> Any:
        return DISTANCE_FILTER_NONE if value is None else value

    @classmethod
    def from_config(cls, config: FilterConfig) -> FilterSnapshot:
        return cls(
            min_accuracy=config.min_accuracy,
            min_distance_delta=config.min_distance_delta,
            min_time_interval=config.min_time_interval,
            reference_orientation=config.reference_orientation,
        )

    def to_config(self) -> FilterConfig:
        return FilterConfig(
            min_accuracy=self.min_accuracy,
            min_distance_delta=self.min_distance_delta,
            min_time_interval=self.min_time_interval,
            reference_orientation=self.reference_orientation,
        )


class EvictionSnapshot(HeadingBaseModel):
    kind: str
    count: int | None = None
    name: str | None = None

    @model_validator(mode="after")
    def _check_payload(self) -> EvictionSnapshot:
        if self.kind not in _EVICTION_KINDS:
            raise ValueError(f"unknown eviction kind {self.kind!r}")
        if self.kind == "onReceiveData" and (self.count is None or self.count < 1):
            raise ValueError("onReceiveData requires count >= 1")
        if self.kind == "custom" and not self.name:
            raise ValueError("custom eviction requires a name")
        return self

    @classmethod
    def from_condition(cls, condition: EvictionCondition) -> EvictionSnapshot:
        if isinstance(condition, OnReceiveData):
            return cls(kind="onReceiveData", count=condition.count)
        if isinstance(condition, CustomEviction):
            return cls(kind="custom", name=condition.name)
        return cls(kind="onError")

    def to_condition(
        self,
        custom_predicates: Mapping[str, Callable[[EvictionState], bool]],
    ) -> EvictionCondition:
        if self.kind == "onError":
            return OnError()
        if self.kind == "onReceiveData":
            return OnReceiveData(count=self.count)  # type: ignore[arg-type]
        predicate = custom_predicates.get(self.name or "")
        if predicate is None:
            raise DecodeError(f"No predicate registered for custom eviction {self.name!r}", field="evictionPolicy")
        return CustomEviction(name=self.name or "", predicate=predicate)

    def sort_key(self) -> tuple[str, int, str]:
        return (self.kind, self.count or 0, self.name or "")


class SubscriptionSnapshot(HeadingBaseModel):
    """Configuration of one subscription. Runtime state is not included."""

    id: str
    name: str | None = None
    enabled: bool = True
    mode: SubscriptionMode = SubscriptionMode.CONTINUOUS
    filters: FilterSnapshot = Field(default_factory=FilterSnapshot)
    timeout: TimeoutSnapshot | None = None
    eviction_policy: list[EvictionSnapshot] = Field(default_factory=list)

    @field_validator("id")
    @classmethod
    def _id_non_empty(cls, value: str) -> str:
        ident = value.strip()
        if not ident:
            raise ValueError("id must be non-empty")
        return ident

    @field_validator("eviction_policy")
    @classmethod
    def _stable_order(cls, value: list[EvictionSnapshot]) -> list[EvictionSnapshot]:
        return sorted(value, key=EvictionSnapshot.sort_key)

    @classmethod
    def decode(cls, data: Mapping[str, Any] | str | bytes) -> SubscriptionSnapshot:
        """Validate a stored snapshot (mapping or JSON text).

        Raises
        ------
        DecodeError
            If the payload is malformed or uses an unknown discriminant.
        """
        try:
            if isinstance(data, (str, bytes)):
                return cls.model_validate_json(data)
            return cls.model_validate(data)
        except ValidationError as exc:
            raise DecodeError(f"Invalid subscription snapshot: {exc}") from exc

    def to_json_dict(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")

    def eviction_conditions(
        self,
        custom_predicates: Mapping[str, Callable[[EvictionState], bool]] | None = None,
    ) -> list[EvictionCondition]:
        predicates = custom_predicates or {}
        try:
            return [entry.to_condition(predicates) for entry in self.eviction_policy]
        except DecodeError:
            raise
        except InvalidConfigError as exc:
            raise DecodeError(str(exc), field=exc.field) from exc
