"""Sensor reading model."""

from __future__ import annotations

import math
from datetime import UTC, datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Reading(BaseModel):
    """A timestamped sensor measurement delivered by the acquisition service.

    Parameters
    ----------
    timestamp : datetime
        When the measurement was taken. Naive values are assumed UTC.
    accuracy : float
        Horizontal accuracy figure; larger is worse.
    x : float
        First planar coordinate used for distance comparison.
    y : float
        Second planar coordinate used for distance comparison.
    heading : float or None
        Heading in degrees, passed through untouched.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
    accuracy: float = 0.0
    x: float = 0.0
    y: float = 0.0
    heading: float | None = None

    @field_validator("timestamp")
    @classmethod
    def _ensure_tz_aware(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value

    @property
    def position(self) -> tuple[float, float]:
        return (self.x, self.y)

    def distance_to(self, other: Reading) -> float:
        """Euclidean distance between the positions of two readings."""
        return math.hypot(other.x - self.x, other.y - self.y)
