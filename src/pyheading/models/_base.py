"""Base model and enum for pyheading wire formats.

Every serialized snapshot model inherits from :class:`HeadingBaseModel`
which provides:

* ``alias_generator=to_camel`` so snapshots are emitted with camelCase
  keys while fields stay snake_case in Python.
* ``frozen=True`` so decoded snapshots behave as values.

Integer-coded enums inherit from :class:`HeadingEnum` which adds a
``_missing_`` hook that returns ``UNKNOWN`` for any value without a
mapped member.
"""

from __future__ import annotations

import enum
from typing import Any

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class HeadingEnum(enum.IntEnum):
    """Base for integer-coded enums with an ``UNKNOWN`` fallback.

    Every subclass **must** define an ``UNKNOWN`` member.
    Values without a mapped member resolve to ``UNKNOWN`` instead of
    raising ``ValueError``.
    """

    @classmethod
    def _missing_(cls, value: object) -> HeadingEnum:
        if hasattr(cls, "UNKNOWN"):
            unknown: HeadingEnum = cls.UNKNOWN  # type: ignore[attr-defined]
            return unknown
        # Fallback: return first member
        return next(iter(cls))

    @classmethod
    def coerce(cls, value: Any) -> HeadingEnum:
        """Convert *value* (member, int, numeric string or name) to a member.

        Anything that cannot be interpreted maps to ``UNKNOWN``.
        """
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            text = value.strip()
            member = cls.__members__.get(text.upper())
            if member is not None:
                return member
            try:
                return cls(int(text))
            except ValueError:
                return cls._missing_(text)
        if isinstance(value, bool):
            return cls._missing_(value)
        if isinstance(value, (int, float)):
            try:
                return cls(int(value))
            except (ValueError, OverflowError):
                return cls._missing_(value)
        return cls._missing_(value)


class HeadingBaseModel(BaseModel):
    """Base for snapshot models exchanged with external stores."""

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        populate_by_name=True,
        alias_generator=to_camel,
    )
