"""Custom exception hierarchy for pyheading."""

from __future__ import annotations


class HeadingError(Exception):
    """Base exception for all pyheading errors."""


class InvalidConfigError(HeadingError, ValueError):
    """Invalid subscription or registry configuration.

    Raised at construction time (negative thresholds, non-positive
    timeout durations, eviction counts below one) so that no
    subscription ever exists with undefined behaviour.
    """

    def __init__(self, message: str, *, field: str = "") -> None:
        self.field = field
        super().__init__(message)


class DecodeError(InvalidConfigError):
    """A serialized subscription snapshot could not be decoded.

    Covers unknown timeout kinds, unknown eviction kinds, unbound custom
    eviction names and any payload that fails schema validation.
    """
