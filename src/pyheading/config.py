"""Registry configuration for pyheading."""

from __future__ import annotations

import dataclasses
import os
from typing import Any

from pyheading.exceptions import InvalidConfigError
from pyheading.models.options import DeviceOrientation, SubscriptionMode, TimeoutKind, TimeoutPolicy


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


@dataclasses.dataclass(frozen=True)
class RegistryConfig:
    """Defaults applied to subscriptions created through a registry.

    Parameters
    ----------
    default_mode : SubscriptionMode
        Mode used when ``create()`` is not given one.
    default_timeout : float or None
        Timeout in seconds for new subscriptions. ``None`` means new
        subscriptions never time out unless a policy is passed.
    default_timeout_kind : TimeoutKind
        Whether the default timeout waits for authorization
        (``DELAYED``) or starts on activation (``IMMEDIATE``).
    default_orientation : DeviceOrientation
        Reference orientation for filters created from defaults.
    outcome_trace_enabled : bool
        Log every delivered outcome at DEBUG level.
    """

    default_mode: SubscriptionMode = SubscriptionMode.CONTINUOUS
    default_timeout: float | None = None
    default_timeout_kind: TimeoutKind = TimeoutKind.DELAYED
    default_orientation: DeviceOrientation = DeviceOrientation.PORTRAIT
    outcome_trace_enabled: bool = False

    def __post_init__(self) -> None:
        try:
            object.__setattr__(self, "default_mode", SubscriptionMode(self.default_mode))
        except ValueError as exc:
            raise InvalidConfigError(str(exc), field="default_mode") from exc
        try:
            object.__setattr__(self, "default_timeout_kind", TimeoutKind(self.default_timeout_kind))
        except ValueError as exc:
            raise InvalidConfigError(str(exc), field="default_timeout_kind") from exc
        object.__setattr__(self, "default_orientation", DeviceOrientation.coerce(self.default_orientation))
        # Validates the duration.
        self.default_timeout_policy()

    def default_timeout_policy(self) -> TimeoutPolicy | None:
        if self.default_timeout is None:
            return None
        return TimeoutPolicy(self.default_timeout_kind, self.default_timeout)

    @classmethod
    def from_env(cls, **overrides: Any) -> RegistryConfig:
        """Create configuration from environment variables.

        Reads ``PYHEADING_DEFAULT_MODE``, ``PYHEADING_DEFAULT_TIMEOUT``,
        ``PYHEADING_DEFAULT_TIMEOUT_KIND``, ``PYHEADING_DEFAULT_ORIENTATION``
        and ``PYHEADING_OUTCOME_TRACE``. Explicit keyword arguments
        override environment values.

        Parameters
        ----------
        **overrides
            Explicit field values that take precedence over env vars.

        Returns
        -------
        RegistryConfig
            Populated configuration.

        Raises
        ------
        InvalidConfigError
            If an environment value cannot be parsed.
        """
        env = os.environ
        config_kwargs: dict[str, Any] = {}

        mode_env = env.get("PYHEADING_DEFAULT_MODE")
        if mode_env is not None and "default_mode" not in overrides:
            config_kwargs["default_mode"] = mode_env.strip().lower()

        timeout_env = env.get("PYHEADING_DEFAULT_TIMEOUT")
        if timeout_env is not None and "default_timeout" not in overrides:
            text = timeout_env.strip().lower()
            if text in {"", "none", "off"}:
                config_kwargs["default_timeout"] = None
            else:
                try:
                    config_kwargs["default_timeout"] = float(text)
                except ValueError as exc:
                    raise InvalidConfigError(
                        f"PYHEADING_DEFAULT_TIMEOUT must be a number, got {timeout_env!r}",
                        field="default_timeout",
                    ) from exc

        kind_env = env.get("PYHEADING_DEFAULT_TIMEOUT_KIND")
        if kind_env is not None and "default_timeout_kind" not in overrides:
            kind = TimeoutKind.__members__.get(kind_env.strip().upper())
            if kind is None:
                raise InvalidConfigError(
                    f"PYHEADING_DEFAULT_TIMEOUT_KIND must be 'delayed' or 'immediate', got {kind_env!r}",
                    field="default_timeout_kind",
                )
            config_kwargs["default_timeout_kind"] = kind

        orientation_env = env.get("PYHEADING_DEFAULT_ORIENTATION")
        if orientation_env is not None and "default_orientation" not in overrides:
            config_kwargs["default_orientation"] = DeviceOrientation.coerce(orientation_env)

        if "outcome_trace_enabled" not in overrides:
            config_kwargs["outcome_trace_enabled"] = _env_bool(env.get("PYHEADING_OUTCOME_TRACE"), False)

        config_kwargs.update(overrides)

        return cls(**config_kwargs)
