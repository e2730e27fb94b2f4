"""Application configuration for pylocate."""

from __future__ import annotations

import dataclasses
import math
import os
from typing import Any

from pylocate._constants import (
    DEFAULT_APPROX_ACCEPTABLE_ACCURACY_M,
    DEFAULT_DB_PATH,
    DEFAULT_DEADLINE_S,
    DEFAULT_GEOLOCATION_INTERVAL_S,
    DEFAULT_GRACE_DELAY_S,
    DEFAULT_MATCH_THRESHOLD_M,
    DEFAULT_PRECISE_GOOD_ACCURACY_M,
)
from pylocate.exceptions import LocateConfigError


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


def _env_float(env_key: str, value: str) -> float:
    try:
        return float(value)
    except ValueError as exc:
        raise LocateConfigError(f"{env_key} must be a number, got {value!r}") from exc


@dataclasses.dataclass(frozen=True)
class LocateConfig:
    """Application configuration.

    Parameters
    ----------
    db_path : str
        SQLite database file holding saved locations.
    deadline : float
        Seconds after which a position request resolves with the best
        fix seen so far (or times out when none arrived).
    grace_delay : float
        Seconds during which only the precise source is active.
    precise_good_accuracy : float
        Accuracy (meters) at or below which a precise fix is accepted
        immediately.
    approx_acceptable_accuracy : float
        Accuracy (meters) at or below which an approximate fix arriving
        after the grace delay is accepted.
    match_threshold : float
        Maximum distance (meters) for a check to count as a match.
    mqtt_host : str or None
        MQTT broker carrying OwnTracks location messages. The precise
        source is disabled when unset.
    mqtt_port : int
        MQTT broker port.
    mqtt_topic : str
        Topic filter for OwnTracks location messages.
    mqtt_username, mqtt_password : str or None
        Optional broker credentials.
    mqtt_tls : bool
        Connect to the broker over TLS.
    geolocation_url : str or None
        Ichnaea-compatible geolocation endpoint. The approximate source
        is disabled when unset.
    geolocation_interval : float
        Seconds between geolocation polls.
    """

    db_path: str = DEFAULT_DB_PATH
    deadline: float = DEFAULT_DEADLINE_S
    grace_delay: float = DEFAULT_GRACE_DELAY_S
    precise_good_accuracy: float = DEFAULT_PRECISE_GOOD_ACCURACY_M
    approx_acceptable_accuracy: float = DEFAULT_APPROX_ACCEPTABLE_ACCURACY_M
    match_threshold: float = DEFAULT_MATCH_THRESHOLD_M
    mqtt_host: str | None = None
    mqtt_port: int = 1883
    mqtt_topic: str = "owntracks/+/+"
    mqtt_username: str | None = None
    mqtt_password: str | None = None
    mqtt_tls: bool = False
    geolocation_url: str | None = None
    geolocation_interval: float = DEFAULT_GEOLOCATION_INTERVAL_S

    def __post_init__(self) -> None:
        for name in (
            "deadline",
            "grace_delay",
            "precise_good_accuracy",
            "approx_acceptable_accuracy",
            "geolocation_interval",
        ):
            value = getattr(self, name)
            if not (math.isfinite(value) and value > 0):
                raise LocateConfigError(f"{name} must be a positive number, got {value}")
        if not (math.isfinite(self.match_threshold) and self.match_threshold >= 0):
            raise LocateConfigError(f"match_threshold must be a non-negative number, got {self.match_threshold}")

    @classmethod
    def from_env(cls, **overrides: Any) -> LocateConfig:
        """Create configuration from environment variables.

        Reads optional ``LOCATE_*`` variables. Explicit keyword arguments
        override environment values.

        Parameters
        ----------
        **overrides
            Explicit field values that take precedence over env vars.

        Returns
        -------
        LocateConfig
            Populated configuration.
        """
        env = os.environ

        _ENV_STR_MAP = {
            "LOCATE_DB_PATH": "db_path",
            "LOCATE_MQTT_HOST": "mqtt_host",
            "LOCATE_MQTT_TOPIC": "mqtt_topic",
            "LOCATE_MQTT_USERNAME": "mqtt_username",
            "LOCATE_MQTT_PASSWORD": "mqtt_password",
            "LOCATE_GEOLOCATION_URL": "geolocation_url",
        }
        _ENV_FLOAT_MAP = {
            "LOCATE_DEADLINE": "deadline",
            "LOCATE_GRACE_DELAY": "grace_delay",
            "LOCATE_PRECISE_GOOD_ACCURACY": "precise_good_accuracy",
            "LOCATE_APPROX_ACCEPTABLE_ACCURACY": "approx_acceptable_accuracy",
            "LOCATE_MATCH_THRESHOLD": "match_threshold",
            "LOCATE_GEOLOCATION_INTERVAL": "geolocation_interval",
        }

        config_kwargs: dict[str, Any] = {}
        for env_key, field_name in _ENV_STR_MAP.items():
            val = env.get(env_key)
            if val is not None and val.strip():
                config_kwargs[field_name] = val.strip()

        for env_key, field_name in _ENV_FLOAT_MAP.items():
            val = env.get(env_key)
            if val is not None and field_name not in overrides:
                config_kwargs[field_name] = _env_float(env_key, val)

        # mqtt_port is an int, handle separately
        port_env = env.get("LOCATE_MQTT_PORT")
        if port_env is not None and "mqtt_port" not in overrides:
            try:
                config_kwargs["mqtt_port"] = int(port_env)
            except ValueError as exc:
                raise LocateConfigError(f"LOCATE_MQTT_PORT must be an integer, got {port_env!r}") from exc

        if "mqtt_tls" not in overrides:
            config_kwargs["mqtt_tls"] = _env_bool(env.get("LOCATE_MQTT_TLS"), False)

        config_kwargs.update(overrides)

        return cls(**config_kwargs)
