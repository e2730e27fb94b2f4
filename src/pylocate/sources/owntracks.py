"""Precise positioning from OwnTracks location messages over MQTT.

A phone running OwnTracks publishes its satellite fix as JSON to
``owntracks/<user>/<device>``::

    {"_type": "location", "lat": 52.37, "lon": 4.89, "acc": 8, "tst": 1767225600}

Each subscription runs its own paho-mqtt network thread and hands parsed
fixes to the asyncio loop with ``call_soon_threadsafe``.
"""

from __future__ import annotations

import asyncio
import json
import logging
import secrets
import time
from dataclasses import dataclass
from typing import Any, cast

import paho.mqtt.client as mqtt
from pydantic import ValidationError

from pylocate.arbiter.sources import ErrorCallback, FixCallback
from pylocate.config import LocateConfig
from pylocate.exceptions import LocateSourceUnavailableError, LocateTransportError
from pylocate.models._base import now_ms, safe_float
from pylocate.models.fix import FixSource, PositionFix

_logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MqttSettings:
    """Broker details for the OwnTracks feed."""

    host: str
    port: int = 1883
    topic: str = "owntracks/+/+"
    username: str | None = None
    password: str | None = None
    tls: bool = False
    keepalive: int = 60


def parse_owntracks_payload(payload: bytes) -> PositionFix | None:
    """Parse an OwnTracks message; ``None`` for anything but a usable location."""
    try:
        data = json.loads(payload.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError):
        return None
    if not isinstance(data, dict) or data.get("_type") != "location":
        return None

    latitude = safe_float(data.get("lat"))
    longitude = safe_float(data.get("lon"))
    if latitude is None or longitude is None:
        return None

    tst = safe_float(data.get("tst"))
    captured_at_ms = int(tst * 1000) if tst is not None and tst > 0 else now_ms()
    try:
        return PositionFix(
            latitude=latitude,
            longitude=longitude,
            accuracy=data.get("acc"),
            source=FixSource.PRECISE,
            captured_at_ms=captured_at_ms,
        )
    except ValidationError:
        return None


class OwnTracksRuntime:
    """Threaded paho-mqtt client that emits fixes onto an asyncio loop."""

    def __init__(
        self,
        *,
        loop: asyncio.AbstractEventLoop,
        settings: MqttSettings,
        on_fix: FixCallback,
        on_error: ErrorCallback,
        max_age: float | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self._loop = loop
        self._settings = settings
        self._on_fix = on_fix
        self._on_error = on_error
        self._max_age = max_age
        self._logger = logger or _logger
        self._client: mqtt.Client | None = None
        self._running = False

    @property
    def is_running(self) -> bool:
        """Whether the MQTT runtime is actively running."""
        return self._running

    def _dispatch(self, callback: Any, arg: Any) -> None:
        try:
            self._loop.call_soon_threadsafe(callback, arg)
        except RuntimeError:
            # Loop already closed; the session is gone.
            self._logger.debug("Dropping MQTT callback after loop shutdown")

    def _is_fresh(self, fix: PositionFix) -> bool:
        if self._max_age is None:
            return True
        age = time.time() - fix.captured_at_ms / 1000.0
        return age <= self._max_age

    def start(self) -> None:
        """Connect in the background and subscribe once connected."""
        self.stop()
        settings = self._settings
        self._logger.debug(
            "MQTT runtime start requested host=%s port=%s topic=%s",
            settings.host,
            settings.port,
            settings.topic,
        )

        client = mqtt.Client(
            callback_api_version=cast(Any, mqtt).CallbackAPIVersion.VERSION2,
            client_id=f"pylocate-{secrets.token_hex(4)}",
            protocol=mqtt.MQTTv311,
        )
        client.enable_logger(self._logger)
        if settings.username:
            client.username_pw_set(settings.username, settings.password)
        if settings.tls:
            client.tls_set()

        def on_connect(
            c: mqtt.Client,
            _userdata: Any,
            _flags: Any,
            reason_code: Any,
            _properties: Any,
        ) -> None:
            if reason_code.value != 0:
                self._logger.warning("MQTT connect failed: %s", reason_code)
                self._dispatch(self._on_error, LocateTransportError(f"MQTT connect failed: {reason_code}"))
                return
            self._logger.debug("MQTT connected; subscribing topic=%s", settings.topic)
            c.subscribe(settings.topic, qos=0)

        def on_message(_c: mqtt.Client, _userdata: Any, msg: mqtt.MQTTMessage) -> None:
            fix = parse_owntracks_payload(msg.payload)
            if fix is None:
                self._logger.debug("Ignoring non-location MQTT payload topic=%s", msg.topic)
                return
            if not self._is_fresh(fix):
                self._logger.debug("Ignoring stale OwnTracks fix topic=%s tst_ms=%s", msg.topic, fix.captured_at_ms)
                return
            self._dispatch(self._on_fix, fix)

        def on_disconnect(
            _client: mqtt.Client,
            _userdata: Any,
            _disconnect_flags: Any,
            reason_code: Any,
            _properties: Any,
        ) -> None:
            if self._running:
                self._logger.debug("MQTT disconnected: %s", reason_code)

        client.on_connect = on_connect
        client.on_message = on_message
        client.on_disconnect = on_disconnect

        # connect_async keeps the event loop thread free of network I/O.
        client.connect_async(settings.host, settings.port, keepalive=settings.keepalive)
        client.loop_start()

        self._client = client
        self._running = True
        self._logger.debug("MQTT network loop started")

    def stop(self) -> None:
        """Stop and disconnect current MQTT client if running."""
        client = self._client
        self._client = None
        was_running = self._running
        self._running = False

        if client is None:
            return
        try:
            if was_running:
                self._logger.debug("MQTT disconnect requested")
                client.disconnect()
        finally:
            client.loop_stop()
            self._logger.debug("MQTT network loop stopped")


def _log_stop_failure(future: asyncio.Future[None]) -> None:
    if not future.cancelled() and future.exception() is not None:
        _logger.debug("MQTT runtime stop failed", exc_info=future.exception())


class OwnTracksSource:
    """Precise positioning source fed by OwnTracks over MQTT."""

    kind = FixSource.PRECISE

    def __init__(self, settings: MqttSettings | None, *, max_age: float | None = 60.0) -> None:
        self._settings = settings
        self._max_age = max_age

    @classmethod
    def from_config(cls, config: LocateConfig) -> OwnTracksSource:
        if not config.mqtt_host:
            return cls(None)
        return cls(
            MqttSettings(
                host=config.mqtt_host,
                port=config.mqtt_port,
                topic=config.mqtt_topic,
                username=config.mqtt_username,
                password=config.mqtt_password,
                tls=config.mqtt_tls,
            )
        )

    def is_enabled(self) -> bool:
        return self._settings is not None and bool(self._settings.host)

    def subscribe(self, on_fix: FixCallback, on_error: ErrorCallback) -> OwnTracksRuntime:
        if self._settings is None or not self.is_enabled():
            raise LocateSourceUnavailableError("OwnTracks MQTT broker is not configured")
        runtime = OwnTracksRuntime(
            loop=asyncio.get_running_loop(),
            settings=self._settings,
            on_fix=on_fix,
            on_error=on_error,
            max_age=self._max_age,
        )
        runtime.start()
        return runtime

    def unsubscribe(self, handle: OwnTracksRuntime) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            handle.stop()
            return
        # stop() joins the paho network thread; keep that off the event loop.
        stopping = loop.run_in_executor(None, handle.stop)
        stopping.add_done_callback(_log_stop_failure)
