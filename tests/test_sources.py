from __future__ import annotations

import asyncio
import json
import logging
import threading
import time
from collections.abc import Mapping
from typing import Any

import aiohttp
import pytest

from pylocate._transport import JsonTransport
from pylocate.config import LocateConfig
from pylocate.exceptions import LocateSourceUnavailableError, LocateTransportError
from pylocate.models.fix import FixSource, PositionFix
from pylocate.sources.geolocation import NetworkGeolocationSource, parse_geolocation_response
from pylocate.sources.owntracks import MqttSettings, OwnTracksRuntime, OwnTracksSource, parse_owntracks_payload

_URL = "https://geo.example.test/v1/geolocate"


# ------------------------------------------------------------------
# OwnTracks
# ------------------------------------------------------------------


def _owntracks(**fields: Any) -> bytes:
    return json.dumps({"_type": "location", **fields}).encode()


def test_owntracks_location_payload() -> None:
    fix = parse_owntracks_payload(_owntracks(lat=52.37, lon=4.89, acc=8, tst=1767225600))

    assert fix is not None
    assert fix.source is FixSource.PRECISE
    assert (fix.latitude, fix.longitude) == (52.37, 4.89)
    assert fix.accuracy == 8.0
    assert fix.captured_at_ms == 1767225600000


def test_owntracks_missing_accuracy_is_unknown() -> None:
    fix = parse_owntracks_payload(_owntracks(lat=1.0, lon=2.0))
    assert fix is not None
    assert fix.accuracy is None


@pytest.mark.parametrize(
    "payload",
    [
        b"not json",
        b"\xff\xfe",
        b"[1, 2]",
        json.dumps({"_type": "transition", "lat": 1.0, "lon": 2.0}).encode(),
        _owntracks(lat="--", lon=2.0),
        _owntracks(lat=95.0, lon=2.0),
    ],
)
def test_owntracks_unusable_payloads_ignored(payload: bytes) -> None:
    assert parse_owntracks_payload(payload) is None


def test_owntracks_source_disabled_without_host() -> None:
    source = OwnTracksSource.from_config(LocateConfig())

    assert not source.is_enabled()
    with pytest.raises(LocateSourceUnavailableError):
        source.subscribe(lambda fix: None, lambda exc: None)


def test_owntracks_source_from_config() -> None:
    config = LocateConfig(mqtt_host="broker.local", mqtt_port=8883, mqtt_tls=True, mqtt_username="me")
    source = OwnTracksSource.from_config(config)

    assert source.is_enabled()
    assert source.kind is FixSource.PRECISE


@pytest.mark.asyncio
async def test_owntracks_runtime_drops_stale_fixes() -> None:
    runtime = OwnTracksRuntime(
        loop=asyncio.get_running_loop(),
        settings=MqttSettings(host="broker.local"),
        on_fix=lambda fix: None,
        on_error=lambda exc: None,
        max_age=60.0,
    )
    now = time.time()
    fresh = PositionFix(latitude=1.0, longitude=2.0, source=FixSource.PRECISE, captured_at_ms=int(now * 1000))
    stale = PositionFix(latitude=1.0, longitude=2.0, source=FixSource.PRECISE, captured_at_ms=int((now - 600) * 1000))

    assert runtime._is_fresh(fresh)  # type: ignore[attr-defined]
    assert not runtime._is_fresh(stale)  # type: ignore[attr-defined]
    assert not runtime.is_running


@pytest.mark.asyncio
async def test_owntracks_runtime_dispatches_onto_loop() -> None:
    received: list[PositionFix] = []
    runtime = OwnTracksRuntime(
        loop=asyncio.get_running_loop(),
        settings=MqttSettings(host="broker.local"),
        on_fix=received.append,
        on_error=lambda exc: None,
    )
    fix = PositionFix(latitude=1.0, longitude=2.0, source=FixSource.PRECISE)

    runtime._dispatch(received.append, fix)  # type: ignore[attr-defined]
    assert received == []
    await asyncio.sleep(0)
    assert received == [fix]


def test_owntracks_runtime_dispatch_after_loop_close(caplog: pytest.LogCaptureFixture) -> None:
    loop = asyncio.new_event_loop()
    loop.close()
    runtime = OwnTracksRuntime(
        loop=loop,
        settings=MqttSettings(host="broker.local"),
        on_fix=lambda fix: None,
        on_error=lambda exc: None,
    )

    with caplog.at_level(logging.DEBUG, logger="pylocate.sources.owntracks"):
        runtime._dispatch(print, None)  # type: ignore[attr-defined]

    assert "after loop shutdown" in caplog.text


class _RecordingRuntime:
    def __init__(self) -> None:
        self.stopped = threading.Event()
        self.stop_thread: threading.Thread | None = None

    def stop(self) -> None:
        self.stop_thread = threading.current_thread()
        self.stopped.set()


@pytest.mark.asyncio
async def test_owntracks_unsubscribe_stops_runtime_off_the_loop() -> None:
    source = OwnTracksSource(MqttSettings(host="broker.local"))
    runtime = _RecordingRuntime()

    source.unsubscribe(runtime)  # type: ignore[arg-type]
    for _ in range(100):
        if runtime.stopped.is_set():
            break
        await asyncio.sleep(0.01)

    assert runtime.stopped.is_set()
    assert runtime.stop_thread is not threading.current_thread()


def test_owntracks_unsubscribe_without_loop_stops_inline() -> None:
    source = OwnTracksSource(MqttSettings(host="broker.local"))
    runtime = _RecordingRuntime()

    source.unsubscribe(runtime)  # type: ignore[arg-type]

    assert runtime.stop_thread is threading.current_thread()


# ------------------------------------------------------------------
# Network geolocation
# ------------------------------------------------------------------


class _ScriptedTransport:
    def __init__(self, *replies: dict[str, Any] | Exception) -> None:
        self.replies = list(replies)
        self.calls: list[tuple[str, dict[str, Any]]] = []

    async def post_json(self, url: str, payload: Mapping[str, Any]) -> dict[str, Any]:
        self.calls.append((url, dict(payload)))
        reply = self.replies.pop(0) if len(self.replies) > 1 else self.replies[0]
        if isinstance(reply, Exception):
            raise reply
        return reply


def test_parse_geolocation_response() -> None:
    fix = parse_geolocation_response({"location": {"lat": 48.85, "lng": 2.35}, "accuracy": 42.0}, captured_at_ms=5)

    assert fix.source is FixSource.APPROXIMATE
    assert (fix.latitude, fix.longitude) == (48.85, 2.35)
    assert fix.accuracy == 42.0
    assert fix.captured_at_ms == 5


def test_parse_geolocation_response_accepts_lon_key() -> None:
    fix = parse_geolocation_response({"location": {"lat": 1.0, "lon": 2.0}})
    assert fix.longitude == 2.0
    assert fix.accuracy is None


@pytest.mark.parametrize(
    "body",
    [
        {},
        {"location": "here"},
        {"location": {"lat": 1.0}},
        {"location": {"lat": 120.0, "lng": 2.0}},
    ],
)
def test_parse_geolocation_response_rejects(body: dict[str, Any]) -> None:
    with pytest.raises(LocateTransportError):
        parse_geolocation_response(body)


@pytest.mark.parametrize(("url", "transport"), [(None, _ScriptedTransport({})), (_URL, None), ("", _ScriptedTransport({}))])
def test_geolocation_source_disabled(url: str | None, transport: Any) -> None:
    source = NetworkGeolocationSource(url, transport)

    assert not source.is_enabled()
    with pytest.raises(LocateSourceUnavailableError):
        source.subscribe(lambda fix: None, lambda exc: None)


@pytest.mark.asyncio
async def test_geolocation_locate_posts_consider_ip() -> None:
    transport = _ScriptedTransport({"location": {"lat": 1.0, "lng": 2.0}, "accuracy": 30})
    source = NetworkGeolocationSource(_URL, transport, consider_ip=False)

    fix = await source.locate()

    assert fix.accuracy == 30.0
    assert transport.calls == [(_URL, {"considerIp": False})]


@pytest.mark.asyncio
async def test_geolocation_subscription_polls_until_cancelled() -> None:
    transport = _ScriptedTransport(
        LocateTransportError("HTTP 503", status_code=503, url=_URL),
        {"location": {"lat": 1.0, "lng": 2.0}, "accuracy": 30},
    )
    source = NetworkGeolocationSource(_URL, transport, interval=0.01)
    fixes: list[PositionFix] = []
    errors: list[BaseException] = []

    handle = source.subscribe(fixes.append, errors.append)
    await asyncio.sleep(0.05)
    source.unsubscribe(handle)
    await asyncio.sleep(0.005)

    assert len(errors) == 1
    assert isinstance(errors[0], LocateTransportError)
    assert fixes
    assert all(fix.source is FixSource.APPROXIMATE for fix in fixes)
    assert handle.cancelled()

    calls = len(transport.calls)
    await asyncio.sleep(0.03)
    assert len(transport.calls) == calls


# ------------------------------------------------------------------
# JsonTransport
# ------------------------------------------------------------------


class _FakeResponse:
    def __init__(self, status: int, body: str | bytes) -> None:
        self.status = status
        self._body = body

    async def text(self) -> str:
        if isinstance(self._body, bytes):
            return self._body.decode("utf-8")
        return self._body

    async def __aenter__(self) -> _FakeResponse:
        return self

    async def __aexit__(self, *exc: Any) -> None:
        return None


class _FakeSession:
    """Replies in order; the last reply repeats."""

    def __init__(self, *responses: _FakeResponse | Exception) -> None:
        self._responses = list(responses)
        self.requests: list[dict[str, Any]] = []

    def post(self, url: str, **kwargs: Any) -> _FakeResponse:
        self.requests.append({"url": url, **kwargs})
        response = self._responses.pop(0) if len(self._responses) > 1 else self._responses[0]
        if isinstance(response, Exception):
            raise response
        return response


@pytest.mark.asyncio
async def test_transport_posts_json() -> None:
    session = _FakeSession(_FakeResponse(200, '{"location": {"lat": 1, "lng": 2}}'))
    transport = JsonTransport(session)  # type: ignore[arg-type]

    body = await transport.post_json(_URL, {"considerIp": True})

    assert body == {"location": {"lat": 1, "lng": 2}}
    request = session.requests[0]
    assert request["data"] == '{"considerIp":true}'
    assert request["headers"]["user-agent"].startswith("pylocate/")


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("response", "status_code"),
    [
        (_FakeResponse(404, "not found"), 404),
        (_FakeResponse(200, "<html>"), None),
        (_FakeResponse(200, "[1]"), None),
        (_FakeResponse(200, b'{"x":"\xff"}'), None),
        (aiohttp.ClientConnectionError("refused"), None),
        (TimeoutError(), None),
    ],
)
async def test_transport_errors(response: _FakeResponse | Exception, status_code: int | None) -> None:
    transport = JsonTransport(_FakeSession(response))  # type: ignore[arg-type]

    with pytest.raises(LocateTransportError) as exc_info:
        await transport.post_json(_URL, {})

    assert exc_info.value.status_code == status_code
    assert exc_info.value.url == _URL


@pytest.mark.asyncio
async def test_geolocation_polling_survives_undecodable_reply() -> None:
    session = _FakeSession(
        _FakeResponse(200, b'{"x":"\xff"}'),
        _FakeResponse(200, '{"location": {"lat": 1.0, "lng": 2.0}, "accuracy": 40}'),
    )
    source = NetworkGeolocationSource(_URL, JsonTransport(session), interval=0.01)  # type: ignore[arg-type]
    fixes: list[PositionFix] = []
    errors: list[BaseException] = []

    handle = source.subscribe(fixes.append, errors.append)
    await asyncio.sleep(0.05)
    source.unsubscribe(handle)
    await asyncio.sleep(0.005)

    assert len(errors) == 1
    assert isinstance(errors[0], LocateTransportError)
    assert fixes
    assert len(session.requests) > 1
    assert handle.cancelled()


@pytest.mark.asyncio
async def test_geolocation_polling_reports_unexpected_errors() -> None:
    transport = _ScriptedTransport(
        RuntimeError("boom"),
        {"location": {"lat": 1.0, "lng": 2.0}, "accuracy": 30},
    )
    source = NetworkGeolocationSource(_URL, transport, interval=0.01)
    fixes: list[PositionFix] = []
    errors: list[BaseException] = []

    handle = source.subscribe(fixes.append, errors.append)
    await asyncio.sleep(0.05)
    source.unsubscribe(handle)
    await asyncio.sleep(0.005)

    assert [type(error) for error in errors] == [RuntimeError]
    assert fixes
    assert handle.cancelled()
