"""Concrete positioning sources."""

from pylocate.sources.geolocation import NetworkGeolocationSource, parse_geolocation_response
from pylocate.sources.owntracks import MqttSettings, OwnTracksSource, parse_owntracks_payload

__all__ = [
    "MqttSettings",
    "NetworkGeolocationSource",
    "OwnTracksSource",
    "parse_geolocation_response",
    "parse_owntracks_payload",
]
