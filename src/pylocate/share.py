"""Plain-text formatting for sharing saved locations."""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime

from pylocate._constants import MAPS_URL_TEMPLATE
from pylocate.models.location import SavedLocation


def maps_url(latitude: float, longitude: float) -> str:
    return MAPS_URL_TEMPLATE.format(latitude=latitude, longitude=longitude)


def format_coordinates(latitude: float, longitude: float) -> str:
    return f"{latitude:.6f}, {longitude:.6f}"


def format_timestamp(timestamp: str) -> str:
    """Render an ISO-8601 timestamp as local ``DD/MM/YYYY HH:MM``.

    Unparseable values are returned unchanged.
    """
    try:
        moment = datetime.fromisoformat(timestamp)
    except ValueError:
        return timestamp
    if moment.tzinfo is not None:
        moment = moment.astimezone()
    return moment.strftime("%d/%m/%Y %H:%M")


def format_location(location: SavedLocation, index: int) -> str:
    return (
        f"Location {index}: {location.name}\n"
        f"Coordinates: {format_coordinates(location.latitude, location.longitude)}\n"
        f"Saved: {format_timestamp(location.timestamp)}\n"
        f"Map: {maps_url(location.latitude, location.longitude)}\n"
    )


def format_location_list(locations: Sequence[SavedLocation]) -> str:
    """Share text listing every location, numbered from 1."""
    blocks = "\n".join(format_location(location, index) for index, location in enumerate(locations, start=1))
    return f"My saved locations ({len(locations)} total)\n\n{blocks}\nShared from pylocate"
