from __future__ import annotations

from datetime import datetime

from pylocate.models.location import SavedLocation
from pylocate.share import format_coordinates, format_location, format_location_list, format_timestamp, maps_url


def _loc(location_id: int, name: str, latitude: float = 10.0, longitude: float = 20.0) -> SavedLocation:
    return SavedLocation(
        id=location_id,
        latitude=latitude,
        longitude=longitude,
        timestamp="2026-01-01T12:30:00",
        name=name,
    )


def test_maps_url() -> None:
    assert maps_url(10.5, -20.25) == "https://maps.google.com/?q=10.5,-20.25"


def test_format_coordinates_uses_six_decimals() -> None:
    assert format_coordinates(10.0, -20.1234567) == "10.000000, -20.123457"


def test_format_timestamp_naive_is_kept_as_is() -> None:
    assert format_timestamp("2026-01-01T12:30:00") == "01/01/2026 12:30"


def test_format_timestamp_converts_aware_to_local() -> None:
    value = "2026-06-01T08:15:00+00:00"
    expected = datetime.fromisoformat(value).astimezone().strftime("%d/%m/%Y %H:%M")
    assert format_timestamp(value) == expected


def test_format_timestamp_unparseable_passthrough() -> None:
    assert format_timestamp("sometime") == "sometime"


def test_format_location_block() -> None:
    text = format_location(_loc(7, "Home"), 1)

    assert text.splitlines() == [
        "Location 1: Home",
        "Coordinates: 10.000000, 20.000000",
        "Saved: 01/01/2026 12:30",
        "Map: https://maps.google.com/?q=10.0,20.0",
    ]


def test_format_location_list_numbers_from_one() -> None:
    text = format_location_list([_loc(4, "Home"), _loc(9, "Office", 10.001, 20.001)])

    lines = text.splitlines()
    assert lines[0] == "My saved locations (2 total)"
    assert "Location 1: Home" in lines
    assert "Location 2: Office" in lines
    assert lines[-1] == "Shared from pylocate"
