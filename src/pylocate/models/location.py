"""Saved location model."""

from __future__ import annotations

from datetime import datetime

from pydantic import Field, field_validator

from pylocate.models._base import LocateBaseModel


class SavedLocation(LocateBaseModel):
    """A labelled point owned by the location store.

    Coordinates never change after creation; a location is only ever
    created or deleted.

    Parameters
    ----------
    id : int
        Store-assigned identity, never reused after deletion.
    latitude : float
        Latitude in decimal degrees.
    longitude : float
        Longitude in decimal degrees.
    timestamp : str
        ISO-8601 capture time.
    name : str
        User supplied label.
    """

    id: int
    latitude: float
    longitude: float
    timestamp: str
    name: str = Field(min_length=1)

    @field_validator("name")
    @classmethod
    def _strip_name(cls, value: str) -> str:
        name = value.strip()
        if not name:
            raise ValueError("name must be non-empty")
        return name

    @property
    def captured_at(self) -> datetime:
        """Parsed :attr:`timestamp`."""
        return datetime.fromisoformat(self.timestamp)
