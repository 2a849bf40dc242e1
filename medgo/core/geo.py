"""Geospatial helpers for driver lookup and navigation links."""

import math
from dataclasses import dataclass
from urllib.parse import urlencode

EARTH_RADIUS_KM = 6371.0

GOOGLE_MAPS_DIRECTIONS_URL = "https://www.google.com/maps/dir/"


@dataclass(frozen=True)
class Coordinates:
    """A WGS84 point in decimal degrees."""

    latitude: float
    longitude: float

    def __post_init__(self) -> None:
        if not (math.isfinite(self.latitude) and math.isfinite(self.longitude)):
            raise ValueError("Coordinates must be finite numbers")
        if not -90 <= self.latitude <= 90:
            raise ValueError(f"Latitude out of range: {self.latitude}")
        if not -180 <= self.longitude <= 180:
            raise ValueError(f"Longitude out of range: {self.longitude}")

    @classmethod
    def from_optional(cls, latitude: float | None, longitude: float | None) -> "Coordinates | None":
        """Build coordinates from nullable columns, returning None if unusable."""
        if latitude is None or longitude is None:
            return None
        try:
            return cls(float(latitude), float(longitude))
        except (TypeError, ValueError):
            return None


def haversine_km(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """
    Great-circle distance between two points on a spherical Earth.

    Args:
        lat1, lng1: First point in degrees
        lat2, lng2: Second point in degrees

    Returns:
        Distance in kilometres
    """
    rlat1 = math.radians(lat1)
    rlat2 = math.radians(lat2)
    dlat = math.radians(lat2 - lat1)
    dlng = math.radians(lng2 - lng1)

    a = math.sin(dlat / 2) ** 2 + math.cos(rlat1) * math.cos(rlat2) * math.sin(dlng / 2) ** 2
    # Clamp rounding error so antipodal points do not produce sqrt of a negative
    a = min(1.0, max(0.0, a))
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


def directions_url(destination: Coordinates) -> str:
    """Build a turn-by-turn driving directions deep link to the destination."""
    query = urlencode(
        {
            "api": "1",
            "destination": f"{destination.latitude},{destination.longitude}",
            "travelmode": "driving",
        },
        safe=",",
    )
    return f"{GOOGLE_MAPS_DIRECTIONS_URL}?{query}"
