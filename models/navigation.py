"""Data models for positions and computed routes."""
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Any

from shapely.geometry import LineString

@dataclass(frozen=True)
class LocationPoint:
    latitude: float
    longitude: float

    def __post_init__(self):
        if not -90.0 <= self.latitude <= 90.0:
            raise ValueError(f"Latitude out of range: {self.latitude}")
        if not -180.0 <= self.longitude <= 180.0:
            raise ValueError(f"Longitude out of range: {self.longitude}")

    def as_query(self) -> str:
        """Format as 'lat,lng' for provider query strings."""
        return f"{self.latitude},{self.longitude}"

    def to_dict(self) -> Dict[str, float]:
        return {"latitude": self.latitude, "longitude": self.longitude}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LocationPoint":
        lat = data.get("latitude", data.get("lat"))
        lng = data.get("longitude", data.get("lng", data.get("lon")))
        if lat is None or lng is None:
            raise ValueError(f"Missing coordinates in {data}")
        return cls(float(lat), float(lng))

class TravelMode(str, Enum):
    DRIVING = "driving"
    WALKING = "walking"
    TRANSIT = "transit"
    BICYCLING = "bicycling"

    @classmethod
    def parse(cls, value) -> "TravelMode":
        if isinstance(value, cls):
            return value
        normalized = str(value).strip().lower()
        if normalized == "cycling":
            return cls.BICYCLING
        return cls(normalized)

class RouteSource(str, Enum):
    PROVIDER = "provider"
    FALLBACK = "fallback"

@dataclass
class RouteResult:
    success: bool
    coordinates: List[LocationPoint]
    distance_meters: float
    duration_label: str
    error_reason: Optional[str] = None
    source: RouteSource = RouteSource.PROVIDER
    mode: TravelMode = TravelMode.DRIVING
    duration_seconds: Optional[float] = None
    steps: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def is_fallback(self) -> bool:
        return self.source == RouteSource.FALLBACK

    def as_linestring(self) -> LineString:
        """Route geometry in (lon, lat) order."""
        return LineString([(p.longitude, p.latitude) for p in self.coordinates])

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "coordinates": [p.to_dict() for p in self.coordinates],
            "distance": self.distance_meters,
            "duration": self.duration_label,
            "durationSeconds": self.duration_seconds,
            "mode": self.mode.value,
            "source": self.source.value,
            "error": self.error_reason,
        }
