"""Great-circle distance and travel-time estimates."""
import math
from typing import Union

from models.navigation import LocationPoint, TravelMode

EARTH_RADIUS_METERS = 6371000

# Straight-line travel speeds in meters per second
TRAVEL_SPEEDS = {
    TravelMode.WALKING: 1.4,    # ~5 km/h
    TravelMode.BICYCLING: 4.2,  # ~15 km/h
    TravelMode.DRIVING: 13.9,   # ~50 km/h city driving
}

def haversine_distance(point1: LocationPoint, point2: LocationPoint) -> float:
    """Calculate haversine distance in meters between two points."""
    lat1, lon1, lat2, lon2 = map(math.radians, [point1.latitude, point1.longitude,
                                                point2.latitude, point2.longitude])

    dlat = lat2 - lat1
    dlon = lon2 - lon1
    a = math.sin(dlat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(dlon / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))

    return EARTH_RADIUS_METERS * c

def travel_speed(mode: Union[TravelMode, str]) -> float:
    return TRAVEL_SPEEDS.get(TravelMode.parse(mode), TRAVEL_SPEEDS[TravelMode.DRIVING])

def estimate_duration_seconds(distance_meters: float, mode: Union[TravelMode, str] = TravelMode.DRIVING) -> float:
    return distance_meters / travel_speed(mode)

def format_duration(seconds: float) -> str:
    """Format seconds as '12 min' or '1h 5min'."""
    minutes = int(math.floor(seconds / 60 + 0.5))
    if minutes < 60:
        return f"{minutes} min"
    return f"{minutes // 60}h {minutes % 60}min"

def format_distance(meters: float) -> str:
    if meters < 1000:
        return f"{int(math.floor(meters + 0.5))}m"
    return f"{meters / 1000:.1f}km"
