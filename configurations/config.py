"""Configuration settings for field navigation and activity-log sync."""
import os
from typing import Optional

from dotenv import load_dotenv

load_dotenv()

class Config:
    # Directions provider
    GOOGLE_MAPS_API_KEY: Optional[str] = os.getenv("GOOGLE_MAPS_API_KEY")
    DIRECTIONS_URL: str = os.getenv("DIRECTIONS_URL", "https://maps.googleapis.com/maps/api/directions/json")
    DIRECTIONS_TIMEOUT_SECONDS: float = float(os.getenv("DIRECTIONS_TIMEOUT_SECONDS", "10"))

    # Activity log backend
    ACTIVITY_API_BASE_URL: str = os.getenv("ACTIVITY_API_BASE_URL", "http://127.0.0.1:8080")
    ACTIVITY_API_TOKEN: str = os.getenv("ACTIVITY_API_TOKEN", "")
    ACTIVITY_API_TIMEOUT_SECONDS: float = float(os.getenv("ACTIVITY_API_TIMEOUT_SECONDS", "30"))

    # Activity log cache and polling
    ACTIVITY_CACHE_TTL_MS: int = int(os.getenv("ACTIVITY_CACHE_TTL_MS", str(2 * 60 * 1000)))
    ACTIVITY_POLL_INTERVAL_SECONDS: float = float(os.getenv("ACTIVITY_POLL_INTERVAL_SECONDS", "10"))
    ACTIVITY_MIN_POLL_INTERVAL_SECONDS: float = 2.0

    # Navigation
    ARRIVAL_THRESHOLD_METERS: float = float(os.getenv("ARRIVAL_THRESHOLD_METERS", "10"))
    ANNOUNCE_MIN_CHANGE_METERS: float = 10.0
    DEFAULT_LATITUDE: float = float(os.getenv("DEFAULT_LATITUDE", "14.5995"))  # Manila
    DEFAULT_LONGITUDE: float = float(os.getenv("DEFAULT_LONGITUDE", "120.9842"))
    LAST_KNOWN_LOCATION_PATH: str = os.getenv("LAST_KNOWN_LOCATION_PATH", ".last_known_location.json")

    # API settings
    API_HOST: str = os.getenv("API_HOST", "127.0.0.1")
    API_PORT: int = int(os.getenv("API_PORT", "8080"))

    # Logging
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
