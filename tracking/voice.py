"""Spoken navigation feedback with jitter-tolerant rate limiting."""
from typing import Callable, Optional

from loguru import logger
from pydantic import BaseModel, Field

from configurations.config import Config

class VoiceSettings(BaseModel):
    enabled: bool = False
    volume: float = Field(0.8, ge=0.0, le=1.0)
    rate: float = 1.0
    pitch: float = 1.0
    language: str = "en-US"

def _log_speaker(text: str, settings: VoiceSettings) -> None:
    logger.info(f"[voice {settings.language}] {text}")

def distance_message(distance: float, label: str) -> str:
    meters = round(distance)
    if distance < 10:
        return f"You have arrived at {label}."
    elif distance < 50:
        return f"Approaching {label}. {meters} meters remaining."
    elif distance < 100:
        return f"{meters} meters to {label}."
    elif distance < 500:
        return f"Continue for {meters} meters to {label}."
    else:
        return f"Proceed {meters} meters to {label}."

def navigation_message(current: float, previous: float, label: str) -> str:
    """Contextual message comparing the current distance with the previous one."""
    meters = round(current)
    progress = previous - current
    if current < 10:
        return f"You have arrived at {label}."
    elif current < 50:
        return f"Approaching {label}. {meters} meters remaining."
    elif progress > 20:
        return f"Good progress. {meters} meters to {label}."
    elif progress < -10:
        return f"You may have missed the turn. {meters} meters to {label}."
    else:
        return f"Continue straight. {meters} meters to {label}."

class DistanceAnnouncer:
    def __init__(self, speaker: Optional[Callable[[str, VoiceSettings], None]] = None,
                 min_change_meters: Optional[float] = None,
                 settings: Optional[VoiceSettings] = None):
        self.speaker = speaker or _log_speaker
        self.min_change_meters = (Config.ANNOUNCE_MIN_CHANGE_METERS
                                  if min_change_meters is None else min_change_meters)
        self.settings = settings or VoiceSettings()
        self.last_announced: Optional[float] = None

    def enable(self) -> None:
        self.settings = self.settings.model_copy(update={"enabled": True})

    def disable(self) -> None:
        self.settings = self.settings.model_copy(update={"enabled": False})

    def reset(self) -> None:
        self.last_announced = None

    def speak(self, text: str) -> bool:
        if not self.settings.enabled:
            return False
        try:
            self.speaker(text, self.settings)
        except Exception as e:
            logger.error(f"Error speaking text: {e}")
            return False
        return True

    def announce_route_start(self, label: str, distance: float) -> bool:
        self.last_announced = distance
        return self.speak(f"Navigation started. Proceed to {label}. Distance: {round(distance)} meters.")

    def maybe_announce(self, distance: float, label: str) -> bool:
        """Announce only when the distance moved more than the minimum since the last announcement."""
        if not self.settings.enabled:
            return False
        if self.last_announced is not None and abs(distance - self.last_announced) <= self.min_change_meters:
            return False
        self.last_announced = distance
        return self.speak(distance_message(distance, label))

    def announce_arrival(self, label: str) -> bool:
        return self.speak(f"You have arrived at {label}. Task location reached.")
