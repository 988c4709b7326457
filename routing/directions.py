"""Get Google Maps directions with straight-line fallback."""
from typing import Dict, List, Optional, Union

import requests
from loguru import logger

from configurations.config import Config
from core.blackboard import Blackboard
from models.blackboard_entry import ROUTE_COMPUTED
from models.navigation import LocationPoint, RouteResult, RouteSource, TravelMode
from routing import polyline
from routing.geo import estimate_duration_seconds, format_duration, haversine_distance

PLACEHOLDER_KEYS = {"", "YOUR_GOOGLE_MAPS_API_KEY"}

class DirectionsProvider:
    def __init__(self, api_key: Optional[str] = None, base_url: Optional[str] = None,
                 timeout: Optional[float] = None, session: Optional[requests.Session] = None,
                 blackboard: Optional[Blackboard] = None):
        self.api_key = api_key if api_key is not None else (Config.GOOGLE_MAPS_API_KEY or "")
        self.base_url = base_url or Config.DIRECTIONS_URL
        self.timeout = timeout if timeout is not None else Config.DIRECTIONS_TIMEOUT_SECONDS
        self.session = session or requests.Session()
        self.blackboard = blackboard

    @property
    def configured(self) -> bool:
        return self.api_key not in PLACEHOLDER_KEYS

    def get_route(self, origin: LocationPoint, destination: LocationPoint,
                  mode: Union[TravelMode, str] = TravelMode.DRIVING) -> RouteResult:
        """Get a route from the directions provider, or a straight line if it fails."""
        mode = TravelMode.parse(mode)
        route = self._request_route(origin, destination, mode)
        if self.blackboard:
            self.blackboard.publish(ROUTE_COMPUTED, {
                "origin": origin.to_dict(),
                "destination": destination.to_dict(),
                "mode": mode.value,
                "source": route.source.value,
                "distance_meters": route.distance_meters
            })
        return route

    def _request_route(self, origin: LocationPoint, destination: LocationPoint, mode: TravelMode) -> RouteResult:
        if not self.configured:
            logger.warning("Directions API key not configured, using fallback route")
            return self._create_fallback_route(origin, destination, mode, "API key not configured")

        params = {
            'origin': origin.as_query(),
            'destination': destination.as_query(),
            'mode': mode.value,
            'key': self.api_key,
            'avoid': 'ferries'
        }

        logger.info(f"Requesting {mode.value} route {origin.as_query()} -> {destination.as_query()}")
        try:
            response = self.session.get(self.base_url, params=params, timeout=self.timeout)
            response.raise_for_status()
            data = response.json()
        except requests.RequestException as e:
            logger.error(f"Directions request failed: {e}")
            return self._create_fallback_route(origin, destination, mode, f"Request failed: {e}")
        except ValueError as e:
            logger.error(f"Directions response was not JSON: {e}")
            return self._create_fallback_route(origin, destination, mode, "Invalid response body")

        status = data.get('status') if isinstance(data, dict) else None
        if status != 'OK':
            logger.warning(f"Directions provider returned status {status}")
            return self._create_fallback_route(origin, destination, mode, str(status))

        if not data.get('routes'):
            logger.warning("Directions provider returned no routes")
            return self._create_fallback_route(origin, destination, mode, "No routes found")

        try:
            return self._process_response(data, mode)
        except (KeyError, IndexError, TypeError, ValueError) as e:
            logger.error(f"Could not read directions response: {e}")
            return self._create_fallback_route(origin, destination, mode, f"Malformed route: {e}")

    def _process_response(self, data: Dict, mode: TravelMode) -> RouteResult:
        route = data['routes'][0]
        leg = route['legs'][0]
        coordinates = polyline.decode(route['overview_polyline']['points'])
        if len(coordinates) < 2:
            raise ValueError("route polyline has fewer than two points")

        logger.success(f"Route calculated: {leg['distance']['text']}, {leg['duration']['text']}, "
                       f"{len(coordinates)} points")

        return RouteResult(
            success=True,
            coordinates=coordinates,
            distance_meters=float(leg['distance']['value']),
            duration_label=leg['duration']['text'],
            duration_seconds=float(leg['duration']['value']),
            source=RouteSource.PROVIDER,
            mode=mode,
            steps=self._extract_steps(leg)
        )

    def _extract_steps(self, leg: Dict) -> List[Dict]:
        """Extract turn-by-turn steps from a route leg."""
        steps = []
        for step in leg.get('steps', []):
            steps.append({
                'instruction': step.get('html_instructions', 'Continue'),
                'maneuver': step.get('maneuver', ''),
                'distance': step.get('distance', {}).get('value', 0),
                'duration': step.get('duration', {}).get('value', 0)
            })
        return steps

    def _create_fallback_route(self, origin: LocationPoint, destination: LocationPoint,
                               mode: TravelMode, reason: str) -> RouteResult:
        """Create straight-line route when the provider is unavailable."""
        distance = haversine_distance(origin, destination)
        duration = estimate_duration_seconds(distance, mode)
        logger.info(f"Using fallback route ({reason}): {distance:.0f}m")

        return RouteResult(
            success=True,
            coordinates=[origin, destination],
            distance_meters=distance,
            duration_label=format_duration(duration),
            duration_seconds=duration,
            error_reason=reason,
            source=RouteSource.FALLBACK,
            mode=mode
        )
