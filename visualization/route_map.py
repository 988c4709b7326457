"""Create interactive Folium maps for navigation routes."""
from pathlib import Path
from typing import Optional

import folium
from loguru import logger

from models.navigation import LocationPoint, RouteResult
from routing.geo import format_distance

class RouteMapGenerator:
    def __init__(self, route_color: str = '#1E88E5', fallback_color: str = '#FF8000'):
        self.route_color = route_color
        self.fallback_color = fallback_color

    def create_route_map(self, route: RouteResult, current: Optional[LocationPoint] = None,
                         label: str = "Destination", zoom_start: int = 15) -> folium.Map:
        """Create map with the route line, endpoints and optional current position."""
        if not route.coordinates:
            raise ValueError("Route has no coordinates to draw")

        locations = [[p.latitude, p.longitude] for p in route.coordinates]
        center = [
            sum(lat for lat, _ in locations) / len(locations),
            sum(lon for _, lon in locations) / len(locations)
        ]

        m = folium.Map(location=center, zoom_start=zoom_start, tiles='OpenStreetMap')

        folium.PolyLine(
            locations=locations,
            color=self.fallback_color if route.is_fallback else self.route_color,
            weight=5,
            opacity=0.8,
            dash_array='10' if route.is_fallback else None,
            tooltip=f"{format_distance(route.distance_meters)}, {route.duration_label} ({route.source.value})"
        ).add_to(m)

        folium.Marker(
            locations[0],
            tooltip="Start",
            icon=folium.Icon(color='green', icon='play')
        ).add_to(m)
        folium.Marker(
            locations[-1],
            tooltip=label,
            icon=folium.Icon(color='red', icon='trash')
        ).add_to(m)

        if current is not None:
            folium.CircleMarker(
                [current.latitude, current.longitude],
                radius=8,
                color='#0D47A1',
                fill=True,
                fill_opacity=0.9,
                tooltip="Current position"
            ).add_to(m)

        m.fit_bounds([
            [min(lat for lat, _ in locations), min(lon for _, lon in locations)],
            [max(lat for lat, _ in locations), max(lon for _, lon in locations)]
        ])

        logger.info(f"Created route map with {len(locations)} points")
        return m

    def save_map(self, map_obj: folium.Map, path: str) -> str:
        Path(path).parent.mkdir(parents=True, exist_ok=True)
        map_obj.save(path)
        logger.success(f"Saved route map to {path}")
        return path
