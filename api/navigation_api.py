"""Route calculation endpoint."""
from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from models.navigation import LocationPoint, TravelMode
from routing.directions import DirectionsProvider

router = APIRouter(prefix="/api", tags=["navigation"])
directions_provider = DirectionsProvider()

def get_directions_provider() -> DirectionsProvider:
    return directions_provider

class RouteRequest(BaseModel):
    startLat: float
    startLng: float
    endLat: float
    endLng: float
    mode: str = "driving"

@router.post("/route")
async def calculate_route(request: RouteRequest, provider: DirectionsProvider = Depends(get_directions_provider)):
    """Route between two points, straight-line when the provider is unavailable."""
    try:
        origin = LocationPoint(request.startLat, request.startLng)
        destination = LocationPoint(request.endLat, request.endLng)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid coordinates")

    try:
        mode = TravelMode.parse(request.mode)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Unsupported travel mode: {request.mode}")

    route = provider.get_route(origin, destination, mode)
    return JSONResponse({"success": route.success, "data": route.to_dict()})
