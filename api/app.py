"""FastAPI application for activity logs and route calculation."""
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.activity_logs_api import router as activity_logs_router
from api.navigation_api import router as navigation_router

app = FastAPI(
    title="Smart Waste Field Service",
    description="Activity log sync and navigation routing for field workers",
    version="1.0.0"
)

app.include_router(activity_logs_router)
app.include_router(navigation_router)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

@app.get("/health")
async def health():
    return {"status": "ok"}
