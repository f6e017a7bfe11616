import logging

from fastapi import FastAPI
from fastapi.responses import JSONResponse

from .api.routes import adventure, discovery, profile, trip
from .config import get_log_level

logging.basicConfig(
    level=get_log_level(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = FastAPI(
    title="Trip Brain",
    version="0.1.0",
    description="Backend API for Trip Brain – multi-day road trip itinerary planner.",
)


@app.get("/health", tags=["health"])
def health_check():
    """
    Basic health check endpoint used for monitoring and deployment.
    """
    return JSONResponse(content={"status": "ok"})


# ---- API Routers ----

app.include_router(
    trip.router,
    prefix="/trip",
    tags=["trip"],
)

app.include_router(
    discovery.router,
    prefix="/discovery",
    tags=["discovery"],
)

app.include_router(
    adventure.router,
    prefix="/adventure",
    tags=["adventure"],
)

app.include_router(
    profile.router,
    prefix="/profile",
    tags=["profile"],
)
