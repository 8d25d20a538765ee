"""Donk API - FastAPI application."""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .. import __version__
from ..config import get_config
from .routers import instances, sessions


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    config = get_config()
    config.ensure_directories()
    config.apply_image_limits()

    yield


app = FastAPI(
    title="Donk API",
    description="Collaborative tiled canvas: tile sessions and composites",
    version=__version__,
    lifespan=lifespan,
)

# Editors are served from other origins
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(instances.router, prefix="/v1/instances", tags=["instances"])
app.include_router(sessions.router, prefix="/v1/instances", tags=["sessions"])
app.include_router(sessions.lookup_router, prefix="/v1/sessions", tags=["sessions"])


@app.get("/api/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "version": __version__}


@app.get("/api/config")
async def get_api_config():
    """Get API configuration."""
    config = get_config()
    return {
        "data_dir": str(config.data_dir),
        "default_source_image": str(config.default_source_image),
        "default_step_count_x": config.default_step_count_x,
        "default_step_count_y": config.default_step_count_y,
        "composite_quality": config.composite_quality,
    }
