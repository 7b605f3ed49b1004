"""Territory Maps API - FastAPI application."""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .. import __version__
from ..config import get_config
from ..services.throttle_service import RequestThrottler
from .routers import territories


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    # Startup: one throttler spaces every provider request of this process
    config = get_config()
    app.state.throttler = RequestThrottler(config.min_request_spacing_ms / 1000)

    yield

    # Shutdown
    app.state.throttler = None


app = FastAPI(
    title="Territory Maps API",
    description="API for generating printable territory map images",
    version=__version__,
    lifespan=lifespan,
)

# CORS middleware - allow all origins in development
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(territories.router, prefix="/api/territories", tags=["territories"])


@app.get("/api/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "version": __version__}


@app.get("/api/config")
async def get_api_config():
    """Get API configuration (non-sensitive)."""
    config = get_config()
    dims = config.to_generation_config().dimensions()
    return {
        "ppp": config.ppp,
        "large_factor": config.large_factor,
        "wms_url": config.wms_url,
        "wms_layer": config.wms_layer,
        "wms_crs": config.wms_crs,
        "network_retries": config.network_retries,
        "network_delay_ms": config.network_delay_ms,
        "min_request_spacing_ms": config.min_request_spacing_ms,
        "standard_size": [dims.final_width, dims.final_height],
        "large_size": [dims.large_final_width, dims.large_final_height],
        "thumbnail_width": config.thumbnail_width,
    }
