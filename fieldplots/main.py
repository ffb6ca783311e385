"""
FastAPI application entry point.
"""
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from fieldplots.config import settings
from fieldplots.domain.blueprints import default_registry
from fieldplots.middleware.error_handler import ErrorHandlerMiddleware
from fieldplots.middleware.rate_limiter import limiter
from fieldplots.api.v1.routers import analysis, blueprints, surveys

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan context manager.

    Handles startup and shutdown events using the modern FastAPI pattern.
    """
    # Startup
    logger.info(f"Starting {settings.app_name} v{settings.app_version}")
    logger.info(f"Log level: {settings.log_level}")
    logger.info(f"Blueprints registered: {len(default_registry)}")
    logger.info(f"SAC config: default_iterations={settings.sac_default_iterations}, "
                f"max_iterations={settings.sac_max_iterations}")
    logger.info(f"Rate limit: {settings.rate_limit_requests} requests/minute")

    yield

    # Shutdown
    from fieldplots.infrastructure.observation_store_client import get_store_client
    logger.info("Shutting down application...")
    client = get_store_client()
    await client.close()
    logger.info("Shutdown complete")


# Create FastAPI application
app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="""
    Field Survey Analytics API for Ecological Plot Monitoring

    This API turns plot blueprints into concrete sampling layouts and computes
    community ecology metrics from field observations.

    ## Features

    - **Plot Layouts**: Realize versioned blueprints (grids, nested and fixed
      subplots) into geometry with deterministic, persistable node ids
    - **Diversity Indices**: Shannon-Wiener and Simpson indices
    - **Community Metrics**: Abundance, basal area, frequency and Importance
      Value Index per species
    - **Species Accumulation**: Randomized and ordered curves with 95% bounds
      and chart-ready series
    - **Stand Structure**: Per-hectare density, basal area, biomass and carbon
    - **Robust Error Handling**: Automatic retries with exponential backoff for
      record store calls
    - **Rate Limiting**: Protects the API from abuse
    """,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan,
)

# Add rate limiter to app state
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# Add CORS middleware with configurable origins
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Add global error handling middleware
app.add_middleware(ErrorHandlerMiddleware)

# Include routers
app.include_router(blueprints.router, prefix="/api/v1")
app.include_router(analysis.router, prefix="/api/v1")
app.include_router(surveys.router, prefix="/api/v1")


@app.get("/", tags=["health"])
async def root():
    """
    Root endpoint for health check.

    Returns:
        Status message
    """
    return {
        "status": "healthy",
        "service": settings.app_name,
        "version": settings.app_version,
    }


@app.get("/health", tags=["health"])
async def health_check():
    """
    Health check endpoint.

    Returns:
        Health status
    """
    return {
        "status": "healthy",
        "service": settings.app_name,
    }
