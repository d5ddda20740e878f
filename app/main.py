"""
FastAPI application entry point.
"""
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from app.config import settings
from app.api.rate_limit import limiter
from app.api.v1.routers import admin, crops, fields, ndvi, system
from app.infrastructure.database import MongoDatabase
from app.infrastructure.stac_client import StacClient
from app.infrastructure.titiler_client import TitilerClient
from app.middleware.error_handler import ErrorHandlerMiddleware

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)

API_PREFIX = "/api/v1"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan context manager.

    Creates the shared database handle and upstream clients once and closes
    them on shutdown.
    """
    # Startup
    logger.info(f"Starting {settings.app_name} v{settings.app_version}")
    logger.info(f"MongoDB database: {settings.mongodb_database}")
    logger.info(f"STAC API: {settings.stac_api_url} ({settings.stac_collection})")
    logger.info(f"TiTiler: {settings.titiler_url}")
    logger.info(f"Rate limit: {settings.rate_limit_requests} requests/minute")

    database = MongoDatabase.from_settings(settings)
    app.state.database = database
    app.state.stac_client = StacClient()
    app.state.titiler_client = TitilerClient()

    try:
        await database.ensure_connected()
        await database.ensure_indexes()
    except Exception as e:
        # the handle reconnects lazily on the first request
        logger.error(f"MongoDB not reachable at startup: {e}")

    yield

    # Shutdown
    logger.info("Shutting down application...")
    await app.state.stac_client.close()
    await app.state.titiler_client.close()
    database.close()
    logger.info("Shutdown complete")


# Create FastAPI application
app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="""
    Field management and Sentinel-2 NDVI API

    ## Features

    - **Fields**: store field polygons with area, memo and a per-year crop history
    - **Crop master**: searchable crop/variety list maintained by field writes
    - **NDVI overlays**: TiTiler tile templates and previews for the newest
      low-cloud Sentinel-2 scene, found with staged relaxation of recency and
      cloud cover
    - **NDVI statistics**: zonal statistics normalized into one stable record
    - **Ingest**: token-gated sweep storing NDVI statistics per field and scene
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
app.include_router(system.router, prefix=API_PREFIX)
app.include_router(fields.router, prefix=API_PREFIX)
app.include_router(crops.router, prefix=API_PREFIX)
app.include_router(ndvi.router, prefix=API_PREFIX)
app.include_router(admin.router, prefix=API_PREFIX)


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


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "app.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )
