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
from app.middleware.error_handler import ErrorHandlerMiddleware
from app.api.rate_limit import limiter
from app.api.v1.routers import analysis, datasets, filters

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
    from app.infrastructure.dataset_store import get_dataset_store
    logger.info(f"Starting {settings.app_name} v{settings.app_version}")
    logger.info(f"Log level: {settings.log_level}")
    logger.info(f"Dataset store: {settings.data_store_path}")
    logger.info(f"Rate limit: {settings.rate_limit_requests} requests/minute")
    store = get_dataset_store()
    logger.info(f"{len(store.datasets())} datasets available")

    yield

    # Shutdown
    logger.info("Shutdown complete")


# Create FastAPI application
app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="""
    Analytics API for maintenance-contract requirements

    Datasets exported per contract type and budget line are imported into
    slots; requirements are classified by lifecycle status and aggregated.

    ## Features

    - **Dataset Import**: Legacy and flat JSON exports, one dataset per
      (contract, line) slot, re-imports replace the slot as a whole
    - **Garden Selection**: Per-slot garden filters applied to every view
    - **Category Totals**: Counts or payable amounts per lifecycle status
    - **Time Series**: Monthly or weekly periods by registration date
    - **Matrix**: Line x contract cross-tab with per-garden drill-down
    - **Consolidated Export**: Every loaded requirement as CSV

    ## Lifecycle Status

    1. Payment report issued -> paid
    2. Reception date recorded -> received
    3. Work order past its due date -> overdue
    4. No work order -> not started
    5. Otherwise -> in progress
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
app.include_router(datasets.router, prefix="/api/v1")
app.include_router(filters.router, prefix="/api/v1")
app.include_router(analysis.router, prefix="/api/v1")


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
