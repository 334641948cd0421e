from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import logging

from app.core.config import settings
from app.api.router import api_router
from app.db.async_session import startup_async_database, shutdown_async_database
from app.services.cache import cache_service

logger = logging.getLogger(__name__)

app = FastAPI(
    title=settings.PROJECT_NAME,
    description=settings.PROJECT_DESCRIPTION,
    version=settings.VERSION,
    openapi_url=f"{settings.API_V1_PREFIX}/openapi.json",
    docs_url=f"{settings.API_V1_PREFIX}/docs",
    redoc_url=f"{settings.API_V1_PREFIX}/redoc",
    redirect_slashes=False,  # Prevent automatic trailing slash redirects that cause HTTPS->HTTP issues
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router, prefix=settings.API_V1_PREFIX)

@app.on_event("startup")
async def startup_event():
    """Initialize services on application startup."""
    logger.info("Starting up CoachDesk API...")

    await startup_async_database()
    logger.info("Async database initialized successfully")

    if not settings.GREEN_API_ID_INSTANCE or not settings.GREEN_API_TOKEN_INSTANCE:
        logger.warning("Green API credentials missing, WhatsApp messages will not be sent")
    logger.info(f"Query cache {'enabled' if cache_service.enabled else 'disabled'}")

    logger.info("CoachDesk API startup completed successfully")

@app.on_event("shutdown")
async def shutdown_event():
    """Clean up services on application shutdown."""
    logger.info("Shutting down CoachDesk API...")

    await cache_service.close()
    await shutdown_async_database()
    logger.info("Async database connections closed")

    logger.info("CoachDesk API shutdown completed successfully")

@app.get("/")
async def root():
    """Health check endpoint."""
    return {"status": "ok", "message": "Welcome to CoachDesk API"}
