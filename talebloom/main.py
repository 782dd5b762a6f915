"""
Talebloom - Main FastAPI Application
Illustrated children's stories from a single photo
"""
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
import asyncio
import logging

from talebloom.config import settings
from talebloom.database import init_db, close_db
import talebloom.models  # ensure all models are registered before init_db creates tables
from talebloom.routes import health, stories, users
from talebloom.services.story_generator import build_story_generator

# Configure logging
logging.basicConfig(
    level=logging.INFO if settings.environment == "production" else logging.DEBUG,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events"""
    # Startup
    logger.info("Starting Talebloom API...")
    try:
        await init_db()
        logger.info("Database initialized successfully")
    except Exception as e:
        logger.warning(f"Database initialization skipped: {e}")

    generator = build_story_generator(settings)
    app.state.story_generator = generator
    sweeper = asyncio.create_task(generator.pipeline.cache.run_sweeper(settings.cache_sweep_interval))

    yield

    # Shutdown
    logger.info("Shutting down Talebloom API...")
    sweeper.cancel()
    try:
        await sweeper
    except asyncio.CancelledError:
        pass
    await generator.close()
    await close_db()


# Create FastAPI application
app = FastAPI(
    title="Talebloom API",
    description="""
    **Talebloom** - Illustrated children's stories

    Upload a photo, pick an art style and get back a short story starring
    the child in the picture, with one illustration per page.

    ## Features
    - Story writing from a photo
    - Ghibli, Pixar and Disney illustration styles
    - Subscription-tier story quotas
    - PDF export
    """,
    version=settings.app_version,
    lifespan=lifespan
)

# CORS Configuration - Must be before routes
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["*"],
    max_age=3600,
)

# Include routers
app.include_router(health.router, prefix="/health", tags=["Health"])
app.include_router(stories.router, prefix="/api/stories", tags=["Stories"])
app.include_router(users.router, prefix="/api/user", tags=["Users"])


@app.get("/", tags=["Health"])
async def root():
    """Root endpoint - API health check"""
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "status": "operational",
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "talebloom.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug
    )
