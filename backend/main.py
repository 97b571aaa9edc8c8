from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
import logging
import os
from config import get_settings
from db.database import init_db
from api.routes.packages import router as packages_router

# Configure logging
logging.basicConfig(
    level=get_settings().LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger("hero_factory")


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    logger.info("Starting Hero Factory API...")
    settings = get_settings()
    for directory in (settings.SCHEMAS_DIR, settings.STAGING_DIR, settings.PUBLISHED_DIR):
        os.makedirs(directory, exist_ok=True)
    await init_db()
    logger.info("Database initialized.")
    yield
    # Shutdown
    logger.info("Shutting down Hero Factory API...")


app = FastAPI(
    title="Hero Factory API",
    description="Generates, tests and publishes npm packages from ideas",
    version="1.0.0",
    lifespan=lifespan,
)

# CORS
settings = get_settings()
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS.split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Routers
app.include_router(packages_router)


@app.get("/health")
async def health():
    return {"status": "ok", "service": "hero_factory"}
