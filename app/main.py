"""
FastAPI application entry point.
Configures routes, middleware, and lifecycle events.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.config import settings
from app.database import close_db, engine
from app.logging_config import configure_logging
from app.workers.scheduler import build_pipeline_scheduler

# Import routers - MUST BE AT TOP LEVEL
from app.api.requests import router as requests_router


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifecycle manager."""
    # Startup
    configure_logging()
    logging.info("Starting up SoulSketch...")

    stop_event = asyncio.Event()
    scheduler_task = None
    if settings.embedded_scheduler and engine is not None:
        scheduler = build_pipeline_scheduler()
        scheduler_task = asyncio.create_task(scheduler.run_forever(stop_event))
    elif settings.embedded_scheduler:
        logging.warning("Embedded scheduler disabled: DATABASE_URL not configured")

    yield

    # Shutdown
    stop_event.set()
    if scheduler_task:
        await scheduler_task
    await close_db()
    logging.info("Shutting down...")


app = FastAPI(
    title="SoulSketch",
    description="Deferred soulmate sketch generation pipeline",
    version="1.0.0",
    lifespan=lifespan,
    debug=settings.debug,
)


# Global Exception Handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logging.error(f"Global exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"status": "error", "message": "Internal Server Error"},
    )


# CORS middleware
origins = [settings.app_url]
if settings.is_development:
    origins.append("*")

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Health check endpoint
@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "app": settings.app_name,
        "env": settings.app_env,
    }


app.include_router(requests_router)
