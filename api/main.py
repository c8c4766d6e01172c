#!/usr/bin/env python3
"""
Shipment Compliance API - evaluation, batch and rule management endpoints.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import logging

from core.config import settings
from api.middleware.logging import LoggingMiddleware
from api.routers import compliance, health

# Configure logging
logging.basicConfig(level=getattr(logging, settings.log_level))
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    if settings.rule_source == "sql":
        from db.session import init_db

        init_db()
    logger.info(f"{settings.project_name} starting with rule source '{settings.rule_source}'")
    yield


# Create FastAPI app
app = FastAPI(
    title=settings.project_name,
    version=settings.version,
    description="Shipment compliance evaluation with deterministic detectors and an optional advisory classifier",
    lifespan=lifespan,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=True,
    allow_methods=settings.allowed_methods,
    allow_headers=settings.allowed_headers,
)
app.add_middleware(LoggingMiddleware)

# Expose health checks both at root and versioned paths
app.include_router(health.router, prefix=settings.api_v1_prefix)
app.include_router(compliance.router, prefix=settings.api_v1_prefix)
logger.info("Health and compliance routers included with API prefix")


@app.get("/healthz")
async def root_health_check():
    """Root-level health endpoint for external monitors."""
    return await health.health_check()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=settings.api_host, port=settings.api_port)
