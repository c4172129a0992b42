"""
SteerSolo Backend Application.

FastAPI application for the SteerSolo storefront platform:
shops, orders, bookings, subscriptions, payouts and rewards.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse
from loguru import logger

from steersolo.api.v1 import router as api_v1_router
from steersolo.core.config import settings
from steersolo.core.database import close_db, init_db
from steersolo.core.exceptions import register_exception_handlers
from steersolo.core.logging import setup_logging
from steersolo.modules.shop.cart import close_cart_service


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager."""
    setup_logging()
    logger.info("Starting SteerSolo Backend...")

    # Initialize database
    await init_db()
    logger.info("Database initialized")

    logger.info("SteerSolo Backend started successfully")

    yield

    # Shutdown
    logger.info("Shutting down SteerSolo Backend...")

    await close_cart_service()
    await close_db()

    logger.info("Shutdown complete")


# Create FastAPI application
app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="""
    SteerSolo Backend Platform

    ## Features

    - **Shops**: Branded storefronts with products and services
    - **Orders & Bookings**: Checkout, status tracking and WhatsApp links
    - **Payments**: Paystack checkout, split payments and payouts
    - **Subscriptions**: Trials, plans and product limits
    - **Rewards**: Points, prizes and courses

    ## Documentation

    - [API Docs](/docs) - Interactive Swagger UI
    - [ReDoc](/redoc) - Alternative documentation
    """,
    openapi_url=f"{settings.api_v1_prefix}/openapi.json",
    docs_url="/docs",
    redoc_url="/redoc",
    default_response_class=ORJSONResponse,
    lifespan=lifespan,
)

register_exception_handlers(app)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include API router
app.include_router(api_v1_router, prefix=settings.api_v1_prefix)


@app.get("/health", tags=["System"])
async def health_check() -> dict:
    """Health check endpoint for monitoring."""
    return {
        "status": "healthy",
        "version": settings.app_version,
    }


@app.get("/", tags=["System"])
async def root() -> dict:
    """Root endpoint with API information."""
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "docs": "/docs",
        "api": settings.api_v1_prefix,
    }
