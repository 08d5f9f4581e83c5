"""Storefront promotions API — FastAPI entry point.

Registers middleware, routers, and lifecycle hooks. The storefront
router lives under /api/storefront/.
"""

import os
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.middleware import TenantMiddleware
from core.database import close_db, init_db
from core.observability.logger import get_logger
from core.observability.otel_setup import setup_otel

logger = get_logger("api")

VERSION = "0.1.0"

# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------

CORS_ORIGINS = os.getenv(
    "CORS_ORIGINS", "http://localhost:3000,http://localhost:3001"
).split(",")
CREATE_TABLES = os.getenv("DB_CREATE_TABLES", "false").lower() == "true"


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup/shutdown hooks."""
    setup_otel()
    if CREATE_TABLES:
        await init_db()
        logger.info("Database tables created")

    logger.info("Storefront promotions API started")
    yield
    await close_db()
    logger.info("Storefront promotions API shutting down")


# ---------------------------------------------------------------------------
# App
# ---------------------------------------------------------------------------

app = FastAPI(
    title="Storefront Promotions",
    description="Discount and promotion calculation for storefront carts and orders",
    version=VERSION,
    lifespan=lifespan,
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Multi-tenant middleware
app.add_middleware(TenantMiddleware)

# ---------------------------------------------------------------------------
# Routers
# ---------------------------------------------------------------------------

from verticals.storefront.router import router as storefront_router  # noqa: E402

app.include_router(storefront_router, prefix="/api/storefront", tags=["Storefront"])


# ---------------------------------------------------------------------------
# Health & root
# ---------------------------------------------------------------------------

@app.get("/health")
async def health():
    return {"status": "healthy", "version": VERSION}


@app.get("/")
async def root():
    return {
        "name": "Storefront Promotions",
        "version": VERSION,
        "docs": "/docs",
    }
