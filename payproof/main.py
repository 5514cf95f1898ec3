"""
PayProof API — Application entry point.

Bootstraps FastAPI, wires up middleware and registers route groups.

Extension points:
  - Add new route groups with app.include_router() below
  - Add new middleware in the middleware block
  - Change startup behaviour in the lifespan context manager

Run locally:
    uvicorn payproof.main:app --reload
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from payproof.core.config import settings
from payproof.routes.analyze import router as analyze_router
from payproof.routes.health import API_VERSION
from payproof.routes.health import router as health_router

# ─── Logging ───────────────────────────────────────────────────────────────────
logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
)
logger = logging.getLogger(__name__)


# ─── Lifespan ──────────────────────────────────────────────────────────────────
@asynccontextmanager
async def lifespan(app: FastAPI):
    """Code before `yield` runs on startup; code after runs on shutdown."""
    logger.info(
        "Starting PayProof API (env: %s, vision provider: %s, models: %s)",
        settings.environment, settings.vision_provider, ", ".join(settings.vision_models),
    )
    yield
    logger.info("Shutting down PayProof API")


# ─── App ───────────────────────────────────────────────────────────────────────
app = FastAPI(
    title="PayProof API",
    description=(
        "Payment screenshot authenticity analysis: byte-level forensic signatures "
        "combined with parallel vision-model review. Verdicts are probabilistic."
    ),
    version=API_VERSION,
    lifespan=lifespan,
    # Disable docs in production to reduce attack surface
    docs_url="/docs" if settings.environment != "production" else None,
    redoc_url="/redoc" if settings.environment != "production" else None,
)


# ─── Middleware ─────────────────────────────────────────────────────────────────
# CORS: allow the upload UI to call the API.
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ─── Routes ────────────────────────────────────────────────────────────────────
app.include_router(health_router, prefix="/health", tags=["health"])
app.include_router(analyze_router)


@app.get("/", tags=["root"])
async def root():
    """API root — basic metadata."""
    return {
        "name": "PayProof API",
        "version": API_VERSION,
        "status": "running",
        "environment": settings.environment,
        "docs": "/docs",
    }
