"""
Massmail Backend API
FastAPI application for multi-tenant bulk email with PDF attachments.
"""

import logging
import os
from typing import List

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from massmail.routers import auth, email, models, organizations, users
from massmail.store import DocumentStore, DocumentStoreError, get_document_store

# Configure logging to output to console
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)

logger = logging.getLogger(__name__)

app = FastAPI(
    title="Massmail API",
    description="Multi-tenant transactional email with SMTP configuration and bulk PDF sends",
    version="0.1.0",
)


def get_cors_origins() -> List[str]:
    """
    Build the list of allowed CORS origins.

    Always includes http://localhost:3000 (frontend dev server). Additional
    origins are read from the CORS_ORIGINS environment variable as a
    comma-separated list. Duplicates are removed while preserving order.
    """
    always_included = ["http://localhost:3000"]

    extra_origins: List[str] = []
    cors_env = os.getenv("CORS_ORIGINS", "").strip()
    if cors_env:
        extra_origins = [o.strip() for o in cors_env.split(",") if o.strip()]

    seen: set = set()
    origins: List[str] = []
    for origin in always_included + extra_origins:
        if origin not in seen:
            seen.add(origin)
            origins.append(origin)

    return origins


app.add_middleware(
    CORSMiddleware,
    allow_origins=get_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(DocumentStoreError)
async def document_store_error_handler(request: Request, exc: DocumentStoreError):
    """Upstream database failures surface with the store's native error code."""
    logger.error(f"Database error on {request.method} {request.url.path}: [{exc.code}] {exc.message}")
    return JSONResponse(
        status_code=503,
        content={"detail": {"code": exc.code, "message": "Database error"}},
    )


# Include routers
app.include_router(auth.router, tags=["auth"])
app.include_router(email.router, tags=["email"])
app.include_router(models.router, tags=["models"])
app.include_router(organizations.router, tags=["organizations"])
app.include_router(users.router, tags=["users"])


@app.get("/")
async def root():
    return {"message": "Massmail API", "version": "0.1.0"}


@app.get("/health")
async def health():
    return {"status": "ok"}


@app.get("/health/db")
async def health_db(store: DocumentStore = Depends(get_document_store)):
    """
    Test the database connection with a one-row read from organizations.
    Returns 503 on failure.
    """
    try:
        await store.query("organizations", limit=1)
    except DocumentStoreError as exc:
        raise HTTPException(
            status_code=503,
            detail=f"Database connection failed: {exc.message}",
        )
    return {"status": "ok", "database": "reachable"}
