"""
E-Signature Bridge - Main FastAPI Application
Turns uploaded documents into DocuSign templates, envelopes and signed PDFs.
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from esign_bridge.config import get_cors_origins, get_settings
from esign_bridge.exceptions import (
    ConfigurationError,
    EsignError,
    esign_exception_handler,
    generic_exception_handler,
    http_exception_handler,
    validation_exception_handler,
)
from esign_bridge.routers import docusign, health
from esign_bridge.utils.logging import RequestIdMiddleware, get_logger, setup_logging

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler. Builds the DocuSign credential once."""
    settings = get_settings()
    setup_logging(
        environment=settings.environment,
        level=logging.DEBUG if settings.debug else logging.INFO,
    )
    logger.info(f"Starting E-Signature Bridge v{health.VERSION} ({settings.environment})")

    app.state.credential_error = None
    try:
        app.state.credential = settings.build_credential()
    except ConfigurationError as e:
        app.state.credential = None
        app.state.credential_error = e.message
        logger.error(f"CRITICAL: DocuSign credential not loaded: {e.message}")

    yield
    logger.info("Shutting down E-Signature Bridge")


app = FastAPI(
    title="E-Signature Bridge",
    description="""Backend service wrapping the DocuSign envelope lifecycle.

## Authentication

Outbound calls authenticate with the OAuth JWT-bearer grant using the
configured integration key and RSA private key. Callers may pass an existing
provider token as `Authorization: Bearer <token>`; otherwise one is minted
per request.
""",
    version=health.VERSION,
    lifespan=lifespan,
    openapi_tags=[
        {"name": "docusign", "description": "Template, envelope and signing operations"},
        {"name": "health", "description": "Health check endpoints"},
    ],
)

# Middleware
app.add_middleware(RequestIdMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Exception handlers
app.add_exception_handler(EsignError, esign_exception_handler)
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, generic_exception_handler)

# Routers
app.include_router(health.router)
app.include_router(docusign.router)
