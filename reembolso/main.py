"""
FastAPI application entry point for Reembolso.

The lifespan is the composition root: it creates the single Supabase client
and the AuthContext, starts the context (session load + auth event
subscription) and closes it on shutdown. Routes reach both through
app.state (see reembolso/auth/dependencies.py).
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from reembolso.auth.context import AuthContext
from reembolso.config import settings
from reembolso.db.client import create_backend_client
from reembolso.routes.auth import router as auth_router
from reembolso.routes.expenses import router as expenses_router
from reembolso.routes.receipts import router as receipts_router
from reembolso.routes.reference_data import router as reference_router
from reembolso.utils.logging import LOG_FORMAT

# Configure logging
logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format=LOG_FORMAT
)

logger = logging.getLogger(__name__)


def _get_cors_origins() -> list[str]:
    """
    Allowed CORS origins.

    - production: CORS_ALLOWED_ORIGINS (none if unset)
    - anything else: all origins, for local development
    """
    if settings.is_production():
        if not settings.CORS_ALLOWED_ORIGINS:
            logger.warning("CORS_ALLOWED_ORIGINS not set in production. No web origins allowed.")
        return settings.CORS_ALLOWED_ORIGINS

    logger.info(f"CORS configured for {settings.ENVIRONMENT}: allowing all origins")
    return ["*"]


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    # Raises ConfigurationError when SUPABASE_URL / SUPABASE_ANON_KEY are missing
    supabase_client = await create_backend_client(settings)
    auth_context = AuthContext(supabase_client, settings)

    app.state.supabase_client = supabase_client
    app.state.auth_context = auth_context

    await auth_context.start()
    logger.info("Auth context started")

    try:
        yield
    finally:
        await auth_context.close()
        logger.info("Auth context closed")


app = FastAPI(
    title="Reembolso API",
    description="Expense reimbursement data and auth layer over Supabase",
    version="0.1.0",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc"
)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Log validation errors with the {"error", "details"} response shape."""
    logger.error(f"Validation error on {request.method} {request.url.path}: {exc.errors()}")

    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"error": "validation_error", "details": exc.errors()}
    )


app.add_middleware(
    CORSMiddleware,
    allow_origins=_get_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(auth_router)
app.include_router(expenses_router)
app.include_router(receipts_router)
app.include_router(reference_router)


@app.get("/health", tags=["system"])
async def health_check():
    """Check if API is running."""
    return {"status": "healthy", "service": "reembolso"}
