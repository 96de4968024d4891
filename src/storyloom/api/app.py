"""FastAPI application factory.

Routes only translate between the wire contract and the generation and
batch layers. Every failure leaves as an `{ok: false, reason}` envelope.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Generator

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from storyloom.core.errors import (
    ConfigurationError,
    EnvelopeParseError,
    MissingReferenceError,
    StoryloomError,
    TransportError,
    ValidationInputError,
)
from storyloom.core.settings import Settings
from storyloom.db.repo import DbSession
from storyloom.db.session import dispose_stores, get_session, init_db
from storyloom.db.sink import DbRecordSink
from storyloom.models.types import ErrorResponse
from storyloom.providers.base import OracleBase
from storyloom.providers.openai_chat import OpenAIChatOracle

logger = logging.getLogger(__name__)


def get_settings(request: Request) -> Settings:
    """Dependency returning the settings the app was created with."""
    return request.app.state.settings


def get_db_session(settings: Settings = Depends(get_settings)) -> Generator[DbSession, None, None]:
    """Dependency to get database session.

    Yields:
        Database session that is automatically closed after request.
    """
    session = get_session(settings.db_path)
    try:
        yield session
    finally:
        session.close()


def get_oracle(settings: Settings = Depends(get_settings)) -> OracleBase:
    """Dependency building the oracle client.

    Raises:
        ConfigurationError: If no API key is configured.
    """
    return OpenAIChatOracle.from_settings(settings)


def get_record_sink(settings: Settings = Depends(get_settings)) -> DbRecordSink:
    """Dependency building the record sink for batch runs."""
    return DbRecordSink(db_path=settings.db_path)


def _error(status_code: int, reason: str, issues: list | None = None) -> JSONResponse:
    body = ErrorResponse(reason=reason, issues=issues)
    return JSONResponse(status_code=status_code, content=body.model_dump(exclude_none=True))


def _register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(HTTPException)
    async def http_error_handler(request: Request, exc: HTTPException):
        return _error(exc.status_code, str(exc.detail))

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        return _error(400, "Invalid input.", jsonable_encoder(exc.errors()))

    @app.exception_handler(ValidationInputError)
    async def input_error_handler(request: Request, exc: ValidationInputError):
        return _error(400, str(exc), exc.issues)

    @app.exception_handler(MissingReferenceError)
    async def missing_reference_handler(request: Request, exc: MissingReferenceError):
        return _error(400, str(exc))

    @app.exception_handler(TransportError)
    async def transport_error_handler(request: Request, exc: TransportError):
        logger.error(f"{request.url.path}: {exc} {exc.detail}")
        return _error(502, str(exc))

    @app.exception_handler(EnvelopeParseError)
    async def parse_error_handler(request: Request, exc: EnvelopeParseError):
        logger.error(f"{request.url.path}: {exc}")
        return _error(502, str(exc))

    @app.exception_handler(ConfigurationError)
    async def configuration_error_handler(request: Request, exc: ConfigurationError):
        logger.error(f"{request.url.path}: {exc}")
        return _error(500, str(exc))

    @app.exception_handler(StoryloomError)
    async def internal_error_handler(request: Request, exc: StoryloomError):
        logger.exception(f"{request.url.path}: unhandled {type(exc).__name__}")
        return _error(500, "Internal error while generating the storyboard.")


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create FastAPI application.

    Args:
        settings: Optional settings. Defaults to Settings.from_env().

    Returns:
        Configured FastAPI application.
    """
    settings = settings or Settings.from_env()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        init_db(settings.db_path)
        yield
        dispose_stores()

    app = FastAPI(
        title="Storyloom API",
        description="Storyboard generation over a generative text oracle",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.settings = settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    _register_exception_handlers(app)

    from storyloom.api.routes import batches, records, storyboard

    app.include_router(storyboard.router, prefix="/api")
    app.include_router(batches.router, prefix="/api")
    app.include_router(records.router, prefix="/api")

    @app.get("/health")
    def health_check():
        """Health check endpoint."""
        return {"status": "ok"}

    return app


# Default app instance
app = create_app()
