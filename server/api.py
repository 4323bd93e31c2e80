"""FastAPI mapping server for FMC Comic.

Exposes (each also available without the /api prefix):
- GET  /                     (service banner)
- POST /api/get-id           ({slug, type} -> {uuid})
- GET  /api/get-slug/{uuid}  (-> {slug, type})
- GET  /api/health           (database connectivity)
"""

from __future__ import annotations

import asyncio
import logging
import os
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import APIRouter, Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel
from sqlmodel import Session
from starlette.middleware.base import BaseHTTPMiddleware

from . import database
from .config import FmcConfig, get_config
from .database import get_session
from .errors import MappingError
from .logging_config import get_logger
from .mapping import get_or_create_uuid, resolve_uuid

__version__ = "2.0.0"
SERVICE_NAME = "FMC Comic API"

logger = get_logger(__name__)


class MappingRequest(BaseModel):
    slug: Optional[str] = None
    type: Optional[str] = None


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log method, path and status of every API call at debug level."""

    async def dispatch(self, request, call_next):
        response = await call_next(request)
        logging.getLogger("fmc.request").debug(
            'method="%s" path="%s" status=%s ip="%s"',
            request.method,
            request.url.path,
            response.status_code,
            request.client.host if request.client else "unknown",
        )
        return response


router = APIRouter(tags=["mapping"])


@router.post("/get-id")
def get_id(body: MappingRequest, session: Session = Depends(get_session)):
    """Return the UUID for (slug, type), creating it on first request."""
    return {"uuid": get_or_create_uuid(session, body.slug, body.type)}


@router.get("/get-slug/{mapping_uuid}")
def get_slug(mapping_uuid: str, session: Session = Depends(get_session)):
    """Resolve a UUID back to its slug and type."""
    mapping = resolve_uuid(session, mapping_uuid)
    return {"slug": mapping.slug, "type": mapping.type}


@router.get("/health")
def health():
    """Report whether the database answers."""
    try:
        database.ping()
    except Exception as exc:
        logger.error(f"Database health check failed: {exc}")
        return JSONResponse(
            status_code=500, content={"status": "Error", "message": str(exc)}
        )
    return {"status": "OK", "database": "Connected"}


@asynccontextmanager
async def _lifespan(app: FastAPI):
    database.init_db()

    async def _print_startup_messages():
        await asyncio.sleep(0.1)
        logger.info("Started server process [" + str(os.getpid()) + "]")
        logger.info("Application startup complete. (Press CTRL+C to quit)")
        api_url = getattr(app.state, "api_url", None)
        if api_url:
            logger.info("Mapping API available at: " + api_url)

    asyncio.create_task(_print_startup_messages())
    yield


def create_app(config: Optional[FmcConfig] = None) -> FastAPI:
    """Build the FastAPI app with CORS from config."""
    config = config or get_config()

    application = FastAPI(title=SERVICE_NAME, version=__version__, lifespan=_lifespan)
    application.add_middleware(RequestLoggingMiddleware)
    application.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors.exact_origins,
        allow_origin_regex=config.cors.origin_regex,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )

    application.include_router(router, prefix="/api")
    application.include_router(router, include_in_schema=False)

    @application.get("/")
    def root():
        return {"status": "OK", "service": SERVICE_NAME, "version": __version__}

    @application.get("/favicon.ico", include_in_schema=False)
    def favicon() -> Response:
        return Response(status_code=204)

    @application.exception_handler(MappingError)
    async def _mapping_error_handler(request: Request, exc: MappingError):
        return JSONResponse(status_code=exc.status_code, content={"error": exc.message})

    @application.exception_handler(RequestValidationError)
    async def _request_validation_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(status_code=400, content={"error": "Invalid request body"})

    @application.exception_handler(Exception)
    async def _unhandled_error_handler(request: Request, exc: Exception):
        logger.exception(f"Unhandled error on {request.method} {request.url.path}")
        return JSONResponse(
            status_code=500,
            content={"error": "Something broke!", "details": str(exc)},
        )

    return application


app = create_app()


class _AccessFilter(logging.Filter):
    """Filter out access log lines for successful requests.

    Keep errors (4xx, 5xx) visible for debugging.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        try:
            msg = record.getMessage()
        except Exception:
            return True
        return not any(p in msg for p in ('" 200', '" 204', '" 304'))


class _UvicornStartupFilter(logging.Filter):
    """Suppress uvicorn startup messages; we print our own in lifespan."""

    _HIDDEN = (
        "Started server process",
        "Waiting for application startup",
        "Application startup complete",
        "running on",
    )

    def filter(self, record: logging.LogRecord) -> bool:
        try:
            msg = record.getMessage()
        except Exception:
            return True
        return not any(h in msg for h in self._HIDDEN)


def run_server(
    config: FmcConfig,
    host: Optional[str] = None,
    port: Optional[int] = None,
) -> None:
    """Run the FastAPI app with Uvicorn."""
    import uvicorn

    effective_host = host or config.server_host
    effective_port = port or config.server_port

    display_host = "localhost" if effective_host == "0.0.0.0" else effective_host
    app.state.api_url = f"http://{display_host}:{effective_port}/api"

    startup_filter = _UvicornStartupFilter()
    for name in ("uvicorn", "uvicorn.error", "uvicorn.lifespan"):
        logging.getLogger(name).addFilter(startup_filter)
    logging.getLogger("uvicorn.access").addFilter(_AccessFilter())

    uvicorn.run(
        app,
        host=effective_host,
        port=effective_port,
        log_level="info",
        log_config=None,
    )
