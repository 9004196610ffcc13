from __future__ import annotations

import logging
import secrets
import time
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .cache import ListingCache
from .errors import ServiceError, StoreError
from .repositories import Repository, get_repository
from .routers import auth as auth_router
from .routers import todos as todos_router
from .settings import Settings, get_settings
from .tokens import TokenService
from .utils import configure_logging

logger = logging.getLogger(__name__)

openapi_tags = [
    {"name": "health", "description": "Service health and status endpoints."},
    {"name": "auth", "description": "Token issuance."},
    {
        "name": "todos",
        "description": "CRUD, batch and cached listing operations for Todo items. Require a token.",
    },
]


def _error_response(status_code: int, error: str, message: str, detail=None) -> JSONResponse:
    content = {"error": error, "message": message}
    if detail is not None:
        content["detail"] = detail
    return JSONResponse(status_code=status_code, content=content)


async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
    """
    Render ServiceError subclasses.

    Response format:
        {"error": "NotFound", "message": "Todo not found"}
    """
    return _error_response(exc.status_code, exc.error, exc.message, exc.detail)


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """
    Invalid query parameters are client errors reported as BadRequest (400).

    Response format:
        {
            "error": "BadRequest",
            "message": "Request validation failed",
            "detail": [... pydantic/fastapi error details ...]
        }
    """
    return _error_response(400, "BadRequest", "Request validation failed", jsonable_encoder(exc.errors()))


async def store_error_handler(request: Request, exc: StoreError) -> JSONResponse:
    logger.error("Store failure on %s %s: %s", request.method, request.url.path, exc)
    return _error_response(500, "Internal", "Storage operation failed")


async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    duration_ms = (time.perf_counter() - start) * 1000
    logger.info(
        "%s %s %d %.1fms", request.method, request.url.path, response.status_code, duration_ms
    )
    return response


# PUBLIC_INTERFACE
def create_app(
    settings: Optional[Settings] = None,
    repository: Optional[Repository] = None,
    token_service: Optional[TokenService] = None,
    cache: Optional[ListingCache] = None,
) -> FastAPI:
    """
    Build the application.

    Collaborators not passed in are built from `settings` (read from the
    environment when omitted). Everything lives on `app.state`, so several
    isolated apps can coexist in one process.
    """
    settings = settings or get_settings()
    configure_logging(settings.log_level)

    if token_service is None:
        secret = settings.secret_key
        if not secret:
            logger.warning("SECRET_KEY is not set; using a random key, tokens will not survive a restart")
            secret = secrets.token_urlsafe(32)
        token_service = TokenService(secret)

    app = FastAPI(
        title="Todo Service",
        description="Token-protected Todo API with batch inserts and a cached listing.",
        version="0.1.0",
        openapi_tags=openapi_tags,
    )
    app.state.settings = settings
    app.state.repository = repository or get_repository(settings)
    app.state.token_service = token_service
    app.state.cache = cache or ListingCache(settings.cache_ttl_seconds)
    app.state.invalidate_on_write = settings.cache_invalidate_on_write

    allow_all = (settings.cors_allow_origins == ["*"]) or (len(settings.cors_allow_origins) == 0)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if allow_all else settings.cors_allow_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.middleware("http")(log_requests)

    app.add_exception_handler(ServiceError, service_error_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(StoreError, store_error_handler)

    # PUBLIC_INTERFACE
    @app.get("/", summary="Health Check", tags=["health"])
    def health_check():
        """
        Health check endpoint.

        Returns:
            A JSON object indicating service health.
        """
        return {"message": "Healthy", "backend": settings.persistence_backend}

    app.include_router(auth_router.router)
    app.include_router(todos_router.router)

    logger.info(
        "Todo service ready (backend=%s, cache_ttl=%ss, invalidate_on_write=%s)",
        settings.persistence_backend,
        settings.cache_ttl_seconds,
        settings.cache_invalidate_on_write,
    )
    return app


# PUBLIC_INTERFACE
def serve() -> None:
    """Run the service with uvicorn on HOST:PORT."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(create_app(settings), host=settings.host, port=settings.port, log_config=None)


if __name__ == "__main__":
    serve()
