"""FastAPI application factory."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from cookbook_matcher.api.routes import router
from cookbook_matcher.app_logging import configure_logging
from cookbook_matcher.containers import AppContainer
from cookbook_matcher.domain.errors import (
    CookbookMatcherError,
    InvalidStateError,
    JobConflictError,
    NotFoundError,
    PreconditionError,
    RetryExhaustedError,
    SelectionValidationError,
)

_STATUS_BY_ERROR: list[tuple[type[CookbookMatcherError], int]] = [
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (JobConflictError, status.HTTP_409_CONFLICT),
    (InvalidStateError, status.HTTP_400_BAD_REQUEST),
    (RetryExhaustedError, status.HTTP_400_BAD_REQUEST),
    (SelectionValidationError, status.HTTP_400_BAD_REQUEST),
    (PreconditionError, status.HTTP_400_BAD_REQUEST),
]
_CONFLICT_CODES = {"LOOKUP_IN_PROGRESS"}


def error_status(exc: CookbookMatcherError) -> int:
    """Map a domain error to its HTTP status code."""
    if exc.code in _CONFLICT_CODES:
        return status.HTTP_409_CONFLICT
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return status_code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def create_app(container: AppContainer) -> FastAPI:
    """Create a FastAPI app configured with dependencies."""
    configure_logging()
    logger = logging.getLogger(__name__)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        state_container: AppContainer = app.state.container
        if state_container.settings.run_workers:
            await state_container.worker.start()
            await state_container.reaper.start()
        yield
        await state_container.worker.stop()
        await state_container.reaper.stop()
        await state_container.close_resources()

    app = FastAPI(lifespan=lifespan)
    app.state.container = container
    app.include_router(router)

    @app.exception_handler(CookbookMatcherError)
    async def handle_domain_error(
        request: Request, exc: CookbookMatcherError
    ) -> JSONResponse:
        status_code = error_status(exc)
        if status_code >= status.HTTP_500_INTERNAL_SERVER_ERROR:
            logger.error("Request failed: path=%s code=%s", request.url.path, exc.code)
        return JSONResponse(
            status_code=status_code,
            content={
                "success": False,
                "error": {"code": exc.code, "message": exc.message},
            },
        )

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Simple health check endpoint."""
        return {"status": "ok"}

    return app
