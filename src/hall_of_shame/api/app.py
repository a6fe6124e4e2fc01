"""FastAPI application factory."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from hall_of_shame.api.sessions import router as sessions_router
from hall_of_shame.app_logging import configure_logging
from hall_of_shame.containers import AppContainer
from hall_of_shame.domain.errors import (
    DuplicateVote,
    GameError,
    InvalidNickname,
    InvalidReason,
    InvalidTarget,
    SessionNotFound,
    StoreUnavailable,
    Unauthorized,
    UnknownPlayer,
)

_STATUS_BY_ERROR: dict[type[GameError], int] = {
    SessionNotFound: status.HTTP_404_NOT_FOUND,
    Unauthorized: status.HTTP_403_FORBIDDEN,
    UnknownPlayer: status.HTTP_403_FORBIDDEN,
    InvalidTarget: status.HTTP_400_BAD_REQUEST,
    InvalidReason: status.HTTP_400_BAD_REQUEST,
    InvalidNickname: status.HTTP_400_BAD_REQUEST,
    DuplicateVote: status.HTTP_409_CONFLICT,
}


def create_app(container: AppContainer) -> FastAPI:
    """Create a FastAPI app configured with dependencies."""
    configure_logging()
    logger = logging.getLogger(__name__)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        await app.state.container.close_resources()

    app = FastAPI(lifespan=lifespan)
    app.state.container = container

    app.include_router(sessions_router)

    @app.exception_handler(GameError)
    async def handle_game_error(request: Request, exc: GameError) -> JSONResponse:
        status_code = _STATUS_BY_ERROR.get(type(exc), status.HTTP_409_CONFLICT)
        logger.info("Rejected %s %s: %s", request.method, request.url.path, exc.kind)
        return JSONResponse(
            status_code=status_code,
            content={"error": exc.kind, "detail": str(exc), "retryable": False},
        )

    @app.exception_handler(StoreUnavailable)
    async def handle_store_error(
        request: Request, exc: StoreUnavailable
    ) -> JSONResponse:
        logger.error(
            "Store failure on %s %s",
            request.method,
            request.url.path,
            exc_info=exc,
        )
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={
                "error": exc.kind,
                "detail": "Something went wrong. Please try again.",
                "retryable": True,
            },
        )

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Simple health check endpoint."""
        return {"status": "ok"}

    return app
