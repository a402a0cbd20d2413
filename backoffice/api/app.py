# api/app.py
import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from backoffice.api.routers.contests import router as contests_router
from backoffice.api.routers.standalone_winners import router as standalone_router
from backoffice.api.routers.stats import router as stats_router
from backoffice.api.routers.weekly import router as weekly_router
from backoffice.domain.errors import BackofficeError, NotFoundError, StateConflictError, ValidationError

logger = logging.getLogger(__name__)

API_PREFIX = "/api"


def _status_for(exc: BackofficeError) -> int:
    if isinstance(exc, ValidationError):
        return 422
    if isinstance(exc, StateConflictError):
        return 409
    if isinstance(exc, NotFoundError):
        return 404
    return 400


async def backoffice_error_handler(request: Request, exc: BackofficeError) -> JSONResponse:
    status = _status_for(exc)
    logger.info("%s %s -> %d %s: %s", request.method, request.url.path, status, type(exc).__name__, exc)
    return JSONResponse(
        status_code=status,
        content={"success": False, "error": str(exc), "code": type(exc).__name__},
    )


def create_app() -> FastAPI:
    app = FastAPI(title="Back office")
    app.add_exception_handler(BackofficeError, backoffice_error_handler)

    app.include_router(contests_router, prefix=API_PREFIX)
    app.include_router(weekly_router, prefix=API_PREFIX)
    app.include_router(standalone_router, prefix=API_PREFIX)
    app.include_router(stats_router, prefix=API_PREFIX)

    @app.get("/health")
    async def health():
        return {"success": True}

    return app
