from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from docshare.apps.api.deps import get_notification_dispatcher
from docshare.apps.api.errors import (
    cursor_exception_handler,
    http_exception_handler,
    unhandled_exception_handler,
    validation_exception_handler,
)
from docshare.apps.api.response import API_VERSION, REQUEST_ID_HEADER, request_id_for
from docshare.apps.api.routes.documents import router as documents_router
from docshare.apps.api.routes.health import router as health_router
from docshare.core.config import get_settings
from docshare.core.logging import configure_logging
from docshare.services.cursors import CursorError


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    yield
    # Let in-flight notifications finish before the loop closes.
    await get_notification_dispatcher().drain()


def create_app() -> FastAPI:
    configure_logging()
    app = FastAPI(title=f"{get_settings().app_name} API", lifespan=lifespan)

    @app.middleware("http")
    async def attach_request_id(request: Request, call_next):  # type: ignore[no-untyped-def]
        request_id = request_id_for(request)
        response = await call_next(request)
        response.headers.setdefault(REQUEST_ID_HEADER, request_id)
        return response

    # FastAPI's HTTPException subclasses Starlette's; both need the envelope.
    for exc_class in (StarletteHTTPException, HTTPException):
        app.add_exception_handler(exc_class, http_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, validation_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(CursorError, cursor_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, unhandled_exception_handler)

    for router in (documents_router, health_router):
        app.include_router(router, prefix=f"/{API_VERSION}")
    return app


app = create_app()
