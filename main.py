# main.py
from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from adapters.entry.http.views.oracles_view import router as oracles_router
from adapters.entry.http.views.provider_view import router as provider_router
from adapters.entry.http.views.rules_view import router as rules_router
from adapters.entry.http.views.webhooks_view import router as webhooks_router
from adapters.external.database.mongo_client import close_mongo_client
from adapters.external.runtime import ensure_indexes, get_runtime_flags, get_runtime_settings

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    FastAPI lifespan context.

    On startup makes sure storage indexes exist (MongoDB backend) before
    handling traffic; on shutdown releases the Mongo client.
    """
    settings = get_runtime_settings()
    logger.info(
        "Starting payments core (env=%s, storage=%s, flags=%s)",
        settings.ENV,
        settings.STORAGE_BACKEND,
        get_runtime_flags().as_dict(),
    )
    if settings.STORAGE_BACKEND == "mongo":
        ensure_indexes()
    yield
    if settings.STORAGE_BACKEND == "mongo":
        close_mongo_client()


async def _request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(status_code=400, content={"detail": jsonable_encoder(exc.errors())})


def create_app() -> FastAPI:
    """
    Application factory for the payments core API.
    """
    settings = get_runtime_settings()
    logging.basicConfig(level=settings.LOG_LEVEL.upper(), format=LOG_FORMAT)

    app = FastAPI(
        title="Payments Core API",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(RequestValidationError, _request_validation_handler)

    app.include_router(rules_router, prefix="/api")
    app.include_router(oracles_router, prefix="/api")
    app.include_router(provider_router, prefix="/api")
    app.include_router(webhooks_router, prefix="/api")

    return app


app = create_app()
