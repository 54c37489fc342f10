"""FastAPI application entrypoint."""
from __future__ import annotations

import logging
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from .api import router
from .clients import CatalogClient, ExecutionClient
from .models import BAD_INPUT, ErrEnvelope, ErrorBody
from .services import AssetDirectory, ConversionEngine, SubmissionController
from .settings import settings


logger = logging.getLogger(settings.APP_NAME)


def build_engine() -> ConversionEngine:
    directory = AssetDirectory(CatalogClient())
    submissions = SubmissionController(ExecutionClient())
    return ConversionEngine(directory, submissions)


def create_app(engine: Optional[ConversionEngine] = None) -> FastAPI:
    app = FastAPI(title=settings.APP_NAME)
    app.state.engine = engine or build_engine()
    app.include_router(router)

    @app.on_event("startup")
    async def startup() -> None:
        logging.basicConfig(level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))
        logger.info(f"Starting {settings.APP_NAME}")
        if not app.state.engine.directory.loaded:
            await app.state.engine.load_catalog()

    @app.on_event("shutdown")
    async def shutdown() -> None:
        engine = app.state.engine
        for client in (engine.directory.source, engine.submissions.execution):
            close = getattr(client, "close", None)
            if close is not None:
                await close()

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(_: Request, exc: RequestValidationError):
        payload = ErrEnvelope(
            error=ErrorBody(
                code=BAD_INPUT,
                message="invalid input",
                details={"errors": exc.errors()},
            )
        )
        return JSONResponse(status_code=400, content=jsonable_encoder(payload))

    @app.get("/health")
    async def health() -> dict[str, str | bool]:
        return {"ok": True, "status": "healthy"}

    return app


app = create_app()


__all__ = ["app", "create_app"]


if __name__ == "__main__":
    uvicorn.run(
        "token_swap.main:app",
        host=settings.HOST,
        port=settings.PORT,
        log_level=settings.LOG_LEVEL.lower(),
    )
