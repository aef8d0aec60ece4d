import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from heatlog import __version__
from heatlog.api import annotations, heats, logs
from heatlog.core.config import Settings, settings as default_settings
from heatlog.core.errors import HeatLogError
from heatlog.core.logger import REQUEST_ID_HEADER, bind_request_id, clear_request_id, setup_logging
from heatlog.db.base import Database

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    # Startup
    logger.info("Starting up heat log backend...")
    await app.state.database.connect()
    yield
    # Shutdown
    logger.info("Shutting down heat log backend...")
    await app.state.database.dispose()


def _validation_message(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid request"
    err = errors[0]
    loc = ".".join(str(p) for p in err.get("loc", ()) if p != "body")
    return f"{loc}: {err.get('msg')}" if loc else str(err.get("msg"))


def create_app(config: Settings | None = None) -> FastAPI:
    """
    Build the API around one explicitly constructed store client.
    """
    config = config or default_settings
    setup_logging(config)

    app = FastAPI(title="Heat Log API", version=__version__, lifespan=lifespan)
    app.state.settings = config
    app.state.database = Database(config)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_credentials="*" not in config.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def tag_requests(request: Request, call_next):
        request_id = bind_request_id(request.headers.get(REQUEST_ID_HEADER))
        try:
            response = await call_next(request)
            logger.info("%s %s -> %s", request.method, request.url.path, response.status_code)
            response.headers[REQUEST_ID_HEADER] = request_id
            return response
        finally:
            clear_request_id()

    @app.exception_handler(HeatLogError)
    async def heatlog_error_handler(request: Request, exc: HeatLogError):
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
        return JSONResponse(status_code=exc.status_code, content={"error": exc.message})

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(status_code=400, content={"error": _validation_message(exc)})

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception(f"Unhandled error on {request.method} {request.url.path}")
        return JSONResponse(status_code=500, content={"error": "Internal server error"})

    app.include_router(heats.router, prefix="/api")
    app.include_router(logs.router, prefix="/api")
    app.include_router(annotations.router, prefix="/api")

    @app.get("/health")
    async def health_check():
        return {"status": "ok", "version": __version__}

    return app


app = create_app()


def run() -> None:
    import uvicorn

    uvicorn.run(app, host=default_settings.host, port=default_settings.port, log_config=None)


if __name__ == "__main__":
    run()
