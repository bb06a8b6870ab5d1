import asyncio
import logging
import traceback
from contextlib import asynccontextmanager
from typing import Any, Callable, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, JSONResponse

from powa.core.errors import ConfigValidationError, ConfigWriteError, PowaError
from powa.models.schemas import HealthResponse
from powa.routes.runs import router as runs_router
from powa.services.process_runner import ProcessRegistry
from powa.settings import ServerSettings, load_settings

logger = logging.getLogger(__name__)


def _install_loop_handler(app: FastAPI) -> None:
    loop = asyncio.get_running_loop()

    def handle(loop: asyncio.AbstractEventLoop, context: Dict[str, Any]) -> None:
        loop.default_exception_handler(context)
        exc = context.get("exception")
        if exc is None:
            return
        logger.error("Unhandled error on the event loop, shutting down: %s", exc)
        app.state.registry.terminate_all()
        on_fatal: Optional[Callable[[], None]] = getattr(app.state, "on_fatal", None)
        if on_fatal is not None:
            on_fatal()

    loop.set_exception_handler(handle)


@asynccontextmanager
async def lifespan(app: FastAPI):
    _install_loop_handler(app)
    yield
    app.state.registry.terminate_all()


def create_app(
    settings: Optional[ServerSettings] = None,
    registry: Optional[ProcessRegistry] = None,
) -> FastAPI:
    """Build the app. Run it directly with `uvicorn --factory powa.main:create_app`."""
    app = FastAPI(title="POWA Dev Server", lifespan=lifespan)
    app.state.settings = settings or load_settings()
    app.state.registry = registry if registry is not None else ProcessRegistry()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(app.state.settings.cors_origins),
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(ConfigValidationError)
    async def validation_failed(request: Request, exc: ConfigValidationError):
        logger.info("Rejected config: %s", exc)
        return JSONResponse(status_code=400, content={"error": str(exc)})

    @app.exception_handler(ConfigWriteError)
    async def write_failed(request: Request, exc: ConfigWriteError):
        return JSONResponse(status_code=500, content={"error": str(exc)})

    @app.exception_handler(PowaError)
    async def run_failed(request: Request, exc: PowaError):
        logger.error("Run failed before streaming: %s", exc)
        return JSONResponse(status_code=500, content={"error": str(exc)})

    @app.exception_handler(Exception)
    async def unexpected(request: Request, exc: Exception):
        logger.error("Unexpected error handling %s: %s", request.url.path, exc)
        logger.error("".join(traceback.format_exception(exc)))
        return JSONResponse(status_code=500, content={"error": str(exc) or type(exc).__name__})

    @app.get("/health", response_model=HealthResponse)
    async def health():
        return HealthResponse(active_tests=len(app.state.registry))

    @app.get("/")
    async def index():
        index_file = app.state.settings.index_file
        if not index_file.is_file():
            return JSONResponse(status_code=404, content={"error": f"{index_file.name} not found"})
        return FileResponse(index_file)

    app.include_router(runs_router)
    return app
