import logging
import signal
import sys
from types import FrameType
from typing import Optional

import uvicorn

from powa.main import create_app
from powa.services.process_runner import ProcessRegistry
from powa.settings import ServerSettings, load_settings

logger = logging.getLogger(__name__)


class PowaServer(uvicorn.Server):
    """uvicorn server that stops running forge processes on SIGTERM/SIGINT."""

    def __init__(self, config: uvicorn.Config, registry: ProcessRegistry):
        super().__init__(config)
        self.registry = registry

    def handle_exit(self, sig: int, frame: Optional[FrameType]) -> None:
        if not self.should_exit:
            logger.info("Received %s, shutting down", signal.Signals(sig).name)
        self.registry.terminate_all()
        super().handle_exit(sig, frame)


def build_server(settings: ServerSettings) -> PowaServer:
    registry = ProcessRegistry()
    app = create_app(settings, registry)
    config = uvicorn.Config(
        app,
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
        timeout_graceful_shutdown=int(settings.shutdown_grace),
    )
    server = PowaServer(config, registry)
    app.state.on_fatal = lambda: server.handle_exit(signal.SIGTERM, None)
    return server


def main() -> None:
    try:
        settings = load_settings()
    except ValueError as e:
        print(f"Invalid configuration: {e}", file=sys.stderr)
        sys.exit(2)

    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )

    server = build_server(settings)
    logger.info("POWA dev server running at http://%s:%d", settings.host, settings.port)
    logger.info("Make sure %s is installed and on your PATH", settings.forge_bin)
    logger.info("Test project root: %s", settings.project_root)

    try:
        server.run()
    except Exception:
        logger.exception("POWA dev server crashed")
        server.registry.terminate_all()
        sys.exit(1)


if __name__ == "__main__":
    main()
