from fastapi import APIRouter, Request
from fastapi.responses import StreamingResponse
from starlette.requests import ClientDisconnect
from starlette.types import Receive, Scope, Send
import logging

from powa.core.lifecycle import RunSession
from powa.core.validation import parse_body, validate_config
from powa.models.schemas import ErrorResponse
from powa.services.config_store import write_config

logger = logging.getLogger(__name__)

router = APIRouter(tags=["runs"])

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


class RunEventStream(StreamingResponse):
    """SSE response bound to one RunSession; always cleans the session up."""

    def __init__(self, session: RunSession):
        super().__init__(session.events(), media_type="text/event-stream", headers=SSE_HEADERS)
        self.session = session

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        try:
            await super().__call__(scope, receive, send)
        except (OSError, ClientDisconnect) as e:
            logger.info("Stream write failed, client went away: %s", e)
        finally:
            self.session.abort()


ERROR_RESPONSES = {
    400: {"model": ErrorResponse, "description": "Invalid configuration"},
    500: {"model": ErrorResponse, "description": "Config could not be written"},
}


@router.post("/run-test", responses=ERROR_RESPONSES)
async def run_test(request: Request):
    settings = request.app.state.settings
    registry = request.app.state.registry

    config = validate_config(parse_body(await request.body()))
    await write_config(config, settings.resolved_config_path)

    session = RunSession(config, settings, registry)
    return RunEventStream(session)
