"""Per-request run coordination.

A RunSession owns one forge process from spawn to its terminal event. Output
lines, process exit, spawn failure, the timeout timer and client disconnect
all feed into the session. Only the first of the terminal paths takes effect:
it clears the timer, drops the handle from the registry and (except for a
disconnect) queues the single terminal event.
"""

import asyncio
import enum
import logging
from typing import Any, AsyncIterator, Dict, Literal, Optional

from powa.core import events
from powa.core.errors import RunTimeoutError, SpawnError
from powa.models.schemas import StreamEvent
from powa.services.process_runner import ProcessRegistry, RunHandle, spawn
from powa.settings import ServerSettings

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024


class RunState(enum.Enum):
    PENDING = "pending"
    RUNNING = "running"
    TERMINATED = "terminated"


class RunSession:
    def __init__(
        self,
        config: Dict[str, Any],
        settings: ServerSettings,
        registry: ProcessRegistry,
    ):
        self.config = config
        self.settings = settings
        self.registry = registry
        self.state = RunState.PENDING
        self.handle: Optional[RunHandle] = None
        self._queue: "asyncio.Queue[StreamEvent]" = asyncio.Queue()
        self._watcher: Optional["asyncio.Task[None]"] = None

    @property
    def terminated(self) -> bool:
        return self.state is RunState.TERMINATED

    async def events(self) -> AsyncIterator[str]:
        """
        Yield SSE frames for this run: start, output lines, then exactly one
        terminal event. Closing the generator early counts as a disconnect.
        """
        try:
            yield events.encode_sse(events.start())
            await self.launch()
            while True:
                event = await self._queue.get()
                yield events.encode_sse(event)
                if events.is_terminal(event):
                    break
        finally:
            self.abort()

    async def launch(self) -> None:
        if self.state is not RunState.PENDING:
            return
        try:
            handle = await spawn(self.config, self.settings, self.registry)
        except SpawnError as e:
            self._finalize(events.error(str(e)))
            return

        self.handle = handle
        if self.terminated:
            # disconnected while the process was being created
            handle.terminate()
            self.registry.discard(handle)
            return

        self.state = RunState.RUNNING
        loop = asyncio.get_running_loop()
        handle.timer = loop.call_later(self.settings.test_timeout, self._on_timeout)
        self._watcher = asyncio.create_task(self._watch(handle))

    def abort(self) -> None:
        """Client is gone: stop the process without emitting anything."""
        if self.terminated:
            return
        self.state = RunState.TERMINATED
        if self.handle is None:
            return
        logger.info("Client disconnected from run %s, cleaning up", self.handle.run_id)
        self.handle.cancel_timer()
        self.handle.terminate()
        self.registry.discard(self.handle)

    def _emit(self, event: StreamEvent) -> None:
        if self.terminated:
            logger.debug("Dropping %s event for finished run", event.type)
            return
        self._queue.put_nowait(event)

    def _finalize(self, event: StreamEvent) -> bool:
        if self.terminated:
            return False
        self.state = RunState.TERMINATED
        if self.handle is not None:
            self.handle.cancel_timer()
            self.registry.discard(self.handle)
        self._queue.put_nowait(event)
        return True

    def _on_timeout(self) -> None:
        if self.terminated or self.handle is None:
            return
        self.handle.timer = None
        exc = RunTimeoutError(self.settings.test_timeout)
        logger.warning("Run %s: %s", self.handle.run_id, exc)
        self.handle.terminate()
        self._finalize(events.error(str(exc)))

    async def _pump(self, stream: asyncio.StreamReader, name: Literal["stdout", "stderr"]) -> None:
        buf = events.LineBuffer()
        while True:
            chunk = await stream.read(CHUNK_SIZE)
            if not chunk:
                break
            for line in buf.feed(chunk):
                self._emit(events.output(name, line))
        for line in buf.flush():
            self._emit(events.output(name, line))

    async def _watch(self, handle: RunHandle) -> None:
        process = handle.process
        try:
            await asyncio.gather(
                self._pump(process.stdout, "stdout"),
                self._pump(process.stderr, "stderr"),
            )
            code = await process.wait()
        except Exception as e:
            logger.exception("Run %s failed while reading output", handle.run_id)
            handle.terminate()
            self._finalize(events.error(str(e) or type(e).__name__))
            return

        logger.info("Run %s exited with code %s", handle.run_id, code)
        self._finalize(events.complete(code))
