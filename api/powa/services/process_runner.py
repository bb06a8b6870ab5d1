import asyncio
import logging
import os
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Set

from powa.core.errors import SpawnError
from powa.settings import ServerSettings

logger = logging.getLogger(__name__)

SCENARIO_TEST = "testScenario"
DISTRIBUTION_TEST = "testDistribution"


def _holdings_given(value: Any) -> bool:
    # null, false, 0 and "" mean "no holdings"; an empty object or array still counts
    if value is None or value is False or value == "":
        return False
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return value == value and value != 0
    return True


def select_test_name(config: Dict[str, Any]) -> str:
    """A config carrying userHoldings runs the per-user scenario test."""
    if _holdings_given(config.get("userHoldings")):
        return SCENARIO_TEST
    return DISTRIBUTION_TEST


def build_command(config: Dict[str, Any], settings: ServerSettings) -> List[str]:
    return [
        settings.forge_bin,
        "test",
        "--match-contract",
        settings.match_contract,
        "--match-test",
        select_test_name(config),
        settings.verbosity,
    ]


def build_env() -> Dict[str, str]:
    env = dict(os.environ)
    env["NO_COLOR"] = "1"
    return env


@dataclass(eq=False)
class RunHandle:
    process: asyncio.subprocess.Process
    test_name: str
    command: List[str]
    run_id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
    timer: Optional[asyncio.TimerHandle] = None

    @property
    def pid(self) -> int:
        return self.process.pid

    @property
    def alive(self) -> bool:
        return self.process.returncode is None

    def terminate(self) -> bool:
        """Send SIGTERM once if the process is still running."""
        if not self.alive:
            return False
        try:
            self.process.terminate()
        except ProcessLookupError:
            return False
        logger.info("Sent SIGTERM to run %s (pid %s)", self.run_id, self.pid)
        return True

    def cancel_timer(self) -> None:
        if self.timer is not None:
            self.timer.cancel()
            self.timer = None


class ProcessRegistry:
    """
    The runs whose process has been spawned but not yet finalized.

    Owned by one app instance. It is only consulted by /health and at
    shutdown; it does not cap how many runs can be in flight.
    """

    def __init__(self):
        self._handles: Set[RunHandle] = set()

    def add(self, handle: RunHandle) -> None:
        self._handles.add(handle)

    def discard(self, handle: RunHandle) -> None:
        self._handles.discard(handle)

    def __len__(self) -> int:
        return len(self._handles)

    def __contains__(self, handle: object) -> bool:
        return handle in self._handles

    def __iter__(self) -> Iterator[RunHandle]:
        return iter(list(self._handles))

    def terminate_all(self) -> int:
        count = 0
        for handle in self:
            if handle.terminate():
                count += 1
        if count:
            logger.info("Terminated %d running test process(es)", count)
        return count


async def spawn(
    config: Dict[str, Any],
    settings: ServerSettings,
    registry: ProcessRegistry,
) -> RunHandle:
    """Start forge for this config and register the handle."""
    command = build_command(config, settings)
    try:
        process = await asyncio.create_subprocess_exec(
            *command,
            cwd=str(settings.project_root),
            env=build_env(),
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except FileNotFoundError as e:
        logger.error("Test executable not found: %s", command[0])
        raise SpawnError(f"Test executable not found: {command[0]}") from e
    except OSError as e:
        logger.error("Failed to start %s: %s", command[0], e)
        raise SpawnError(f"Failed to start {command[0]}: {e}") from e

    handle = RunHandle(process=process, test_name=select_test_name(config), command=command)
    registry.add(handle)
    logger.info("Started run %s (pid %s): %s", handle.run_id, handle.pid, " ".join(command))
    return handle
