import asyncio
import json
import logging
from pathlib import Path
from typing import Any, Dict

from powa.core.errors import ConfigWriteError

logger = logging.getLogger(__name__)


def _dump(config: Dict[str, Any]) -> str:
    # Same layout as JSON.stringify(config, null, 2), which the forge fixtures were written against
    return json.dumps(config, indent=2, ensure_ascii=False)


def _write(config: Dict[str, Any], path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(_dump(config), encoding="utf-8")


async def write_config(config: Dict[str, Any], path: Path) -> Path:
    """
    Persist a validated config where the test executable expects it.

    The file is overwritten on every run. Concurrent runs share it, so the
    last write before a spawn is what that run's process reads.
    """
    try:
        await asyncio.to_thread(_write, config, path)
    except OSError as e:
        logger.error("Failed to write config to %s: %s", path, e)
        raise ConfigWriteError(f"Failed to write config: {e}") from e
    logger.info("Wrote config to %s", path)
    return path


def read_config(path: Path) -> Dict[str, Any]:
    with open(path, encoding="utf-8") as f:
        return json.load(f)
