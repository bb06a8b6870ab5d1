import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Tuple

STATIC_DIR = Path(__file__).resolve().parent / "static"


@dataclass(frozen=True)
class ServerSettings:
    host: str = "127.0.0.1"
    port: int = 3000
    project_root: Path = field(default_factory=Path.cwd)
    config_path: Path | None = None
    index_file: Path = STATIC_DIR / "powa-model.html"
    forge_bin: str = "forge"
    match_contract: str = "ParameterizedPOWATest"
    verbosity: str = "-vvv"
    test_timeout: float = 60.0
    shutdown_grace: float = 5.0
    log_level: str = "INFO"
    cors_origins: Tuple[str, ...] = ("*",)

    @property
    def resolved_config_path(self) -> Path:
        # forge reads the scenario from test/powa-config.json under the project
        if self.config_path is not None:
            return self.config_path
        return self.project_root / "test" / "powa-config.json"


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}")


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}")


def load_settings() -> ServerSettings:
    """Build ServerSettings from POWA_* environment variables."""
    project_root = Path(os.environ.get("POWA_PROJECT_ROOT") or Path.cwd()).resolve()
    config_path = os.environ.get("POWA_CONFIG_PATH")
    index_file = os.environ.get("POWA_INDEX_FILE")
    origins = os.environ.get("POWA_CORS_ORIGINS", "*")

    return ServerSettings(
        host=os.environ.get("POWA_HOST", "127.0.0.1"),
        port=_env_int("POWA_PORT", 3000),
        project_root=project_root,
        config_path=Path(config_path) if config_path else None,
        index_file=Path(index_file) if index_file else STATIC_DIR / "powa-model.html",
        forge_bin=os.environ.get("POWA_FORGE_BIN", "forge"),
        match_contract=os.environ.get("POWA_MATCH_CONTRACT", "ParameterizedPOWATest"),
        verbosity=os.environ.get("POWA_VERBOSITY", "-vvv"),
        test_timeout=_env_float("POWA_TEST_TIMEOUT", 60.0),
        shutdown_grace=_env_float("POWA_SHUTDOWN_GRACE", 5.0),
        log_level=os.environ.get("POWA_LOG_LEVEL", "INFO").upper(),
        cors_origins=tuple(o.strip() for o in origins.split(",") if o.strip()) or ("*",),
    )
