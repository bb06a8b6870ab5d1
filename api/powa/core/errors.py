class PowaError(Exception):
    """Base class for errors raised while handling a test run."""


class ConfigValidationError(PowaError):
    """The request body is not a usable simulation config (HTTP 400)."""


class ConfigWriteError(PowaError, OSError):
    """The config could not be persisted for the test executable (HTTP 500)."""


class SpawnError(PowaError):
    """The test executable could not be started."""


class RunTimeoutError(PowaError, TimeoutError):
    """The test executable ran past its time budget."""

    def __init__(self, seconds: float):
        self.seconds = seconds
        super().__init__(f"Test timed out after {seconds:g} seconds")
