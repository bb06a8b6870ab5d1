import codecs
from typing import List, Literal

from powa.models.schemas import (
    CompleteEvent,
    ErrorEvent,
    OutputEvent,
    StartEvent,
    StreamEvent,
)

TERMINAL_TYPES = ("complete", "error")


def is_terminal(event: StreamEvent) -> bool:
    return event.type in TERMINAL_TYPES


def encode_sse(event: StreamEvent) -> str:
    """Serialize one event as a single SSE frame."""
    return f"data: {event.model_dump_json()}\n\n"


def split_lines(text: str) -> List[str]:
    """Split output text into lines, dropping blank ones."""
    lines = []
    for line in text.split("\n"):
        if line.endswith("\r"):
            line = line[:-1]
        if line.strip():
            lines.append(line)
    return lines


class LineBuffer:
    """
    Turns raw pipe chunks into complete lines.

    A chunk can end in the middle of a line (or a multi-byte character), so
    the unterminated tail is held back until the next chunk or flush().
    """

    def __init__(self):
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._tail = ""

    def feed(self, chunk: bytes) -> List[str]:
        text = self._tail + self._decoder.decode(chunk)
        head, sep, tail = text.rpartition("\n")
        if not sep:
            self._tail = text
            return []
        self._tail = tail
        return split_lines(head)

    def flush(self) -> List[str]:
        text = self._tail + self._decoder.decode(b"", final=True)
        self._tail = ""
        return split_lines(text)


def start() -> StartEvent:
    return StartEvent()


def output(stream: Literal["stdout", "stderr"], line: str) -> OutputEvent:
    return OutputEvent(type=stream, data=line)


def complete(code: int | None) -> CompleteEvent:
    return CompleteEvent(code=code)


def error(message: str) -> ErrorEvent:
    return ErrorEvent(error=message)
