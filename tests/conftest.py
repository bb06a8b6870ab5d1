"""Pytest configuration and shared fixtures."""

from __future__ import annotations

import json
import sys
import textwrap

import pytest

from powa.services.process_runner import ProcessRegistry
from powa.settings import ServerSettings

# Stand-in for forge: echoes what it was started with, then exits 0.
ECHO_FORGE = """
import json, os, sys
print("args " + json.dumps(sys.argv[1:]), flush=True)
print("cwd " + os.getcwd(), flush=True)
print("no_color " + os.environ.get("NO_COLOR", ""), flush=True)
print("", flush=True)
print("warning: fake forge", file=sys.stderr, flush=True)
"""


@pytest.fixture
def project_root(tmp_path):
    root = tmp_path / "project"
    root.mkdir()
    return root


@pytest.fixture
def make_forge(tmp_path):
    """Write an executable python script that plays the part of forge."""

    def _make(body: str, name: str = "forge"):
        path = tmp_path / "bin" / name
        path.parent.mkdir(exist_ok=True)
        path.write_text(f"#!{sys.executable}\n" + textwrap.dedent(body))
        path.chmod(0o755)
        return path

    return _make


@pytest.fixture
def make_settings(project_root):
    def _make(forge, **overrides):
        values = {
            "project_root": project_root,
            "forge_bin": str(forge),
            "test_timeout": 10.0,
        }
        values.update(overrides)
        return ServerSettings(**values)

    return _make


@pytest.fixture
def echo_settings(make_forge, make_settings):
    return make_settings(make_forge(ECHO_FORGE))


@pytest.fixture
def registry():
    return ProcessRegistry()


@pytest.fixture
def sample_config():
    return {"revenueAmount": 1000, "epochs": [1, 2, 3]}


def parse_frames(body: str) -> list[dict]:
    """Split an SSE body into decoded event dicts."""
    events = []
    for frame in body.split("\n\n"):
        if not frame:
            continue
        assert frame.startswith("data: "), frame
        events.append(json.loads(frame[len("data: "):]))
    return events
