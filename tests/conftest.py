"""Shared pytest fixtures for the test suite."""

from __future__ import annotations

from collections.abc import Iterator
from typing import Any

import pytest

from sandboxer.config import PlaygroundConfig
from sandboxer.interpreter import LuaInterpreter
from sandboxer.playground import Playground
from sandboxer.stub_api import StubApi, install_stub_api


def run_lua(interpreter: LuaInterpreter, source: str) -> Any:
    """Compile and run *source*, returning whatever the chunk returns."""
    return interpreter.call(interpreter.compile(source))


@pytest.fixture
def interpreter() -> Iterator[LuaInterpreter]:
    lua = LuaInterpreter()
    yield lua
    lua.close()


@pytest.fixture
def stub_api(interpreter: LuaInterpreter) -> StubApi:
    """Interpreter with the stub API installed."""
    return install_stub_api(interpreter)


@pytest.fixture
def quiet_playground() -> Playground:
    """Playground without the progress transcript, so entries are only script output."""
    return Playground(PlaygroundConfig(verbose=False))


@pytest.fixture
def sample_settings() -> dict:
    """Sample settings as they would appear in a JSON settings file."""
    return {
        "stubApiFlag": "USE_STUBS",
        "sandboxConfigGlobal": "POLICY",
        "removeGlobals": ["load", "require"],
        "verbose": False,
    }
