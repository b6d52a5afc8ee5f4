"""
py-sandboxer: Lua sandbox playground

Runs a configuration script that declares what an untrusted Lua script may
use, builds the restricted global namespace from that declaration and runs
the untrusted script inside it, capturing its output.
"""

__version__ = "0.1.0"

from sandboxer.config import PlaygroundConfig, SandboxPolicy
from sandboxer.errors import (
    InterpreterInitError,
    LuaExecutionError,
    LuaParseError,
    SandboxerError,
    SandboxSetupError,
    StubApiError,
)
from sandboxer.output import OutputEntry, OutputStore
from sandboxer.playground import Playground, RunOutcome

__all__ = [
    "__version__",
    "Playground",
    "RunOutcome",
    "PlaygroundConfig",
    "SandboxPolicy",
    "OutputEntry",
    "OutputStore",
    "SandboxerError",
    "InterpreterInitError",
    "LuaParseError",
    "LuaExecutionError",
    "SandboxSetupError",
    "StubApiError",
]
