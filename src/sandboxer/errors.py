"""Exception hierarchy for the sandbox engine."""

from __future__ import annotations


class SandboxerError(Exception):
    """Base class for every error raised by the sandbox engine."""


class InterpreterInitError(SandboxerError):
    """The Lua runtime could not be constructed. No run can begin."""


class LuaParseError(SandboxerError):
    """Source text failed to compile. The message is the Lua diagnostic."""


class LuaExecutionError(SandboxerError):
    """A compiled chunk raised while running."""


class SandboxSetupError(SandboxerError):
    """Stub API installation or policy application failed."""


class StubApiError(SandboxerError):
    """Invalid use of a stub object from Lua."""
