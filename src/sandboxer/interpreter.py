"""
Lua interpreter adapter built on lupa.

Everything that touches lupa directly lives here so the sandbox builder and
the playground controller only deal with ``LuaInterpreter`` operations and
the errors in ``sandboxer.errors``.
"""

from __future__ import annotations

import asyncio
import importlib
import re
from collections.abc import Callable, Mapping
from typing import Any

from sandboxer.config import LuaVersion
from sandboxer.debug import log_debug
from sandboxer.errors import InterpreterInitError, LuaExecutionError, LuaParseError

_LUPA_MODULES: dict[str, str] = {
    "default": "lupa",
    "lua51": "lupa.lua51",
    "lua52": "lupa.lua52",
    "lua53": "lupa.lua53",
    "lua54": "lupa.lua54",
    "luajit20": "lupa.luajit20",
    "luajit21": "lupa.luajit21",
}

_IDENTIFIER_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

# Lua strings are byte strings. They are decoded with surrogateescape so bytes
# that are not UTF-8 survive a round trip through the host unchanged.
_ENCODING = "utf-8"

# Turns a Python callable into a genuine Lua function. Metamethods such as
# __index only call real functions; anything else gets indexed instead.
_FUNCTION_WRAPPER = "function(f) return function(...) return f(...) end end"


def _deny_attribute_access(obj: object, attr_name: Any, is_setting: bool) -> str:
    raise AttributeError(f"access to Python attribute {attr_name!r} is not allowed")


def _encode(value: Any) -> Any:
    if isinstance(value, str):
        return value.encode(_ENCODING, "surrogateescape")
    return value


def _decode(value: Any) -> Any:
    if isinstance(value, bytes):
        return value.decode(_ENCODING, "surrogateescape")
    return value


def printable(text: str) -> str:
    """Replace bytes that were not valid UTF-8 with U+FFFD."""
    return text.encode(_ENCODING, "surrogateescape").decode(_ENCODING, "replace")


def _lua_error_text(exc: Exception) -> str:
    # Without a runtime encoding lupa decodes Lua error messages as Latin-1.
    message = str(exc)
    try:
        raw = message.encode("latin-1")
    except UnicodeEncodeError:
        return printable(message)
    return raw.decode(_ENCODING, "replace")


class LuaInterpreter:
    """
    One Lua state with its standard library loaded.

    Owned by exactly one run. Python objects that cross into Lua are opaque:
    attribute access on them is denied and lupa's ``python`` helper table is
    removed before any script runs.

    The runtime has no string encoding, so every Lua string reaches Python as
    bytes. All conversion happens in this class: callers always see ``str``.
    """

    def __init__(self, lua_version: LuaVersion = "default") -> None:
        module_name = _LUPA_MODULES[lua_version]
        try:
            module = importlib.import_module(module_name)
            runtime = module.LuaRuntime(
                encoding=None,
                source_encoding=_ENCODING,
                unpack_returned_tuples=True,
                register_eval=False,
                register_builtins=False,
                attribute_filter=_deny_attribute_access,
            )
        except Exception as exc:
            raise InterpreterInitError(
                f"Failed to initialize Lua runtime from {module_name}: {exc}"
            ) from exc

        self._module = module
        self._lua = runtime
        self._globals = runtime.globals()

        # Captured before user code runs; scripts may rebind the globals.
        self._tostring = self._globals[b"tostring"]
        self._setmetatable = self._globals[b"setmetatable"]
        self._getmetatable = self._globals[b"getmetatable"]
        self._next = self._globals[b"next"]
        self._rawget = self._globals[b"rawget"]
        self._rawset = self._globals[b"rawset"]
        self._wrap_function = runtime.eval(_FUNCTION_WRAPPER)

        self._globals[b"python"] = None
        log_debug(f"Created Lua runtime from {module_name}")

    @classmethod
    async def create(cls, lua_version: LuaVersion = "default") -> LuaInterpreter:
        """Build an interpreter without blocking the event loop."""
        return await asyncio.to_thread(cls, lua_version)

    # ------------------------------------------------------------------
    # Compile and call
    # ------------------------------------------------------------------

    def compile(self, source: str) -> Any:
        """Parse *source* into a callable chunk without running it."""
        try:
            return self._lua.compile(source)
        except self._module.LuaError as exc:
            raise LuaParseError(_lua_error_text(exc)) from exc

    def call(self, unit: Any) -> Any:
        """Run a compiled chunk against the current globals and return its results."""
        try:
            result = unit()
        except self._module.LuaError as exc:
            raise LuaExecutionError(_lua_error_text(exc)) from exc
        except Exception as exc:
            # Raised by a host callback and re-raised by lupa unchanged.
            raise LuaExecutionError(printable(str(exc)) or type(exc).__name__) from exc
        if isinstance(result, tuple):
            return tuple(_decode(item) for item in result)
        return _decode(result)

    # ------------------------------------------------------------------
    # Globals
    # ------------------------------------------------------------------

    # Raw access through Lua functions: lupa runs those in protected mode and
    # metatables a configuration script puts on _G do not apply.
    def get_global(self, name: str) -> Any:
        return _decode(self._rawget(self._globals, _encode(name)))

    def set_global(self, name: str, value: Any) -> None:
        """Bind *name*; ``None`` removes the binding."""
        self._rawset(self._globals, _encode(name), self.to_lua_value(value))

    def raw_get(self, table: Any, key: Any) -> Any:
        return _decode(self._rawget(table, _encode(key)))

    def raw_set(self, table: Any, key: Any, value: Any) -> None:
        self._rawset(table, _encode(key), self.to_lua_value(value))

    # ------------------------------------------------------------------
    # Values
    # ------------------------------------------------------------------

    def lua_type(self, value: Any) -> str | None:
        """Lua type name of a Lua-owned object, None for plain Python values."""
        return self._module.lua_type(value)

    def type_name(self, value: Any) -> str:
        """Equivalent of Lua's ``type()`` for any value crossing the boundary."""
        if value is None:
            return "nil"
        if isinstance(value, bool):
            return "boolean"
        if isinstance(value, (int, float)):
            return "number"
        if isinstance(value, (str, bytes)):
            return "string"
        return self.lua_type(value) or "userdata"

    def is_table(self, value: Any) -> bool:
        return self.lua_type(value) == "table"

    def to_host_value(self, value: Any) -> Any:
        """
        Convert a Lua value for use on the host side.

        Strings become ``str``. Tables become a dict of their top-level keys
        in enumeration order; nested tables are left as Lua references.
        """
        if self.is_table(value):
            return {_decode(key): _decode(item) for key, item in value.items()}
        return _decode(value)

    def to_lua_value(self, value: Any) -> Any:
        """Convert a host value for Lua. Mappings and lists become fresh tables."""
        if isinstance(value, Mapping):
            return self._lua.table_from(
                {_encode(key): self.to_lua_value(item) for key, item in value.items()}
            )
        if isinstance(value, (list, tuple)):
            return self._lua.table_from([self.to_lua_value(item) for item in value])
        return _encode(value)

    def new_table(self, fields: Mapping[str, Any] | None = None, *, metatable: Any = None) -> Any:
        table = self.to_lua_value(fields) if fields else self._lua.table()
        if metatable is not None:
            self._setmetatable(table, metatable)
        return table

    def function(self, func: Callable[..., Any]) -> Any:
        """Wrap a Python callable so Lua sees a plain ``function`` value."""

        def call_from_lua(*args: Any) -> Any:
            result = func(*(_decode(arg) for arg in args))
            if isinstance(result, tuple):
                return tuple(self.to_lua_value(item) for item in result)
            return self.to_lua_value(result)

        return self._wrap_function(call_from_lua)

    @property
    def next_function(self) -> Any:
        """Lua's primitive ``next``, as captured at startup."""
        return self._next

    def to_display_string(self, value: Any) -> str:
        """
        String form used by captured ``print``/``warn``.

        Plain tables (no metatable) are rendered structurally one level deep;
        everything else goes through Lua's ``tostring`` so ``__tostring``
        metamethods apply. Bytes that are not UTF-8 show as U+FFFD.
        """
        if isinstance(value, (str, bytes)):
            return printable(_decode(value))
        if self.is_table(value) and self._getmetatable(value) is None:
            return printable(self._render_table(value))
        return printable(_decode(self._tostring(value)))

    def _render_table(self, table: Any) -> str:
        parts: list[str] = []
        position = 1
        for key, item in table.items():
            key = _decode(key)
            rendered = self._render_item(item)
            if type(key) is int and key == position:
                parts.append(rendered)
                position += 1
            elif isinstance(key, str) and _IDENTIFIER_RE.match(key):
                parts.append(f"{key} = {rendered}")
            else:
                parts.append(f"[{self._render_item(key)}] = {rendered}")
        return "{" + ", ".join(parts) + "}"

    def _render_item(self, value: Any) -> str:
        value = _decode(value)
        if isinstance(value, str):
            return f'"{value}"'
        if self.is_table(value) and self._getmetatable(value) is None:
            return "{...}"
        return _decode(self._tostring(value))

    def close(self) -> None:
        """Drop references to the Lua state so it can be collected."""
        self._globals = None
        self._lua = None
        log_debug("Released Lua runtime")
