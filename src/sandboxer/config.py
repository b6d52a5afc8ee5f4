"""
Configuration models for the sandbox engine.

``PlaygroundConfig`` holds host-side settings loaded from JSON.
``SandboxPolicy`` is the per-run policy read back from a configuration
script's globals.
"""

from __future__ import annotations

import json
import re
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator

from sandboxer.debug import log_debug

LuaVersion = Literal["default", "lua51", "lua52", "lua53", "lua54", "luajit20", "luajit21"]

_LUA_NAME_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def _validate_lua_name(val: str) -> str:
    if not _LUA_NAME_RE.match(val):
        raise ValueError(f"Invalid global name '{val}': must be a Lua identifier")
    return val


class PlaygroundConfig(BaseModel):
    stub_api_flag: str = Field(
        default="USE_ROBLOX_GLOBALS",
        description="Global the configuration script sets to request the stub API",
    )
    sandbox_config_global: str = Field(
        default="SANDBOX_CONFIG",
        description="Global table whose keys are copied into the sandbox",
    )
    remove_globals: list[str] = Field(
        default_factory=list,
        description="Extra globals removed after setup (loadstring, dofile and loadfile "
        "are always removed).",
    )
    lua_version: LuaVersion = Field(
        default="default",
        description="lupa backend module to run scripts with",
    )
    verbose: bool = Field(
        default=True,
        description="Emit progress info entries around the run",
    )
    max_output_entries: int | None = Field(
        default=None,
        ge=1,
        description="Keep only the most recent N output entries (default: unbounded)",
    )

    @field_validator("stub_api_flag", "sandbox_config_global")
    @classmethod
    def validate_global_name(cls, v: str) -> str:
        return _validate_lua_name(v)

    @field_validator("remove_globals")
    @classmethod
    def validate_global_names(cls, v: list[str]) -> list[str]:
        return [_validate_lua_name(name) for name in v]


class SandboxPolicy(BaseModel):
    use_stub_api: bool = Field(
        default=False,
        description="Whether the stub API library is installed",
    )
    overrides: dict[str, Any] = Field(
        default_factory=dict,
        description="Globals to assign in the sandbox, in enumeration order. "
        "Values are Lua values and tables are kept by reference.",
    )


def load_config(config_path: str | Path) -> PlaygroundConfig | None:
    """Load settings from a JSON file, returning None if missing or invalid."""
    path = Path(config_path).expanduser()
    if not path.exists():
        return None
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        return _parse_config_dict(data)
    except (OSError, ValueError) as exc:
        log_debug(f"Ignoring settings file {path}: {exc}", level="warn")
        return None


def load_config_from_string(raw: str) -> PlaygroundConfig | None:
    """Parse settings from a JSON string."""
    try:
        data = json.loads(raw)
        return _parse_config_dict(data)
    except ValueError as exc:
        log_debug(f"Ignoring settings string: {exc}", level="warn")
        return None


_CAMEL_RE = re.compile(r"([a-z0-9])([A-Z])")


def _camel_to_snake(name: str) -> str:
    return _CAMEL_RE.sub(r"\1_\2", name).lower()


def _parse_config_dict(data: dict) -> PlaygroundConfig:
    if not isinstance(data, dict):
        raise ValueError("Settings must be a JSON object")
    # Only top-level keys are field names; list values are global names and stay as-is.
    normalized = {_camel_to_snake(k): v for k, v in data.items()}
    return PlaygroundConfig.model_validate(normalized)
