"""
Sandbox builder.

Turns the globals left behind by a configuration script into the namespace
an untrusted script runs under.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from sandboxer.config import PlaygroundConfig, SandboxPolicy
from sandboxer.debug import log_debug
from sandboxer.errors import SandboxSetupError
from sandboxer.interpreter import LuaInterpreter
from sandboxer.output import OutputKind
from sandboxer.stub_api import install_stub_api

OutputSink = Callable[[str, OutputKind], Any]

# Loaders that would run code the sandbox never sees. Removed in every run.
ALWAYS_REMOVED_GLOBALS: tuple[str, ...] = ("loadstring", "dofile", "loadfile")

SHADOWED_GLOBAL_TABLES: tuple[str, ...] = ("_G", "shared")


class SandboxBuilder:
    """
    Applies the sandbox setup steps to one interpreter, in this order:

    1. capturing ``print``
    2. capturing ``warn``
    3. stub API, when the configuration flag is truthy
    4. overrides copied from the configuration table
    5. a fresh table bound to ``_G`` and ``shared``
    6. removal of code-loading primitives

    Overrides run after the stub API, so a configuration table entry always
    wins over a stub global of the same name.
    """

    def __init__(
        self,
        interpreter: LuaInterpreter,
        emit: OutputSink,
        config: PlaygroundConfig | None = None,
    ) -> None:
        self._interp = interpreter
        self._emit = emit
        self._config = config or PlaygroundConfig()

    def build(self) -> SandboxPolicy:
        """Run every setup step. Raises SandboxSetupError on any failure."""
        try:
            self.install_output_capture()
            policy = self.read_policy()
            if policy.use_stub_api:
                if self._config.verbose:
                    self._emit("Adding stub Roblox globals...", "info")
                install_stub_api(self._interp)
            self.apply_overrides(policy)
            self.shadow_global_table()
            self.remove_unsafe_globals()
        except SandboxSetupError:
            raise
        except Exception as exc:
            raise SandboxSetupError(str(exc) or type(exc).__name__) from exc
        return policy

    def install_output_capture(self) -> None:
        self._interp.set_global("print", self._interp.function(self._capture("normal")))
        self._interp.set_global("warn", self._interp.function(self._capture("warning")))

    def _capture(self, kind: OutputKind) -> Callable[..., None]:
        def capture(*args: Any) -> None:
            text = "\t".join(self._interp.to_display_string(arg) for arg in args)
            self._emit(text, kind)

        return capture

    def read_policy(self) -> SandboxPolicy:
        """Extract the policy from the globals the configuration script left behind."""
        flag = self._interp.get_global(self._config.stub_api_flag)
        # Lua truthiness: only nil and false are falsy.
        use_stub_api = flag is not None and flag is not False

        overrides: dict[str, Any] = {}
        table_name = self._config.sandbox_config_global
        table = self._interp.get_global(table_name)
        if self._interp.is_table(table):
            for key, value in self._interp.to_host_value(table).items():
                if not isinstance(key, str):
                    log_debug(f"Skipping non-string {table_name} key: {key!r}", level="warn")
                    continue
                overrides[key] = value
        elif table is not None:
            log_debug(
                f"{table_name} is a {self._interp.type_name(table)}, not a table; ignoring",
                level="warn",
            )

        log_debug(
            f"Sandbox policy: use_stub_api={use_stub_api}, overrides={list(overrides)}"
        )
        return SandboxPolicy(use_stub_api=use_stub_api, overrides=overrides)

    def apply_overrides(self, policy: SandboxPolicy) -> None:
        for name, value in policy.overrides.items():
            self._interp.set_global(name, value)

    def shadow_global_table(self) -> None:
        shadow = self._interp.new_table()
        for name in SHADOWED_GLOBAL_TABLES:
            self._interp.set_global(name, shadow)

    def remove_unsafe_globals(self) -> None:
        for name in (*ALWAYS_REMOVED_GLOBALS, *self._config.remove_globals):
            self._interp.set_global(name, None)
