"""
Execution controller: runs a configuration script, builds the sandbox from
what it declared, then runs the untrusted script inside it.

Usage::

    playground = Playground()
    outcome = await playground.run(config_source, script_source)
    for entry in playground.output.get_entries():
        print(entry.kind, entry.text)
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

from sandboxer.config import PlaygroundConfig
from sandboxer.debug import log_debug
from sandboxer.errors import InterpreterInitError, SandboxerError
from sandboxer.interpreter import LuaInterpreter
from sandboxer.output import OutputKind, OutputStore
from sandboxer.sandbox import SandboxBuilder

RunPhase = Literal["config-parse", "config-exec", "sandbox-setup", "script-parse", "script-exec"]

PHASE_LABELS: dict[str, str] = {
    "config-parse": "Config parse error",
    "config-exec": "Config execution error",
    "sandbox-setup": "Sandbox setup error",
    "script-parse": "Script parse error",
    "script-exec": "Script execution error",
}

BANNER = "=== Lua Sandboxer Playground ==="
SUCCESS_MESSAGE = "✓ Script executed successfully"


@dataclass(frozen=True)
class RunOutcome:
    status: Literal["success", "failed"]
    phase: RunPhase | None = None
    message: str | None = None

    @classmethod
    def success(cls) -> RunOutcome:
        return cls("success")

    @classmethod
    def failed(cls, phase: RunPhase, message: str) -> RunOutcome:
        return cls("failed", phase, message)

    @property
    def ok(self) -> bool:
        return self.status == "success"


class Playground:
    """
    Runs configuration/script pairs, one fresh interpreter per run.

    Output from every run is appended to the same ``OutputStore``; only
    ``clear_output`` removes entries.
    """

    def __init__(self, config: PlaygroundConfig | None = None) -> None:
        self._config = config or PlaygroundConfig()
        self._output = OutputStore(max_size=self._config.max_output_entries)
        self._active_runs = 0

    @property
    def config(self) -> PlaygroundConfig:
        return self._config

    @property
    def output(self) -> OutputStore:
        return self._output

    @property
    def is_running(self) -> bool:
        return self._active_runs > 0

    def clear_output(self) -> None:
        if self.is_running:
            raise RuntimeError("Cannot clear output while a run is in progress")
        self._output.clear()

    async def run(self, config_source: str, script_source: str) -> RunOutcome:
        """
        Execute both phases and return the terminal outcome.

        Raises InterpreterInitError if no interpreter can be created; every
        other failure is reported as a failed outcome plus one error entry.
        """
        self._active_runs += 1
        try:
            try:
                interpreter = await LuaInterpreter.create(self._config.lua_version)
            except InterpreterInitError as exc:
                log_debug(str(exc), level="error")
                raise
            try:
                return self._run_phases(interpreter, config_source, script_source)
            finally:
                interpreter.close()
        finally:
            self._active_runs -= 1

    def _run_phases(
        self, interpreter: LuaInterpreter, config_source: str, script_source: str
    ) -> RunOutcome:
        builder = SandboxBuilder(interpreter, self._output.add, self._config)
        in_output_section = False
        phase: RunPhase = "config-parse"

        self._info(BANNER)
        self._info("", kind="normal")
        try:
            self._info("Loading configuration script...")
            builder.install_output_capture()
            log_debug("Phase: config-parse")
            unit = interpreter.compile(config_source)

            phase = "config-exec"
            log_debug("Phase: config-exec")
            interpreter.call(unit)

            phase = "sandbox-setup"
            log_debug("Phase: sandbox-setup")
            self._info("Setting up sandbox environment...")
            builder.build()

            phase = "script-parse"
            log_debug("Phase: script-parse")
            self._info("Running sandboxed script...")
            self._info("", kind="normal")
            self._info("--- Output ---")
            in_output_section = True
            unit = interpreter.compile(script_source)

            phase = "script-exec"
            log_debug("Phase: script-exec")
            interpreter.call(unit)
        except SandboxerError as exc:
            message = str(exc)
            log_debug(f"Run failed in {phase}: {message}", level="error")
            if in_output_section:
                self._end_output_section()
            self._output.add(f"✗ {PHASE_LABELS[phase]}: {message}", "error")
            return RunOutcome.failed(phase, message)

        self._end_output_section()
        self._output.add(SUCCESS_MESSAGE, "success")
        log_debug("Run finished successfully")
        return RunOutcome.success()

    def _end_output_section(self) -> None:
        self._info("--- End Output ---")
        self._info("", kind="normal")

    def _info(self, text: str, *, kind: OutputKind = "info") -> None:
        if self._config.verbose:
            self._output.add(text, kind)
