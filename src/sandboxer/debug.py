"""Debug logging utilities for the sandbox engine."""

from __future__ import annotations

import os
import sys


def log_debug(message: str, *, level: str = "info") -> None:
    """
    Log a debug message to stderr when SANDBOXER_DEBUG is set.

    Uses stderr so run output on stdout stays clean.
    """
    if not os.environ.get("SANDBOXER_DEBUG"):
        return

    prefix = "[SandboxerDebug]"
    if level in ("error", "warn"):
        prefix = f"{prefix} {level.upper()}:"
    print(f"{prefix} {message}", file=sys.stderr)
