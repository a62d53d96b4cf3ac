"""Runtime executable resolution helpers.

Responsibilities:
- Resolve `ffplay`/`ffprobe` with explicit override, bundled, then PATH precedence.
- Support frozen app layouts (for example PyInstaller) and local development runs.
"""

from __future__ import annotations

import os
from pathlib import Path
import shutil
import sys


def resolve_executable(command_name: str) -> str:
    """Resolve an executable path for an external media tool.

    Resolution order:
    1. `READALONG_<TOOL>_PATH` environment override (for example `READALONG_FFPLAY_PATH`).
    2. Bundled app directories (`./bin/<tool>` then `./<tool>` from app root).
    3. System `PATH`.
    4. Raw command name, letting subprocess raise its native missing-binary error.
    """

    normalized = command_name.strip()
    if not normalized:
        return command_name

    override = os.environ.get(f"READALONG_{normalized.upper().removesuffix('.EXE')}_PATH", "").strip()
    if override:
        return override

    app_root = _app_root()
    for name in _candidate_names(normalized):
        for candidate in (app_root / "bin" / name, app_root / name):
            if candidate.is_file():
                return str(candidate)

    return shutil.which(normalized) or normalized


def _candidate_names(command_name: str) -> tuple[str, ...]:
    if command_name.lower().endswith(".exe"):
        return (command_name,)
    return (command_name, f"{command_name}.exe")


def _app_root() -> Path:
    """Return the directory a frozen executable runs from, or the project root."""

    if getattr(sys, "frozen", False):
        return Path(sys.executable).resolve().parent
    return Path(__file__).resolve().parent.parent
