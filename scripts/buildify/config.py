#!/usr/bin/env python3
"""
Buildify configuration and tool lookup.
Shared across all buildify modules.
"""
import os
import shutil
from pathlib import Path
from typing import Optional

from .errors import ConfigurationError

# --- CONFIGURATION ---
TOOL_NAME = "buildify"
OUTPUT_DIR_NAME = "build"
LATEST_LINK_NAME = "latest"
STAGE_DIR_NAME = "stage"
DIST_DIR_NAME = "dist"

# Parent of the per-run workspace (falls back to tempfile's default, which honours TMPDIR)
TMPDIR_ENV = "BUILDIFY_TMPDIR"
TIMEOUT_ENV = "BUILDIFY_TOOL_TIMEOUT"

# --- CONSTANTS ---
SOURCE_TYPES = ("js", "css", "subtree", "copy")

# Executable name -> environment override
TOOLS = {
    "uglifyjs": "BUILDIFY_UGLIFYJS",
    "uglifycss": "BUILDIFY_UGLIFYCSS",
    "superpack": "BUILDIFY_SUPERPACK",
}
UGLIFYJS_FLAGS = ["-m", "-c"]
UGLIFYCSS_FLAGS = []

HARD_TIMEOUT_SECONDS = 600  # per adapter call


def get_tmp_parent() -> Optional[str]:
    """Directory for the workspace, or None for the platform default."""
    return os.environ.get(TMPDIR_ENV) or None


def get_tool_timeout() -> float:
    raw = os.environ.get(TIMEOUT_ENV)
    if not raw:
        return HARD_TIMEOUT_SECONDS
    try:
        value = float(raw)
    except ValueError:
        raise ConfigurationError(f"{TIMEOUT_ENV} must be a number of seconds, got {raw!r}")
    if value <= 0:
        raise ConfigurationError(f"{TIMEOUT_ENV} must be positive, got {raw!r}")
    return value


def find_tool(name: str, root: Path) -> str:
    """
    Resolve an external tool to an executable path.

    Lookup order: environment override, <root>/node_modules/.bin, PATH.
    """
    override = os.environ.get(TOOLS.get(name, ""), "")
    if override:
        if os.path.isfile(override) and os.access(override, os.X_OK):
            return override
        raise ConfigurationError(f"{TOOLS[name]}={override} is not an executable file")

    candidates = [root / "node_modules" / ".bin" / name, name]
    for c in candidates:
        found = shutil.which(str(c))
        if found:
            return found
    raise ConfigurationError(
        f"Required tool '{name}' not found in {root / 'node_modules' / '.bin'} or PATH"
    )
