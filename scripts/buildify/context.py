#!/usr/bin/env python3
"""
Build context and versioning.

Resolves a build id into build/<id>/{stage,dist}, owns the per-run temp
workspace and keeps the build/latest symlink pointing at the current id.
"""
import os
import shutil
import sys
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional

from . import config
from .errors import BuildIOError, ConfigurationError, UserAbort
from .log import logger

# "latest" is the symlink and buildify.log the global log, both in build/
RESERVED_IDS = {config.LATEST_LINK_NAME, f"{config.TOOL_NAME}.log", ".", ".."}


# ----------------------------
# Build Context
# ----------------------------

@dataclass(frozen=True)
class BuildContext:
    build_id: str
    root: Path
    output_root: Path
    workspace: Path
    compress: bool = True
    verbose: bool = False

    @property
    def build_dir(self) -> Path:
        return self.output_root / self.build_id

    @property
    def stage_dir(self) -> Path:
        return self.build_dir / config.STAGE_DIR_NAME

    @property
    def dist_dir(self) -> Path:
        return self.build_dir / config.DIST_DIR_NAME

    @property
    def log_file(self) -> Path:
        return self.build_dir / f"{config.TOOL_NAME}.log"

    @property
    def latest_link(self) -> Path:
        return self.output_root / config.LATEST_LINK_NAME

    @classmethod
    def create(
        cls,
        build_id: Optional[str],
        root: Path,
        workspace: Path,
        compress: bool = True,
        verbose: bool = False,
    ) -> "BuildContext":
        build_id = (build_id or "").strip()
        if not build_id:
            raise ConfigurationError("A build id is required (use -i <build_id>)")
        if build_id in RESERVED_IDS or "/" in build_id or os.sep in build_id:
            raise ConfigurationError(f"Invalid build id '{build_id}'")
        root = Path(root).resolve()
        return cls(
            build_id=build_id,
            root=root,
            output_root=root / config.OUTPUT_DIR_NAME,
            workspace=Path(workspace),
            compress=compress,
            verbose=verbose,
        )


def global_log_path(root: Path) -> Path:
    """Append-only log used until the build directory is known."""
    return Path(root).resolve() / config.OUTPUT_DIR_NAME / f"{config.TOOL_NAME}.log"


# ----------------------------
# Workspace
# ----------------------------

class Workspace:
    """Private temp directory, removed on every exit path."""

    def __init__(self, parent: Optional[str] = None):
        try:
            self.path = Path(tempfile.mkdtemp(prefix=f"{config.TOOL_NAME}-", dir=parent))
        except OSError as e:
            raise BuildIOError(f"Cannot create temp workspace in {parent or tempfile.gettempdir()}: {e}") from e

    def cleanup(self) -> None:
        if self.path.exists():
            shutil.rmtree(self.path, ignore_errors=True)

    def __enter__(self) -> "Workspace":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.cleanup()


# ----------------------------
# Stage / Dist directories
# ----------------------------

def ask_yes_no(question: str) -> bool:
    """Prompt on stdin; anything but y/yes (including EOF) means no."""
    try:
        sys.stderr.write(f"{question} [y/N] ")
        sys.stderr.flush()
        answer = input()
    except EOFError:
        return False
    return answer.strip().lower() in ("y", "yes")


def prepare_build_dirs(ctx: BuildContext, confirm: Callable[[str], bool] = ask_yes_no) -> None:
    """
    Create fresh stage and dist directories.

    Existing ones are only removed after confirmation; declining raises
    UserAbort and leaves them untouched.
    """
    existing = [d for d in (ctx.stage_dir, ctx.dist_dir) if d.exists() or d.is_symlink()]
    if existing:
        listing = ", ".join(str(d) for d in existing)
        logger.warning(f"Build directories already exist: {listing}")
        if not confirm(f"Delete and recreate {listing}?"):
            raise UserAbort(f"Declined to overwrite existing build '{ctx.build_id}'")
        for d in existing:
            logger.info(f"Removing {d}")
            try:
                if d.is_symlink() or d.is_file():
                    d.unlink()
                else:
                    shutil.rmtree(d)
            except OSError as e:
                raise BuildIOError(f"Cannot remove {d}: {e}") from e

    for d in (ctx.stage_dir, ctx.dist_dir):
        try:
            d.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise BuildIOError(f"Cannot create {d}: {e}") from e
    logger.info(f"Stage: {ctx.stage_dir}")
    logger.info(f"Dist:  {ctx.dist_dir}")


def update_latest(ctx: BuildContext) -> Path:
    """Point build/latest at the current build id (create-then-replace)."""
    link = ctx.latest_link
    tmp_link = ctx.output_root / f".{config.LATEST_LINK_NAME}.{os.getpid()}"
    if link.is_dir() and not link.is_symlink():
        raise BuildIOError(f"{link} is a directory, not a symlink")
    try:
        if tmp_link.is_symlink() or tmp_link.exists():
            tmp_link.unlink()
        os.symlink(ctx.build_id, tmp_link)
        os.replace(tmp_link, link)
    except OSError as e:
        raise BuildIOError(f"Cannot update {link}: {e}") from e
    logger.info(f"{link} -> {ctx.build_id}")
    return link
