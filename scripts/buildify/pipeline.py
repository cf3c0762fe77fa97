#!/usr/bin/env python3
"""
Pipeline orchestrator.

For each manifest and each of js/css present:
  concatenate -> minify -> (js only) superpack
With compression disabled the concatenated file becomes the "-min" output
as-is, so deployment does not care whether compression ran.
"""
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, Optional

from . import adapters
from .adapters import Tools
from .context import BuildContext
from .errors import BuildIOError
from .log import logger
from .manifest import Manifest, SourceEntry, SourceType

BUILD_ORDER = (SourceType.JS, SourceType.CSS)
CHUNK_SIZE = 64 * 1024


@dataclass
class ArtifactSet:
    kind: SourceType
    raw: Path
    minified: Path
    minify_log: Path
    packed: Optional[Path] = None
    pack_log: Optional[Path] = None
    pack_diag: Optional[Path] = None

    @property
    def final(self) -> Path:
        """The file that gets deployed."""
        return self.packed if self.packed is not None else self.minified


def stage_path(ctx: BuildContext, name: str, suffix: str) -> Path:
    return ctx.stage_dir / f"{name}-{suffix}"


def concatenate(entries: Iterable[SourceEntry], root: Path, dest: Path) -> Optional[Path]:
    """
    Append every entry's bytes, in order, into dest.

    dest is only created once there is a first entry; returns None if there
    were no entries at all.
    """
    f_out = None
    try:
        for entry in entries:
            if f_out is None:
                f_out = open(dest, "wb")
            with open(root / entry.path, "rb") as f_in:
                shutil.copyfileobj(f_in, f_out, CHUNK_SIZE)
            logger.debug(f"   + {entry.path}")
    except OSError as e:
        raise BuildIOError(f"Cannot concatenate into {dest}: {e}") from e
    finally:
        if f_out is not None:
            f_out.close()
    return dest if f_out is not None else None


def build_type(ctx: BuildContext, manifest: Manifest, kind: SourceType,
               tools: Optional[Tools]) -> Optional[ArtifactSet]:
    name = manifest.short_name
    ext = kind.value
    tmp_file = ctx.workspace / f"{name}-tmp.{ext}"

    logger.info(f"[{name}] {ext}: concatenate")
    if concatenate(manifest.entries(kind), ctx.root, tmp_file) is None:
        logger.debug(f"[{name}] {ext}: no entries, skipped")
        return None

    artifacts = ArtifactSet(
        kind=kind,
        raw=stage_path(ctx, name, f"raw.{ext}"),
        minified=stage_path(ctx, name, f"min.{ext}"),
        minify_log=stage_path(ctx, name, f"ug_{ext}.log"),
    )
    try:
        shutil.copyfile(tmp_file, artifacts.raw)
    except OSError as e:
        raise BuildIOError(f"Cannot write {artifacts.raw}: {e}") from e

    if not ctx.compress:
        logger.info(f"[{name}] {ext}: compression disabled, raw -> {artifacts.minified.name}")
        try:
            shutil.move(str(tmp_file), str(artifacts.minified))
        except OSError as e:
            raise BuildIOError(f"Cannot write {artifacts.minified}: {e}") from e
        return artifacts

    if tools is None:
        raise RuntimeError("compressed build without resolved tools")

    logger.info(f"[{name}] {ext}: minify")
    if kind is SourceType.JS:
        adapters.minify_js(tools.uglifyjs, artifacts.raw, artifacts.minified, artifacts.minify_log).check()
    else:
        adapters.minify_css(tools.uglifycss, artifacts.raw, artifacts.minified, artifacts.minify_log).check()

    if kind is SourceType.JS:
        artifacts.packed = stage_path(ctx, name, "sp.js")
        artifacts.pack_log = stage_path(ctx, name, "sp.log")
        artifacts.pack_diag = stage_path(ctx, name, "sp.diag")
        logger.info(f"[{name}] js: superpack")
        adapters.superpack(
            tools.superpack,
            artifacts.minified,
            artifacts.packed,
            artifacts.pack_log,
            artifacts.pack_diag,
            ctx.workspace,
        ).check()

    tmp_file.unlink()
    return artifacts


def build_manifest(ctx: BuildContext, manifest: Manifest,
                   tools: Optional[Tools]) -> Dict[SourceType, ArtifactSet]:
    """Run every build step for one manifest; raises on the first failure."""
    results: Dict[SourceType, ArtifactSet] = {}
    for kind in BUILD_ORDER:
        if not manifest.has(kind):
            continue
        artifacts = build_type(ctx, manifest, kind, tools)
        if artifacts is not None:
            results[kind] = artifacts
            logger.info(f"[{manifest.short_name}] {kind.value}: OK ({artifacts.final.name})")
    return results
