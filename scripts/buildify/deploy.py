#!/usr/bin/env python3
"""
Deployment engine: stage artifacts and manifest extras -> dist.

Missing subtree/copy sources are warnings, never fatal. Failing to copy a
staged js/css artifact is fatal.
"""
import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List

from .context import BuildContext
from .errors import BuildIOError, DeploymentWarning
from .log import logger
from .manifest import CopyEntry, Manifest, SourceType, SubtreeEntry
from .pipeline import ArtifactSet


@dataclass
class DeployReport:
    deployed: List[Path] = field(default_factory=list)
    warnings: List[DeploymentWarning] = field(default_factory=list)


def _warn(report: DeployReport, msg: str) -> None:
    logger.warning(msg)
    report.warnings.append(DeploymentWarning(msg))


def deploy_artifacts(ctx: BuildContext, artifacts: Dict[SourceType, ArtifactSet],
                     report: DeployReport) -> None:
    """Copy the final css/js artifacts into dist/css and dist/js."""
    for kind in (SourceType.CSS, SourceType.JS):
        art = artifacts.get(kind)
        if art is None or not art.final.exists():
            continue
        dst_dir = ctx.dist_dir / kind.value
        try:
            dst_dir.mkdir(parents=True, exist_ok=True)
            dst = Path(shutil.copy2(art.final, dst_dir / art.final.name))
        except OSError as e:
            raise BuildIOError(f"Cannot deploy {art.final} to {dst_dir}: {e}") from e
        logger.info(f"   [Deploy] {art.final.name} -> {dst.relative_to(ctx.dist_dir)}")
        report.deployed.append(dst)


def deploy_subtree(ctx: BuildContext, entry: SubtreeEntry, report: DeployReport) -> None:
    src = ctx.root / entry.path
    if not src.is_dir():
        _warn(report, f"Cannot copy subtree {entry.path}: Not found")
        return
    dst = ctx.dist_dir / entry.path
    try:
        dst.parent.mkdir(parents=True, exist_ok=True)
        shutil.copytree(src, dst, dirs_exist_ok=True)
    except (OSError, shutil.Error) as e:
        raise BuildIOError(f"Cannot copy subtree {entry.path}: {e}") from e
    file_count = sum(1 for p in dst.rglob("*") if p.is_file())
    logger.info(f"   [Deploy] subtree {entry.path}/ ({file_count} files)")
    report.deployed.append(dst)


def deploy_copy(ctx: BuildContext, entry: CopyEntry, report: DeployReport) -> None:
    src = ctx.root / entry.source
    if not src.is_file():
        _warn(report, f"Cannot copy file {entry.source}: Not found")
        return
    dst_dir = ctx.dist_dir / entry.target_dir
    try:
        dst_dir.mkdir(parents=True, exist_ok=True)
        dst = Path(shutil.copy2(src, dst_dir / src.name))
    except OSError as e:
        raise BuildIOError(f"Cannot copy {entry.source} to {entry.target_dir}: {e}") from e
    logger.info(f"   [Deploy] {entry.source} -> {Path(entry.target_dir) / dst.name}")
    report.deployed.append(dst)


def deploy_manifest(ctx: BuildContext, manifest: Manifest,
                    artifacts: Dict[SourceType, ArtifactSet]) -> DeployReport:
    report = DeployReport()
    deploy_artifacts(ctx, artifacts, report)
    for entry in manifest.entries(SourceType.SUBTREE):
        deploy_subtree(ctx, entry, report)
    for entry in manifest.entries(SourceType.COPY):
        deploy_copy(ctx, entry, report)
    return report
