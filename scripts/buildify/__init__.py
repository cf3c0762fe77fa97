#!/usr/bin/env python3
"""
Buildify: manifest-driven static asset builds
==============================================

Reads one or more manifests, concatenates and compresses their js/css
sources and deploys the results into build/<id>/{stage,dist}.

Modules:
    - config: Constants, environment overrides and tool lookup
    - errors: Exception taxonomy
    - log: File/console logging and the abort path
    - manifest: Manifest parser
    - context: Build context, workspace and the "latest" link
    - adapters: uglifyjs / uglifycss / superpack runners
    - pipeline: concatenate -> minify -> superpack per manifest
    - deploy: stage -> dist deployment

Usage:
    from buildify import run
    run(["config/app.buildify"], build_id="2024-05-01")

    # Or from the shell:
    buildify -i 2024-05-01 -v config/app.buildify
"""

__version__ = "1.0.0"

import argparse
import sys
from datetime import datetime
from pathlib import Path
from typing import Callable, List, Optional, Sequence

from tqdm import tqdm

from . import config
from .adapters import check_tools
from .context import (
    BuildContext,
    Workspace,
    ask_yes_no,
    global_log_path,
    prepare_build_dirs,
    update_latest,
)
from .deploy import deploy_manifest
from .errors import BuildifyError, UserAbort
from .log import abort, logger, relocate_log, setup_logging, teardown_logging
from .manifest import parse_manifest
from .pipeline import build_manifest


def _log_summary(summary: List[dict]) -> None:
    logger.info("=" * 46)
    logger.info(f" BUILD SUMMARY ({datetime.now().strftime('%H:%M:%S')})")
    logger.info("=" * 46)
    logger.info(f"{'Manifest':<24} | {'Types':<8} | {'Warnings':<8}")
    logger.info("-" * 46)
    for res in summary:
        logger.info(f"{res['name']:<24} | {res['types']:<8} | {res['warnings']:<8}")
    logger.info("-" * 46)


def run(
    manifests: Sequence[str],
    build_id: Optional[str],
    root: Optional[Path] = None,
    compress: bool = True,
    verbose: bool = False,
    confirm: Callable[[str], bool] = ask_yes_no,
) -> int:
    """
    Run a full build.

    Returns 0 on success. Every fatal condition goes through log.abort(),
    which raises SystemExit(1) after cleaning up the workspace.
    """
    root = Path(root if root is not None else Path.cwd()).resolve()
    try:
        workspace = Workspace(config.get_tmp_parent())
    except BuildifyError as e:
        abort(str(e))

    try:
        try:
            setup_logging(global_log_path(root), verbose)
            logger.info(f"Start {config.TOOL_NAME} {__version__}")
            ctx = BuildContext.create(
                build_id,
                root,
                workspace.path,
                compress=compress,
                verbose=verbose,
            )
            logger.info(f"Build id: {ctx.build_id}  Root: {ctx.root}  Compress: {ctx.compress}")
            tools = check_tools(ctx.root) if ctx.compress else None

            prepare_build_dirs(ctx, confirm)
            update_latest(ctx)
            relocate_log(ctx.log_file)

            summary = []
            for path in tqdm(manifests, desc="manifests", unit="manifest", disable=not verbose):
                manifest = parse_manifest(Path(path), ctx.root)
                artifacts = build_manifest(ctx, manifest, tools)
                report = deploy_manifest(ctx, manifest, artifacts)
                summary.append({
                    "name": manifest.short_name,
                    "types": ",".join(k.value for k in artifacts) or "-",
                    "warnings": len(report.warnings),
                })
            _log_summary(summary)
            logger.info(f"[SUCCESS] {len(summary)} manifest(s) built into {ctx.dist_dir}")
        except UserAbort as e:
            abort(f"{e} (aborted by user)", workspace)
        except BuildifyError as e:
            abort(str(e), workspace)
        except OSError as e:
            abort(f"I/O error: {e}", workspace)
    finally:
        teardown_logging()
        workspace.cleanup()
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog=config.TOOL_NAME,
        description="Concatenate, compress and deploy js/css listed in buildify manifests.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        add_help=False,
        epilog="""
Examples:
    buildify -i 2024-05-01 config/app.buildify
    buildify -i dev -n -v config/app.buildify config/admin.buildify
        """,
    )
    parser.add_argument("-h", "--help", "--usage", action="help", help="Show this help and exit")
    parser.add_argument("-i", "--id", dest="build_id", help="Build id (required)")
    parser.add_argument("-n", "--nocompress", action="store_true", help="Skip minify and superpack")
    parser.add_argument("-v", "--verbose", action="store_true", help="Mirror log lines to stderr")
    parser.add_argument("-r", "--root", type=Path, default=None,
                        help="Root directory for manifest paths (default: cwd)")
    parser.add_argument("manifests", nargs="+", metavar="manifest", help="Manifest file(s)")
    return parser


def run_with_args(argv: Optional[List[str]] = None) -> int:
    """Parse command-line arguments and run the build."""
    args = build_parser().parse_args(argv)
    return run(
        args.manifests,
        args.build_id,
        root=args.root,
        compress=not args.nocompress,
        verbose=args.verbose,
    )


def main() -> None:
    """Console-script entry point."""
    sys.exit(run_with_args())


__all__ = [
    'run',
    'run_with_args',
    'main',
    'build_parser',
]
