#!/usr/bin/env python3
"""
Error taxonomy for buildify.

Every fatal condition is a BuildifyError and ends up in log.abort().
DeploymentWarning is only ever logged.
"""
from pathlib import Path
from typing import Optional


class BuildifyError(Exception):
    """Base class for fatal build errors."""


class ConfigurationError(BuildifyError):
    """Missing build id, missing or non-executable external tool."""


class ValidationError(BuildifyError):
    """Malformed manifest, unknown section type, bad extension, unreadable file."""

    def __init__(self, message: str, manifest: Optional[Path] = None, line_no: Optional[int] = None):
        self.manifest = manifest
        self.line_no = line_no
        if manifest is not None:
            where = f"{manifest}:{line_no}" if line_no else str(manifest)
            message = f"{where}: {message}"
        super().__init__(message)


class SubprocessError(BuildifyError):
    """Non-zero exit (or timeout) of a minifier or packer."""

    def __init__(self, message: str, log_path: Optional[Path] = None):
        self.log_path = log_path
        if log_path is not None:
            message = f"{message}\nPlease see {log_path} for details."
        super().__init__(message)


class BuildIOError(BuildifyError):
    """Cannot create or write workspace, stage or dist files."""


class UserAbort(BuildifyError):
    """Operator declined an overwrite confirmation."""


class DeploymentWarning(UserWarning):
    """Missing subtree/copy source; logged and skipped."""
