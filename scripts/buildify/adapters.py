#!/usr/bin/env python3
"""
External tool adapters: uglifyjs, uglifycss and superpack.

Each adapter runs one subprocess to completion and returns a ToolResult.
The orchestrator calls ToolResult.check() to turn a failure into a
SubprocessError.
"""
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from . import config
from .errors import SubprocessError
from .log import logger


@dataclass(frozen=True)
class Tools:
    uglifyjs: str
    uglifycss: str
    superpack: str


@dataclass(frozen=True)
class ToolResult:
    name: str
    cmd: List[str]
    returncode: int
    output: Path
    log_path: Path
    timed_out: bool = False

    @property
    def ok(self) -> bool:
        return self.returncode == 0 and not self.timed_out

    def check(self) -> "ToolResult":
        if self.timed_out:
            raise SubprocessError(f"{self.name} timed out", self.log_path)
        if self.returncode != 0:
            raise SubprocessError(f"{self.name} failed with code {self.returncode}", self.log_path)
        return self


def check_tools(root: Path) -> Tools:
    """Pre-flight lookup of every tool a compressed build needs."""
    tools = Tools(
        uglifyjs=config.find_tool("uglifyjs", root),
        uglifycss=config.find_tool("uglifycss", root),
        superpack=config.find_tool("superpack", root),
    )
    for name, path in vars(tools).items():
        logger.debug(f"Tool {name}: {path}")
    return tools


def _run(name: str, cmd: List[str], cwd: Path, stdout_path: Path, log_path: Path,
         stderr_path: Optional[Path] = None, timeout: Optional[float] = None) -> ToolResult:
    """
    Run cmd to completion.

    stdout goes to stdout_path, stderr to stderr_path (default: log_path).
    The returned result always names log_path as the file to inspect.
    """
    if timeout is None:
        timeout = config.get_tool_timeout()
    if stderr_path is None:
        stderr_path = log_path
    logger.debug(f"[EXEC] {' '.join(cmd)}")

    with open(stdout_path, "wb") as f_out, open(stderr_path, "ab") as f_err:
        try:
            proc = subprocess.Popen(cmd, cwd=cwd, stdout=f_out, stderr=f_err)
        except OSError as e:
            raise SubprocessError(f"Cannot start {name}: {e}", log_path) from e
        try:
            proc.wait(timeout=timeout)
        except subprocess.TimeoutExpired:
            proc.kill()
            proc.wait()
            logger.error(f"{name} exceeded hard timeout ({timeout}s); killed")
            return ToolResult(name, cmd, proc.returncode, stdout_path, log_path, timed_out=True)

    logger.debug(f"{name} exited with code {proc.returncode}")
    return ToolResult(name, cmd, proc.returncode, stdout_path, log_path)


def minify_js(exe: str, src: Path, out: Path, log_path: Path) -> ToolResult:
    cmd = [exe, str(src)] + config.UGLIFYJS_FLAGS
    return _run("uglifyjs", cmd, src.parent, out, log_path)


def minify_css(exe: str, src: Path, out: Path, log_path: Path) -> ToolResult:
    cmd = [exe, str(src)] + config.UGLIFYCSS_FLAGS
    return _run("uglifycss", cmd, src.parent, out, log_path)


def superpack(exe: str, src: Path, out: Path, log_path: Path, diag_path: Path,
              scratch_dir: Path) -> ToolResult:
    """Symbol-pack src into out; stdout becomes the diagnostics file."""
    cmd = [exe, "-i", str(src), "-o", str(out), "-l", str(log_path)]
    # superpack writes log_path itself; its stderr goes to the workspace
    err_path = scratch_dir / f"{out.name}.stderr"
    result = _run("superpack", cmd, src.parent, diag_path, log_path, stderr_path=err_path)
    return ToolResult(result.name, cmd, result.returncode, out, log_path, result.timed_out)
