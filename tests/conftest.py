import stat
from pathlib import Path

import pytest

from buildify import log
from buildify.context import BuildContext, prepare_build_dirs

FAKE_UGLIFYJS = """#!/bin/sh
echo "uglifyjs $*" >&2
tr -d '\\n' < "$1"
"""

FAKE_UGLIFYCSS = """#!/bin/sh
echo "uglifycss $*" >&2
tr -d '\\n ' < "$1"
"""

FAKE_SUPERPACK = """#!/bin/sh
while [ $# -gt 0 ]; do
  case "$1" in
    -i) in_file="$2"; shift 2;;
    -o) out_file="$2"; shift 2;;
    -l) log_file="$2"; shift 2;;
    *) shift;;
  esac
done
cp "$in_file" "$out_file"
echo "packed $in_file" > "$log_file"
echo "0 symbols packed"
"""

FAILING_TOOL = """#!/bin/sh
echo "boom" >&2
exit 3
"""


def _write_exe(path: Path, body: str) -> str:
    path.write_text(body, encoding="utf-8")
    path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return str(path)


@pytest.fixture
def project_root(tmp_path):
    """A root directory with a few js/css sources and extra assets."""
    root = tmp_path / "app"
    (root / "js").mkdir(parents=True)
    (root / "css").mkdir()
    (root / "font" / "vendor" / "sans").mkdir(parents=True)
    (root / "img").mkdir()
    (root / "config").mkdir()

    (root / "js" / "a.js").write_text("var a = 1;\n", encoding="utf-8")
    (root / "js" / "b.js").write_text("var b = 2;\n", encoding="utf-8")
    (root / "css" / "a.css").write_text("body { margin: 0; }\n", encoding="utf-8")
    (root / "css" / "b.css").write_text("p { color: red; }\n", encoding="utf-8")
    (root / "font" / "vendor" / "sans" / "sans.woff").write_bytes(b"\x00\x01font")
    (root / "img" / "logo.png").write_bytes(b"\x89PNG")
    return root


@pytest.fixture
def write_manifest(project_root):
    """Factory: write_manifest(name, text) -> manifest path under config/."""
    def _write(name: str, text: str) -> Path:
        path = project_root / "config" / name
        path.write_text(text, encoding="utf-8")
        return path
    return _write


@pytest.fixture
def tmp_parent(tmp_path, monkeypatch):
    """Parent directory for workspaces, so tests can check it is left empty."""
    parent = tmp_path / "tmp"
    parent.mkdir()
    monkeypatch.setenv("BUILDIFY_TMPDIR", str(parent))
    return parent


@pytest.fixture
def fake_tools(tmp_path, monkeypatch):
    """Point every tool override at a working shell-script stand-in."""
    bin_dir = tmp_path / "bin"
    bin_dir.mkdir()
    tools = {
        "uglifyjs": _write_exe(bin_dir / "uglifyjs", FAKE_UGLIFYJS),
        "uglifycss": _write_exe(bin_dir / "uglifycss", FAKE_UGLIFYCSS),
        "superpack": _write_exe(bin_dir / "superpack", FAKE_SUPERPACK),
    }
    monkeypatch.setenv("BUILDIFY_UGLIFYJS", tools["uglifyjs"])
    monkeypatch.setenv("BUILDIFY_UGLIFYCSS", tools["uglifycss"])
    monkeypatch.setenv("BUILDIFY_SUPERPACK", tools["superpack"])
    return tools


@pytest.fixture
def failing_tool(tmp_path):
    bin_dir = tmp_path / "badbin"
    bin_dir.mkdir()
    return _write_exe(bin_dir / "fail", FAILING_TOOL)


@pytest.fixture
def log_file(tmp_path):
    path = tmp_path / "test.log"
    log.setup_logging(path, verbose=False)
    yield path
    log.teardown_logging()


@pytest.fixture
def make_ctx(project_root, tmp_path):
    """Factory for a BuildContext with fresh stage/dist directories."""
    def _make(build_id: str = "b1", compress: bool = False) -> BuildContext:
        workspace = tmp_path / f"ws-{build_id}"
        workspace.mkdir(exist_ok=True)
        ctx = BuildContext.create(build_id, project_root, workspace, compress=compress)
        prepare_build_dirs(ctx, confirm=lambda _q: True)
        return ctx
    return _make


def read_log_lines(path: Path, level: str):
    return [line for line in path.read_text(encoding="utf-8").splitlines() if f"| {level}" in line]


@pytest.fixture
def log_lines():
    """log_lines(path, "WARNING") -> lines logged at that level."""
    return read_log_lines
