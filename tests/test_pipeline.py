import pytest

from buildify import adapters
from buildify.adapters import Tools
from buildify.errors import ConfigurationError, SubprocessError
from buildify.manifest import SourceEntry, SourceType, parse_manifest
from buildify.pipeline import build_manifest, concatenate


def test_concatenate_preserves_entry_order(project_root, tmp_path):
    dest = tmp_path / "out.js"
    entries = [SourceEntry(SourceType.JS, "js/b.js"), SourceEntry(SourceType.JS, "js/a.js")]
    assert concatenate(entries, project_root, dest) == dest
    assert dest.read_bytes() == b"var b = 2;\nvar a = 1;\n"


def test_concatenate_is_lazy(project_root, tmp_path):
    dest = tmp_path / "out.js"
    assert concatenate([], project_root, dest) is None
    assert not dest.exists()


def test_nocompress_min_equals_raw(make_ctx, project_root, write_manifest, log_file):
    ctx = make_ctx(compress=False)
    manifest = parse_manifest(write_manifest("ex01.buildify", "sourcetype:js\njs/a.js\njs/b.js\n"), project_root)

    results = build_manifest(ctx, manifest, tools=None)

    raw = ctx.stage_dir / "ex01-raw.js"
    minified = ctx.stage_dir / "ex01-min.js"
    assert raw.read_bytes() == b"var a = 1;\nvar b = 2;\n"
    assert minified.read_bytes() == raw.read_bytes()
    assert list(ctx.stage_dir.glob("ex01-sp.*")) == []
    assert results[SourceType.JS].final == minified
    assert SourceType.CSS not in results
    assert list(ctx.workspace.iterdir()) == []


def test_compressed_build_without_tools_is_rejected(make_ctx, project_root, write_manifest, log_file):
    ctx = make_ctx(compress=True)
    manifest = parse_manifest(write_manifest("ex01.buildify", "sourcetype:js\njs/a.js\n"), project_root)

    with pytest.raises(RuntimeError, match="without resolved tools"):
        build_manifest(ctx, manifest, tools=None)


def test_compressed_build_runs_all_steps(make_ctx, project_root, write_manifest, fake_tools, log_file):
    ctx = make_ctx(compress=True)
    manifest = parse_manifest(
        write_manifest("ex02.buildify", "sourcetype:js\njs/a.js\njs/b.js\nsourcetype:css\ncss/a.css\ncss/b.css\n"),
        project_root,
    )
    tools = adapters.check_tools(project_root)

    results = build_manifest(ctx, manifest, tools)

    names = sorted(p.name for p in ctx.stage_dir.iterdir())
    assert names == [
        "ex02-min.css", "ex02-min.js", "ex02-raw.css", "ex02-raw.js",
        "ex02-sp.diag", "ex02-sp.js", "ex02-sp.log", "ex02-ug_css.log", "ex02-ug_js.log",
    ]
    assert (ctx.stage_dir / "ex02-min.js").read_text(encoding="utf-8") == "var a = 1;var b = 2;"
    assert (ctx.stage_dir / "ex02-sp.js").read_bytes() == (ctx.stage_dir / "ex02-min.js").read_bytes()
    assert "0 symbols packed" in (ctx.stage_dir / "ex02-sp.diag").read_text(encoding="utf-8")
    assert "uglifyjs" in (ctx.stage_dir / "ex02-ug_js.log").read_text(encoding="utf-8")
    assert results[SourceType.JS].final.name == "ex02-sp.js"
    assert results[SourceType.CSS].final.name == "ex02-min.css"


def test_minifier_failure_names_its_log(make_ctx, project_root, write_manifest, fake_tools, failing_tool, log_file):
    ctx = make_ctx(compress=True)
    manifest = parse_manifest(write_manifest("bad.buildify", "sourcetype:js\njs/a.js\n"), project_root)
    tools = Tools(uglifyjs=failing_tool, uglifycss=fake_tools["uglifycss"], superpack=fake_tools["superpack"])

    with pytest.raises(SubprocessError) as exc:
        build_manifest(ctx, manifest, tools)

    assert exc.value.log_path == ctx.stage_dir / "bad-ug_js.log"
    assert "failed with code 3" in str(exc.value)
    assert "boom" in exc.value.log_path.read_text(encoding="utf-8")
    assert not (ctx.stage_dir / "bad-sp.js").exists()


def test_packer_failure_is_fatal(make_ctx, project_root, write_manifest, fake_tools, failing_tool, log_file):
    ctx = make_ctx(compress=True)
    manifest = parse_manifest(write_manifest("bad.buildify", "sourcetype:js\njs/a.js\n"), project_root)
    tools = Tools(uglifyjs=fake_tools["uglifyjs"], uglifycss=fake_tools["uglifycss"], superpack=failing_tool)

    with pytest.raises(SubprocessError) as exc:
        build_manifest(ctx, manifest, tools)
    assert exc.value.log_path == ctx.stage_dir / "bad-sp.log"


def test_tool_timeout_kills_process(tmp_path, monkeypatch, log_file):
    slow = tmp_path / "slow"
    slow.write_text("#!/bin/sh\nsleep 30\n", encoding="utf-8")
    slow.chmod(0o755)
    monkeypatch.setenv("BUILDIFY_TOOL_TIMEOUT", "0.5")
    src = tmp_path / "in.js"
    src.write_text("x", encoding="utf-8")

    result = adapters.minify_js(str(slow), src, tmp_path / "out.js", tmp_path / "ug.log")

    assert result.timed_out and not result.ok
    with pytest.raises(SubprocessError, match="timed out"):
        result.check()


def test_missing_tool_is_configuration_error(project_root, monkeypatch):
    monkeypatch.setenv("PATH", "")
    for var in ("BUILDIFY_UGLIFYJS", "BUILDIFY_UGLIFYCSS", "BUILDIFY_SUPERPACK"):
        monkeypatch.delenv(var, raising=False)
    with pytest.raises(ConfigurationError, match="uglifyjs"):
        adapters.check_tools(project_root)


def test_non_executable_override_is_configuration_error(project_root, tmp_path, monkeypatch):
    plain = tmp_path / "plain"
    plain.write_text("not a program", encoding="utf-8")
    monkeypatch.setenv("BUILDIFY_UGLIFYJS", str(plain))
    with pytest.raises(ConfigurationError, match="not an executable"):
        adapters.check_tools(project_root)


def test_tools_found_in_node_modules(project_root, fake_tools, monkeypatch):
    bin_dir = project_root / "node_modules" / ".bin"
    bin_dir.mkdir(parents=True)
    for name, src in fake_tools.items():
        (bin_dir / name).symlink_to(src)
        monkeypatch.delenv(f"BUILDIFY_{name.upper()}")
    monkeypatch.setenv("PATH", "")

    tools = adapters.check_tools(project_root)
    assert tools.superpack == str(bin_dir / "superpack")
