#!/usr/bin/env python3
"""
Manifest parser.

A manifest is a line-oriented text file:

    sourcetype:js
    js/app.js            # trailing comments are allowed
    sourcetype:css
    css/app.css
    sourcetype:subtree
    font/vendor
    sourcetype:copy
    img/logo.png  img

Blank lines and lines starting with '#' are skipped. Lines before the first
``sourcetype:`` header are ignored. All paths are relative to the root
directory, never to the manifest itself, and may not leave it; a copy target
is relative to dist and may not leave it either.
"""
import os
import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Iterator, List, Union

from .errors import ValidationError
from .log import logger


class SourceType(Enum):
    JS = "js"
    CSS = "css"
    SUBTREE = "subtree"
    COPY = "copy"


# Section header: "sourcetype : name", whitespace-insensitive around ':'
HEADER_RE = re.compile(r"^sourcetype\s*:(.*)$")


@dataclass(frozen=True)
class SourceEntry:
    kind: SourceType
    path: str
    line_no: int = 0


@dataclass(frozen=True)
class SubtreeEntry:
    path: str
    line_no: int = 0


@dataclass(frozen=True)
class CopyEntry:
    source: str
    target_dir: str
    line_no: int = 0


Entry = Union[SourceEntry, SubtreeEntry, CopyEntry]


@dataclass
class Section:
    kind: SourceType
    entries: List[Entry] = field(default_factory=list)


@dataclass
class Manifest:
    path: Path
    sections: List[Section] = field(default_factory=list)

    @property
    def short_name(self) -> str:
        """Basename without extension; used as the artifact prefix."""
        return self.path.stem

    def entries(self, kind: SourceType) -> Iterator[Entry]:
        """All entries of one kind, in manifest order."""
        for section in self.sections:
            if section.kind is kind:
                yield from section.entries

    def has(self, kind: SourceType) -> bool:
        return any(True for _ in self.entries(kind))


def _strip_comment(line: str) -> str:
    idx = line.find("#")
    if idx != -1:
        line = line[:idx]
    return line.strip()


def _check_readable(path: Path, manifest: Path, line_no: int, what: str) -> None:
    if not os.access(path, os.R_OK):
        raise ValidationError(f"Cannot read {what} {path}", manifest, line_no)


def _check_contained(rel: str, manifest: Path, line_no: int, what: str) -> str:
    """Reject absolute paths and paths that climb out of their base directory."""
    norm = os.path.normpath(rel)
    if os.path.isabs(rel) or norm == os.pardir or norm.startswith(os.pardir + os.sep):
        raise ValidationError(f"{what} {rel} must stay inside its base directory", manifest, line_no)
    return norm


def _parse_source(kind: SourceType, rest: str, root: Path, manifest: Path, line_no: int) -> SourceEntry:
    rel = rest.split()[0]
    _check_contained(rel, manifest, line_no, f"{kind.value} file")
    ext = rel.rsplit(".", 1)[-1]
    if ext != kind.value:
        raise ValidationError(
            f"Extension of {rel} does not match section type '{kind.value}'", manifest, line_no
        )
    full = root / rel
    if not full.is_file():
        raise ValidationError(f"Cannot read {kind.value} file {full}", manifest, line_no)
    _check_readable(full, manifest, line_no, f"{kind.value} file")
    return SourceEntry(kind, rel, line_no)


def _parse_subtree(rest: str, root: Path, manifest: Path, line_no: int) -> SubtreeEntry:
    if _check_contained(rest, manifest, line_no, "subtree") == os.curdir:
        raise ValidationError("subtree cannot be the root directory itself", manifest, line_no)
    full = root / rest
    # Missing trees are reported at deploy time, unreadable ones now
    if full.exists():
        _check_readable(full, manifest, line_no, "subtree")
    return SubtreeEntry(rest, line_no)


def _parse_copy(rest: str, root: Path, manifest: Path, line_no: int) -> CopyEntry:
    fields = rest.split()
    if len(fields) != 2:
        raise ValidationError(
            f"copy entry needs exactly 2 fields (source, target dir), got {len(fields)}",
            manifest,
            line_no,
        )
    source, target_dir = fields
    _check_contained(source, manifest, line_no, "copy source")
    _check_contained(target_dir, manifest, line_no, "copy target")
    full = root / source
    if full.exists():
        _check_readable(full, manifest, line_no, "copy source")
    return CopyEntry(source, target_dir, line_no)


def parse_lines(lines: List[str], root: Path, manifest: Path) -> List[Section]:
    """Parse manifest text into sections. Raises ValidationError."""
    sections: List[Section] = []
    current = None

    for line_no, raw in enumerate(lines, start=1):
        stripped = raw.strip()
        if not stripped or stripped.startswith("#"):
            continue
        line = _strip_comment(stripped)

        m = HEADER_RE.match(line)
        if m:
            name = m.group(1).strip()
            try:
                kind = SourceType(name)
            except ValueError:
                raise ValidationError(f"Unknown sourcetype '{name}'", manifest, line_no) from None
            current = Section(kind)
            sections.append(current)
            continue

        if current is None:
            logger.debug(f"{manifest}:{line_no}: ignoring line before first sourcetype header")
            continue

        if current.kind in (SourceType.JS, SourceType.CSS):
            entry = _parse_source(current.kind, line, root, manifest, line_no)
        elif current.kind is SourceType.SUBTREE:
            entry = _parse_subtree(line, root, manifest, line_no)
        elif current.kind is SourceType.COPY:
            entry = _parse_copy(line, root, manifest, line_no)
        else:
            raise RuntimeError(f"unhandled section type {current.kind}")
        current.entries.append(entry)

    return sections


def parse_manifest(path: Path, root: Path) -> Manifest:
    """Read and validate a manifest file."""
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise ValidationError(f"Cannot read manifest: {e}", path) from e

    manifest = Manifest(path=path, sections=parse_lines(text.splitlines(), root, path))
    counts = {k.value: sum(1 for _ in manifest.entries(k)) for k in SourceType}
    logger.info(f"Parsed manifest {path} ({', '.join(f'{k}={v}' for k, v in counts.items())})")
    return manifest
