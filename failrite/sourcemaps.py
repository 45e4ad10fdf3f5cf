"""Lazily loaded source files and source maps, cached per path for the run.

Both caches are tri-state: a path missing from the cache has not been tried,
``ABSENT`` records a confirmed miss (unreadable file, no map, broken map) and
anything else is the loaded value. Nothing is ever re-read within a run.
"""

from __future__ import annotations

import base64
import json
import os
from collections import namedtuple
from pathlib import Path
from typing import Any, Callable
from urllib.parse import unquote

from .logging import logger

SOURCE_MAP_MARKER = "//# sourceMappingURL="

# Line and column are 1-based, lines holds the original source text
OriginalPosition = namedtuple(
    "OriginalPosition", ["source", "line", "column", "lines"]
)

_BASE64_DIGITS = {
    c: i
    for i, c in enumerate(
        "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789+/"
    )
}


class _Absent:
    """Cached marker for a confirmed miss."""

    def __repr__(self) -> str:
        return "ABSENT"

    def __bool__(self) -> bool:
        return False


ABSENT: Any = _Absent()


def split_lines(text: str) -> list[str]:
    """Split text into lines, without a phantom line after a final newline."""
    lines = text.split("\n")
    if text.endswith("\n"):
        lines.pop()
    return lines


def read_text(path: str) -> str:
    return Path(path).read_text(encoding="UTF-8", errors="replace")


class FileCache:
    """Source file lines by path, read once per run."""

    def __init__(self, reader: Callable[[str], str] = read_text) -> None:
        self.reader = reader
        self._cache: dict[str, Any] = {}

    def lines(self, path: str | None) -> list[str] | None:
        if not path:
            return None
        try:
            cached = self._cache[path]
        except KeyError:
            try:
                cached = split_lines(self.reader(path))
            except (OSError, ValueError) as e:
                logger.debug(f"Unable to read {path}: {e}")
                cached = ABSENT
            self._cache[path] = cached
        return None if cached is ABSENT else cached


def find_source_map_marker(lines: list[str]) -> str | None:
    """Return the sourceMappingURL value if the last non-blank line carries one.

    Only the last non-blank line is considered: a marker followed by more code
    is not detected.
    """
    for line in reversed(lines):
        line = line.strip()
        if line:
            if line.startswith(SOURCE_MAP_MARKER):
                return line[len(SOURCE_MAP_MARKER) :].strip()
            return None
    return None


def decode_data_uri(uri: str) -> str:
    """Decode a ``data:`` URI (base64 or percent-encoded) into text."""
    header, sep, data = uri[len("data:") :].partition(",")
    if not sep:
        raise ValueError("Malformed data URI, no comma")
    if header.endswith(";base64"):
        return base64.b64decode(unquote(data)).decode("UTF-8")
    return unquote(data)


def decode_vlq(segment: str) -> list[int]:
    """Decode a base64 VLQ segment of a source map ``mappings`` string."""
    values = []
    shift = value = 0
    for char in segment:
        try:
            digit = _BASE64_DIGITS[char]
        except KeyError:
            raise ValueError(f"Invalid base64 VLQ digit {char!r}") from None
        value += (digit & 31) << shift
        if digit & 32:
            shift += 5
            continue
        values.append(-(value >> 1) if value & 1 else value >> 1)
        shift = value = 0
    if shift:
        raise ValueError(f"Truncated VLQ segment {segment!r}")
    return values


def parse_mappings(mappings: str) -> dict[tuple[int, int], tuple[int, int, int]]:
    """Index mappings by generated (line, column) -> (source, line, column).

    All values are 0-based as stored in the map. Segments without a source
    position are skipped; the first segment for a generated position wins.
    """
    index: dict[tuple[int, int], tuple[int, int, int]] = {}
    source = line = column = 0
    for gen_line, group in enumerate(mappings.split(";")):
        gen_col = 0
        for segment in group.split(","):
            if not segment:
                continue
            fields = decode_vlq(segment)
            if len(fields) not in (1, 4, 5):
                raise ValueError(f"Invalid mapping segment {segment!r}")
            gen_col += fields[0]
            if len(fields) == 1:
                continue
            source += fields[1]
            line += fields[2]
            column += fields[3]
            index.setdefault((gen_line, gen_col), (source, line, column))
    return index


class OriginalMap:
    """A parsed source map: exact generated-to-original position lookup."""

    def __init__(self, data: dict[str, Any]) -> None:
        mappings = data["mappings"]
        sources = data["sources"]
        if not isinstance(mappings, str) or not isinstance(sources, list):
            raise ValueError("Source map needs mappings and sources")
        root = data.get("sourceRoot") or ""
        if root and not root.endswith("/"):
            root += "/"
        self.sources = [f"{root}{s}" for s in sources]
        self.contents = data.get("sourcesContent") or []
        self.index = parse_mappings(mappings)

    @classmethod
    def loads(cls, text: str) -> OriginalMap:
        data = json.loads(text)
        if not isinstance(data, dict):
            raise ValueError("Source map is not a JSON object")
        return cls(data)

    def original_position(self, line: int, column: int) -> OriginalPosition | None:
        """Translate a generated position (1-based line and column).

        Returns None unless the map has a segment at exactly that position and
        carries the content of its original source.
        """
        found = self.index.get((line - 1, column - 1))
        if found is None:
            return None
        source, oline, ocol = found
        if not 0 <= source < len(self.sources):
            return None
        content = self.contents[source] if source < len(self.contents) else None
        if not content:
            return None
        return OriginalPosition(
            self.sources[source], oline + 1, ocol + 1, split_lines(content)
        )


class SourceMapCache:
    """Source maps by generated file path, loaded once per run."""

    def __init__(
        self,
        files: FileCache | None = None,
        reader: Callable[[str], str] = read_text,
    ) -> None:
        self.files = files or FileCache()
        self.reader = reader
        self._cache: dict[str, Any] = {}

    def marker(self, path: str) -> str | None:
        lines = self.files.lines(path)
        return None if lines is None else find_source_map_marker(lines)

    def get(self, path: str) -> OriginalMap | None:
        try:
            cached = self._cache[path]
        except KeyError:
            cached = self._cache[path] = self._load(path)
        return None if cached is ABSENT else cached

    def _load(self, path: str) -> Any:
        marker = self.marker(path)
        if marker is None:
            return ABSENT
        try:
            if marker.startswith("data:"):
                return OriginalMap.loads(decode_data_uri(marker))
            map_path = os.path.join(os.path.dirname(path), marker)
            return OriginalMap.loads(self.reader(map_path))
        except (OSError, ValueError, KeyError, TypeError) as e:
            logger.debug(f"No usable source map for {path}: {e}")
            return ABSENT

    def original_position(
        self, path: str, line: int, column: int | None
    ) -> OriginalPosition | None:
        if column is None:
            return None
        smap = self.get(path)
        if smap is None:
            return None
        return smap.original_position(line, column)
