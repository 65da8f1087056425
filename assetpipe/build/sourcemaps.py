"""
Source map generation for unminified artifacts.

Produces version 3 source maps with embedded `sourcesContent`, written
inline as a base64 data URI comment. Mappings are line-granular: each
generated line points at column 0 of a line in the source that produced it.
"""

from __future__ import annotations

import base64
import json
import os
import re
from pathlib import Path
from typing import Any, Optional

from assetpipe.build.models import OutputKind

_BASE64_DIGITS = "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789+/"
_DATA_URI_PREFIX = "data:application/json;charset=utf8;base64,"
_INLINE_RE = re.compile(r"[#@] sourceMappingURL=data:application/json;(?:charset=utf-?8;)?base64,([A-Za-z0-9+/=]+)")


def vlq_encode(value: int) -> str:
    """Encode one integer as a base64 VLQ segment field."""
    vlq = ((-value) << 1) | 1 if value < 0 else value << 1
    encoded = ""
    while True:
        digit = vlq & 0b11111
        vlq >>= 5
        if vlq:
            digit |= 0b100000
        encoded += _BASE64_DIGITS[digit]
        if not vlq:
            return encoded


class SourceMapBuilder:
    """Accumulates generated chunks and the sources they came from.

    Chunks are assumed to be joined with a single newline, which is how the
    pipeline concatenates processed inputs.
    """

    def __init__(self, file_name: str, output_dir: Path):
        self.file_name = file_name
        self.output_dir = output_dir
        self._sources: list[str] = []
        self._contents: list[str] = []
        self._lines: list[str] = []
        self._prev_source = 0
        self._prev_line = 0

    def _source_index(self, source_path: Path, content: str) -> int:
        relative = os.path.relpath(source_path, self.output_dir).replace(os.sep, "/")
        if relative in self._sources:
            return self._sources.index(relative)
        self._sources.append(relative)
        self._contents.append(content)
        return len(self._sources) - 1

    def add_chunk(self, source_path: Path, source_content: str, generated: str) -> None:
        """Map every line of `generated` back to `source_path`."""
        source_index = self._source_index(source_path, source_content)
        last_source_line = max(len(source_content.splitlines()) - 1, 0)

        for line_no in range(len(generated.split("\n"))):
            source_line = min(line_no, last_source_line)
            self._lines.append(
                vlq_encode(0)
                + vlq_encode(source_index - self._prev_source)
                + vlq_encode(source_line - self._prev_line)
                + vlq_encode(0)
            )
            self._prev_source = source_index
            self._prev_line = source_line

    @property
    def sources(self) -> list[str]:
        return list(self._sources)

    def to_dict(self) -> dict[str, Any]:
        return {
            "version": 3,
            "file": self.file_name,
            "sources": list(self._sources),
            "sourcesContent": list(self._contents),
            "names": [],
            "mappings": ";".join(self._lines),
        }


def inline_comment(source_map: dict[str, Any], kind: OutputKind) -> str:
    """Render a sourceMappingURL comment carrying the whole map."""
    payload = base64.b64encode(
        json.dumps(source_map, separators=(",", ":")).encode("utf-8")
    ).decode("ascii")
    if kind is OutputKind.STYLE:
        return f"/*# sourceMappingURL={_DATA_URI_PREFIX}{payload} */"
    return f"//# sourceMappingURL={_DATA_URI_PREFIX}{payload}"


def read_inline_map(text: str) -> Optional[dict[str, Any]]:
    """Decode an inline source map from generated text, if one is present.

    Not used by the pipelines; for tests and tooling that inspect artifacts.
    """
    match = _INLINE_RE.search(text)
    if match is None:
        return None
    return json.loads(base64.b64decode(match.group(1)).decode("utf-8"))


def resolve_sources(source_map: dict[str, Any], output_dir: Path) -> list[Path]:
    """Absolute paths of a map's sources, relative to the artifact's directory.

    Inspection helper, like read_inline_map.
    """
    return [
        Path(os.path.normpath(output_dir / source)) for source in source_map.get("sources", [])
    ]
