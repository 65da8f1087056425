"""
Path resolution for asset groups.

Turns a manifest entry's relative inputs, watch list and output into
absolute paths anchored at the manifest's directory, and decides the output
kind and output mode once so nothing downstream re-inspects file names.
"""

from __future__ import annotations

import glob
import os
import re
from pathlib import Path
from typing import Iterable

from assetpipe.core.utils import WILDCARD, log
from assetpipe.build.errors import InvalidInputType, UnsupportedOutputKind
from assetpipe.build.models import (
    AssetGroupDeclaration,
    OutputKind,
    OutputMode,
    PerInputExpanded,
    ResolvedAssetGroup,
    SingleConcatenated,
)

_GLOB_CHARS = re.compile(r"[*?\[]")


# =============================================================================
# Helpers
# =============================================================================


def anchor(base_path: Path, relative: str) -> Path:
    """Join `relative` onto `base_path` and normalize the result."""
    return Path(os.path.normpath(base_path / relative))


def is_glob(path: Path | str) -> bool:
    return bool(_GLOB_CHARS.search(str(path)))


def static_root(pattern: Path) -> tuple[Path, bool]:
    """Split a path pattern into the deepest directory without glob characters.

    Returns (directory, recursive) where `recursive` is True when glob
    characters appear in a directory component, so events from nested
    directories must be observed too.
    """
    parts = pattern.parts
    if parts and parts[-1] == "**":
        return Path(*parts[:-1]), True
    root_parts: list[str] = []
    for part in parts[:-1]:
        if is_glob(part):
            return Path(*root_parts), True
        root_parts.append(part)
    return Path(*root_parts) if root_parts else pattern.parent, False


def _segment_regex(segment: str) -> str:
    """Regex for one path segment; wildcards never cross '/' or match a leading dot."""
    out = "(?!\\.)" if segment and segment[0] in "*?[" else ""
    i = 0
    while i < len(segment):
        char = segment[i]
        if char == "*":
            out += "[^/]*"
        elif char == "?":
            out += "[^/]"
        elif char == "[" and "]" in segment[i + 2:]:
            end = segment.index("]", i + 2)
            body = segment[i + 1:end]
            if body.startswith("!"):
                body = "^" + body[1:]
            out += "[" + body.replace("\\", "\\\\") + "]"
            i = end
        else:
            out += re.escape(char)
        i += 1
    return out


def pattern_matcher(pattern: Path | str) -> re.Pattern:
    """Compile a path pattern with the semantics of glob.glob(recursive=True).

    A `**` segment matches zero or more directories; every other wildcard
    stays within one segment. Paths are compared in POSIX form.
    """
    segments = Path(pattern).as_posix().split("/")
    regex = ""
    for index, segment in enumerate(segments):
        last = index == len(segments) - 1
        if segment == "**":
            regex += "(?:(?!\\.)[^/]+)?(?:/(?!\\.)[^/]+)*" if last else "(?:(?!\\.)[^/]+/)*"
        else:
            regex += _segment_regex(segment) + ("" if last else "/")
    return re.compile(regex + "\\Z")


def validate_input_types(
    input_paths: Iterable[Path], output_kind: OutputKind, output_path: Path
) -> None:
    """Raise InvalidInputType for the first input the output kind cannot consume."""
    for input_path in input_paths:
        if input_path.suffix.lower() not in output_kind.accepted_inputs:
            raise InvalidInputType(input_path, output_path)


def output_mode_for(file_name: str) -> OutputMode:
    """A file name that is exactly the wildcard plus extension means fan-out."""
    if Path(file_name).stem == WILDCARD:
        return PerInputExpanded(file_name)
    return SingleConcatenated(file_name)


# =============================================================================
# Resolution
# =============================================================================


def resolve(
    declaration: AssetGroupDeclaration,
    manifest_path: Path,
    index: int = 0,
) -> ResolvedAssetGroup:
    """Resolve one manifest entry.

    Raises:
        UnsupportedOutputKind: output extension is neither .css nor .js.
        InvalidInputType: an input cannot feed the output's pipeline.
    """
    base_path = manifest_path.parent
    input_paths = tuple(anchor(base_path, p) for p in declaration.inputs)

    if declaration.watch is not None:
        # Inputs always re-trigger their own group.
        watch_paths = tuple(anchor(base_path, p) for p in declaration.watch) + input_paths
    else:
        watch_paths = input_paths

    output_path = anchor(base_path, declaration.output)
    output_kind = OutputKind.from_extension(output_path.suffix)
    if output_kind is None:
        raise UnsupportedOutputKind(output_path)

    # Glob matches are checked after expansion, in the pipeline.
    validate_input_types(
        (p for p in input_paths if not is_glob(p)), output_kind, output_path
    )

    return ResolvedAssetGroup(
        group_id=f"{manifest_path}#{index}",
        manifest_path=manifest_path,
        base_path=base_path,
        input_paths=input_paths,
        watch_paths=watch_paths,
        output_path=output_path,
        output_dir=output_path.parent,
        output_file_name=output_path.name,
        output_kind=output_kind,
        output_mode=output_mode_for(output_path.name),
        rebuild_always=declaration.rebuild_always,
        generate_source_maps=declaration.generate_source_maps,
    )


def expand_inputs(group: ResolvedAssetGroup) -> list[Path]:
    """Expand the group's input patterns against the file system.

    Patterns keep their declared order; matches of a single glob are sorted.
    Literal inputs that do not exist are skipped with a warning.
    """
    expanded: list[Path] = []
    seen: set[Path] = set()

    for pattern in group.input_paths:
        if is_glob(pattern):
            matches = sorted(
                Path(p) for p in glob.glob(str(pattern), recursive=True) if os.path.isfile(p)
            )
            if not matches:
                log.warning(f"No files match input pattern '{pattern}'")
        elif pattern.is_file():
            matches = [pattern]
        else:
            log.warning(f"Input file '{pattern}' does not exist, skipping")
            matches = []

        for match in matches:
            if match not in seen:
                seen.add(match)
                expanded.append(match)

    return expanded


def expand_watch_paths(group: ResolvedAssetGroup) -> list[Path]:
    """Concrete files currently matched by the group's watch patterns."""
    files: list[Path] = []
    for pattern in group.watch_paths:
        if is_glob(pattern):
            files.extend(sorted(Path(p) for p in glob.glob(str(pattern), recursive=True)))
        elif pattern.exists():
            files.append(pattern)
    return files


def derived_output_path(group: ResolvedAssetGroup, input_path: Path) -> Path:
    """Unminified output path that `input_path` is written to."""
    return group.output_dir / group.output_name_for(input_path)
