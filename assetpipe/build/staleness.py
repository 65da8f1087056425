"""
Staleness checks for asset groups.

Concatenated groups are all-or-nothing: one newer input rebuilds the whole
bundle. Fan-out groups compare each input against its own derived output,
so an edit to one file only regenerates that file's outputs.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional, Sequence

from assetpipe.build.models import ResolvedAssetGroup
from assetpipe.build.paths import derived_output_path, expand_inputs


def _mtime(path: Path) -> Optional[float]:
    try:
        return path.stat().st_mtime
    except FileNotFoundError:
        return None


def is_newer(input_path: Path, output_path: Path) -> bool:
    """True when `output_path` is missing or strictly older than `input_path`."""
    output_mtime = _mtime(output_path)
    if output_mtime is None:
        return True
    input_mtime = _mtime(input_path)
    return input_mtime is not None and input_mtime > output_mtime


def stale_inputs(
    group: ResolvedAssetGroup,
    inputs: Sequence[Path],
    force_rebuild: bool,
) -> list[Path]:
    """Return the subset of `inputs` whose outputs must be regenerated."""
    if force_rebuild:
        return list(inputs)

    if group.concatenate:
        if any(is_newer(path, group.output_path) for path in inputs):
            return list(inputs)
        return []

    return [path for path in inputs if is_newer(path, derived_output_path(group, path))]


def is_stale(group: ResolvedAssetGroup, force_rebuild: bool) -> bool:
    """True when building `group` now would regenerate at least one output."""
    if force_rebuild:
        return True
    return bool(stale_inputs(group, expand_inputs(group), force_rebuild=False))


def effective_force(group: ResolvedAssetGroup, force_rebuild: bool = False) -> bool:
    """Force flag for a watch trigger: groups rebuild fully unless they opt out."""
    return force_rebuild or group.rebuild_always
