"""Data models for asset groups.

This module contains the two shapes an asset group takes:
- AssetGroupDeclaration: one entry of an Assets.json manifest, as authored
- ResolvedAssetGroup: the same entry with absolute paths, output kind and
  output mode worked out once, ready for staleness checks and pipelines
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from assetpipe.core.utils import MIN_SUFFIX, WILDCARD


# =============================================================================
# Manifest Declarations
# =============================================================================


class AssetGroupDeclaration(BaseModel):
    """One asset group as written in an Assets.json manifest."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)

    inputs: List[str] = Field(
        min_length=1, description="Input files or globs, relative to the manifest"
    )
    output: str = Field(
        min_length=1, description="Output file, '@' as file name means one output per input"
    )
    watch: Optional[List[str]] = Field(
        None, description="Extra files or globs that re-trigger this group in watch mode"
    )
    rebuild_always: bool = Field(
        True, alias="rebuildAlways", description="Force a full rebuild on every watch trigger"
    )
    generate_source_maps: bool = Field(
        True, alias="generateSourceMaps", description="Inline source maps into unminified output"
    )


# =============================================================================
# Output Kind and Mode
# =============================================================================


class OutputKind(Enum):
    """Which pipeline an asset group runs through, keyed by output extension."""

    STYLE = ".css"
    SCRIPT = ".js"

    @property
    def extension(self) -> str:
        return self.value

    @property
    def accepted_inputs(self) -> tuple[str, ...]:
        if self is OutputKind.STYLE:
            return (".less", ".css")
        return (".ts", ".js")

    @classmethod
    def from_extension(cls, extension: str) -> Optional["OutputKind"]:
        for kind in cls:
            if kind.value == extension.lower():
                return kind
        return None


@dataclass(frozen=True)
class SingleConcatenated:
    """All inputs are merged, in declared order, into one file."""

    name: str


@dataclass(frozen=True)
class PerInputExpanded:
    """Each input produces its own file; the wildcard is replaced by the input's stem."""

    template: str

    def name_for(self, input_path: Path) -> str:
        return self.template.replace(WILDCARD, input_path.stem)


OutputMode = Union[SingleConcatenated, PerInputExpanded]


def minified_name(file_name: str) -> str:
    """Insert the minified suffix before the extension: bundle.css -> bundle.min.css."""
    path = Path(file_name)
    return f"{path.stem}{MIN_SUFFIX}{path.suffix}"


# =============================================================================
# Resolved Groups
# =============================================================================


@dataclass(frozen=True)
class ResolvedAssetGroup:
    """An asset group with every path anchored at its manifest directory."""

    group_id: str
    manifest_path: Path
    base_path: Path
    input_paths: tuple[Path, ...]
    watch_paths: tuple[Path, ...]
    output_path: Path
    output_dir: Path
    output_file_name: str
    output_kind: OutputKind
    output_mode: OutputMode
    rebuild_always: bool = True
    generate_source_maps: bool = True

    @property
    def concatenate(self) -> bool:
        return isinstance(self.output_mode, SingleConcatenated)

    def output_name_for(self, input_path: Path) -> str:
        """File name of the unminified output that `input_path` contributes to."""
        if isinstance(self.output_mode, PerInputExpanded):
            return self.output_mode.name_for(input_path)
        return self.output_mode.name


@dataclass
class BuildInvocation:
    """One request to build a group: a one-shot run or a single watch trigger."""

    force_rebuild: bool
    trigger_path: Optional[Path] = None
