"""
Error types raised while discovering, resolving and building asset groups.

ManifestLoadError is fatal to a discovery pass. Everything deriving from
AssetGroupError is scoped to a single asset group (or a single output of a
fan-out group) and never stops sibling groups from building.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional


class AssetBuildError(Exception):
    """Base class for all assetpipe errors."""


class ManifestLoadError(AssetBuildError):
    """A manifest could not be read or does not describe a list of asset groups."""

    def __init__(self, manifest_path: Path, reason: str):
        self.manifest_path = manifest_path
        self.reason = reason
        super().__init__(f"Could not load manifest '{manifest_path}': {reason}")


class AssetGroupError(AssetBuildError):
    """Failure confined to one asset group."""


class UnsupportedOutputKind(AssetGroupError):
    """The output extension does not map to a known pipeline."""

    def __init__(self, output_path: Path):
        self.output_path = output_path
        super().__init__(
            f"Output file '{output_path}' has unsupported extension '{output_path.suffix}' "
            f"(expected .css or .js)."
        )


class InvalidInputType(AssetGroupError):
    """An input's extension does not match the group's output kind."""

    def __init__(self, input_path: Path, output_path: Path):
        self.input_path = input_path
        self.output_path = output_path
        super().__init__(
            f"Input file '{input_path}' is not of a valid type for output file '{output_path}'."
        )


class TransformError(AssetGroupError):
    """An external transformation tool rejected a source file."""

    tool = "transform"

    def __init__(self, source_path: Path, message: str, line: Optional[int] = None):
        self.source_path = source_path
        self.message = message
        self.line = line
        location = f"{source_path}:{line}" if line is not None else str(source_path)
        super().__init__(f"{self.tool} failed for {location}: {message}")


class CompileError(TransformError):
    """The stylesheet compiler reported an error."""

    tool = "LESS compile"


class TranspileError(TransformError):
    """The script transpiler reported an error."""

    tool = "TypeScript transpile"


class WriteError(AssetGroupError):
    """An artifact could not be written to disk."""

    def __init__(self, output_path: Path, reason: str):
        self.output_path = output_path
        self.reason = reason
        super().__init__(f"Could not write '{output_path}': {reason}")
