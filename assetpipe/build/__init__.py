"""
assetpipe.build - Manifest discovery, path resolution, staleness checks and
the style/script pipelines.
"""

from assetpipe.build.config import BuildConfig, load_config
from assetpipe.build.discovery import discover, find_manifests, load_manifest
from assetpipe.build.errors import (
    AssetBuildError,
    AssetGroupError,
    CompileError,
    InvalidInputType,
    ManifestLoadError,
    TransformError,
    TranspileError,
    UnsupportedOutputKind,
    WriteError,
)
from assetpipe.build.models import (
    AssetGroupDeclaration,
    BuildInvocation,
    OutputKind,
    PerInputExpanded,
    ResolvedAssetGroup,
    SingleConcatenated,
)
from assetpipe.build.paths import resolve, expand_inputs, derived_output_path
from assetpipe.build.staleness import is_stale, stale_inputs, effective_force
from assetpipe.build.phases import Toolchain
from assetpipe.build.pipeline import BuildResult, PipelineBuilder
from assetpipe.build.orchestrator import AssetOrchestrator, RunSummary, GroupFailure

__all__ = [
    # Config
    "BuildConfig",
    "load_config",
    # Discovery
    "discover",
    "find_manifests",
    "load_manifest",
    # Errors
    "AssetBuildError",
    "AssetGroupError",
    "CompileError",
    "InvalidInputType",
    "ManifestLoadError",
    "TransformError",
    "TranspileError",
    "UnsupportedOutputKind",
    "WriteError",
    # Models
    "AssetGroupDeclaration",
    "BuildInvocation",
    "OutputKind",
    "PerInputExpanded",
    "ResolvedAssetGroup",
    "SingleConcatenated",
    # Paths
    "resolve",
    "expand_inputs",
    "derived_output_path",
    # Staleness
    "is_stale",
    "stale_inputs",
    "effective_force",
    # Pipelines
    "Toolchain",
    "BuildResult",
    "PipelineBuilder",
    # Orchestrator
    "AssetOrchestrator",
    "RunSummary",
    "GroupFailure",
]
