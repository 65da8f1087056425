"""
Shared pytest fixtures for assetpipe tests.

Provides an on-disk Orchard.Web project layout and a deterministic
stand-in toolchain so pipelines run without Node-based compilers.

Test Tier Markers:
  @pytest.mark.evergreen - Tests that always run, never skip (production tests)
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional, Sequence

import pytest

from assetpipe.build.config import BuildConfig
from assetpipe.build.errors import CompileError, TranspileError
from assetpipe.build.models import AssetGroupDeclaration, ResolvedAssetGroup
from assetpipe.build.paths import resolve
from assetpipe.build.phases import Toolchain
from assetpipe.build.pipeline import PipelineBuilder


# =============================================================================
# Test Data Constants
# =============================================================================

# Markers that make the fake compilers fail
LESS_ERROR_MARKER = "@@broken"
TS_ERROR_MARKER = "@@broken"

# Fixed timestamps for mtime-driven tests
OLD = 1_600_000_000
NEW = 1_700_000_000
FUTURE = 1_800_000_000


# =============================================================================
# Fake Toolchain
# =============================================================================


@dataclass
class ToolCalls:
    """Records which files and texts reached each tool."""

    less: list[Path] = field(default_factory=list)
    typescript: list[list[Path]] = field(default_factory=list)
    prefixed: list[Path] = field(default_factory=list)
    minified: list[str] = field(default_factory=list)


def make_fake_toolchain(calls: Optional[ToolCalls] = None) -> Toolchain:
    """Build a Toolchain whose tools are simple, deterministic text rewrites."""
    calls = calls if calls is not None else ToolCalls()

    def compile_less(path: Path) -> str:
        calls.less.append(path)
        text = path.read_text(encoding="utf-8")
        if LESS_ERROR_MARKER in text:
            raise CompileError(path, "unrecognised input", 1)
        return text.replace("@accent", "#c0ffee")

    def transpile_typescript(paths: Sequence[Path]) -> dict[Path, str]:
        ordered = sorted(paths)
        calls.typescript.append(ordered)
        emitted = {}
        for path in ordered:
            text = path.read_text(encoding="utf-8")
            if TS_ERROR_MARKER in text:
                raise TranspileError(path, "TS1005: ';' expected.", 1)
            emitted[path] = text.replace(": number", "").replace("let ", "var ")
        return emitted

    def autoprefix(css: str, output_path: Path) -> str:
        calls.prefixed.append(output_path)
        return css

    def minify(text: str) -> str:
        calls.minified.append(text)
        return " ".join(text.split())

    return Toolchain(
        compile_less=compile_less,
        transpile_typescript=transpile_typescript,
        autoprefix=autoprefix,
        minify_css=minify,
        minify_js=minify,
    )


# =============================================================================
# Filesystem Helpers
# =============================================================================


def write_files(root: Path, files: dict[str, str]) -> None:
    for relative, content in files.items():
        path = root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")


def set_mtime(path: Path, timestamp: float) -> None:
    os.utime(path, (timestamp, timestamp))


def make_module(
    project_root: Path,
    collection: str,
    name: str,
    manifest: Any,
    files: Optional[dict[str, str]] = None,
) -> Path:
    """Create Orchard.Web/<collection>/<name>/Assets.json plus source files.

    `manifest` may be a list (serialized as JSON) or a raw string.
    """
    module_dir = project_root / "Orchard.Web" / collection / name
    module_dir.mkdir(parents=True, exist_ok=True)
    text = manifest if isinstance(manifest, str) else json.dumps(manifest, indent=2)
    (module_dir / "Assets.json").write_text(text, encoding="utf-8")
    write_files(module_dir, files or {})
    return module_dir


def resolve_entry(module_dir: Path, entry: dict[str, Any], index: int = 0) -> ResolvedAssetGroup:
    declaration = AssetGroupDeclaration.model_validate(entry)
    return resolve(declaration, module_dir / "Assets.json", index)


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def project_root(tmp_path: Path) -> Path:
    """Empty project with the three manifest collections."""
    for collection in ("Core", "Modules", "Themes"):
        (tmp_path / "Orchard.Web" / collection).mkdir(parents=True)
    return tmp_path


@pytest.fixture
def tool_calls() -> ToolCalls:
    return ToolCalls()


@pytest.fixture
def toolchain(tool_calls: ToolCalls) -> Toolchain:
    return make_fake_toolchain(tool_calls)


@pytest.fixture
def builder(toolchain: Toolchain) -> PipelineBuilder:
    return PipelineBuilder(toolchain)


@pytest.fixture
def config(project_root: Path) -> BuildConfig:
    return BuildConfig(project_root=project_root, debounce_seconds=0)
