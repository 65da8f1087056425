"""
Processing pipelines for asset groups.

Both output kinds share one shape:

    validate -> staleness gate -> read sources -> transform
        -> concatenate or fan out -> finalize -> source map
        -> write unminified -> minify -> write .min

and differ only in the transform, finalize and minify steps, which live on a
PipelineStrategy picked by the group's OutputKind.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Sequence

from assetpipe.core.utils import log
from assetpipe.build.errors import (
    CompileError,
    TransformError,
    TranspileError,
    WriteError,
)
from assetpipe.build.models import (
    BuildInvocation,
    OutputKind,
    ResolvedAssetGroup,
    minified_name,
)
from assetpipe.build.paths import expand_inputs, validate_input_types
from assetpipe.build.phases import Toolchain
from assetpipe.build.sourcemaps import SourceMapBuilder, inline_comment
from assetpipe.build.staleness import stale_inputs


# =============================================================================
# Results
# =============================================================================


@dataclass
class BuildResult:
    """Outcome of running one asset group's pipeline."""

    group: ResolvedAssetGroup
    invocation: BuildInvocation
    written: list[Path] = field(default_factory=list)
    skipped: list[Path] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors

    @property
    def up_to_date(self) -> bool:
        return not self.written and not self.errors


# =============================================================================
# Strategies
# =============================================================================


class PipelineStrategy:
    """Kind-specific steps of an asset pipeline."""

    kind: OutputKind
    error_type: type[TransformError] = TransformError

    def __init__(self, toolchain: Toolchain):
        self.toolchain = toolchain

    def validate(self, group: ResolvedAssetGroup, inputs: Sequence[Path]) -> None:
        validate_input_types(inputs, self.kind, group.output_path)

    def read_source(self, path: Path) -> str:
        try:
            return path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise self.error_type(path, f"could not read source: {e}") from e

    def transform(self, sources: dict[Path, str]) -> dict[Path, str]:
        raise NotImplementedError

    def finalize(self, text: str, output_path: Path) -> str:
        return text

    def minify(self, text: str) -> str:
        raise NotImplementedError


class StyleStrategy(PipelineStrategy):
    """LESS/CSS -> CSS, autoprefixed, minified with rcssmin."""

    kind = OutputKind.STYLE
    error_type = CompileError

    def transform(self, sources: dict[Path, str]) -> dict[Path, str]:
        return {
            path: self.toolchain.compile_less(path) if path.suffix.lower() == ".less" else text
            for path, text in sources.items()
        }

    def finalize(self, text: str, output_path: Path) -> str:
        return self.toolchain.autoprefix(text, output_path)

    def minify(self, text: str) -> str:
        return self.toolchain.minify_css(text)


class ScriptStrategy(PipelineStrategy):
    """TypeScript/JS -> JS, minified with rjsmin."""

    kind = OutputKind.SCRIPT
    error_type = TranspileError

    def transform(self, sources: dict[Path, str]) -> dict[Path, str]:
        typescript = [path for path in sources if path.suffix.lower() == ".ts"]
        emitted = self.toolchain.transpile_typescript(typescript) if typescript else {}
        return {path: emitted.get(path, text) for path, text in sources.items()}

    def minify(self, text: str) -> str:
        return self.toolchain.minify_js(text)


STRATEGIES: dict[OutputKind, type[PipelineStrategy]] = {
    OutputKind.STYLE: StyleStrategy,
    OutputKind.SCRIPT: ScriptStrategy,
}


# =============================================================================
# Artifact Writing
# =============================================================================


def write_artifact(path: Path, text: str) -> None:
    """Write `text` to `path` via a temporary file so readers never see a partial file."""
    tmp_path = path.with_name(f".{path.name}.tmp")
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path.write_text(text, encoding="utf-8")
        os.replace(tmp_path, path)
    except OSError as e:
        if tmp_path.exists():
            tmp_path.unlink()
        raise WriteError(path, str(e)) from e


# =============================================================================
# Pipeline Builder
# =============================================================================


class PipelineBuilder:
    """Runs the style or script pipeline for resolved asset groups."""

    def __init__(self, toolchain: Toolchain):
        self.toolchain = toolchain

    def strategy_for(self, kind: OutputKind) -> PipelineStrategy:
        return STRATEGIES[kind](self.toolchain)

    def build(self, group: ResolvedAssetGroup, force_rebuild: bool = False) -> BuildResult:
        return self.run(group, BuildInvocation(force_rebuild=force_rebuild))

    def run(self, group: ResolvedAssetGroup, invocation: BuildInvocation) -> BuildResult:
        """Build one group.

        Raises:
            InvalidInputType: an expanded input does not fit the output kind.

        Transform and write failures do not raise; they are recorded on the
        result per output so sibling outputs still get written.
        """
        strategy = self.strategy_for(group.output_kind)
        inputs = expand_inputs(group)
        strategy.validate(group, inputs)

        if invocation.force_rebuild:
            log.dim(f"{group.output_path}: force rebuild enabled, rebuilding all input files")
        else:
            log.dim(f"{group.output_path}: rebuilding only inputs newer than their output")

        stale = stale_inputs(group, inputs, invocation.force_rebuild)
        result = BuildResult(
            group=group,
            invocation=invocation,
            skipped=[path for path in inputs if path not in stale],
        )

        if not stale:
            log.dim(f"{group.output_path}: up to date")
            return result

        for output_name, unit_inputs in self._output_units(group, stale):
            try:
                result.written.extend(
                    self._build_output(group, strategy, output_name, unit_inputs)
                )
            except (TransformError, WriteError) as e:
                log.error(str(e))
                result.errors.append(str(e))

        if result.errors:
            log.warning(
                f"{group.output_path}: {len(result.errors)} output(s) failed, "
                f"existing artifacts left in place"
            )
        elif invocation.force_rebuild:
            log.success(f"Rebuild complete: {group.output_path}")
        else:
            log.success(f"Build process complete: {group.output_path}")
        return result

    @staticmethod
    def _output_units(
        group: ResolvedAssetGroup, inputs: Sequence[Path]
    ) -> list[tuple[str, list[Path]]]:
        """Pair each output file name with the inputs that produce it."""
        if group.concatenate:
            return [(group.output_file_name, list(inputs))]
        return [(group.output_name_for(path), [path]) for path in inputs]

    def _build_output(
        self,
        group: ResolvedAssetGroup,
        strategy: PipelineStrategy,
        output_name: str,
        inputs: Sequence[Path],
    ) -> list[Path]:
        output_path = group.output_dir / output_name
        sources = {path: strategy.read_source(path) for path in inputs}
        generated = strategy.transform(sources)

        source_map: Optional[SourceMapBuilder] = None
        if group.generate_source_maps:
            source_map = SourceMapBuilder(output_name, group.output_dir)
            for path in inputs:
                source_map.add_chunk(path, sources[path], generated[path])

        text = strategy.finalize("\n".join(generated[path] for path in inputs), output_path)
        minified = strategy.minify(text)

        unminified = text
        if source_map is not None:
            comment = inline_comment(source_map.to_dict(), group.output_kind)
            unminified = text.rstrip("\n") + "\n" + comment + "\n"

        min_path = group.output_dir / minified_name(output_name)
        write_artifact(output_path, unminified)
        write_artifact(min_path, minified)
        log.dim(f"  wrote {output_path.name}, {min_path.name}")
        return [output_path, min_path]
