"""
Tests for the style and script pipelines.

Covers concatenated bundles, per-input fan-out, incremental staleness,
inline source maps and isolation of transformation failures.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from assetpipe.build.errors import InvalidInputType
from assetpipe.build.pipeline import PipelineBuilder, write_artifact
from assetpipe.build.sourcemaps import read_inline_map, resolve_sources

from .conftest import (
    FUTURE,
    LESS_ERROR_MARKER,
    OLD,
    TS_ERROR_MARKER,
    ToolCalls,
    make_module,
    resolve_entry,
    set_mtime,
)


# =============================================================================
# Style Pipeline
# =============================================================================


@pytest.mark.evergreen
class TestConcatenatedStyles:
    """Two LESS inputs bundled into one stylesheet."""

    @pytest.fixture
    def module(self, project_root: Path) -> Path:
        return make_module(
            project_root,
            "Themes",
            "TheTheme",
            [],
            {
                "Less/a.less": ".a { color: @accent; }\n",
                "Less/b.less": ".b { margin: 0; }\n",
            },
        )

    @pytest.fixture
    def group(self, module: Path):
        return resolve_entry(
            module, {"inputs": ["Less/a.less", "Less/b.less"], "output": "Styles/bundle.css"}
        )

    def test_bundle_and_minified_bundle_written(self, builder: PipelineBuilder, group, module: Path) -> None:
        result = builder.build(group)

        bundle = module / "Styles" / "bundle.css"
        minified = module / "Styles" / "bundle.min.css"
        assert result.ok
        assert result.written == [bundle, minified]
        assert not (module / "Styles" / "a.css").exists()
        assert not (module / "Styles" / "b.css").exists()

    def test_inputs_appear_in_declared_order(self, builder: PipelineBuilder, group, module: Path) -> None:
        builder.build(group)

        text = (module / "Styles" / "bundle.css").read_text(encoding="utf-8")
        assert ".a { color: #c0ffee; }" in text
        assert text.index(".a {") < text.index(".b {")

    def test_minified_output_has_no_source_map(self, builder: PipelineBuilder, group, module: Path) -> None:
        builder.build(group)

        minified = (module / "Styles" / "bundle.min.css").read_text(encoding="utf-8")
        assert "sourceMappingURL" not in minified
        assert minified == ".a { color: #c0ffee; } .b { margin: 0; }"

    def test_autoprefix_runs_once_per_output(
        self, builder: PipelineBuilder, group, module: Path, tool_calls: ToolCalls
    ) -> None:
        builder.build(group)

        assert tool_calls.prefixed == [module / "Styles" / "bundle.css"]

    def test_plain_css_inputs_skip_the_compiler(
        self, builder: PipelineBuilder, module: Path, tool_calls: ToolCalls
    ) -> None:
        (module / "Styles").mkdir()
        (module / "Styles" / "vendor.css").write_text(".v{}\n", encoding="utf-8")
        group = resolve_entry(
            module, {"inputs": ["Styles/vendor.css", "Less/b.less"], "output": "Out/all.css"}
        )

        builder.build(group)

        assert tool_calls.less == [module / "Less" / "b.less"]
        text = (module / "Out" / "all.css").read_text(encoding="utf-8")
        assert text.index(".v{}") < text.index(".b {")

    def test_second_build_is_up_to_date(self, builder: PipelineBuilder, group, module: Path) -> None:
        for path in (module / "Less").iterdir():
            set_mtime(path, OLD)
        builder.build(group)

        result = builder.build(group)

        assert result.up_to_date
        assert result.skipped == [module / "Less" / "a.less", module / "Less" / "b.less"]

    def test_one_newer_input_rebuilds_whole_bundle(
        self, builder: PipelineBuilder, group, module: Path, tool_calls: ToolCalls
    ) -> None:
        for path in (module / "Less").iterdir():
            set_mtime(path, OLD)
        builder.build(group)
        tool_calls.less.clear()
        set_mtime(module / "Less" / "b.less", FUTURE)

        result = builder.build(group)

        assert len(result.written) == 2
        assert tool_calls.less == [module / "Less" / "a.less", module / "Less" / "b.less"]

    def test_forced_rebuild_is_byte_identical(self, builder: PipelineBuilder, group, module: Path) -> None:
        builder.build(group, force_rebuild=True)
        first = (module / "Styles" / "bundle.css").read_bytes()
        first_min = (module / "Styles" / "bundle.min.css").read_bytes()

        builder.build(group, force_rebuild=True)

        assert (module / "Styles" / "bundle.css").read_bytes() == first
        assert (module / "Styles" / "bundle.min.css").read_bytes() == first_min

    def test_compile_error_leaves_previous_bundle(
        self, builder: PipelineBuilder, group, module: Path
    ) -> None:
        builder.build(group)
        previous = (module / "Styles" / "bundle.css").read_text(encoding="utf-8")
        (module / "Less" / "b.less").write_text(f".b {{ {LESS_ERROR_MARKER} }}\n", encoding="utf-8")

        result = builder.build(group, force_rebuild=True)

        assert not result.ok
        assert result.written == []
        assert "b.less" in result.errors[0]
        assert (module / "Styles" / "bundle.css").read_text(encoding="utf-8") == previous


# =============================================================================
# Script Pipeline
# =============================================================================


@pytest.mark.evergreen
class TestFanOutScripts:
    """A bare '@' output name produces one artifact per input."""

    @pytest.fixture
    def module(self, project_root: Path) -> Path:
        return make_module(
            project_root,
            "Modules",
            "Orchard.Layouts",
            [],
            {
                "Scripts/x.ts": "let x: number = 1;\n",
                "Scripts/y.ts": "let y: number = 2;\n",
            },
        )

    @pytest.fixture
    def group(self, module: Path):
        return resolve_entry(module, {"inputs": ["Scripts/*.ts"], "output": "Scripts/@.js"})

    def test_one_output_pair_per_input(self, builder: PipelineBuilder, group, module: Path) -> None:
        result = builder.build(group)

        scripts = module / "Scripts"
        assert result.ok
        assert result.written == [
            scripts / "x.js",
            scripts / "x.min.js",
            scripts / "y.js",
            scripts / "y.min.js",
        ]
        assert not (scripts / "@.js").exists()
        assert (scripts / "x.min.js").read_text(encoding="utf-8") == "var x = 1;"

    def test_only_touched_input_is_rebuilt(
        self, builder: PipelineBuilder, group, module: Path, tool_calls: ToolCalls
    ) -> None:
        scripts = module / "Scripts"
        set_mtime(scripts / "x.ts", OLD)
        set_mtime(scripts / "y.ts", OLD)
        builder.build(group)
        tool_calls.typescript.clear()
        set_mtime(scripts / "x.ts", FUTURE)

        result = builder.build(group)

        assert result.written == [scripts / "x.js", scripts / "x.min.js"]
        assert result.skipped == [scripts / "y.ts"]
        assert tool_calls.typescript == [[scripts / "x.ts"]]

    def test_failing_input_does_not_block_siblings(
        self, builder: PipelineBuilder, group, module: Path
    ) -> None:
        scripts = module / "Scripts"
        (scripts / "x.ts").write_text(f"let x = {TS_ERROR_MARKER}\n", encoding="utf-8")

        result = builder.build(group)

        assert not result.ok
        assert len(result.errors) == 1
        assert "x.ts" in result.errors[0]
        assert not (scripts / "x.js").exists()
        assert (scripts / "y.js").exists()
        assert (scripts / "y.min.js").exists()

    def test_plain_js_passes_through_untranspiled(
        self, builder: PipelineBuilder, module: Path, tool_calls: ToolCalls
    ) -> None:
        (module / "Scripts" / "legacy.js").write_text("var legacy = true;\n", encoding="utf-8")
        group = resolve_entry(
            module, {"inputs": ["Scripts/legacy.js", "Scripts/x.ts"], "output": "Scripts/bundle.js"}
        )

        builder.build(group)

        assert tool_calls.typescript == [[module / "Scripts" / "x.ts"]]
        text = (module / "Scripts" / "bundle.js").read_text(encoding="utf-8")
        assert text.startswith("var legacy = true;\n")

    def test_glob_expanding_to_wrong_type_is_rejected(
        self, builder: PipelineBuilder, module: Path
    ) -> None:
        (module / "Scripts" / "notes.txt").write_text("", encoding="utf-8")
        group = resolve_entry(module, {"inputs": ["Scripts/*"], "output": "Scripts/all.js"})

        with pytest.raises(InvalidInputType):
            builder.build(group)


# =============================================================================
# Source Maps
# =============================================================================


@pytest.mark.evergreen
class TestSourceMaps:
    """Unminified artifacts carry an inline map back to the original files."""

    @pytest.fixture
    def module(self, project_root: Path) -> Path:
        return make_module(
            project_root,
            "Core",
            "Shapes",
            [],
            {
                "Less/a.less": ".a { color: @accent; }\n",
                "Less/b.less": ".b {\n  margin: 0;\n}\n",
            },
        )

    def test_map_sources_resolve_to_inputs(self, builder: PipelineBuilder, module: Path) -> None:
        group = resolve_entry(
            module, {"inputs": ["Less/a.less", "Less/b.less"], "output": "Styles/shapes.css"}
        )
        builder.build(group)

        text = (module / "Styles" / "shapes.css").read_text(encoding="utf-8")
        source_map = read_inline_map(text)

        assert source_map is not None
        assert source_map["file"] == "shapes.css"
        assert resolve_sources(source_map, module / "Styles") == [
            module / "Less" / "a.less",
            module / "Less" / "b.less",
        ]
        assert source_map["sourcesContent"][1] == ".b {\n  margin: 0;\n}\n"
        assert text.rstrip("\n").endswith("*/")

    def test_script_map_uses_line_comment(self, builder: PipelineBuilder, project_root: Path) -> None:
        module = make_module(project_root, "Modules", "M", [], {"app.ts": "let a: number = 1;\n"})
        group = resolve_entry(module, {"inputs": ["app.ts"], "output": "app.js"})
        builder.build(group)

        text = (module / "app.js").read_text(encoding="utf-8")
        assert "\n//# sourceMappingURL=data:application/json;" in text
        assert resolve_sources(read_inline_map(text), module) == [module / "app.ts"]

    def test_maps_can_be_disabled(self, builder: PipelineBuilder, module: Path) -> None:
        group = resolve_entry(
            module,
            {"inputs": ["Less/a.less"], "output": "Styles/a.css", "generateSourceMaps": False},
        )
        builder.build(group)

        text = (module / "Styles" / "a.css").read_text(encoding="utf-8")
        assert "sourceMappingURL" not in text
        assert read_inline_map(text) is None


@pytest.mark.evergreen
class TestWriteArtifact:
    """Artifacts are replaced in one step."""

    def test_creates_parent_directories(self, tmp_path: Path) -> None:
        target = tmp_path / "deep" / "er" / "out.css"
        write_artifact(target, "body{}")

        assert target.read_text(encoding="utf-8") == "body{}"
        assert not (target.parent / ".out.css.tmp").exists()

    def test_overwrites_existing_file(self, tmp_path: Path) -> None:
        target = tmp_path / "out.js"
        target.write_text("old", encoding="utf-8")

        write_artifact(target, "new")

        assert target.read_text(encoding="utf-8") == "new"
