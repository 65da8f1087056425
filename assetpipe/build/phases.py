"""
External transformation tools used by the asset pipelines.

Each tool is a plain callable so a Toolchain can be assembled from real
compilers (the default) or from stand-ins in tests. The pipelines only
decide which files reach these tools and whether they run at all.
"""

from __future__ import annotations

import functools
import os
import re
import subprocess
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional, Sequence

import lesscpy
import rcssmin
import rjsmin

from assetpipe.core.utils import log, run_cmd, which
from assetpipe.build.config import BuildConfig, DEFAULT_BROWSERS
from assetpipe.build.errors import CompileError, TranspileError

# tsc diagnostics look like: Scripts/app.ts(12,5): error TS2322: ...
_TSC_ERROR_RE = re.compile(r"^(?P<path>.+?)\((?P<line>\d+),(?P<col>\d+)\): error (?P<message>.+)$", re.M)

_missing_tools_reported: set[str] = set()


# =============================================================================
# Stylesheets
# =============================================================================


def compile_less(source_path: Path) -> str:
    """Compile a .less file to CSS.

    Raises:
        CompileError: lesscpy rejected the source.
    """
    try:
        with open(source_path, "r", encoding="utf-8") as f:
            return lesscpy.compile(f, minify=False)
    except OSError as e:
        raise CompileError(source_path, str(e)) from e
    except Exception as e:
        # lesscpy reports problems as several unrelated exception types
        raise CompileError(source_path, str(e), getattr(e, "lineno", None)) from e


def autoprefix(
    css: str,
    output_path: Path,
    browsers: Sequence[str] = tuple(DEFAULT_BROWSERS),
    postcss_command: Sequence[str] = ("postcss",),
) -> str:
    """Add vendor prefixes with postcss + autoprefixer.

    Passes CSS through unchanged (with a one-time warning) when postcss is
    not installed.
    """
    executable = postcss_command[0]
    if which(executable) is None:
        if executable not in _missing_tools_reported:
            _missing_tools_reported.add(executable)
            log.warning(f"'{executable}' not found, skipping autoprefixer pass")
        return css

    env = dict(os.environ)
    env["BROWSERSLIST"] = ", ".join(browsers)
    result = subprocess.run(
        [*postcss_command, "--use", "autoprefixer", "--no-map"],
        input=css,
        capture_output=True,
        text=True,
        env=env,
    )
    if result.returncode != 0:
        raise CompileError(output_path, f"autoprefixer failed: {result.stderr.strip()[:300]}")
    return result.stdout


def minify_css(css: str) -> str:
    return rcssmin.cssmin(css)


# =============================================================================
# Scripts
# =============================================================================


def _first_tsc_error(output: str, sources: Sequence[Path]) -> tuple[Path, Optional[int], str]:
    match = _TSC_ERROR_RE.search(output)
    if match is None:
        return sources[0], None, output.strip()[:300] or "tsc exited with an error"
    return Path(match.group("path")), int(match.group("line")), match.group("message")


def transpile_typescript(
    source_paths: Sequence[Path],
    tsc_command: Sequence[str] = ("tsc",),
) -> dict[Path, str]:
    """Transpile .ts files to JavaScript in one tsc invocation.

    Files are passed in sorted order so compilation is reproducible. With
    --noEmitOnError any diagnostic means no file is emitted at all.

    Raises:
        TranspileError: tsc is missing or reported an error.
    """
    if not source_paths:
        return {}

    ordered = sorted(source_paths)
    if which(tsc_command[0]) is None:
        raise TranspileError(ordered[0], f"'{tsc_command[0]}' not found on PATH")

    root_dir = Path(os.path.commonpath([str(p.parent) for p in ordered]))

    with tempfile.TemporaryDirectory(prefix="assetpipe-tsc-") as out_dir:
        cmd = [
            *tsc_command,
            "--noEmitOnError",
            "--target", "ES5",
            "--rootDir", str(root_dir),
            "--outDir", out_dir,
            *(str(p) for p in ordered),
        ]
        result = run_cmd(cmd, capture=True)
        if result.returncode != 0:
            path, line, message = _first_tsc_error(result.stdout or result.stderr, ordered)
            raise TranspileError(path, message, line)

        emitted: dict[Path, str] = {}
        for source in ordered:
            js_path = Path(out_dir) / source.relative_to(root_dir).with_suffix(".js")
            emitted[source] = js_path.read_text(encoding="utf-8")
        return emitted


def minify_js(js: str) -> str:
    return rjsmin.jsmin(js)


# =============================================================================
# Toolchain
# =============================================================================


@dataclass
class Toolchain:
    """The set of transformation tools a PipelineBuilder feeds files to."""

    compile_less: Callable[[Path], str]
    transpile_typescript: Callable[[Sequence[Path]], dict[Path, str]]
    autoprefix: Callable[[str, Path], str]
    minify_css: Callable[[str], str]
    minify_js: Callable[[str], str]

    @classmethod
    def from_config(cls, config: BuildConfig) -> "Toolchain":
        return cls(
            compile_less=compile_less,
            transpile_typescript=functools.partial(
                transpile_typescript, tsc_command=tuple(config.tsc_command)
            ),
            autoprefix=functools.partial(
                autoprefix,
                browsers=tuple(config.browsers),
                postcss_command=tuple(config.postcss_command),
            ),
            minify_css=minify_css,
            minify_js=minify_js,
        )
