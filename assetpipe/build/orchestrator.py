"""
Build orchestrator for assetpipe.

Discovers manifests, resolves asset groups and runs their pipelines, either
once (build / rebuild) or continuously (watch).
"""

from __future__ import annotations

import asyncio
import time
from collections import Counter
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Optional, Sequence, Union

from assetpipe.core.timing import TimingContext, format_duration, slowest
from assetpipe.core.utils import log, relative_to_project
from assetpipe.build.config import BuildConfig
from assetpipe.build.discovery import discover
from assetpipe.build.errors import AssetGroupError
from assetpipe.build.models import AssetGroupDeclaration, ResolvedAssetGroup
from assetpipe.build.paths import resolve
from assetpipe.build.phases import Toolchain
from assetpipe.build.pipeline import BuildResult, PipelineBuilder
from assetpipe.build.staleness import is_stale

if TYPE_CHECKING:
    from assetpipe.commands.watch import WatchSession


# =============================================================================
# Run Results
# =============================================================================


@dataclass
class GroupFailure:
    """An asset group that could not be resolved or built."""

    group_id: str
    error: str


@dataclass
class RunSummary:
    """Outcome of one build or rebuild run."""

    force_rebuild: bool
    results: list[BuildResult] = field(default_factory=list)
    failures: list[GroupFailure] = field(default_factory=list)
    timings: dict[str, float] = field(default_factory=dict)
    duration: float = 0.0

    @property
    def ok(self) -> bool:
        return not self.failures and all(result.ok for result in self.results)

    @property
    def written(self) -> list[Path]:
        return [path for result in self.results for path in result.written]


# =============================================================================
# Build Orchestrator
# =============================================================================


class AssetOrchestrator:
    """Coordinates discovery, resolution and per-group pipelines."""

    def __init__(self, config: BuildConfig, toolchain: Optional[Toolchain] = None):
        self.config = config
        self.toolchain = toolchain or Toolchain.from_config(config)
        self.builder = PipelineBuilder(self.toolchain)

    # -------------------------------------------------------------------------
    # Discovery and resolution
    # -------------------------------------------------------------------------

    def discover(self) -> list[tuple[AssetGroupDeclaration, Path]]:
        """Raises ManifestLoadError if any manifest is malformed."""
        return discover(self.config.project_root)

    def resolve_all(
        self, pairs: Sequence[tuple[AssetGroupDeclaration, Path]]
    ) -> tuple[list[ResolvedAssetGroup], list[GroupFailure]]:
        """Resolve every declaration; a bad entry only drops that entry."""
        groups: list[ResolvedAssetGroup] = []
        failures: list[GroupFailure] = []
        positions: Counter[Path] = Counter()

        for declaration, manifest_path in pairs:
            index = positions[manifest_path]
            positions[manifest_path] += 1
            try:
                groups.append(resolve(declaration, manifest_path, index))
            except AssetGroupError as e:
                group_id = f"{manifest_path}#{index}"
                log.error(f"{self._label(manifest_path)}#{index}: {e}")
                failures.append(GroupFailure(group_id, str(e)))

        self._warn_duplicate_outputs(groups)
        return groups, failures

    def load_groups(self) -> tuple[list[ResolvedAssetGroup], list[GroupFailure]]:
        return self.resolve_all(self.discover())

    def _warn_duplicate_outputs(self, groups: Sequence[ResolvedAssetGroup]) -> None:
        """Two groups writing the same output race each other; report, don't block."""
        owners: dict[Path, str] = {}
        for group in groups:
            if not group.concatenate:
                continue
            if group.output_path in owners:
                log.warning(
                    f"Output '{group.output_path}' is produced by both "
                    f"{owners[group.output_path]} and {group.group_id}"
                )
            else:
                owners[group.output_path] = group.group_id

    def _label(self, path: Path) -> str:
        return relative_to_project(path, self.config.project_root.resolve())

    # -------------------------------------------------------------------------
    # One-shot runs
    # -------------------------------------------------------------------------

    def build(self) -> RunSummary:
        """Incremental build: each group only rebuilds outputs older than their inputs."""
        return self._run_once(force_rebuild=False)

    def rebuild(self) -> RunSummary:
        """Full rebuild: every group is regenerated regardless of timestamps."""
        return self._run_once(force_rebuild=True)

    def _run_once(self, force_rebuild: bool) -> RunSummary:
        log.header("Rebuilding assets" if force_rebuild else "Building assets")
        start = time.time()

        groups, failures = self.load_groups()
        summary = RunSummary(force_rebuild=force_rebuild, failures=failures)
        log.info(f"Found {len(groups)} asset group(s)")

        outcomes = asyncio.run(self._build_all(groups, force_rebuild, summary.timings))
        for outcome in outcomes:
            if isinstance(outcome, GroupFailure):
                summary.failures.append(outcome)
            else:
                summary.results.append(outcome)

        summary.duration = time.time() - start
        self._report(summary)
        return summary

    async def _build_all(
        self,
        groups: Sequence[ResolvedAssetGroup],
        force_rebuild: bool,
        timings: dict[str, float],
    ) -> list[Union[BuildResult, GroupFailure]]:
        """Run independent groups concurrently on worker threads."""
        tasks = [
            asyncio.to_thread(self._build_group, group, force_rebuild, timings)
            for group in groups
        ]
        return list(await asyncio.gather(*tasks))

    def _build_group(
        self,
        group: ResolvedAssetGroup,
        force_rebuild: bool,
        timings: dict[str, float],
    ) -> Union[BuildResult, GroupFailure]:
        try:
            with TimingContext(timings, group.group_id):
                return self.builder.build(group, force_rebuild)
        except AssetGroupError as e:
            log.error(f"{self._label(group.manifest_path)}: {e}")
            return GroupFailure(group.group_id, str(e))

    def _report(self, summary: RunSummary) -> None:
        built = [result for result in summary.results if result.written]
        current = [result for result in summary.results if result.up_to_date]

        log.header("BUILD COMPLETE" if summary.ok else "BUILD FINISHED WITH ERRORS")
        log.info(f"Groups built: {len(built)}")
        log.info(f"Groups up to date: {len(current)}")
        log.info(f"Files written: {len(summary.written)}")
        if not summary.ok:
            failed = len(summary.failures) + sum(1 for r in summary.results if not r.ok)
            log.error(f"Groups with errors: {failed}")
        log.info(f"Total time: {format_duration(summary.duration)}")
        for group_id, seconds in slowest(summary.timings):
            log.dim(f"  {self._label(Path(group_id))}: {format_duration(seconds)}")

    # -------------------------------------------------------------------------
    # Watch
    # -------------------------------------------------------------------------

    def create_watch_session(self) -> WatchSession:
        """Resolve groups once; the session keeps them until it is restarted."""
        # commands.watch imports assetpipe.build, which imports this module
        from assetpipe.commands.watch import WatchSession

        groups, _failures = self.load_groups()
        return WatchSession(groups, self.builder, debounce=self.config.debounce_seconds)

    def watch(self) -> int:
        """Continuous watch. Blocks until interrupted."""
        log.header("Watching assets")
        session = self.create_watch_session()
        stale = [group for group in session.groups.values() if is_stale(group, force_rebuild=False)]
        if stale:
            log.warning(
                f"{len(stale)} asset group(s) are out of date; they rebuild on the next change "
                f"to a watched file, or run 'assetpipe build' now"
            )
            for group in stale:
                log.dim(f"  out of date: {group.output_path}")
        return session.serve()
