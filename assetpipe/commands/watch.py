"""
Watch mode for assetpipe.

Registers every asset group's watch patterns with a watchdog observer and
re-runs that group's pipeline when a matching file changes. The set of
groups is fixed when the session starts; new manifests or asset groups need
a restart.
"""

from __future__ import annotations

import functools
import os
import threading
import time
from pathlib import Path
from typing import Callable, Optional, Sequence

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from assetpipe.core.utils import log
from assetpipe.build.config import DEFAULT_DEBOUNCE_SECONDS
from assetpipe.build.errors import AssetGroupError
from assetpipe.build.models import BuildInvocation, ResolvedAssetGroup
from assetpipe.build.paths import expand_watch_paths, pattern_matcher, static_root
from assetpipe.build.pipeline import BuildResult, PipelineBuilder
from assetpipe.build.staleness import effective_force


# =============================================================================
# Debouncer
# =============================================================================


class Debouncer:
    """Batches rapid file change events into a single callback.

    Collects paths for `delay` seconds after the last event, then calls
    `callback(paths)`. A delay of zero fires synchronously.
    """

    def __init__(self, delay: float, callback: Callable[[list[Path]], object]):
        self.delay = delay
        self.callback = callback
        self._timer: Optional[threading.Timer] = None
        self._lock = threading.Lock()
        self._pending_paths: list[Path] = []

    def trigger(self, path: Path) -> None:
        """Register a change event. Resets the debounce timer."""
        if self.delay <= 0:
            self.callback([path])
            return

        with self._lock:
            self._pending_paths.append(path)

            if self._timer is not None:
                self._timer.cancel()

            self._timer = threading.Timer(self.delay, self._fire)
            self._timer.daemon = True
            self._timer.start()

    def _fire(self) -> None:
        """Called after the debounce period."""
        with self._lock:
            if not self._pending_paths:
                return
            paths = list(self._pending_paths)
            self._pending_paths.clear()
            self._timer = None

        self.callback(paths)

    def cancel(self) -> None:
        """Cancel any pending debounce timer."""
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
            self._pending_paths.clear()


# =============================================================================
# File System Event Handler
# =============================================================================


class AssetGroupEventHandler(FileSystemEventHandler):
    """Forwards events matching one group's watch patterns to the session.

    Patterns are matched like input globs are expanded, so `**` spans any
    number of directories.
    """

    def __init__(self, group_id: str, patterns: Sequence[str], on_change: Callable[[str, Path], None]):
        super().__init__()
        self.group_id = group_id
        self.patterns = tuple(patterns)
        self.on_change = on_change
        self._matchers = [pattern_matcher(pattern) for pattern in self.patterns]

    def matches(self, path: Path) -> bool:
        posix = Path(os.path.normpath(path)).as_posix()
        return any(matcher.match(posix) for matcher in self._matchers)

    def on_modified(self, event: FileSystemEvent) -> None:
        self._handle(event, event.src_path)

    def on_created(self, event: FileSystemEvent) -> None:
        self._handle(event, event.src_path)

    def on_deleted(self, event: FileSystemEvent) -> None:
        self._handle(event, event.src_path)

    def on_moved(self, event: FileSystemEvent) -> None:
        self._handle(event, event.dest_path, event.src_path)

    def _handle(self, event: FileSystemEvent, *raw_paths) -> None:
        if event.is_directory:
            return
        for raw_path in raw_paths:
            if not raw_path:
                continue
            path = Path(os.fsdecode(raw_path))
            if self.matches(path):
                self.on_change(self.group_id, path)
                return


# =============================================================================
# Watch Session
# =============================================================================


class WatchSession:
    """Registration table of asset groups and the rebuilds they trigger."""

    def __init__(
        self,
        groups: Sequence[ResolvedAssetGroup],
        builder: PipelineBuilder,
        debounce: float = DEFAULT_DEBOUNCE_SECONDS,
    ):
        self.builder = builder
        self.groups: dict[str, ResolvedAssetGroup] = {group.group_id: group for group in groups}
        self.registrations: dict[str, tuple[str, ...]] = {
            group.group_id: tuple(str(path) for path in group.watch_paths) for group in groups
        }
        self.last_results: dict[str, BuildResult] = {}
        self._debouncers = {
            group_id: Debouncer(debounce, functools.partial(self.rebuild_group, group_id))
            for group_id in self.groups
        }
        self._group_locks = {group_id: threading.Lock() for group_id in self.groups}
        self._rebuild_count = 0
        self._failure_count = 0
        self._count_lock = threading.Lock()

    @property
    def rebuild_count(self) -> int:
        return self._rebuild_count

    @property
    def failure_count(self) -> int:
        return self._failure_count

    def handlers(self) -> list[AssetGroupEventHandler]:
        return [
            AssetGroupEventHandler(group_id, patterns, self.notify)
            for group_id, patterns in self.registrations.items()
        ]

    def watch_targets(self, group_id: str) -> dict[Path, bool]:
        """Directories to observe for one group, mapped to whether to recurse."""
        targets: dict[Path, bool] = {}
        for pattern in self.registrations[group_id]:
            directory, recursive = static_root(Path(pattern))
            targets[directory] = targets.get(directory, False) or recursive
        return targets

    def notify(self, group_id: str, path: Path) -> None:
        """Entry point for change events; debounced per group."""
        log.dim(f"Change detected: {path}")
        self._debouncers[group_id].trigger(path)

    def rebuild_group(self, group_id: str, paths: Sequence[Path]) -> Optional[BuildResult]:
        """Re-run one group's pipeline. Failures are logged; the group stays registered."""
        group = self.groups[group_id]
        trigger_path = paths[-1] if paths else None
        invocation = BuildInvocation(force_rebuild=effective_force(group), trigger_path=trigger_path)
        log.info(f"Asset file '{trigger_path}' was changed, rebuilding output '{group.output_path}'.")

        with self._group_locks[group_id]:
            try:
                result = self.builder.run(group, invocation)
            except AssetGroupError as e:
                log.error(str(e))
                with self._count_lock:
                    self._failure_count += 1
                return None

        with self._count_lock:
            self._rebuild_count += 1
            if not result.ok:
                self._failure_count += 1
        self.last_results[group_id] = result
        return result

    def schedule(self, observer) -> int:
        """Attach every group's handler to the observer. Returns the number of watches."""
        scheduled = 0
        for handler in self.handlers():
            for directory, recursive in self.watch_targets(handler.group_id).items():
                if not directory.is_dir():
                    log.warning(f"  Watch directory not found: {directory}")
                    continue
                observer.schedule(handler, str(directory), recursive=recursive)
                scheduled += 1
            group = self.groups[handler.group_id]
            log.dim(f"  {group.output_path.name}: {len(expand_watch_paths(group))} file(s) watched")
        return scheduled

    def cancel(self) -> None:
        for debouncer in self._debouncers.values():
            debouncer.cancel()

    def serve(self) -> int:
        """Run until Ctrl+C."""
        if not self.groups:
            log.error("No asset groups to watch")
            return 1

        observer = Observer()
        if self.schedule(observer) == 0:
            log.error("No valid watch targets found")
            return 1

        observer.start()
        log.info(f"Watching {len(self.groups)} asset group(s)... (Ctrl+C to stop)")

        try:
            while True:
                time.sleep(1)
        except KeyboardInterrupt:
            log.info("")
            log.header("Shutting down")

            self.cancel()
            observer.stop()
            observer.join(timeout=5)

            log.info(f"Rebuilds performed: {self.rebuild_count}")
            if self.failure_count:
                log.warning(f"Rebuilds with errors: {self.failure_count}")
            log.success("Watch mode stopped")

        return 0
