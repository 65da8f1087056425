"""
assetpipe.core - Foundation layer for the assetpipe CLI.

Exports logging, layout constants and runtime helpers.
"""

from assetpipe.core.utils import (
    # Logging
    log,
    Logger,
    # Constants
    WEB_ROOT,
    MANIFEST_ROOTS,
    MANIFEST_FILENAME,
    WILDCARD,
    MIN_SUFFIX,
    CONFIG_FILENAME,
    # Path utilities
    get_web_root,
    relative_to_project,
    # Runtime utilities
    which,
    run_cmd,
)
from assetpipe.core.timing import TimingContext, format_duration, slowest

__all__ = [
    # Logging
    "log",
    "Logger",
    # Constants
    "WEB_ROOT",
    "MANIFEST_ROOTS",
    "MANIFEST_FILENAME",
    "WILDCARD",
    "MIN_SUFFIX",
    "CONFIG_FILENAME",
    # Path utilities
    "get_web_root",
    "relative_to_project",
    # Runtime utilities
    "which",
    "run_cmd",
    # Timing
    "TimingContext",
    "format_duration",
    "slowest",
]
