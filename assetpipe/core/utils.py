"""
Shared utilities for the assetpipe CLI.
"""

from __future__ import annotations

import shutil
import subprocess
import sys
import threading
from pathlib import Path
from typing import Optional

# =============================================================================
# Constants
# =============================================================================

# Manifest discovery layout: <project>/Orchard.Web/{Core,Modules,Themes}/*/Assets.json
WEB_ROOT = "Orchard.Web"
MANIFEST_ROOTS = ("Core", "Modules", "Themes")
MANIFEST_FILENAME = "Assets.json"

# Output naming
WILDCARD = "@"
MIN_SUFFIX = ".min"

CONFIG_FILENAME = "assetpipe.yaml"


# =============================================================================
# Logging
# =============================================================================


class Logger:
    """Simple colored logger with --no-color support."""

    COLORS = {
        "reset": "\033[0m",
        "red": "\033[91m",
        "green": "\033[92m",
        "yellow": "\033[93m",
        "blue": "\033[94m",
        "magenta": "\033[95m",
        "cyan": "\033[96m",
        "bold": "\033[1m",
        "dim": "\033[2m",
    }

    def __init__(self, use_color: Optional[bool] = None):
        if use_color is None:
            self._use_color = sys.stdout.isatty()
        else:
            self._use_color = use_color
        self._verbose = False
        # Asset groups build on worker threads; keep lines whole.
        self._lock = threading.Lock()

    def set_color(self, use_color: bool) -> None:
        """Set whether to use color output."""
        self._use_color = use_color

    def set_verbose(self, verbose: bool) -> None:
        """Enable or disable verbose (dim) diagnostics."""
        self._verbose = verbose

    def _color(self, text: str, color: str) -> str:
        if not self._use_color:
            return text
        return f"{self.COLORS.get(color, '')}{text}{self.COLORS['reset']}"

    def _emit(self, line: str) -> None:
        with self._lock:
            print(line, flush=True)

    def header(self, message: str) -> None:
        """Print a section header."""
        self._emit(f"\n{self._color('===', 'cyan')} {self._color(message, 'bold')} {self._color('===', 'cyan')}")

    def info(self, message: str) -> None:
        """Print an info message."""
        self._emit(f"  {message}")

    def success(self, message: str) -> None:
        """Print a success message."""
        self._emit(f"  {self._color('[OK]', 'green')} {message}")

    def warning(self, message: str) -> None:
        """Print a warning message."""
        self._emit(f"  {self._color('[WARN]', 'yellow')} {message}")

    def error(self, message: str) -> None:
        """Print an error message."""
        self._emit(f"  {self._color('[ERROR]', 'red')} {message}")

    def dim(self, message: str) -> None:
        """Print a dim/secondary message. Only shown in verbose mode."""
        if self._verbose:
            self._emit(f"  {self._color(message, 'dim')}")


# Global logger instance
log = Logger()


# =============================================================================
# Path Utilities
# =============================================================================


def get_web_root(project_root: Optional[Path] = None) -> Path:
    """Return the web root that holds the manifest collections."""
    if project_root is None:
        project_root = Path.cwd()
    return project_root / WEB_ROOT


def relative_to_project(path: Path, project_root: Path) -> str:
    """Render a path relative to the project root when possible."""
    try:
        return str(path.relative_to(project_root))
    except ValueError:
        return str(path)


# =============================================================================
# Runtime Utilities
# =============================================================================


def which(command: str) -> Optional[str]:
    """Locate an executable on PATH."""
    return shutil.which(command)


def run_cmd(
    cmd: list[str],
    cwd: Optional[Path] = None,
    capture: bool = False,
) -> subprocess.CompletedProcess:
    """Run a command to completion. Callers inspect the return code."""
    return subprocess.run(cmd, cwd=cwd, capture_output=capture, text=True, check=False)
