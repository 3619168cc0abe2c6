# Copyright (c) 2026 Nenad Vasic. All rights reserved.
# Licensed under the Business Source License 1.1 (BSL-1.1)
# See LICENSE file in the project root for full license text.

"""
Deite Paths — single source of truth for all data file locations.

Resolution order:
  1. DEITE_DATA_DIR environment variable
  2. Default: ~/.deite/

Usage:
    from core.paths import get_paths
    p = get_paths()
    p.cache_file        # ~/.deite/wellbeing-cache.json
    p.days_dir          # ~/.deite/days/

For tests:
    from core.paths import configure
    configure(tmp_path)  # all paths now rooted under tmp_path
"""

import os
from pathlib import Path
from typing import Optional


class DeitePaths:
    """Central registry of every file and directory the wellbeing layer uses."""

    def __init__(self, data_dir: Optional[Path] = None):
        if data_dir is not None:
            self._root = Path(data_dir)
        else:
            env = os.environ.get("DEITE_DATA_DIR")
            if env:
                self._root = Path(env).expanduser()
            else:
                self._root = Path.home() / ".deite"

    # ------------------------------------------------------------------
    # Root
    # ------------------------------------------------------------------
    @property
    def data_dir(self) -> Path:
        return self._root

    # ------------------------------------------------------------------
    # Config & logs
    # ------------------------------------------------------------------
    @property
    def config_file(self) -> Path:
        return self._root / "wellbeing-config.json"

    @property
    def logs_dir(self) -> Path:
        return self._root / "logs"

    @property
    def log_file(self) -> Path:
        return self.logs_dir / "wellbeing.log"

    # ------------------------------------------------------------------
    # Local key-value cache (survives restarts)
    # ------------------------------------------------------------------
    @property
    def cache_file(self) -> Path:
        return self._root / "wellbeing-cache.json"

    # ------------------------------------------------------------------
    # File-backed document store: days/{user_id}/{YYYY-MM-DD}.json
    # ------------------------------------------------------------------
    @property
    def days_dir(self) -> Path:
        return self._root / "days"

    def user_days_dir(self, user_id: str) -> Path:
        return self.days_dir / user_id

    def day_file(self, user_id: str, date_id: str) -> Path:
        return self.user_days_dir(user_id) / f"{date_id}.json"

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def ensure_dirs(self) -> None:
        """Create all directories that need to exist."""
        dirs = [
            self._root,
            self.logs_dir,
            self.days_dir,
        ]
        for d in dirs:
            d.mkdir(parents=True, exist_ok=True)


# ===========================================================================
# Singleton
# ===========================================================================

_instance: Optional[DeitePaths] = None


def get_paths() -> DeitePaths:
    """Return the global DeitePaths singleton (lazy-init)."""
    global _instance
    if _instance is None:
        _instance = DeitePaths()
    return _instance


def configure(data_dir: Path) -> DeitePaths:
    """
    Override the global paths singleton. Used by tests and CLI --data-dir.

    Returns the new instance for convenience.
    """
    global _instance
    _instance = DeitePaths(data_dir=data_dir)
    return _instance


def reset() -> None:
    """Reset singleton so next get_paths() re-reads env."""
    global _instance
    _instance = None
