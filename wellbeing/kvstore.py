# Copyright (c) 2026 Nenad Vasic. All rights reserved.
# Licensed under the Business Source License 1.1 (BSL-1.1)
# See LICENSE file in the project root for full license text.

"""
Local key-value storage so cached dashboard series survive restarts.

String keys, JSON-serializable values. Two flavours:
  - MemoryKeyValueStore: plain dict, for tests and ephemeral sessions
  - JsonFileKeyValueStore: one JSON object on disk, atomic writes,
    corrupt files backed up and reset instead of crashing
"""

import json
import logging
import threading
import time
from pathlib import Path
from typing import Any, Dict, List, Optional

from wellbeing.schemas import atomic_write_json

logger = logging.getLogger("deite.kvstore")


class MemoryKeyValueStore:
    """In-process key-value store. Values are stored as given."""

    def __init__(self):
        self._data: Dict[str, Any] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            return self._data.get(key)

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            self._data[key] = value

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._data.pop(key, None) is not None

    def keys(self, prefix: str = "") -> List[str]:
        with self._lock:
            return [k for k in self._data if k.startswith(prefix)]


class JsonFileKeyValueStore:
    """
    Key-value store persisted as a single JSON object.

    The file is loaded lazily on first access and rewritten atomically on
    every mutation. Writes are serialized and each one writes the newest
    state, so readers never wait on disk I/O. A file that fails to parse
    is moved aside to `<name>.corrupt-<ts>.json` and the store starts empty.
    """

    def __init__(self, path: Path):
        self.path = Path(path)
        self._data: Optional[Dict[str, Any]] = None
        self._lock = threading.Lock()
        self._write_lock = threading.Lock()

    def _load(self) -> Dict[str, Any]:
        if self._data is not None:
            return self._data

        data: Dict[str, Any] = {}
        if self.path.exists():
            txt = self.path.read_text(encoding="utf-8").strip()
            if txt:
                try:
                    parsed = json.loads(txt)
                    if isinstance(parsed, dict):
                        data = parsed
                    else:
                        logger.warning("Key-value file %s is not an object, resetting", self.path)
                except json.JSONDecodeError:
                    backup = self.path.with_suffix(f".corrupt-{int(time.time())}.json")
                    backup.write_text(txt, encoding="utf-8")
                    logger.warning("Key-value file %s corrupt, backed up to %s", self.path, backup.name)
        self._data = data
        return data

    def _flush(self) -> None:
        with self._write_lock:
            with self._lock:
                snapshot = dict(self._load())
            atomic_write_json(self.path, snapshot, indent=None)

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            return self._load().get(key)

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            self._load()[key] = value
        self._flush()

    def delete(self, key: str) -> bool:
        with self._lock:
            data = self._load()
            if key not in data:
                return False
            del data[key]
        self._flush()
        return True

    def keys(self, prefix: str = "") -> List[str]:
        with self._lock:
            return [k for k in self._load() if k.startswith(prefix)]
