from __future__ import annotations

import json
import os
import tempfile
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional


@dataclass
class LocalStorage:
    """
    Durable string key/value store backed by a single JSON file.

    Mirrors the browser ``localStorage`` contract the dashboard was written
    against: values are strings (callers serialize JSON themselves), keys are
    flat, and a missing key reads as None.

    Notes
    -----
    - The file is rewritten atomically (temp file + ``os.replace``) on every
      ``set_item``/``remove_item``.
    - I/O errors are raised to the caller. Stores that treat persistence as
      best-effort (e.g. trends) catch and log them.
    - A corrupt or unreadable file reads as empty.

    Parameters
    ----------
    path
        Location of the JSON file. Parent directories are created on write.
    """

    path: Path
    _cache: Optional[Dict[str, str]] = field(default=None, init=False, repr=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)

    def __post_init__(self) -> None:
        self.path = Path(self.path)

    def _read_all(self) -> Dict[str, str]:
        if self._cache is not None:
            return self._cache
        try:
            with self.path.open("r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError):
            data = {}
        if not isinstance(data, dict):
            data = {}
        self._cache = {str(k): str(v) for k, v in data.items()}
        return self._cache

    def _write_all(self, data: Dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(prefix=".storage-", dir=str(self.path.parent))
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f)
            os.replace(tmp, self.path)
        except BaseException:
            try:
                os.unlink(tmp)
            except OSError:
                pass
            raise

    def get_item(self, key: str) -> Optional[str]:
        """
        Read a value.

        Parameters
        ----------
        key
            Storage key (e.g. ``"sensorTrends"``).

        Returns
        -------
        str or None
            Stored string, or None if the key is absent.
        """
        with self._lock:
            return self._read_all().get(key)

    def set_item(self, key: str, value: str) -> None:
        """
        Store a value and flush the file.

        Raises
        ------
        OSError
            If the file cannot be written.
        """
        with self._lock:
            data = dict(self._read_all())
            data[key] = value
            self._write_all(data)
            self._cache = data

    def remove_item(self, key: str) -> None:
        with self._lock:
            data = dict(self._read_all())
            if data.pop(key, None) is None:
                return
            self._write_all(data)
            self._cache = data

    def keys(self) -> list[str]:
        with self._lock:
            return list(self._read_all().keys())
