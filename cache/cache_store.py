#!/usr/bin/env python3
# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""
Persistent-tier storage backends for TimeBoxedCache.

A store is a flat string->string mapping:
- get_item(key) -> Optional[str]
- set_item(key, value)
- remove_item(key)
- keys() -> List[str]

Any failure (I/O error, disabled storage, corrupt backing file) is raised as
StorageUnavailable. TimeBoxedCache catches it and keeps working from memory.

Backends:
- JsonFileStore: one JSON object on disk, inter-process locking (fcntl) + atomic writes.
- MemoryStore:   in-process dict; can be switched off to simulate disabled storage.
"""

from __future__ import annotations

import json
import os
import time
from pathlib import Path
from threading import Lock
from typing import Dict, List, Optional

try:
    import fcntl  # type: ignore
except ImportError:  # pragma: no cover - best-effort on non-POSIX
    fcntl = None  # type: ignore


class StorageUnavailable(Exception):
    """Persistent storage could not be read or written."""


class MemoryStore:
    """In-process store. `enabled=False` makes every call raise StorageUnavailable."""

    def __init__(self, *, enabled: bool = True, quota_bytes: Optional[int] = None):
        self.enabled = bool(enabled)
        self.quota_bytes = quota_bytes
        self._items: Dict[str, str] = {}

    def _check_enabled(self) -> None:
        if not self.enabled:
            raise StorageUnavailable("storage is disabled")

    def get_item(self, key: str) -> Optional[str]:
        self._check_enabled()
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._check_enabled()
        if self.quota_bytes is not None:
            used = sum(len(v) for (k, v) in self._items.items() if k != key)
            if used + len(value) > int(self.quota_bytes):
                raise StorageUnavailable(f"quota exceeded ({self.quota_bytes} bytes)")
        self._items[key] = str(value)

    def remove_item(self, key: str) -> None:
        self._check_enabled()
        self._items.pop(key, None)

    def keys(self) -> List[str]:
        self._check_enabled()
        return list(self._items.keys())


class JsonFileStore:
    """Disk-backed store: a single JSON object file.

    Every operation re-reads the file so that separate processes (and separate
    cache instances after a restart) observe each other's writes. Writes take an
    exclusive lock on a sidecar lock file and replace the data file atomically.
    """

    def __init__(self, *, path: Path):
        self._mu = Lock()
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def _lock_file_path(self) -> Path:
        """Path to lock file (next to the data file)."""
        return self._path.with_name(f".{self._path.name}.lock")

    def _acquire_disk_lock(self, *, timeout_s: float = 10.0) -> Optional[object]:
        """Best-effort inter-process lock for the data file.

        Returns file handle on success, None on failure/timeout.
        """
        if fcntl is None:
            return None

        lock_path = self._lock_file_path()
        try:
            lock_path.parent.mkdir(parents=True, exist_ok=True)
            fh = open(lock_path, "w")
        except OSError:
            return None

        start = time.monotonic()
        while time.monotonic() - start < float(timeout_s):
            try:
                fcntl.flock(fh.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
                return fh
            except OSError:
                time.sleep(0.05)

        fh.close()
        return None

    def _release_disk_lock(self, lock_fh: Optional[object]) -> None:
        """Release inter-process lock."""
        if lock_fh is None:
            return
        try:
            if fcntl is not None:
                fcntl.flock(lock_fh.fileno(), fcntl.LOCK_UN)
        except OSError:
            pass
        finally:
            lock_fh.close()

    def _read_all(self) -> Dict[str, str]:
        try:
            raw = json.loads(self._path.read_text() or "{}")
        except FileNotFoundError:
            return {}
        except (OSError, ValueError) as e:
            raise StorageUnavailable(f"cannot read {self._path}: {e}") from e
        if not isinstance(raw, dict):
            raise StorageUnavailable(f"cannot read {self._path}: expected a JSON object")
        return {str(k): v for (k, v) in raw.items() if isinstance(v, str)}

    def _write_all(self, items: Dict[str, str]) -> None:
        # Atomic write (tmp file + rename)
        tmp = Path(f"{self._path}.tmp.{os.getpid()}")
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            tmp.write_text(json.dumps(items, separators=(",", ":")))
            os.replace(str(tmp), str(self._path))
        except OSError as e:
            try:
                tmp.unlink()
            except OSError:
                pass
            raise StorageUnavailable(f"cannot write {self._path}: {e}") from e

    def get_item(self, key: str) -> Optional[str]:
        with self._mu:
            return self._read_all().get(key)

    def set_item(self, key: str, value: str) -> None:
        with self._mu:
            lock_fh = self._acquire_disk_lock()
            try:
                items = self._read_all()
                items[key] = str(value)
                self._write_all(items)
            finally:
                self._release_disk_lock(lock_fh)

    def remove_item(self, key: str) -> None:
        with self._mu:
            lock_fh = self._acquire_disk_lock()
            try:
                items = self._read_all()
                if key in items:
                    del items[key]
                    self._write_all(items)
            finally:
                self._release_disk_lock(lock_fh)

    def keys(self) -> List[str]:
        with self._mu:
            return list(self._read_all().keys())
