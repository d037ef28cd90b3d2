# grid_persistence.py - full-grid JSON snapshot on disk
# - load(): loaded / default when missing / default when unreadable or wrong shape
# - save(): rewrite the whole file; failures are logged, never raised
import json
import logging
import os
import threading
from enum import Enum
from pathlib import Path

from grid_store import GridStore

logger = logging.getLogger(__name__)


class LoadResult(str, Enum):
    LOADED = "loaded"
    INITIALIZED_DEFAULT = "initialized-default"
    INITIALIZED_DEFAULT_DUE_TO_MISMATCH = "initialized-default-due-to-mismatch"


class SnapshotFile:
    """Durable mirror of a GridStore, one JSON array of rows per file."""

    def __init__(self, path, store: GridStore):
        self.path = Path(path)
        self.store = store
        self._lock = threading.Lock()

    def load(self) -> LoadResult:
        with self._lock:
            if not self.path.exists():
                logger.info("No grid data file at %s, initializing a new grid", self.path)
                self.store.initialize_default()
                self._save_unlocked()
                return LoadResult.INITIALIZED_DEFAULT

            try:
                with open(self.path, "r", encoding="utf-8") as f:
                    data = json.load(f)
            except (OSError, UnicodeDecodeError):
                logger.exception("Could not read grid data file %s", self.path)
                return self._reset_unlocked()
            except json.JSONDecodeError as e:
                logger.warning("Grid data file %s is not valid JSON (%s)", self.path, e)
                return self._reset_unlocked()

            if not self.store.load(data):
                got_h = len(data) if isinstance(data, list) else "N/A"
                first = data[0] if isinstance(data, list) and data else None
                got_w = len(first) if isinstance(first, list) else "N/A"
                logger.warning(
                    "Loaded grid does not match %dx%d (got %sx%s rows)",
                    self.store.height, self.store.width, got_h, got_w,
                )
                return self._reset_unlocked()

            logger.info("Grid loaded from %s", self.path)
            return LoadResult.LOADED

    def save(self) -> bool:
        with self._lock:
            return self._save_unlocked()

    def _reset_unlocked(self) -> LoadResult:
        logger.info("Initializing a fresh grid in place of %s", self.path)
        self.store.initialize_default()
        self._save_unlocked()
        return LoadResult.INITIALIZED_DEFAULT_DUE_TO_MISMATCH

    def _save_unlocked(self) -> bool:
        grid = self.store.get()
        tmp = self.path.with_name(self.path.name + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp, "w", encoding="utf-8") as f:
                json.dump(grid, f, separators=(",", ":"))
            os.replace(tmp, self.path)
        except (OSError, TypeError, ValueError):
            # in-memory grid stays authoritative until the next good save
            logger.exception("Error saving grid data to %s", self.path)
            try:
                tmp.unlink(missing_ok=True)
            except OSError:
                logger.warning("Could not remove %s", tmp)
            return False
        logger.debug("Grid saved to %s", self.path)
        return True
