from __future__ import annotations

import logging
import os
import threading
from pathlib import Path
from typing import Dict, Optional, Protocol, runtime_checkable

from dreamdecor.errors import CorruptSaveError, PersistenceError, SaveValidationError

from .codec import decode_snapshot, encode_snapshot
from .models import SaveSnapshot
from .paths import default_save_root, ensure_dir, storage_key

logger = logging.getLogger(__name__)


@runtime_checkable
class PersistenceStore(Protocol):
    """Durable key-value store of one SaveSnapshot per identity (last write wins)."""

    def save(self, identity: str, snapshot: SaveSnapshot) -> None:
        ...

    def load(self, identity: str) -> Optional[SaveSnapshot]:
        ...

    def exists(self, identity: str) -> bool:
        ...

    def delete(self, identity: str) -> None:
        ...


class MemoryStore:
    """In-process store; keeps encoded JSON so loads never alias live state."""

    def __init__(self) -> None:
        self._data: Dict[str, str] = {}
        self._lock = threading.RLock()

    def save(self, identity: str, snapshot: SaveSnapshot) -> None:
        with self._lock:
            self._data[identity] = encode_snapshot(snapshot)
        logger.debug("Saved snapshot for %s in memory", identity)

    def load(self, identity: str) -> Optional[SaveSnapshot]:
        with self._lock:
            text = self._data.get(identity)
        if text is None:
            return None
        return decode_snapshot(text)

    def exists(self, identity: str) -> bool:
        with self._lock:
            return identity in self._data

    def delete(self, identity: str) -> None:
        with self._lock:
            self._data.pop(identity, None)


class FileStore:
    """JSON file per identity under a save directory, written atomically."""

    def __init__(self, root_dir: Optional[Path] = None) -> None:
        self.root_dir = ensure_dir(Path(root_dir) if root_dir is not None else default_save_root())
        self._lock = threading.RLock()

    def path_for(self, identity: str) -> Path:
        return self.root_dir / f"{storage_key(identity)}.json"

    def save(self, identity: str, snapshot: SaveSnapshot) -> None:
        path = self.path_for(identity)
        text = encode_snapshot(snapshot)
        with self._lock:
            try:
                self._atomic_write(path, text)
            except OSError as exc:
                raise PersistenceError(f"Could not write save for {identity}: {exc}") from exc
        logger.info("Saved progress for %s to %s", identity, path)

    def load(self, identity: str) -> Optional[SaveSnapshot]:
        path = self.path_for(identity)
        with self._lock:
            if not path.exists():
                return None
            try:
                text = path.read_text(encoding="utf-8")
            except OSError as exc:
                raise PersistenceError(f"Could not read save {path}: {exc}") from exc
        try:
            snapshot = decode_snapshot(text)
        except SaveValidationError as exc:
            raise CorruptSaveError(f"Unable to load save from {path}: {exc}") from exc
        if snapshot.identity != identity:
            # only reachable through a digest collision or a hand-edited file
            logger.warning("Save file %s belongs to another identity; ignoring", path)
            return None
        logger.info("Loaded progress for %s (saved at %s)", identity, snapshot.saved_at)
        return snapshot

    def exists(self, identity: str) -> bool:
        """True when a save owned by this identity is on disk."""
        if not self.path_for(identity).exists():
            return False
        try:
            return self.load(identity) is not None
        except CorruptSaveError:
            # unreadable, but still this identity's file
            return True

    def delete(self, identity: str) -> None:
        path = self.path_for(identity)
        with self._lock:
            try:
                path.unlink()
                logger.info("Deleted progress for %s", identity)
            except FileNotFoundError:
                pass
            except OSError as exc:
                raise PersistenceError(f"Could not delete save {path}: {exc}") from exc

    @staticmethod
    def _atomic_write(path: Path, text: str) -> None:
        tmp_path = path.with_suffix(path.suffix + ".tmp")
        ensure_dir(path.parent)
        with open(tmp_path, "w", encoding="utf-8") as f:
            f.write(text)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_path, path)
