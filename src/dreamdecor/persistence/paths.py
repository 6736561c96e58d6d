from __future__ import annotations

import hashlib
import re
from pathlib import Path

from platformdirs import PlatformDirs

APP_NAME = "DreamDecor"
APP_AUTHOR = "DreamDecor"
STORAGE_PREFIX = "dream_decor_"


def default_save_root() -> Path:
    """Return the per-user data directory used for saves.

    Linux: ~/.local/share/DreamDecor
    macOS: ~/Library/Application Support/DreamDecor
    Windows: %LOCALAPPDATA%\\DreamDecor\\DreamDecor
    """
    return Path(PlatformDirs(appname=APP_NAME, appauthor=APP_AUTHOR).user_data_dir)


def storage_key(identity: str) -> str:
    """Map an identity (usually an e-mail address) to a file-system safe key.

    The readable part is lossy, so a digest of the exact identity is appended
    to keep one key per identity.
    """
    readable = re.sub(r"[^a-zA-Z0-9]", "_", identity)
    digest = hashlib.sha256(identity.encode("utf-8")).hexdigest()[:16]
    return f"{STORAGE_PREFIX}{readable}_{digest}"


def ensure_dir(path: Path) -> Path:
    path.mkdir(parents=True, exist_ok=True)
    return path
