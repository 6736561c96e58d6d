from __future__ import annotations

import json
import logging
from typing import Any, Callable, Dict

from dreamdecor.errors import SaveValidationError

from .models import SCHEMA_VERSION, SaveSnapshot

logger = logging.getLogger(__name__)

Migration = Callable[[Dict[str, Any]], Dict[str, Any]]


def _v0_to_v1(data: Dict[str, Any]) -> Dict[str, Any]:
    # v0 saves predate tool selection and stacking
    session = data.setdefault("session", {})
    session.setdefault("selected_tool", None)
    for row in session.get("grid") or []:
        for tile in row:
            tile.setdefault("stacked", None)
            tile.setdefault("stacked_rotation", 0)
    return data


# from_version -> step that produces from_version + 1
_MIGRATIONS: Dict[int, Migration] = {0: _v0_to_v1}


def encode_snapshot(snapshot: SaveSnapshot) -> str:
    """Serialize a snapshot as stable, pretty-printed JSON."""
    return json.dumps(snapshot.to_dict(), ensure_ascii=False, sort_keys=True, indent=2)


def decode_snapshot(text: str) -> SaveSnapshot:
    """Parse snapshot JSON, upgrading older schema versions on the way."""
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise SaveValidationError(f"Invalid JSON: {e}") from e
    if not isinstance(data, dict):
        raise SaveValidationError("Save file malformed: not an object")

    try:
        version = int(data.get("schema_version", SCHEMA_VERSION))
    except (TypeError, ValueError) as e:
        raise SaveValidationError(f"Invalid schema_version: {data.get('schema_version')!r}") from e
    if version != SCHEMA_VERSION:
        data = migrate_data(data, from_version=version, to_version=SCHEMA_VERSION)
    return SaveSnapshot.from_dict(data)


def migrate_data(data: Dict[str, Any], from_version: int, to_version: int) -> Dict[str, Any]:
    """Apply the registered migration steps one version at a time."""
    if from_version > to_version:
        raise SaveValidationError(f"Save schema version {from_version} is newer than supported {to_version}.")
    for version in range(from_version, to_version):
        step = _MIGRATIONS.get(version)
        if step is None:
            raise SaveValidationError(f"No migration from save schema version {version}")
        data = step(data)
        logger.info("Migrated save data from schema v%d to v%d", version, version + 1)
    data["schema_version"] = to_version
    return data
