from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict

from dreamdecor.errors import SaveValidationError

# Increment when making breaking schema changes
SCHEMA_VERSION = 1


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class SaveSnapshot:
    """One durable save per identity: the session state plus when it was taken.

    ``session`` is the dict produced by :meth:`SessionState.to_dict`.
    """

    identity: str
    session: Dict[str, Any]
    saved_at: str = field(default_factory=utc_now_iso)
    schema_version: int = SCHEMA_VERSION

    def __post_init__(self) -> None:
        if not isinstance(self.identity, str) or not self.identity:
            raise SaveValidationError("identity must be a non-empty string")
        if not isinstance(self.session, dict):
            raise SaveValidationError("session must be a mapping")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "schema_version": self.schema_version,
            "identity": self.identity,
            "saved_at": self.saved_at,
            "session": self.session,
        }

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "SaveSnapshot":
        try:
            return SaveSnapshot(
                identity=data["identity"],
                session=data["session"],
                saved_at=data.get("saved_at") or utc_now_iso(),
                schema_version=int(data.get("schema_version", SCHEMA_VERSION)),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise SaveValidationError(f"Invalid save snapshot: {exc}") from exc
