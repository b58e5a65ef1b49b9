"""Key-addressed scene store on top of the ``scene_entries`` table.

Writes only flush; the caller owns the transaction.
"""

from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from autoscene.models.scene import SceneEntry
from autoscene.schemas.scene import (
    SCENE_KEY_PREFIX,
    TEMP_KEY_PREFIX,
    SceneRecord,
    SceneStatus,
    scene_key,
    status_for_key,
)

logger = logging.getLogger(__name__)


class NotFoundError(LookupError):
    """No scene is stored under the requested key."""

    def __init__(self, key: str) -> None:
        super().__init__(f"Scene {key!r} not found")
        self.key = key


class SceneStore:
    def __init__(self, db: Session) -> None:
        self.db = db

    def get(self, key: str) -> Optional[SceneRecord]:
        entry = self.db.get(SceneEntry, key)
        if entry is None:
            return None
        return SceneRecord.from_document(entry.payload)

    def require(self, key: str) -> SceneRecord:
        record = self.get(key)
        if record is None:
            raise NotFoundError(key)
        return record

    def exists(self, key: str) -> bool:
        return self.db.get(SceneEntry, key) is not None

    def put(self, key: str, record: SceneRecord) -> None:
        if not key.startswith((TEMP_KEY_PREFIX, SCENE_KEY_PREFIX)):
            raise ValueError(f"Scene key must start with {TEMP_KEY_PREFIX!r} or {SCENE_KEY_PREFIX!r}: {key!r}")
        if key.startswith(SCENE_KEY_PREFIX) and (
            record.id.startswith(TEMP_KEY_PREFIX) or key != scene_key(record.id)
        ):
            raise ValueError(f"Record {record.id!r} cannot be stored under permanent key {key!r}")

        status = status_for_key(key).value
        entry = self.db.get(SceneEntry, key)
        if entry is None:
            entry = SceneEntry(key=key, status=status, payload=record.to_document())
            self.db.add(entry)
        else:
            entry.status = status
            entry.payload = record.to_document()
        self.db.flush()

    def delete(self, key: str) -> bool:
        entry = self.db.get(SceneEntry, key)
        if entry is None:
            return False
        self.db.delete(entry)
        self.db.flush()
        return True

    def keys(self, status: Optional[SceneStatus] = None) -> list[str]:
        stmt = select(SceneEntry.key)
        if status is not None:
            stmt = stmt.where(SceneEntry.status == status.value)
        return list(self.db.scalars(stmt.order_by(SceneEntry.key)))

    def list_records(self, status: SceneStatus = SceneStatus.FINAL) -> list[tuple[str, SceneRecord]]:
        """Records with *status*, newest ``created_at`` first."""
        entries = self.db.scalars(select(SceneEntry).where(SceneEntry.status == status.value)).all()
        records = [(entry.key, SceneRecord.from_document(entry.payload)) for entry in entries]
        records.sort(key=lambda item: item[1].created_at, reverse=True)
        return records
