"""In-place edits of staged or finalized scenes (caption text, tags) and deletion."""

from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy.orm import Session

from autoscene.schemas.scene import SceneRecord, SceneStatus, utcnow

from .scene_store import NotFoundError, SceneStore

logger = logging.getLogger(__name__)

MAX_TAGS = 20


def normalize_tags(tags: list[str]) -> list[str]:
    """Strip, drop blanks, dedup preserving order."""
    seen: set[str] = set()
    result: list[str] = []
    for tag in tags:
        t = str(tag).strip()
        if t and t not in seen:
            seen.add(t)
            result.append(t)
    return result[:MAX_TAGS]


def update_scene(
    db: Session,
    key: str,
    *,
    caption: Optional[str] = None,
    tags: Optional[list[str]] = None,
) -> SceneRecord:
    store = SceneStore(db)
    record = store.require(key)

    changes: dict = {"updated_at": utcnow()}
    if caption is not None:
        caption = caption.strip()
        if not caption:
            raise ValueError("Caption must not be empty")
        changes["caption"] = caption
    if tags is not None:
        changes["tags"] = normalize_tags(tags)

    updated = record.model_copy(update=changes)
    store.put(key, updated)
    db.commit()
    logger.info("Scene %s updated fields=%s", key, sorted(k for k in changes if k != "updated_at"))
    return updated


def delete_scene(db: Session, key: str) -> None:
    store = SceneStore(db)
    if not store.delete(key):
        raise NotFoundError(key)
    db.commit()
    logger.info("Scene %s deleted", key)


def list_scenes(db: Session, status: SceneStatus = SceneStatus.FINAL) -> list[tuple[str, SceneRecord]]:
    return SceneStore(db).list_records(status)
