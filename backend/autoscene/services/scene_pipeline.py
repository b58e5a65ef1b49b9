"""Scene pipeline: image reference -> staged SceneRecord, and staged -> finalized.

Steps run strictly in order: encode -> analyze -> generate -> assemble -> stage.
Only the encode step can fail outward; analysis and captioning degrade to
mock output inside their backends.  Staged records live under ``temp_<id>``
until ``finalize`` copies them to ``scene_<id>`` and drops the staged key.
"""

from __future__ import annotations

import logging
import os
import time
from enum import Enum
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from autoscene.core.image_processing import EncodeError, ImageRef, describe_ref, encode_image
from autoscene.schemas.scene import (
    TEMP_KEY_PREFIX,
    SceneRecord,
    scene_key,
    temp_key,
    utcnow,
)
from autoscene.services.ai.caption.contracts import CaptionRequest, LengthClass
from autoscene.services.ai.caption.service import generate_caption
from autoscene.services.ai.common import router as ai_router
from autoscene.services.ai.common.providers.base import CaptionBackend, LabelBackend
from autoscene.services.ai.vision.contracts import AnalysisResult
from autoscene.services.ai.vision.service import analyze_image

from .scene_store import NotFoundError, SceneStore

logger = logging.getLogger(__name__)


class PipelineStage(str, Enum):
    ENCODE = "ENCODE"
    STAGE = "STAGE"


class PipelineError(Exception):
    def __init__(self, stage: PipelineStage, message: str) -> None:
        super().__init__(f"[{stage.value}] {message}")
        self.stage = stage


class PipelineEncodeError(PipelineError, EncodeError):
    """Encode step failed; nothing was written to the store."""

    def __init__(self, message: str) -> None:
        super().__init__(PipelineStage.ENCODE, message)


def _image_uri(image_ref: ImageRef, image_uri: Optional[str]) -> str:
    if image_uri is not None:
        return image_uri
    if isinstance(image_ref, (bytes, bytearray)):
        return ""
    return os.fspath(image_ref)


class ScenePipeline:
    def __init__(
        self,
        db: Session,
        *,
        label_backend: Optional[LabelBackend] = None,
        caption_backend: Optional[CaptionBackend] = None,
    ) -> None:
        self.db = db
        self.store = SceneStore(db)
        self._label_backend = label_backend
        self._caption_backend = caption_backend

    @property
    def label_backend(self) -> LabelBackend:
        return self._label_backend or ai_router.get_backends().label

    @property
    def caption_backend(self) -> CaptionBackend:
        return self._caption_backend or ai_router.get_backends().caption

    def new_scene_id(self) -> str:
        """Millisecond timestamp id, suffixed when already taken."""
        base = str(int(time.time() * 1000))
        candidate = base
        n = 1
        while self.store.exists(temp_key(candidate)) or self.store.exists(scene_key(candidate)):
            candidate = f"{base}-{n}"
            n += 1
        return candidate

    def assemble(self, image_uri: str, analysis: AnalysisResult, caption: str) -> SceneRecord:
        now = utcnow()
        return SceneRecord(
            id=self.new_scene_id(),
            image_ref=image_uri,
            analysis=analysis,
            caption=caption,
            tags=list(analysis.labels),
            created_at=now,
            updated_at=now,
        )

    async def run(
        self,
        image_ref: ImageRef,
        length_class: LengthClass = LengthClass.LONG,
        *,
        image_uri: Optional[str] = None,
    ) -> SceneRecord:
        """Caption *image_ref* and stage the result under ``temp_<id>``.

        Raises ``PipelineEncodeError`` (an ``EncodeError``) when the image
        cannot be read; no store writes happen in that case.  A failed store
        write is rolled back and raised as ``PipelineError`` with stage STAGE.
        """
        try:
            payload = encode_image(image_ref)
        except EncodeError as exc:
            logger.warning("Pipeline encode failed for %s: %s", describe_ref(image_ref), exc)
            raise PipelineEncodeError(str(exc)) from exc

        analysis = await analyze_image(payload, self.label_backend)
        caption = await generate_caption(
            CaptionRequest(analysis=analysis, length_class=length_class),
            self.caption_backend,
        )

        record = self.assemble(_image_uri(image_ref, image_uri), analysis, caption)
        key = temp_key(record.id)
        try:
            self.store.put(key, record)
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.error("Pipeline could not stage %s: %s", key, exc)
            raise PipelineError(PipelineStage.STAGE, f"could not store {key}: {exc}") from exc

        logger.info("Scene staged key=%s tags=%d", key, len(record.tags))
        return record

    def finalize(self, key: str) -> str:
        """Move a staged record to its permanent key and return that key.

        *key* is the staged key (``temp_<id>``) or the bare record id.
        Raises ``NotFoundError`` when nothing is staged under it, so a
        repeated finalize never overwrites the saved scene.
        """
        staged_key = key if key.startswith(TEMP_KEY_PREFIX) else temp_key(key)
        record = self.store.get(staged_key)
        if record is None:
            raise NotFoundError(staged_key)

        record = record.model_copy(update={"updated_at": utcnow()})
        permanent_key = scene_key(record.id)
        try:
            self.store.put(permanent_key, record)
            self.store.delete(staged_key)
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise

        logger.info("Scene finalized %s -> %s", staged_key, permanent_key)
        return permanent_key
