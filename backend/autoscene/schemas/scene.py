from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, model_validator

from autoscene.services.ai.caption.contracts import LengthClass
from autoscene.services.ai.vision.contracts import AnalysisResult

TEMP_KEY_PREFIX = "temp_"
SCENE_KEY_PREFIX = "scene_"


class SceneStatus(str, Enum):
    STAGED = "STAGED"
    FINAL = "FINAL"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def status_for_key(key: str) -> SceneStatus:
    return SceneStatus.STAGED if key.startswith(TEMP_KEY_PREFIX) else SceneStatus.FINAL


def temp_key(scene_id: str) -> str:
    return f"{TEMP_KEY_PREFIX}{scene_id}"


def scene_key(scene_id: str) -> str:
    return f"{SCENE_KEY_PREFIX}{scene_id}"


class SceneRecord(BaseModel):
    """A captioned photo, stored as JSON under ``temp_<id>`` while staged and
    under ``scene_<id>`` once finalized.
    """

    model_config = ConfigDict(populate_by_name=True)

    id: str
    image_ref: str = Field(alias="imageUri", validation_alias=AliasChoices("imageUri", "imageRef", "image_ref"))
    analysis: AnalysisResult = Field(
        alias="visionResult",
        validation_alias=AliasChoices("visionResult", "analysis"),
    )
    caption: str = Field(alias="generatedCopy", validation_alias=AliasChoices("generatedCopy", "caption"))
    tags: list[str] = Field(default_factory=list)
    created_at: datetime = Field(
        default_factory=utcnow,
        alias="createdAt",
        validation_alias=AliasChoices("createdAt", "created_at"),
    )
    updated_at: datetime = Field(
        default_factory=utcnow,
        alias="updatedAt",
        validation_alias=AliasChoices("updatedAt", "updated_at"),
    )

    def to_document(self) -> dict:
        """JSON-ready dict, the shape persisted in the scene store."""
        return self.model_dump(mode="json", by_alias=True)

    @classmethod
    def from_document(cls, document: dict) -> "SceneRecord":
        return cls.model_validate(document)


# --- API models ---


class SceneCreateRequest(BaseModel):
    """Either ``imageRef`` (a path under IMAGE_ROOT) or ``image`` (base64 bytes)."""

    model_config = ConfigDict(populate_by_name=True)

    image_ref: Optional[str] = Field(
        default=None,
        min_length=1,
        max_length=2048,
        validation_alias=AliasChoices("imageRef", "imageUri", "image_ref"),
    )
    image: Optional[str] = None
    length: LengthClass = LengthClass.LONG

    @model_validator(mode="after")
    def _one_image_source(self):
        if bool(self.image_ref) == bool(self.image):
            raise ValueError("Provide exactly one of imageRef or image")
        return self


class SceneUpdateRequest(BaseModel):
    caption: Optional[str] = Field(default=None, max_length=2000)
    tags: Optional[list[str]] = None


class SceneResponse(BaseModel):
    key: str
    status: SceneStatus
    scene: dict


class SceneListResponse(BaseModel):
    items: list[SceneResponse]


class FinalizeResponse(BaseModel):
    scene_key: str = Field(serialization_alias="sceneKey")
