"""Vision scope contracts: AnalysisResult."""

from __future__ import annotations

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

MAX_LABELS = 10


class AnalysisResult(BaseModel):
    """Structured output of image analysis, produced once per image.

    Serialized with the camelCase names used on the wire and in stored
    scenes; legacy ``joy`` / ``text`` names are accepted on input.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    labels: list[str] = Field(default_factory=list)
    affect_score: float = Field(
        default=0.5,
        ge=0.0,
        le=1.0,
        alias="affectScore",
        validation_alias=AliasChoices("affectScore", "affect_score", "joy"),
    )
    recognized_text: str = Field(
        default="",
        alias="recognizedText",
        validation_alias=AliasChoices("recognizedText", "recognized_text", "text"),
    )

    @field_validator("labels", mode="before")
    @classmethod
    def _clean_labels(cls, v):
        if v is None:
            return []
        cleaned = [str(label).strip() for label in v if str(label).strip()]
        return cleaned[:MAX_LABELS]

    @field_validator("recognized_text", mode="before")
    @classmethod
    def _none_text_is_empty(cls, v):
        return "" if v is None else v

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True)
