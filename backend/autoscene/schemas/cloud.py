from typing import Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from autoscene.services.ai.caption.contracts import LengthClass
from autoscene.services.ai.vision.contracts import AnalysisResult


class AnalyzeImageRequest(BaseModel):
    image: str = ""


class DominantColor(BaseModel):
    red: float = 0.0
    green: float = 0.0
    blue: float = 0.0
    score: float = 0.0


class AnalyzeImageResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    labels: list[str] = Field(default_factory=list)
    description: str = ""
    affect_score: Optional[float] = Field(default=None, alias="affectScore")
    recognized_text: Optional[str] = Field(default=None, alias="recognizedText")
    landmarks: list[str] = Field(default_factory=list)
    dominant_colors: list[DominantColor] = Field(default_factory=list, alias="dominantColors")


class GenerateCaptionRequest(BaseModel):
    """Canonical caption request: ``{visionResult, length}``."""

    model_config = ConfigDict(populate_by_name=True)

    vision_result: AnalysisResult = Field(validation_alias=AliasChoices("visionResult", "vision_result"))
    length: LengthClass = LengthClass.LONG


class GenerateCaptionResponse(BaseModel):
    copy_text: str = Field(alias="copy")

    model_config = ConfigDict(populate_by_name=True)


class ErrorBody(BaseModel):
    error: str
    details: Optional[str] = None
