"""Caption scope contracts: LengthClass + CaptionRequest."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict

from ..vision.contracts import AnalysisResult


class LengthClass(str, Enum):
    SHORT = "short"
    LONG = "long"


# Target caption length in characters; enforced by prompt instruction only.
LENGTH_TARGETS: dict[LengthClass, int] = {
    LengthClass.SHORT: 60,
    LengthClass.LONG: 100,
}


class CaptionRequest(BaseModel):
    model_config = ConfigDict(frozen=True)

    analysis: AnalysisResult
    length_class: LengthClass = LengthClass.LONG

    @property
    def target_chars(self) -> int:
        return LENGTH_TARGETS[self.length_class]
