"""Mock backends: canned results for offline use, tests and degrade fallback."""

from __future__ import annotations

from autoscene.core.image_processing import EncodedPayload
from autoscene.services.ai.caption.contracts import CaptionRequest, LengthClass
from autoscene.services.ai.vision.contracts import AnalysisResult

from .base import CaptionBackend, LabelBackend

MOCK_LABELS = ("カフェ", "コーヒー", "インテリア")
MOCK_AFFECT_SCORE = 0.8

MOCK_CAPTIONS: dict[LengthClass, str] = {
    LengthClass.SHORT: "カフェでゆったりとした午後のひととき。香り豊かなコーヒーと共に。",
    LengthClass.LONG: (
        "カフェでゆったりとした午後のひととき。香り豊かなコーヒーと共に、"
        "日常から少し離れて自分だけの時間を楽しむ。"
        "窓から差し込む優しい光が、心地よい空間を演出している。"
    ),
}


def mock_analysis() -> AnalysisResult:
    return AnalysisResult(labels=list(MOCK_LABELS), affect_score=MOCK_AFFECT_SCORE, recognized_text="")


def mock_caption(length_class: LengthClass) -> str:
    return MOCK_CAPTIONS[LengthClass(length_class)]


class MockLabelBackend(LabelBackend):
    name = "mock"

    async def analyze(self, payload: EncodedPayload) -> AnalysisResult:
        return mock_analysis()


class MockCaptionBackend(CaptionBackend):
    name = "mock"

    async def generate(self, request: CaptionRequest) -> str:
        return mock_caption(request.length_class)
