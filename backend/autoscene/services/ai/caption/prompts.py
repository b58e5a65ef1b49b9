"""Prompt text for caption generation."""

from __future__ import annotations

from .contracts import CaptionRequest

CAPTION_SYSTEM_PROMPT = (
    "あなたは記者です。画像を分析し、何が写っているか分析。"
    "画像の内容から魅力的なキャプションを生成してください。"
)


def build_caption_prompt(request: CaptionRequest) -> str:
    """User prompt embedding labels, affect score, recognized text and the length target."""
    analysis = request.analysis
    lines = [
        f"以下の画像解析結果から、{request.target_chars}字程度の日本語のキャプションを生成してください。",
        "感情的で魅力的な文章にしてください。",
        "",
        f"ラベル: {', '.join(analysis.labels)}",
        f"感情スコア: {analysis.affect_score}",
    ]
    if analysis.recognized_text:
        lines.append(f"OCRテキスト: {analysis.recognized_text}")
    return "\n".join(lines)
