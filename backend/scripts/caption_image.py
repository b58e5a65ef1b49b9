#!/usr/bin/env python3
"""
Runs the caption pipeline on a local image and stages the scene.

Usage:
  cd backend
  export OPERATING_MODE=direct GOOGLE_CLOUD_API_KEY=... OPENAI_API_KEY=...
  PYTHONPATH=. python scripts/caption_image.py photo.jpg --length short

  Save right away instead of leaving the scene staged:
  PYTHONPATH=. python scripts/caption_image.py photo.jpg --save
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
import sys

# Run from repo root or backend; ensure backend is on path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from autoscene.core.config import get_settings
from autoscene.core.dependencies import SessionLocal, init_db
from autoscene.core.image_processing import EncodeError
from autoscene.schemas.scene import temp_key
from autoscene.services.ai.caption.contracts import LengthClass
from autoscene.services.ai.common import router as ai_router
from autoscene.services.scene_pipeline import ScenePipeline


async def _run(path: str, length: LengthClass, save: bool) -> int:
    if SessionLocal is None:
        print("Error: DATABASE_URL is not set.", file=sys.stderr)
        return 1

    init_db()
    ai_router.init_backends()
    db = SessionLocal()
    try:
        pipeline = ScenePipeline(db)
        try:
            record = await pipeline.run(path, length)
        except EncodeError as exc:
            print(f"Could not read image: {exc}", file=sys.stderr)
            return 1

        key = temp_key(record.id)
        if save:
            key = pipeline.finalize(key)
        print(json.dumps({"key": key, "scene": record.to_document()}, indent=2, ensure_ascii=False))
        return 0
    finally:
        db.close()
        await ai_router.aclose_backends()


def main() -> None:
    parser = argparse.ArgumentParser(description="Caption an image and store it as a scene.")
    parser.add_argument("image", help="Path to the image file.")
    parser.add_argument("--length", choices=[c.value for c in LengthClass], default=LengthClass.LONG.value)
    parser.add_argument("--save", action="store_true", help="Finalize the scene after staging it.")
    args = parser.parse_args()

    logging.basicConfig(level=get_settings().log_level.upper(), format="%(levelname)s %(name)s: %(message)s")
    sys.exit(asyncio.run(_run(args.image, LengthClass(args.length), args.save)))


if __name__ == "__main__":
    main()
