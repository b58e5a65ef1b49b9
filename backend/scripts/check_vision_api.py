#!/usr/bin/env python3
"""
Checks that a Google Cloud Vision API key works, using a 1x1 JPEG.

Usage:
  cd backend
  PYTHONPATH=. python scripts/check_vision_api.py YOUR_API_KEY
  # or with GOOGLE_CLOUD_API_KEY set in the environment:
  PYTHONPATH=. python scripts/check_vision_api.py
"""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys

# Run from repo root or backend; ensure backend is on path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import httpx

from autoscene.core.config import get_settings

logger = logging.getLogger("check_vision_api")

TEST_IMAGE_B64 = (
    "/9j/4AAQSkZJRgABAQEAYABgAAD/2wBDAAIBAQIBAQICAgICAgICAwUDAwMDAwYEBAMFBwYHBwcGBwcICQsJCAgKCAcHCg0KCgsMDAwMBwkODw0MDgsMDAz/"
    "2wBDAQICAgMDAwYDAwYMCAcIDAwMDAwMDAwMDAwMDAwMDAwMDAwMDAwMDAwMDAwMDAwMDAwMDAwMDAwMDAwMDAwMDAz/wAARCAABAAEDASIAAhEBAxEB/8QAFQAB"
    "AQAAAAAAAAAAAAAAAAAAAAv/xAAUEAEAAAAAAAAAAAAAAAAAAAAA/8QAFQEBAQAAAAAAAAAAAAAAAAAAAAX/xAAUEQEAAAAAAAAAAAAAAAAAAAAA/9oADAMBAAIR"
    "AxEAPwCwABmX/9k="
)


def main() -> int:
    parser = argparse.ArgumentParser(description="Probe the Google Cloud Vision API with a tiny test image.")
    parser.add_argument("api_key", nargs="?", help="API key (defaults to GOOGLE_CLOUD_API_KEY).")
    parser.add_argument("--max-results", type=int, default=5)
    args = parser.parse_args()

    settings = get_settings()
    logging.basicConfig(level=settings.log_level.upper(), format="%(levelname)s %(name)s: %(message)s")

    api_key = args.api_key or settings.google_cloud_api_key
    if not api_key:
        print("Usage: python scripts/check_vision_api.py YOUR_API_KEY", file=sys.stderr)
        return 1

    logger.info("Testing Vision API with key %s...", api_key[:10])
    body = {
        "requests": [
            {
                "image": {"content": TEST_IMAGE_B64},
                "features": [{"type": "LABEL_DETECTION", "maxResults": args.max_results}],
            }
        ]
    }
    try:
        resp = httpx.post(settings.vision_api_url, params={"key": api_key}, json=body, timeout=settings.http_timeout_seconds)
    except httpx.HTTPError as exc:
        print(f"Network error: {exc}", file=sys.stderr)
        return 2

    try:
        result = resp.json()
    except ValueError:
        result = {"raw": resp.text}

    if resp.is_success:
        print("Vision API connection OK")
        print(json.dumps(result, indent=2, ensure_ascii=False))
        return 0

    print(f"Vision API error (HTTP {resp.status_code}):", file=sys.stderr)
    print(json.dumps(result, indent=2, ensure_ascii=False), file=sys.stderr)
    message = (result.get("error") or {}).get("message", "") if isinstance(result, dict) else ""
    if "API key not valid" in message:
        print(
            "\nFixes:\n"
            "1. Create a new API key in the Google Cloud Console\n"
            "2. Make sure the Vision API is enabled\n"
            "3. Make sure a billing account is attached",
            file=sys.stderr,
        )
    return 1


if __name__ == "__main__":
    sys.exit(main())
