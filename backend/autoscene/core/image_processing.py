"""Image encoding for the caption pipeline.

Turns an image reference (a filesystem path, a ``file://`` URI or the raw
bytes of a camera capture) into a base64 payload that can be embedded in a
JSON request body.  The bytes are verified with Pillow so that a corrupt
stream fails here, before any remote call is made.
"""

from __future__ import annotations

import base64
import binascii
import io
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union
from urllib.parse import unquote, urlparse

from PIL import Image, UnidentifiedImageError

from autoscene.core.config import get_settings

logger = logging.getLogger(__name__)

ImageRef = Union[str, os.PathLike, bytes, bytearray]

# Pillow format name -> MIME type for the formats a phone camera or picker hands us.
FORMAT_MIME_TYPES = {
    "JPEG": "image/jpeg",
    "PNG": "image/png",
    "WEBP": "image/webp",
    "GIF": "image/gif",
    "BMP": "image/bmp",
    "TIFF": "image/tiff",
    "HEIF": "image/heif",
}


class EncodeError(Exception):
    """The image reference could not be read or is not an image."""


@dataclass(frozen=True)
class EncodedPayload:
    """Transport-ready image payload."""

    content: str
    mime_type: str
    size_bytes: int

    def as_data_uri(self) -> str:
        return f"data:{self.mime_type};base64,{self.content}"


def describe_ref(image_ref: ImageRef) -> str:
    """Short, log-safe description of an image reference."""
    if isinstance(image_ref, (bytes, bytearray)):
        return f"<{len(image_ref)} bytes>"
    return str(image_ref)


def _ref_to_path(image_ref: Union[str, os.PathLike]) -> Path:
    raw = os.fspath(image_ref)
    if raw.startswith("file://"):
        return Path(unquote(urlparse(raw).path))
    return Path(raw)


def _read_bytes(image_ref: ImageRef) -> bytes:
    if isinstance(image_ref, (bytes, bytearray)):
        return bytes(image_ref)
    if not isinstance(image_ref, (str, os.PathLike)):
        raise EncodeError(f"Unsupported image reference type: {type(image_ref).__name__}")

    path = _ref_to_path(image_ref)
    try:
        return path.read_bytes()
    except FileNotFoundError as exc:
        raise EncodeError(f"Image not found: {path}") from exc
    except PermissionError as exc:
        raise EncodeError(f"Image not readable: {path}") from exc
    except IsADirectoryError as exc:
        raise EncodeError(f"Image reference is a directory: {path}") from exc
    except OSError as exc:
        raise EncodeError(f"Failed to read image {path}: {exc}") from exc


def _detect_mime_type(content: bytes) -> str:
    """Return the MIME type of *content*, raising ``EncodeError`` if it is not an image."""
    try:
        with Image.open(io.BytesIO(content)) as img:
            fmt = img.format or ""
            img.verify()
    except (UnidentifiedImageError, OSError, SyntaxError, ValueError) as exc:
        raise EncodeError(f"Corrupt or unsupported image stream: {exc}") from exc
    return FORMAT_MIME_TYPES.get(fmt.upper(), "application/octet-stream")


def encode_image(image_ref: ImageRef, *, max_bytes: Optional[int] = None) -> EncodedPayload:
    """Read *image_ref* fully and return it base64-encoded.

    Raises ``EncodeError`` when the reference is missing, unreadable, empty,
    larger than ``max_bytes`` (defaults to ``MAX_IMAGE_BYTES``) or not a
    decodable image.  There is no retry.
    """
    if max_bytes is None:
        max_bytes = get_settings().max_image_bytes

    content = _read_bytes(image_ref)
    if not content:
        raise EncodeError(f"Image is empty: {describe_ref(image_ref)}")
    if max_bytes and len(content) > max_bytes:
        raise EncodeError(f"Image is {len(content)} bytes, limit is {max_bytes}")

    mime_type = _detect_mime_type(content)
    encoded = base64.b64encode(content).decode("ascii")
    logger.debug("Encoded %s (%s, %d bytes)", describe_ref(image_ref), mime_type, len(content))
    return EncodedPayload(content=encoded, mime_type=mime_type, size_bytes=len(content))


def decode_payload(content: str) -> bytes:
    """Decode a base64 payload received over the wire; accepts data URIs."""
    raw = content.strip()
    if raw.startswith("data:") and "," in raw:
        raw = raw.split(",", 1)[1]
    try:
        return base64.b64decode(raw, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise EncodeError(f"Invalid base64 image payload: {exc}") from exc
