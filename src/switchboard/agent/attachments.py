"""User input models and image attachment handling."""

from __future__ import annotations

import base64
import binascii
import logging
import re
import time
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

logger = logging.getLogger(__name__)

#: ``data:<mime>;base64,<payload>`` URLs as sent by the browser.
_DATA_URL_RE = re.compile(r"^data:([^;,]+);base64,(.+)$", re.DOTALL)

#: File extensions for common image MIME types.
_EXTENSIONS = {
    "image/png": "png",
    "image/jpeg": "jpg",
    "image/jpg": "jpg",
    "image/gif": "gif",
    "image/webp": "webp",
    "image/svg+xml": "svg",
}

#: Header placed before the list of written image paths in the prompt.
IMAGE_PATHS_HEADER = "[Images provided at the following paths:]"


class ImageAttachment(BaseModel):
    """One image pasted or uploaded in the chat input."""

    model_config = ConfigDict(extra="ignore")

    data: str = Field(description="base64 data URL")
    name: str | None = Field(default=None, description="Original file name")


class UserInput(BaseModel):
    """A chat message from the client."""

    model_config = ConfigDict(extra="ignore")

    text: str = Field(default="", description="Prompt text")
    images: list[ImageAttachment] = Field(default_factory=list)

    @classmethod
    def from_payload(cls, payload: Any) -> UserInput | None:
        """Build from a client payload: a bare string or a mapping."""
        if payload is None:
            return None
        if isinstance(payload, str):
            return cls(text=payload)
        return cls.model_validate(payload)


def decode_data_url(data: str) -> tuple[str, bytes] | None:
    """Split a base64 data URL into ``(mime_type, raw_bytes)``.

    Returns ``None`` for anything that is not a well-formed base64 data URL.
    """
    match = _DATA_URL_RE.match(data.strip())
    if match is None:
        return None
    mime_type, encoded = match.groups()
    try:
        raw = base64.b64decode(encoded, validate=True)
    except (binascii.Error, ValueError):
        return None
    return mime_type, raw


def write_images(
    images: list[ImageAttachment],
    working_dir: Path,
    timestamp_ms: int | None = None,
) -> list[Path]:
    """Decode *images* into ``<working_dir>/.tmp/images/<timestamp>/``.

    Invalid entries are skipped with a warning.  The directory is only
    created when at least one image decodes.  Cleanup is left to the caller.
    """
    if not images:
        return []
    if timestamp_ms is None:
        timestamp_ms = int(time.time() * 1000)
    target_dir = working_dir / ".tmp" / "images" / str(timestamp_ms)

    paths: list[Path] = []
    for index, image in enumerate(images):
        decoded = decode_data_url(image.data)
        if decoded is None:
            logger.warning("skipping image %d: not a base64 data URL", index)
            continue
        mime_type, raw = decoded
        ext = _EXTENSIONS.get(mime_type.lower(), "bin")
        target_dir.mkdir(parents=True, exist_ok=True)
        path = target_dir / f"image_{index}.{ext}"
        path.write_bytes(raw)
        paths.append(path)
    return paths


def build_prompt(user_input: UserInput | None, working_dir: Path) -> str:
    """Render *user_input* as prompt text, writing attached images to disk."""
    if user_input is None:
        return ""
    try:
        paths = write_images(user_input.images, working_dir)
    except OSError as exc:
        logger.error("failed to write image attachments: %s", exc)
        paths = []
    if not paths:
        return user_input.text
    listing = "\n".join(f"{n}. {p}" for n, p in enumerate(paths, start=1))
    return f"{user_input.text}\n\n{IMAGE_PATHS_HEADER}\n{listing}"
