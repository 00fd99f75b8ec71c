"""
Helpers for inlining media attachments into provider requests.
"""

import base64
from pathlib import Path

import structlog

from .base import MediaBlock

logger = structlog.get_logger()

# Anything larger is sent as a text placeholder instead of inline data
MAX_INLINE_BYTES = 5 * 1024 * 1024


def load_media_base64(block: MediaBlock) -> str | None:
    """Read a media file and return it base64-encoded, or None if unusable."""
    path = Path(block.path)
    if not path.is_file():
        logger.warning("Media file missing", path=block.path)
        return None

    if path.stat().st_size > MAX_INLINE_BYTES:
        logger.warning("Media file too large to inline", path=block.path)
        return None

    return base64.b64encode(path.read_bytes()).decode("ascii")


def media_placeholder(block: MediaBlock) -> str:
    """Text stand-in for media a provider cannot receive inline."""
    return f"[Attached {block.media_type}: {block.filename or Path(block.path).name}]"
