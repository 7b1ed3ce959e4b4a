"""
Capture service — stores photo bytes uploaded by the console (driver photo,
vehicle photos, supervisor selfie, damage photos) and hands back an opaque
handle. The workflow only ever sees the handle.

Saves to:  {CAPTURE_DIR}/{session_id}/{slot}_{timestamp}.{ext}
"""

import os
from datetime import datetime, timezone

from fleetdesk.config import settings
from fleetdesk.exceptions import ValidationError
from fleetdesk.utils.logger import get_logger

logger = get_logger(__name__)

_EXTENSIONS = {"image/jpeg": "jpg", "image/jpg": "jpg", "image/png": "png", "image/webp": "webp"}


def store_capture(data: bytes, slot: str, session_id: str, content_type: str = "image/jpeg",
                  capture_dir: str = None) -> str:
    """Write the image to disk and return its handle (path relative to the capture dir)."""
    if not data:
        raise ValidationError("Capture is empty", ["body"])
    if len(data) > settings.MAX_CAPTURE_BYTES:
        raise ValidationError(
            f"Capture is {len(data)} bytes; the limit is {settings.MAX_CAPTURE_BYTES}", ["body"]
        )
    ext = _EXTENSIONS.get(content_type.split(";")[0].strip().lower())
    if ext is None:
        raise ValidationError(f"Unsupported capture type: {content_type}", ["content-type"])

    root = capture_dir or settings.CAPTURE_DIR
    folder = os.path.join(root, session_id)
    os.makedirs(folder, exist_ok=True)

    timestamp = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S_%f")
    filename = f"{slot}_{timestamp}.{ext}"
    with open(os.path.join(folder, filename), "wb") as f:
        f.write(data)
    logger.info(f"[CAPTURE] Saved {slot} for session {session_id} ({len(data)} bytes)")
    return f"{session_id}/{filename}"
