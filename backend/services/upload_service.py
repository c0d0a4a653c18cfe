"""
upload_service.py — Image uploads to Supabase Storage.
Clients send images inline as data URLs (or bare base64); we store the bytes
and hand back the public URL. Any failure surfaces as UploadFailed so callers
can tell it apart from a database failure.
"""

import base64
import binascii
import logging
import mimetypes
import re
import uuid

from config import SUPABASE_BUCKET
from services.errors import UploadFailed
from supabase_client import get_supabase_admin

logger = logging.getLogger(__name__)

DATA_URL_RE = re.compile(r"^data:(?P<mime>[\w.+-]+/[\w.+-]+)?(;[\w-]+=[\w-]+)*;base64,(?P<data>.*)$", re.S)
DEFAULT_CONTENT_TYPE = "image/png"


def decode_image_payload(raw: str) -> tuple[bytes, str]:
    """Return (bytes, content_type) for a data URL or bare base64 string."""
    if not raw or not isinstance(raw, str):
        raise UploadFailed("Image payload is empty")
    content_type = DEFAULT_CONTENT_TYPE
    data = raw.strip()
    match = DATA_URL_RE.match(data)
    if match:
        content_type = match.group("mime") or DEFAULT_CONTENT_TYPE
        data = match.group("data")
    if not content_type.startswith("image/"):
        raise UploadFailed(f"Unsupported content type: {content_type}")
    try:
        return base64.b64decode(data, validate=True), content_type
    except (binascii.Error, ValueError) as e:
        raise UploadFailed("Image payload is not valid base64") from e


class ImageUploader:
    def __init__(self, bucket: str = SUPABASE_BUCKET, client_factory=get_supabase_admin):
        self.bucket = bucket
        self._client_factory = client_factory

    def upload_image(self, raw_payload: str, folder: str = "messages") -> dict:
        """Upload and return {"url": public_url}. Blocking; run it off the event loop."""
        contents, content_type = decode_image_payload(raw_payload)
        ext = mimetypes.guess_extension(content_type) or ".bin"
        path = f"{folder}/{uuid.uuid4()}{ext}"
        try:
            storage = self._client_factory().storage.from_(self.bucket)
            storage.upload(
                path=path,
                file=contents,
                file_options={"content-type": content_type},
            )
            public_url = storage.get_public_url(path)
        except Exception as e:
            logger.error(f"Image upload to {self.bucket}/{path} failed: {e}")
            raise UploadFailed() from e
        return {"url": public_url}


def get_uploader() -> ImageUploader:
    return ImageUploader()
