"""
File storage for faculty attachments.

Files go to Cloudinary when it is configured. Without Cloudinary the
file is inlined as a base64 `data:` URL so messaging still works in
development.
"""
import base64
import io
import logging
import re
from typing import Optional, Tuple

import cloudinary
import cloudinary.uploader

from app.core.config import get_settings

settings = get_settings()
logger = logging.getLogger(__name__)

_UPLOAD_PATH_RE = re.compile(r"/(image|video|raw)/upload/(?:v\d+/)?(.+)$")


def parse_delivery_url(url: Optional[str]) -> Optional[Tuple[str, str]]:
    """
    (public_id, resource_type) from a Cloudinary delivery URL, e.g.
    .../image/upload/v123/faculty-messages/diagram.png -> ("faculty-messages/diagram", "image")
    .../raw/upload/v123/faculty-messages/notes.docx    -> ("faculty-messages/notes.docx", "raw")

    Raw public ids keep their extension; image and video ids do not.
    """
    if not url or url.startswith("data:"):
        return None
    match = _UPLOAD_PATH_RE.search(url.split("?", 1)[0])
    if not match:
        return None
    resource_type, path = match.groups()
    if resource_type != "raw":
        path = re.sub(r"\.[^/.]+$", "", path)
    return path, resource_type


class StorageClient:
    """Uploads and deletes attachment files."""

    def __init__(self):
        self.configured = settings.cloudinary_configured
        self.folder = settings.cloudinary_folder
        if self.configured:
            cloudinary.config(
                cloud_name=settings.cloudinary_cloud_name,
                api_key=settings.cloudinary_api_key,
                api_secret=settings.cloudinary_api_secret,
                secure=True
            )

    def upload(self, content: bytes, filename: str, content_type: str) -> dict:
        """
        Store a file.

        Returns:
            {"url": str, "publicId": str or None, "storage": "cloudinary" | "inline"}
        """
        if not self.configured:
            encoded = base64.b64encode(content).decode("ascii")
            return {
                "url": f"data:{content_type};base64,{encoded}",
                "publicId": None,
                "storage": "inline"
            }

        result = cloudinary.uploader.upload(
            io.BytesIO(content),
            folder=self.folder,
            resource_type="auto",
            use_filename=True,
            filename_override=filename
        )
        logger.info("Uploaded %s to Cloudinary as %s", filename, result.get("public_id"))
        return {
            "url": result["secure_url"],
            "publicId": result.get("public_id"),
            "storage": "cloudinary"
        }

    def delete(self, public_id: str, resource_type: str = "image") -> bool:
        if not self.configured or not public_id:
            return False
        result = cloudinary.uploader.destroy(public_id, resource_type=resource_type, invalidate=True)
        if result.get("result") != "ok":
            logger.warning("Cloudinary did not delete %s (%s): %s", public_id, resource_type, result)
            return False
        return True

    def delete_by_url(self, url: str) -> bool:
        parsed = parse_delivery_url(url)
        if parsed is None:
            return False
        public_id, resource_type = parsed
        return self.delete(public_id, resource_type=resource_type)


# Singleton instance
_storage_client: StorageClient = None


def get_storage_client() -> StorageClient:
    """Get or create storage client (singleton pattern)"""
    global _storage_client
    if _storage_client is None:
        _storage_client = StorageClient()
    return _storage_client
