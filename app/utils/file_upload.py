"""
File Upload Utility - Validate faculty attachments.

Supported formats:
- Images (JPEG, PNG, GIF, WebP)
- PDF
- Word (.doc, .docx)
- PowerPoint (.ppt, .pptx)
- Plain Text (.txt)

Max file size: 10MB
"""

from typing import Tuple
from fastapi import UploadFile, HTTPException


MAX_FILE_SIZE_MB = 10
MAX_FILE_SIZE_BYTES = MAX_FILE_SIZE_MB * 1024 * 1024

ALLOWED_IMAGE_TYPES = {"image/jpeg", "image/jpg", "image/png", "image/gif", "image/webp"}
ALLOWED_DOCUMENT_TYPES = {
    "application/pdf",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "application/vnd.ms-powerpoint",
    "application/vnd.openxmlformats-officedocument.presentationml.presentation",
    "text/plain",
}
ALLOWED_CONTENT_TYPES = ALLOWED_IMAGE_TYPES | ALLOWED_DOCUMENT_TYPES


def attachment_type(content_type: str) -> str:
    """Stream attachment / message type for a MIME type: 'image' or 'file'."""
    return "image" if content_type.startswith("image/") else "file"


async def read_upload(file: UploadFile) -> Tuple[bytes, str, str]:
    """
    Validate and read an uploaded attachment.

    Args:
        file: FastAPI UploadFile

    Returns:
        Tuple of (content, filename, content_type)

    Raises:
        HTTPException on validation errors
    """
    if file is None or not file.filename:
        raise HTTPException(status_code=400, detail="No file uploaded")

    content_type = (file.content_type or "").lower()
    if content_type not in ALLOWED_CONTENT_TYPES:
        raise HTTPException(
            status_code=400,
            detail="Invalid file type. Only images, PDFs, Word, PowerPoint and text files are allowed."
        )

    content = await file.read()

    if len(content) > MAX_FILE_SIZE_BYTES:
        raise HTTPException(
            status_code=413,
            detail=f"File too large. Maximum size: {MAX_FILE_SIZE_MB}MB"
        )

    if not content:
        raise HTTPException(status_code=400, detail="Uploaded file is empty")

    return content, file.filename, content_type
