"""
Utility functions for uploaded images
Includes type checks, format sniffing, data URL encoding and temp file handling
"""

import os
import base64
import tempfile
from typing import Optional

from starlette.concurrency import run_in_threadpool
from starlette.datastructures import UploadFile

from vision_proxy.config import ALLOWED_IMAGE_TYPES, UPLOAD_CHUNK_SIZE, logger
from vision_proxy.errors import UploadTooLargeError


def is_allowed_image_type(content_type: Optional[str]) -> bool:
    """
    Check the declared MIME type against the allow-list

    Args:
        content_type: MIME type declared by the client, may include parameters

    Returns:
        True if the image type is JPEG or PNG
    """
    if not content_type:
        return False
    mime = content_type.split(";", 1)[0].strip().lower()
    return mime in ALLOWED_IMAGE_TYPES


def detect_image_format(content_bytes: bytes) -> Optional[str]:
    """
    Detect image format from magic bytes.
    Returns the MIME type or None if unknown.
    """
    if content_bytes.startswith(b"\x89PNG\r\n\x1a\n"):
        return "image/png"
    elif content_bytes.startswith(b"\xff\xd8\xff"):
        return "image/jpeg"
    elif content_bytes.startswith(b"GIF8"):
        return "image/gif"
    elif content_bytes.startswith(b"RIFF") and content_bytes[8:12] == b"WEBP":
        return "image/webp"
    elif content_bytes.startswith(b"%PDF"):
        return "application/pdf"
    return None


def build_data_url(image_bytes: bytes, content_type: str) -> str:
    """
    Encode raw bytes as a base64 data URL
    Format: data:image/png;base64,base64_data
    """
    encoded = base64.b64encode(image_bytes).decode("ascii")
    return f"data:{content_type};base64,{encoded}"


def format_size(num_bytes: int) -> str:
    mib = 1024 * 1024
    if num_bytes % mib == 0:
        return f"{num_bytes // mib} MiB"
    return f"{num_bytes} bytes"


def upload_limit_message(max_bytes: int) -> str:
    return f"Image exceeds the {format_size(max_bytes)} upload limit"


async def save_upload_to_temp(upload: UploadFile, upload_dir: str, max_bytes: int) -> str:
    """
    Spool an uploaded file into a private temporary file

    Args:
        upload: UploadFile from the multipart form
        upload_dir: Directory for temporary uploads, created if missing
        max_bytes: Largest accepted upload size

    Returns:
        Path of the temporary file; the caller owns it and must remove it

    Raises:
        UploadTooLargeError: if the upload exceeds max_bytes
    """
    os.makedirs(upload_dir, exist_ok=True)
    fd, path = tempfile.mkstemp(prefix="upload-", dir=upload_dir)
    written = 0
    try:
        with os.fdopen(fd, "wb") as out:
            while True:
                chunk = await upload.read(UPLOAD_CHUNK_SIZE)
                if not chunk:
                    break
                written += len(chunk)
                if written > max_bytes:
                    raise UploadTooLargeError(upload_limit_message(max_bytes))
                await run_in_threadpool(out.write, chunk)
    except BaseException:
        remove_temp_file(path)
        raise

    logger.info(f"Stored upload {upload.filename!r} ({written} bytes) at {path}")
    return path


def read_data_url(path: str, content_type: str) -> str:
    """
    Read a temporary upload and encode it as a data URL.
    The file is removed once read, whether or not reading succeeded.
    """
    try:
        with open(path, "rb") as f:
            image_bytes = f.read()
    finally:
        remove_temp_file(path)

    sniffed = detect_image_format(image_bytes[:16])
    declared = content_type.split(";", 1)[0].strip().lower().replace("image/jpg", "image/jpeg")
    if sniffed is not None and sniffed != declared:
        logger.warning(f"Upload declared as {content_type} but content looks like {sniffed}")

    return build_data_url(image_bytes, content_type)


def remove_temp_file(path: Optional[str]) -> None:
    """Best-effort removal; failures are logged, never raised"""
    if not path:
        return
    try:
        os.remove(path)
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.warning(f"Could not remove temporary upload {path}: {str(e)}")
