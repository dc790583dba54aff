"""
API handler for the proxy endpoint
"""

from typing import Any, List, Optional, Protocol

from fastapi.responses import JSONResponse, Response
from starlette.concurrency import run_in_threadpool
from starlette.datastructures import UploadFile

from vision_proxy.config import Settings, logger
from vision_proxy.errors import UploadTooLargeError
from vision_proxy.models.request_models import (
    Err,
    ErrorKind,
    ErrorResponse,
    Ok,
    ProxyResult,
)
from vision_proxy.utils.image_utils import (
    is_allowed_image_type,
    read_data_url,
    remove_temp_file,
    save_upload_to_temp,
)

ERROR_STATUS = {
    ErrorKind.VALIDATION: 400,
    ErrorKind.PAYLOAD_TOO_LARGE: 413,
    ErrorKind.UPSTREAM: 500,
}


class UpstreamClient(Protocol):
    def submit(self, prompt: str, image_data_url: Optional[str] = None) -> ProxyResult:
        ...


def error_response(status_code: int, error: str, message: Optional[str] = None) -> JSONResponse:
    """Single place where error bodies are shaped"""
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=error, message=message).model_dump(exclude_none=True),
    )


def result_to_response(result: ProxyResult) -> Response:
    """
    Translate a ProxyResult into an HTTP response

    Validation errors carry their message as ``error``; upstream errors are
    reported as a generic 500 with the upstream message attached.
    """
    if isinstance(result, Ok):
        if result.raw is not None:
            return Response(content=result.raw, media_type="application/json")
        return JSONResponse(content=result.value)

    status_code = ERROR_STATUS[result.kind]
    if status_code >= 500:
        return error_response(status_code, "Internal Server Error", result.message)
    return error_response(status_code, result.message)


def pick_uploads(images: List[Any]) -> List[UploadFile]:
    """Drop the empty file part a browser sends when no file was chosen"""
    return [
        item for item in images
        if isinstance(item, UploadFile) and (item.filename or item.size)
    ]


class ProxyHandler:
    """
    Handles one proxy request: validate, encode the optional image, call upstream.
    Holds only immutable settings and the upstream client.
    """

    def __init__(self, settings: Settings, upstream: UpstreamClient):
        self.settings = settings
        self.upstream = upstream

    async def handle(self, prompt: Optional[str], images: Optional[List[Any]] = None) -> ProxyResult:
        """
        Run the proxy flow for one request

        Args:
            prompt: Prompt text from the form, may be None or empty
            images: Values of the ``image`` form field

        Returns:
            ProxyResult for result_to_response
        """
        if not prompt or not isinstance(prompt, str):
            return Err(kind=ErrorKind.VALIDATION, message="Prompt is required")

        uploads = pick_uploads(images or [])
        if len(uploads) > 1:
            return Err(kind=ErrorKind.VALIDATION, message="Only one image may be uploaded")

        image_data_url = None
        temp_path = None
        try:
            if uploads:
                image = uploads[0]
                try:
                    temp_path = await save_upload_to_temp(
                        image, self.settings.upload_dir, self.settings.max_upload_bytes
                    )
                except UploadTooLargeError as e:
                    logger.warning(f"Rejected upload {image.filename!r}: {e.message}")
                    return Err(kind=ErrorKind.PAYLOAD_TOO_LARGE, message=e.message)

                if not is_allowed_image_type(image.content_type):
                    logger.info(f"Rejected upload {image.filename!r} with type {image.content_type}")
                    return Err(kind=ErrorKind.VALIDATION, message="Only JPEG/PNG images are allowed")

                mime = image.content_type.split(";", 1)[0].strip().lower()
                image_data_url = await run_in_threadpool(read_data_url, temp_path, mime)

            return await run_in_threadpool(self.upstream.submit, prompt, image_data_url)
        finally:
            remove_temp_file(temp_path)
