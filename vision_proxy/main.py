"""
Main FastAPI application entry point
"""

import os
import sys
import traceback
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException

from vision_proxy.config import (
    API_DESCRIPTION,
    API_TITLE,
    API_VERSION,
    MULTIPART_OVERHEAD,
    Settings,
    load_settings,
    logger,
)
from vision_proxy.errors import ConfigurationError
from vision_proxy.handlers.proxy_handlers import (
    ProxyHandler,
    UpstreamClient,
    error_response,
    result_to_response,
)
from vision_proxy.models.request_models import Err, ErrorKind
from vision_proxy.services.upstream_service import OpenAIChatClient
from vision_proxy.utils.image_utils import upload_limit_message


def request_too_large(request: Request, max_upload_bytes: int) -> bool:
    """Reject on the declared Content-Length before the body is read"""
    declared = request.headers.get("content-length")
    if not declared or not declared.isdigit():
        return False
    return int(declared) > max_upload_bytes + MULTIPART_OVERHEAD


def create_app(settings: Settings, upstream: Optional[UpstreamClient] = None) -> FastAPI:
    """
    Build the FastAPI application

    Args:
        settings: Immutable startup settings holding the credential
        upstream: Upstream client; defaults to the real OpenAI client

    Returns:
        Configured FastAPI app
    """
    app = FastAPI(
        title=API_TITLE,
        description=API_DESCRIPTION,
        version=API_VERSION,
    )

    # Add CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Allows all origins
        allow_methods=["*"],  # Allows all methods
        allow_headers=["*"],  # Allows all headers
    )

    handler = ProxyHandler(settings, upstream or OpenAIChatClient(settings))
    app.state.settings = settings
    app.state.proxy_handler = handler

    @app.exception_handler(Exception)
    async def unhandled_exception(request: Request, exc: Exception):
        error_traceback = "".join(
            traceback.format_exception(type(exc), exc, exc.__traceback__)
        )
        logger.error(f"Server Error on {request.url.path}: {str(exc)}\n{error_traceback}")
        return error_response(500, "Internal Server Error", str(exc))

    # Health check endpoint
    @app.get("/health")
    async def health():
        """Health check endpoint"""
        return {"status": "healthy", "message": f"{API_TITLE} is running"}

    @app.post("/api/openai")
    async def proxy_openai(request: Request):
        """
        Forward a prompt and an optional JPEG/PNG image to the chat-completion API

        Multipart form fields:
            prompt: Required prompt text
            image: Optional image file, at most 10 MiB

        A JSON body ``{"prompt": ...}`` is also accepted, without an image.

        Returns:
            Upstream JSON unchanged, or an error body
        """
        content_type = request.headers.get("content-type", "")
        if content_type.startswith("application/json"):
            try:
                body = await request.json()
            except ValueError:
                return error_response(400, "Invalid JSON body")
            prompt = body.get("prompt") if isinstance(body, dict) else None
            return result_to_response(await handler.handle(prompt, []))

        if request_too_large(request, settings.max_upload_bytes):
            logger.warning(
                f"Rejected request with Content-Length {request.headers.get('content-length')}"
            )
            return result_to_response(
                Err(
                    kind=ErrorKind.PAYLOAD_TOO_LARGE,
                    message=upload_limit_message(settings.max_upload_bytes),
                )
            )

        try:
            form = await request.form(max_files=1)
        except HTTPException as e:
            return error_response(e.status_code, str(e.detail))
        try:
            result = await handler.handle(form.get("prompt"), form.getlist("image"))
        finally:
            await form.close()
        return result_to_response(result)

    @app.on_event("startup")
    async def startup_event():
        logger.info(f"Starting {API_TITLE} v{API_VERSION}")
        logger.info(f"Server running on http://localhost:{settings.port}")
        logger.info(
            f"OpenAI API Key: {'*** Configured ***' if settings.api_key else 'MISSING!'}"
        )

    @app.on_event("shutdown")
    async def shutdown_event():
        logger.info(f"Shutting down {API_TITLE}")

    # Front-end page; mounted last so API routes take precedence
    if os.path.isdir(settings.public_dir):
        app.mount("/", StaticFiles(directory=settings.public_dir, html=True), name="public")
    else:
        logger.warning(f"Static directory {settings.public_dir} not found; front-end disabled")

    return app


def main() -> None:
    try:
        settings = load_settings()
    except ConfigurationError as e:
        logger.error(f"ERROR: {e.message}")
        sys.exit(1)

    app = create_app(settings)
    uvicorn.run(app, host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
