"""
Upstream service module
Builds chat-completion payloads and performs the single outbound API call
"""

import requests
from typing import Any, Optional

from vision_proxy.config import Settings, logger
from vision_proxy.models.request_models import (
    ChatCompletionRequest,
    ChatMessage,
    Err,
    ErrorKind,
    ImageUrl,
    ImageUrlPart,
    Ok,
    ProxyResult,
    TextPart,
)

MAX_ERROR_TEXT = 500


def build_message(prompt: str, image_data_url: Optional[str] = None) -> ChatMessage:
    """
    Build the single user turn: text part first, image part only if supplied
    """
    content = [TextPart(text=prompt)]
    if image_data_url:
        content.append(ImageUrlPart(image_url=ImageUrl(url=image_data_url)))
    return ChatMessage(role="user", content=content)


def extract_error_message(response: requests.Response) -> str:
    """
    Pull a human-readable message out of an upstream error response

    Args:
        response: Non-success response from the upstream API

    Returns:
        Best-effort message string
    """
    try:
        body = response.json()
    except ValueError:
        body = None

    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        if isinstance(error, str) and error:
            return error
        if body.get("message"):
            return str(body["message"])

    text = (response.text or "").strip()
    if text:
        return text[:MAX_ERROR_TEXT]
    return f"Upstream responded with status {response.status_code} {response.reason or ''}".strip()


class OpenAIChatClient:
    """Client for the upstream chat-completion endpoint"""

    def __init__(self, settings: Settings, session: Optional[requests.Session] = None):
        self.settings = settings
        self.session = session or requests.Session()

    def build_payload(self, prompt: str, image_data_url: Optional[str] = None) -> ChatCompletionRequest:
        return ChatCompletionRequest(
            model=self.settings.model,
            messages=[build_message(prompt, image_data_url)],
            max_tokens=self.settings.max_tokens,
        )

    def submit(self, prompt: str, image_data_url: Optional[str] = None) -> ProxyResult:
        """
        Send the prompt (and optional image) upstream. Never retried.

        Args:
            prompt: User prompt text
            image_data_url: Optional base64 data URL of the image

        Returns:
            Ok with the upstream JSON body, or Err(upstream, message)
        """
        payload = self.build_payload(prompt, image_data_url)
        headers = {
            "Authorization": f"Bearer {self.settings.api_key}",
            "Content-Type": "application/json",
        }

        logger.info(
            f"Forwarding prompt ({len(prompt)} chars, image={'yes' if image_data_url else 'no'}) "
            f"to {self.settings.api_url}"
        )
        try:
            response = self.session.post(
                self.settings.api_url,
                json=payload.model_dump(),
                headers=headers,
                timeout=self.settings.request_timeout,
            )
        except requests.exceptions.Timeout:
            message = f"Upstream request timed out after {self.settings.request_timeout:g}s"
            logger.error(f"OpenAI API Error: {message}")
            return Err(kind=ErrorKind.UPSTREAM, message=message)
        except requests.exceptions.RequestException as e:
            logger.error(f"OpenAI API Error: {str(e)}")
            return Err(kind=ErrorKind.UPSTREAM, message=str(e))

        if not response.ok:
            message = extract_error_message(response)
            logger.error(f"OpenAI API Error ({response.status_code}): {response.text[:MAX_ERROR_TEXT]}")
            return Err(kind=ErrorKind.UPSTREAM, message=message)

        try:
            body: Any = response.json()
        except ValueError:
            logger.error(f"OpenAI API returned non-JSON body: {response.text[:MAX_ERROR_TEXT]}")
            return Err(kind=ErrorKind.UPSTREAM, message="Upstream returned an invalid JSON body")

        return Ok(value=body, raw=response.content)
