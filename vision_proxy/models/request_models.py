"""
Data models for upstream requests and proxy responses
Uses Pydantic for validation and serialization
"""

from enum import Enum
from pydantic import BaseModel, ConfigDict, Field
from typing import Any, List, Literal, Optional, Union


class TextPart(BaseModel):
    """
    Text content part of a chat message
    """

    type: Literal["text"] = "text"
    text: str = Field(..., description="Prompt text")


class ImageUrl(BaseModel):
    url: str = Field(..., description="HTTP URL or base64 encoded data URL")


class ImageUrlPart(BaseModel):
    """
    Image content part of a chat message
    """

    type: Literal["image_url"] = "image_url"
    image_url: ImageUrl


class ChatMessage(BaseModel):
    """
    A single role-tagged conversation turn
    """

    role: str = "user"
    content: List[Union[TextPart, ImageUrlPart]] = Field(
        ..., description="Ordered content parts, text first"
    )


class ChatCompletionRequest(BaseModel):
    """
    Request body sent to the upstream chat-completion endpoint
    """

    model: str
    messages: List[ChatMessage]
    max_tokens: int


class ErrorResponse(BaseModel):
    """
    Response model for errors
    """

    error: str = Field(..., description="Error message")
    message: Optional[str] = Field(None, description="Detail from the failed operation")


class ErrorKind(str, Enum):
    VALIDATION = "validation"
    PAYLOAD_TOO_LARGE = "payload_too_large"
    UPSTREAM = "upstream"


class Ok(BaseModel):
    """Successful proxy outcome carrying the upstream JSON body"""

    model_config = ConfigDict(frozen=True)

    value: Any
    raw: Optional[bytes] = Field(None, description="Upstream body bytes, forwarded as-is")


class Err(BaseModel):
    """Failed proxy outcome"""

    model_config = ConfigDict(frozen=True)

    kind: ErrorKind
    message: str


ProxyResult = Union[Ok, Err]
