"""
Configuration module for the application
Contains application-wide settings, constants, and the startup settings loader
"""

import os
import logging
from typing import Optional

import dotenv
from pydantic import BaseModel, ConfigDict, Field

from vision_proxy.errors import ConfigurationError

# Configure logging
logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

# API settings
API_TITLE = "Vision Proxy"
API_DESCRIPTION = "Proxy that forwards prompts and images to a multimodal chat-completion API"
API_VERSION = "1.0.0"

# Server settings
DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = 3000

# Upstream settings
OPENAI_API_URL = "https://api.openai.com/v1/chat/completions"
OPENAI_MODEL = "gpt-4o"
MAX_TOKENS = 1000
REQUEST_TIMEOUT = 30  # seconds

# Upload settings
MAX_UPLOAD_BYTES = 10 * 1024 * 1024  # 10 MiB
UPLOAD_CHUNK_SIZE = 64 * 1024
MULTIPART_OVERHEAD = 16 * 1024  # boundaries, part headers and the prompt field
ALLOWED_IMAGE_TYPES = ("image/jpeg", "image/png", "image/jpg")

# Storage paths
BASE_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
UPLOAD_DIR = os.path.join(BASE_DIR, "uploads")
PUBLIC_DIR = os.path.join(BASE_DIR, "public")


class Settings(BaseModel):
    """
    Immutable settings resolved once at startup.
    Passed explicitly to the handler and upstream client.
    """

    model_config = ConfigDict(frozen=True)

    api_key: str = Field(..., min_length=1, repr=False)
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    api_url: str = OPENAI_API_URL
    model: str = OPENAI_MODEL
    max_tokens: int = MAX_TOKENS
    request_timeout: float = REQUEST_TIMEOUT
    max_upload_bytes: int = MAX_UPLOAD_BYTES
    upload_dir: str = UPLOAD_DIR
    public_dir: str = PUBLIC_DIR


def load_settings(env_file: Optional[str] = None) -> Settings:
    """
    Build Settings from the process environment (and a .env file, if any)

    Args:
        env_file: Optional path to a .env file; defaults to dotenv's lookup

    Returns:
        Settings object

    Raises:
        ConfigurationError: if OPENAI_API_KEY is missing or PORT is malformed
    """
    dotenv.load_dotenv(env_file)

    api_key = os.getenv("OPENAI_API_KEY")
    if not api_key:
        raise ConfigurationError("Missing OPENAI_API_KEY in environment variables")

    raw_port = os.getenv("PORT") or str(DEFAULT_PORT)
    try:
        port = int(raw_port)
    except ValueError:
        raise ConfigurationError(f"PORT must be an integer, got {raw_port!r}")

    return Settings(
        api_key=api_key,
        host=os.getenv("HOST") or DEFAULT_HOST,
        port=port,
        api_url=os.getenv("OPENAI_API_URL") or OPENAI_API_URL,
        model=os.getenv("OPENAI_MODEL") or OPENAI_MODEL,
        upload_dir=os.getenv("UPLOAD_DIR") or UPLOAD_DIR,
    )
