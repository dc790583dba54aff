import json
import os

import pytest
import requests
from fastapi.testclient import TestClient

from vision_proxy.config import Settings
from vision_proxy.main import create_app
from vision_proxy.services.upstream_service import OpenAIChatClient

UPSTREAM_BODY = {
    "id": "chatcmpl-123",
    "object": "chat.completion",
    "model": "gpt-4o",
    "choices": [
        {
            "index": 0,
            "message": {"role": "assistant", "content": "A dog on a beach."},
            "finish_reason": "stop",
        }
    ],
    "usage": {"prompt_tokens": 12, "completion_tokens": 6, "total_tokens": 18},
}

# Minimal JPEG/PNG headers are enough; nothing decodes the pixels
JPEG_BYTES = b"\xff\xd8\xff\xe0\x00\x10JFIF\x00" + b"\x00" * (50 * 1024)
PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 256


def make_response(status_code=200, body=None, text=None, reason="OK"):
    response = requests.Response()
    response.status_code = status_code
    response.reason = reason
    response.encoding = "utf-8"
    if body is not None:
        response._content = json.dumps(body).encode("utf-8")
        response.headers["Content-Type"] = "application/json"
    else:
        response._content = (text or "").encode("utf-8")
    return response


class FakeSession:
    """Stands in for requests.Session and records every outbound call"""

    def __init__(self, response=None, exc=None):
        self.response = response if response is not None else make_response(body=UPSTREAM_BODY)
        self.exc = exc
        self.calls = []

    def post(self, url, json=None, headers=None, timeout=None):
        self.calls.append({"url": url, "json": json, "headers": headers, "timeout": timeout})
        if self.exc is not None:
            raise self.exc
        return self.response


def leftover_uploads(settings):
    if not os.path.isdir(settings.upload_dir):
        return []
    return os.listdir(settings.upload_dir)


@pytest.fixture
def settings(tmp_path):
    return Settings(api_key="sk-test-key", upload_dir=str(tmp_path / "uploads"))


@pytest.fixture
def session():
    return FakeSession()


@pytest.fixture
def client(settings, session):
    app = create_app(settings, upstream=OpenAIChatClient(settings, session=session))
    with TestClient(app) as c:
        yield c
