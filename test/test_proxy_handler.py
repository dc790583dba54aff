import asyncio
import json
import threading

from conftest import PNG_BYTES
from starlette.datastructures import Headers, UploadFile

from vision_proxy.handlers import proxy_handlers
from vision_proxy.handlers.proxy_handlers import ProxyHandler, result_to_response
from vision_proxy.models.request_models import Err, ErrorKind, Ok
from vision_proxy.utils.image_utils import read_data_url


class RecordingUpstream:
    def __init__(self, result):
        self.result = result
        self.calls = []

    def submit(self, prompt, image_data_url=None):
        self.calls.append((prompt, image_data_url))
        return self.result


def make_upload(tmp_path, data, content_type, filename="shot.png"):
    spool = open(tmp_path / "spool.bin", "w+b")
    spool.write(data)
    spool.seek(0)
    return UploadFile(
        file=spool, filename=filename, headers=Headers({"content-type": content_type})
    )


def test_handle_returns_validation_error_without_calling_upstream(settings):
    upstream = RecordingUpstream(Ok(value={}))
    handler = ProxyHandler(settings, upstream)

    result = asyncio.run(handler.handle(None, []))

    assert result == Err(kind=ErrorKind.VALIDATION, message="Prompt is required")
    assert upstream.calls == []


def test_handle_passes_data_url_to_upstream(settings, tmp_path):
    upstream = RecordingUpstream(Ok(value={"ok": True}))
    handler = ProxyHandler(settings, upstream)
    upload = make_upload(tmp_path, PNG_BYTES, "image/png")

    result = asyncio.run(handler.handle("What is this?", [upload]))

    assert result == Ok(value={"ok": True})
    prompt, data_url = upstream.calls[0]
    assert prompt == "What is this?"
    assert data_url.startswith("data:image/png;base64,")
    upload.file.close()


def test_result_to_response_status_mapping():
    ok = result_to_response(Ok(value={"id": "x"}))
    assert ok.status_code == 200
    assert json.loads(ok.body) == {"id": "x"}

    bad = result_to_response(Err(kind=ErrorKind.VALIDATION, message="Prompt is required"))
    assert bad.status_code == 400
    assert json.loads(bad.body) == {"error": "Prompt is required"}

    too_big = result_to_response(Err(kind=ErrorKind.PAYLOAD_TOO_LARGE, message="too big"))
    assert too_big.status_code == 413

    upstream = result_to_response(Err(kind=ErrorKind.UPSTREAM, message="Rate limit reached"))
    assert upstream.status_code == 500
    assert json.loads(upstream.body) == {
        "error": "Internal Server Error",
        "message": "Rate limit reached",
    }


def test_unnamed_file_part_with_content_is_still_an_image(settings, tmp_path):
    upstream = RecordingUpstream(Ok(value={}))
    handler = ProxyHandler(settings, upstream)
    spool = open(tmp_path / "spool.bin", "w+b")
    spool.write(PNG_BYTES)
    spool.seek(0)
    upload = UploadFile(
        file=spool,
        filename="",
        size=len(PNG_BYTES),
        headers=Headers({"content-type": "image/png"}),
    )

    result = asyncio.run(handler.handle("What is this?", [upload]))

    assert result == Ok(value={})
    assert upstream.calls[0][1].startswith("data:image/png;base64,")
    spool.close()


def test_image_is_read_off_the_event_loop_thread(settings, tmp_path, monkeypatch):
    seen_threads = []

    def recording_read(path, content_type):
        seen_threads.append(threading.current_thread())
        return read_data_url(path, content_type)

    monkeypatch.setattr(proxy_handlers, "read_data_url", recording_read)
    handler = ProxyHandler(settings, RecordingUpstream(Ok(value={})))
    upload = make_upload(tmp_path, PNG_BYTES, "image/png")

    asyncio.run(handler.handle("What is this?", [upload]))

    assert len(seen_threads) == 1
    assert seen_threads[0] is not threading.main_thread()
    upload.file.close()
