import io

import pytest
from fastapi import HTTPException, UploadFile
from starlette.datastructures import Headers

from app.utils import file_upload
from app.utils.file_upload import read_recording


def recording(data: bytes, content_type: str = "video/webm") -> UploadFile:
    return UploadFile(file=io.BytesIO(data), filename="answer.webm",
                      headers=Headers({"content-type": content_type}))


async def test_recording_is_read_whole_when_within_limit(monkeypatch):
    monkeypatch.setattr(file_upload, "RECORDING_CHUNK_SIZE", 4)

    content, mime_type = await read_recording(recording(b"0123456789", "video/webm; codecs=vp8"))

    assert content == b"0123456789"
    assert mime_type == "video/webm"


async def test_oversized_recording_stops_reading_at_the_limit(monkeypatch):
    monkeypatch.setattr(file_upload, "MAX_RECORDING_SIZE", 10)
    monkeypatch.setattr(file_upload, "RECORDING_CHUNK_SIZE", 4)
    upload = recording(b"x" * 1000)

    with pytest.raises(HTTPException) as exc_info:
        await read_recording(upload)

    assert exc_info.value.status_code == 400
    assert "too large" in exc_info.value.detail
    assert upload.file.tell() == 12


async def test_empty_and_wrong_type_recordings_are_rejected():
    with pytest.raises(HTTPException, match="empty"):
        await read_recording(recording(b""))
    with pytest.raises(HTTPException) as exc_info:
        await read_recording(recording(b"GIF89a", "image/gif"))
    assert exc_info.value.status_code == 400
