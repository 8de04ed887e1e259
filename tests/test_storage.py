import asyncio
import io

import pytest
from fastapi import HTTPException, UploadFile

from buzzsmile.services import storage


def test_unique_name_keeps_extension():
    name = storage.unique_name("video", "My Clip.MOV")
    assert name.startswith("video-")
    assert name.endswith(".mov")
    assert name != storage.unique_name("video", "My Clip.MOV")


def test_safe_basename_strips_unsafe_characters():
    assert storage.safe_basename("../my logo (1).png") == "my_logo__1_"
    assert storage.safe_basename("") == "file"


def test_save_upload_enforces_limit(tmp_path):
    upload = UploadFile(file=io.BytesIO(b"x" * 2048), filename="big.mp4")
    destination = tmp_path / "big.mp4"
    with pytest.raises(HTTPException) as excinfo:
        asyncio.run(storage.save_upload(upload, destination, max_bytes=1024))
    assert excinfo.value.status_code == 413
    assert not destination.exists()


def test_save_upload_writes_file(tmp_path):
    upload = UploadFile(file=io.BytesIO(b"hello"), filename="a.mp4")
    destination = tmp_path / "a.mp4"
    assert asyncio.run(storage.save_upload(upload, destination, max_bytes=1024)) == 5
    assert destination.read_bytes() == b"hello"


def test_backup_video_copies_locally(tmp_path):
    source = tmp_path / "clip.mp4"
    source.write_bytes(b"data")
    result = storage.backup_video(source, "user1", "video1", "clip.mp4")
    assert result["s3_key"] is None
    assert open(result["local"], "rb").read() == b"data"
    assert "backups/user1/video1" in result["local"].replace("\\", "/")


def test_remove_file_reports_missing(tmp_path):
    target = tmp_path / "x"
    target.write_text("x")
    assert storage.remove_file(target) is True
    assert storage.remove_file(target) is False
    assert storage.remove_file(None) is False


def test_format_bytes():
    assert storage.format_bytes(0) == "0 Bytes"
    assert storage.format_bytes(512) == "512 Bytes"
    assert storage.format_bytes(1536) == "1.5 KB"
    assert storage.format_bytes(1024 ** 2) == "1 MB"
    assert storage.format_bytes(3 * 1024 ** 3) == "3 GB"
