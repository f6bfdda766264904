import io
import os

import pytest
from fastapi import UploadFile

from app.utils.file_manager import save_uploaded_file, delete_local_file


@pytest.mark.asyncio
async def test_save_uploaded_file_creates_file_and_returns_local_path(tmp_path):
    upload_dir = tmp_path / "audio"
    upload = UploadFile(filename="reuniao.mp3", file=io.BytesIO(b"ID3audio"))

    saved_path = await save_uploaded_file(upload, str(upload_dir))

    assert saved_path.startswith(str(upload_dir))
    assert saved_path.endswith(".mp3")
    with open(saved_path, "rb") as f:
        assert f.read() == b"ID3audio"


@pytest.mark.asyncio
async def test_save_uploaded_file_uses_unique_names(tmp_path):
    first = await save_uploaded_file(UploadFile(filename="a.wav", file=io.BytesIO(b"1")), str(tmp_path))
    second = await save_uploaded_file(UploadFile(filename="a.wav", file=io.BytesIO(b"2")), str(tmp_path))

    assert first != second


@pytest.mark.asyncio
async def test_save_uploaded_file_rejects_oversized_upload(tmp_path):
    upload = UploadFile(filename="big.mp3", file=io.BytesIO(b"x" * 11))

    with pytest.raises(ValueError):
        await save_uploaded_file(upload, str(tmp_path), max_bytes=10)
    assert os.listdir(tmp_path) == []


@pytest.mark.asyncio
async def test_save_uploaded_file_requires_filename(tmp_path):
    upload = UploadFile(filename="", file=io.BytesIO(b"data"))

    with pytest.raises(ValueError):
        await save_uploaded_file(upload, str(tmp_path))


def test_delete_local_file_removes_existing_file(tmp_path):
    target = tmp_path / "to_delete.pdf"
    target.write_bytes(b"%PDF")

    assert delete_local_file(str(target)) is True
    assert not target.exists()


def test_delete_local_file_missing_or_empty_path():
    assert delete_local_file(None) is True
    assert delete_local_file("/nonexistent/path/file.mp3") is True


def test_delete_local_file_reports_failure(tmp_path):
    target = tmp_path / "locked.mp3"
    target.write_bytes(b"data")

    with pytest.MonkeyPatch.context() as mp:
        def fail(path):
            raise PermissionError("denied")
        mp.setattr(os, "remove", fail)
        assert delete_local_file(str(target)) is False

    assert target.exists()
