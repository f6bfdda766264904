import os
import uuid
import pathlib
import logging
from typing import Optional
from fastapi import UploadFile

logger = logging.getLogger(__name__)

async def save_uploaded_file(file: UploadFile, upload_dir: str, max_bytes: Optional[int] = None) -> str:
    """
    Saves an uploaded file under a unique name in upload_dir and returns the local path.
    Raises ValueError when the file has no name or is larger than max_bytes.
    """
    if not file.filename:
        raise ValueError("No file name provided.")

    pathlib.Path(upload_dir).mkdir(parents=True, exist_ok=True)

    file_extension = os.path.splitext(file.filename)[1]
    filename = f"{uuid.uuid4()}{file_extension}"
    file_path = os.path.join(upload_dir, filename)

    file_content = await file.read()
    if max_bytes is not None and len(file_content) > max_bytes:
        raise ValueError(f"File exceeds the maximum size of {max_bytes // (1024 * 1024)} MB.")

    try:
        with open(file_path, "wb") as f:
            f.write(file_content)
    except OSError as e:
        logger.error(f"Failed to save uploaded file {file.filename} to {file_path}: {e}")
        raise
    return file_path

def delete_local_file(file_path: Optional[str]) -> bool:
    """
    Removes a file the engine created (upload or generated document).
    Failures are logged and never raised; returns True when nothing is left on disk.
    """
    if not file_path:
        return True
    if not os.path.exists(file_path):
        return True
    try:
        os.remove(file_path)
        logger.info(f"Deleted local file: {file_path}")
        return True
    except OSError as e:
        logger.error(f"Failed to delete local file {file_path}: {e}")
        return False
