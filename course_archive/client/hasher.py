"""
Content hasher: SHA-256 fingerprint of a local file, computed before any upload
"""
import hashlib
import os
from pathlib import Path
from typing import Optional, Union

from .errors import FileTooLarge, NoFileSelected

MAX_FILE_BYTES = 500 * 1024 * 1024  # 500MB
HASH_CHUNK_SIZE = 65536  # 64KB


def fingerprint_bytes(content: bytes, max_bytes: int = MAX_FILE_BYTES) -> str:
    """Lowercase hex SHA-256 of in-memory content, refused above max_bytes"""
    if len(content) > max_bytes:
        raise FileTooLarge(len(content), max_bytes)
    return hashlib.sha256(content).hexdigest()


def check_file(path: Optional[Union[str, os.PathLike]], max_bytes: int = MAX_FILE_BYTES) -> Path:
    """
    Validate a selected file without reading it.
    
    Raises:
        NoFileSelected: nothing selected or not a regular file
        FileTooLarge: larger than max_bytes
    """
    if path is None or str(path) == "":
        raise NoFileSelected()
    file_path = Path(path)
    if not file_path.is_file():
        raise NoFileSelected()
    
    size = file_path.stat().st_size
    if size > max_bytes:
        raise FileTooLarge(size, max_bytes)
    return file_path


def fingerprint_file(path: Optional[Union[str, os.PathLike]], max_bytes: int = MAX_FILE_BYTES) -> str:
    """
    Hash a file in chunks. The size ceiling is checked first, so oversized
    files are never read.
    """
    file_path = check_file(path, max_bytes)
    hasher = hashlib.sha256()
    with open(file_path, "rb") as f:
        while chunk := f.read(HASH_CHUNK_SIZE):
            hasher.update(chunk)
    return hasher.hexdigest()
