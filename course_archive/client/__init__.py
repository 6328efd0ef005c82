"""Upload client exports"""
from .errors import (
    ArchiveError,
    NoFileSelected,
    FileTooLarge,
    MissingResourceType,
    NotAuthenticated,
    DuplicateResource,
    NetworkError,
    RelayError,
    InvalidServerResponse,
    InvalidRelayResponse,
    CatalogWriteError,
)
from .hasher import MAX_FILE_BYTES, check_file, fingerprint_bytes, fingerprint_file
from .uploader import ArchiveClient, ProgressTracker, UploadMetadata

__all__ = [
    "ArchiveError",
    "NoFileSelected",
    "FileTooLarge",
    "MissingResourceType",
    "NotAuthenticated",
    "DuplicateResource",
    "NetworkError",
    "RelayError",
    "InvalidServerResponse",
    "InvalidRelayResponse",
    "CatalogWriteError",
    "MAX_FILE_BYTES",
    "check_file",
    "fingerprint_bytes",
    "fingerprint_file",
    "ArchiveClient",
    "ProgressTracker",
    "UploadMetadata",
]
