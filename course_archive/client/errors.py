"""
Client-side upload errors. Each message is short enough to show to the user as-is.
"""


class ArchiveError(Exception):
    """Base class for upload pipeline failures"""


# Input errors: raised before any network call
class NoFileSelected(ArchiveError):
    def __init__(self, message: str = "Please select a file."):
        super().__init__(message)


class FileTooLarge(ArchiveError):
    def __init__(self, size_bytes: int, max_bytes: int):
        super().__init__(f"File is too large. Max limit is {max_bytes // (1024 * 1024)}MB.")
        self.size_bytes = size_bytes
        self.max_bytes = max_bytes


class MissingResourceType(ArchiveError):
    def __init__(self, message: str = "Please specify the resource type."):
        super().__init__(message)


# Authentication errors
class NotAuthenticated(ArchiveError):
    def __init__(self, message: str = "You must be logged in to upload."):
        super().__init__(message)


# Integrity errors
class DuplicateResource(ArchiveError):
    def __init__(self, fingerprint: str):
        super().__init__("Duplicate File! This resource already exists.")
        self.fingerprint = fingerprint


# Upstream/dependency errors
class NetworkError(ArchiveError):
    def __init__(self, message: str = "Network error during upload."):
        super().__init__(message)


class RelayError(ArchiveError):
    """Relay answered with a non-2xx status; message is the relay's own"""
    
    def __init__(self, message: str, status_code: int):
        super().__init__(message)
        self.status_code = status_code


class InvalidServerResponse(ArchiveError):
    """2xx answer whose body is not the expected JSON"""

    def __init__(self, message: str = "Invalid response from server"):
        super().__init__(message)


class InvalidRelayResponse(InvalidServerResponse):
    pass


class CatalogWriteError(ArchiveError):
    """Blob stored but the catalog insert failed"""
    
    def __init__(self, message: str, hf_path: str, compensated: bool):
        super().__init__(message)
        self.hf_path = hf_path
        self.compensated = compensated
