"""Services module exports"""
from .storage import storage_service, ObjectStore, StorageWriteError, get_object_store
from .relay import (
    relay_upload,
    derive_storage_path,
    UploadTooLarge,
    InvalidDeleteToken,
    issue_delete_token,
    check_delete_token,
)
from .access import (
    Identity,
    AccessDecision,
    AccessForbidden,
    email_in_domain,
    evaluate_access,
    ensure_member,
    is_moderator,
)
from .identity import (
    IdentityResolver,
    SessionIdentityResolver,
    GoogleIdentityProvider,
    IdentityProviderError,
)
from .catalog import CatalogService, ResourceNotFound, NotResourceOwner, group_by_type, is_archive

__all__ = [
    "storage_service",
    "ObjectStore",
    "StorageWriteError",
    "get_object_store",
    "relay_upload",
    "derive_storage_path",
    "UploadTooLarge",
    "InvalidDeleteToken",
    "issue_delete_token",
    "check_delete_token",
    "Identity",
    "AccessDecision",
    "AccessForbidden",
    "email_in_domain",
    "evaluate_access",
    "ensure_member",
    "is_moderator",
    "IdentityResolver",
    "SessionIdentityResolver",
    "GoogleIdentityProvider",
    "IdentityProviderError",
    "CatalogService",
    "ResourceNotFound",
    "NotResourceOwner",
    "group_by_type",
    "is_archive",
]
