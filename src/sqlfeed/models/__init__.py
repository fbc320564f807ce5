"""Data models module."""

from sqlfeed.models.acl import (
    DEFAULT_NAMESPACE,
    Acl,
    AuthnIdentity,
    AuthzStatus,
    Principal,
    PrincipalKind,
)
from sqlfeed.models.document import DocumentRecord, DocumentResponse, MetadataPair

__all__ = [
    "DEFAULT_NAMESPACE",
    "Acl",
    "AuthnIdentity",
    "AuthzStatus",
    "Principal",
    "PrincipalKind",
    "DocumentRecord",
    "DocumentResponse",
    "MetadataPair",
]
