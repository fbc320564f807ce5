"""Services module: ACLs, authorization, document content and the connector."""

from sqlfeed.services.acl_service import AclReader, build_acl, get_principals, is_authorized
from sqlfeed.services.authorization_service import (
    AccessChecker,
    AllPublic,
    AuthzAuthority,
    all_deny,
)
from sqlfeed.services.connector import SqlFeedConnector
from sqlfeed.services.content_service import DocumentContentService
from sqlfeed.services.response_renderers import (
    RESPONSE_RENDERERS,
    ResponseRenderer,
    load_response_renderer,
)

__all__ = [
    "AclReader",
    "build_acl",
    "get_principals",
    "is_authorized",
    "AccessChecker",
    "AllPublic",
    "AuthzAuthority",
    "all_deny",
    "SqlFeedConnector",
    "DocumentContentService",
    "RESPONSE_RENDERERS",
    "ResponseRenderer",
    "load_response_renderer",
]
