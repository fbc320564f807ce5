"""Per-request authorization of document ids for a caller."""

import logging
from abc import ABC, abstractmethod
from typing import Callable, Dict, Iterable, Optional

from sqlalchemy.engine import Connection
from sqlalchemy.exc import SQLAlchemyError

from sqlfeed.clients.database_client import DatabaseClient, DatabaseIOError
from sqlfeed.crawl.unique_key import RowMappingError
from sqlfeed.models.acl import Acl, AuthnIdentity, AuthzStatus
from sqlfeed.services.acl_service import AclReader, is_authorized

logger = logging.getLogger(__name__)


class AuthzAuthority(ABC):
    """Answers whether a caller may see each of a set of documents."""

    @abstractmethod
    def is_user_authorized(
        self,
        identity: Optional[AuthnIdentity],
        doc_ids: Iterable[str],
    ) -> Dict[str, AuthzStatus]:
        """Map every requested doc id to PERMIT or DENY."""


class AllPublic(AuthzAuthority):
    """Used when no ACL query is configured: every document is public."""

    def is_user_authorized(self, identity, doc_ids):
        return {doc_id: AuthzStatus.PERMIT for doc_id in doc_ids}


def all_deny(doc_ids: Iterable[str]) -> Dict[str, AuthzStatus]:
    return {doc_id: AuthzStatus.DENY for doc_id in doc_ids}


class AccessChecker(AuthzAuthority):
    """Re-reads each document's ACL from the database and evaluates it.

    One connection serves the whole request; each doc id gets its own ACL
    query, and a failure on one id denies only that id.
    """

    def __init__(
        self,
        db_client: DatabaseClient,
        acl_reader: AclReader,
        evaluator: Callable[[AuthnIdentity, Acl], AuthzStatus] = is_authorized,
    ):
        self._db_client = db_client
        self._acl_reader = acl_reader
        self._evaluator = evaluator

    def is_user_authorized(
        self,
        identity: Optional[AuthnIdentity],
        doc_ids: Iterable[str],
    ) -> Dict[str, AuthzStatus]:
        """
        Authorize a caller for a set of documents.

        Args:
            identity: Authenticated caller, or None.
            doc_ids: Documents to decide on.

        Returns:
            Decision per doc id. Callers without a user are denied everything.

        Raises:
            DatabaseIOError: If no connection to the database can be opened.
        """
        doc_ids = list(doc_ids)
        if identity is None:
            logger.info("null identity to authorize")
            return all_deny(doc_ids)
        if identity.user is None:
            logger.info("null user to authorize")
            return all_deny(doc_ids)

        user = identity.user
        logger.info(f"about to authorize {user.name} {sorted(g.name for g in identity.groups)}")

        result: Dict[str, AuthzStatus] = {}
        with self._db_client.connect() as conn:
            for doc_id in doc_ids:
                result[doc_id] = self._authorize_one(conn, identity, doc_id)
        return result

    def _authorize_one(self, conn: Connection, identity: AuthnIdentity, doc_id: str) -> AuthzStatus:
        logger.debug(f"about to get acl of doc {doc_id}")
        try:
            acl = self._acl_reader.read_acl(conn, doc_id)
        except (DatabaseIOError, RowMappingError) as e:
            logger.error(f"authz retrieval error for doc {doc_id}: {e}")
            _try_rollback(conn)
            return AuthzStatus.DENY

        decision = self._evaluator(identity, acl)
        logger.debug(f"authorization decision {decision.value} for user {identity.user.name} and doc {doc_id}")
        return decision


def _try_rollback(conn: Connection) -> None:
    """Clear a failed transaction so the next doc id's query can run."""
    try:
        conn.rollback()
    except SQLAlchemyError:
        logger.warning("rollback after failed acl query failed", exc_info=True)
