"""ACL building from ACL query results, and ACL evaluation.

An ACL query may return any of the FEED_PERMIT_USERS, FEED_DENY_USERS,
FEED_PERMIT_GROUPS and FEED_DENY_GROUPS columns, over any number of rows.
Each value holds one or more principal names separated by the configured
delimiter. All rows are folded into a single ACL.
"""

import logging
from typing import Any, Dict, Iterable, List, Set, Tuple

from sqlalchemy.engine import Connection

from sqlfeed.clients.database_client import DatabaseClient, QueryCursor
from sqlfeed.crawl.columns import SpecialColumn
from sqlfeed.crawl.unique_key import UniqueKey
from sqlfeed.models.acl import Acl, AuthnIdentity, AuthzStatus, Principal, PrincipalKind

logger = logging.getLogger(__name__)

# (column, Acl field, principal kind)
_ACL_COLUMNS = (
    (SpecialColumn.PERMIT_USERS, "permit_users", PrincipalKind.USER),
    (SpecialColumn.DENY_USERS, "deny_users", PrincipalKind.USER),
    (SpecialColumn.PERMIT_GROUPS, "permit_groups", PrincipalKind.GROUP),
    (SpecialColumn.DENY_GROUPS, "deny_groups", PrincipalKind.GROUP),
)


def get_principals(value: Any, delimiter: str, namespace: str, kind: PrincipalKind) -> List[Principal]:
    """
    Split one column value into principals.

    Args:
        value: Column value; NULL or blank yields no principals.
        delimiter: Literal separator. "" keeps the whole value as one name.
        namespace: Namespace given to every principal.
        kind: User or group.

    Returns:
        Principals in value order, names trimmed, empty names dropped.
    """
    if value is None:
        return []
    text = str(value)
    if not text.strip():
        return []
    if delimiter == "":
        names = [text.strip()]
    else:
        names = [name.strip() for name in text.split(delimiter)]
    return [Principal(name=name, namespace=namespace, kind=kind) for name in names if name]


def build_acl(cursor: QueryCursor, delimiter: str, namespace: str) -> Acl:
    """
    Fold every row of an ACL query into one ACL.

    Columns missing from the result never contribute. A principal listed
    on several rows appears once.

    Returns:
        The ACL, or Acl.EMPTY when the query returned no rows.
    """
    present = []
    for column, field_name, kind in _ACL_COLUMNS:
        result_column = cursor.find_column(column.value)
        if result_column is not None:
            present.append((result_column, field_name, kind))
    logger.debug(f"acl columns present: {[column for column, _, _ in present]}")

    # dicts keep first-occurrence order and drop repeats
    collected: Dict[str, Dict[Principal, None]] = {field_name: {} for _, field_name, _ in _ACL_COLUMNS}
    has_result = False
    for row in cursor:
        has_result = True
        for result_column, field_name, kind in present:
            for principal in get_principals(row[result_column], delimiter, namespace, kind):
                collected[field_name].setdefault(principal, None)

    if not has_result:
        # empty ACL marks the document as secured
        return Acl.EMPTY

    return Acl(**{field_name: tuple(principals) for field_name, principals in collected.items()})


class AclReader:
    """Runs the ACL query for one document and builds its ACL."""

    def __init__(
        self,
        db_client: DatabaseClient,
        unique_key: UniqueKey,
        acl_sql: str,
        delimiter: str,
        namespace: str,
    ):
        self._db_client = db_client
        self._unique_key = unique_key
        self._acl_sql = acl_sql
        self._delimiter = delimiter
        self._namespace = namespace

    def read_acl(self, connection: Connection, doc_id: str) -> Acl:
        """
        Get the ACL of one document over an open connection.

        Raises:
            RowMappingError: If the doc id does not fit the unique key.
            DatabaseIOError: If the ACL query fails.
        """
        params = self._unique_key.bind_acl_query_params(doc_id)
        logger.debug(f"about to get acl: {doc_id}")
        with self._db_client.query(connection, self._acl_sql, params) as cursor:
            acl = build_acl(cursor, self._delimiter, self._namespace)
        logger.debug("got acl")
        return acl


def _keys(principals: Iterable[Principal]) -> Set[Tuple[str, str]]:
    return {(p.name, p.namespace) for p in principals}


def is_authorized(identity: AuthnIdentity, acl: Acl) -> AuthzStatus:
    """
    Decide access for one identity against one ACL.

    A matching deny (user or any group) wins over any permit. Without a
    matching permit the answer is DENY.
    """
    user_keys = _keys([identity.user]) if identity.user is not None else set()
    group_keys = _keys(identity.groups)

    if user_keys & _keys(acl.deny_users) or group_keys & _keys(acl.deny_groups):
        return AuthzStatus.DENY
    if user_keys & _keys(acl.permit_users) or group_keys & _keys(acl.permit_groups):
        return AuthzStatus.PERMIT
    return AuthzStatus.DENY
