"""Tests for per-request authorization.

These tests verify:
- Callers without an identity or user are denied without database access
- Per-document decisions from ACLs read on one connection
- A failing document id is denied without affecting the others
"""

from unittest.mock import MagicMock

import pytest
from sqlalchemy.exc import OperationalError

from sqlfeed.clients.database_client import DatabaseClient, DatabaseIOError
from sqlfeed.crawl.unique_key import UniqueKey
from sqlfeed.models.acl import AuthnIdentity, AuthzStatus, Principal
from sqlfeed.services.acl_service import AclReader
from sqlfeed.services.authorization_service import AccessChecker, AllPublic, all_deny

ACL_SQL = (
    "SELECT permit_users AS FEED_PERMIT_USERS, deny_users AS FEED_DENY_USERS, "
    "permit_groups AS FEED_PERMIT_GROUPS FROM acl WHERE doc = :doc"
)


@pytest.fixture
def acl_db(run_sql):
    run_sql(
        "CREATE TABLE acl (doc INTEGER, permit_users TEXT, deny_users TEXT, permit_groups TEXT)",
        "INSERT INTO acl VALUES "
        "(1, 'alice,bob', NULL, NULL), "
        "(2, NULL, 'alice', 'eng'), "
        "(4, NULL, NULL, 'eng')",
    )


@pytest.fixture
def checker(db_client):
    reader = AclReader(db_client, UniqueKey("doc:int"), ACL_SQL, ",", "Default")
    return AccessChecker(db_client, reader)


@pytest.fixture
def alice():
    return AuthnIdentity(user=Principal.user("alice"), groups=frozenset({Principal.group("eng")}))


class TestAccessChecker:
    """Test AccessChecker.is_user_authorized."""

    @pytest.mark.parametrize("identity", [None, AuthnIdentity(user=None)])
    def test_missing_identity_denies_without_query(self, identity):
        db_client = MagicMock()
        acl_reader = MagicMock()
        checker = AccessChecker(db_client, acl_reader)

        result = checker.is_user_authorized(identity, ["1", "2"])

        assert result == {"1": AuthzStatus.DENY, "2": AuthzStatus.DENY}
        db_client.connect.assert_not_called()
        acl_reader.read_acl.assert_not_called()

    def test_decisions_per_document(self, acl_db, checker, alice, engine):
        result = checker.is_user_authorized(alice, ["1", "2", "3", "4"])

        assert result == {
            "1": AuthzStatus.PERMIT,  # listed user
            "2": AuthzStatus.DENY,  # deny wins over the group permit
            "3": AuthzStatus.DENY,  # no ACL rows
            "4": AuthzStatus.PERMIT,  # group permit
        }
        assert engine.pool.checkedout() == 0

        print(f"Decisions: {result}")

    def test_other_user(self, acl_db, checker):
        bob = AuthnIdentity(user=Principal.user("bob"))

        result = checker.is_user_authorized(bob, ["1", "2", "4"])

        assert result == {"1": AuthzStatus.PERMIT, "2": AuthzStatus.DENY, "4": AuthzStatus.DENY}

    def test_bad_doc_id_denied_alone(self, acl_db, checker, alice, caplog):
        result = checker.is_user_authorized(alice, ["not-a-number", "1"])

        assert result == {"not-a-number": AuthzStatus.DENY, "1": AuthzStatus.PERMIT}
        assert "authz retrieval error for doc not-a-number" in caplog.text

    def test_failing_query_denied_alone(self, acl_db, db_client, alice, engine):
        """Test that a query failing for one id still lets the next id through."""
        reader = AclReader(db_client, UniqueKey("doc:int"), ACL_SQL, ",", "Default")
        calls = []

        def read_acl(conn, doc_id):
            calls.append(doc_id)
            if doc_id == "2":
                raise DatabaseIOError("lost the table")
            return reader.read_acl(conn, doc_id)

        flaky_reader = MagicMock()
        flaky_reader.read_acl.side_effect = read_acl
        checker = AccessChecker(db_client, flaky_reader)

        result = checker.is_user_authorized(alice, ["1", "2", "4"])

        assert calls == ["1", "2", "4"]
        assert result == {"1": AuthzStatus.PERMIT, "2": AuthzStatus.DENY, "4": AuthzStatus.PERMIT}
        assert engine.pool.checkedout() == 0

    def test_rollback_failure_is_logged(self, alice, caplog):
        """Test that a failed rollback after an ACL error still denies only that id."""
        engine = MagicMock()
        conn = engine.connect.return_value
        conn.rollback.side_effect = OperationalError("rollback", {}, Exception("gone"))
        db_client = DatabaseClient(url="sqlite://", batch_size=10, engine=engine)
        reader = MagicMock()
        reader.read_acl.side_effect = DatabaseIOError("lost the table")
        checker = AccessChecker(db_client, reader)

        result = checker.is_user_authorized(alice, ["1", "2"])

        assert result == {"1": AuthzStatus.DENY, "2": AuthzStatus.DENY}
        assert conn.rollback.call_count == 2
        assert "rollback after failed acl query failed" in caplog.text
        conn.close.assert_called_once()

    def test_connection_failure_fails_request(self, alice):
        engine = MagicMock()
        engine.connect.side_effect = OperationalError("connect", {}, Exception("refused"))
        db_client = DatabaseClient(url="sqlite://", batch_size=10, engine=engine)
        checker = AccessChecker(db_client, MagicMock())

        with pytest.raises(DatabaseIOError):
            checker.is_user_authorized(alice, ["1"])

    def test_custom_evaluator(self, acl_db, db_client, alice):
        reader = AclReader(db_client, UniqueKey("doc:int"), ACL_SQL, ",", "Default")
        checker = AccessChecker(db_client, reader, evaluator=lambda identity, acl: AuthzStatus.PERMIT)

        assert checker.is_user_authorized(alice, ["2"]) == {"2": AuthzStatus.PERMIT}


class TestAllPublic:
    """Test the authority used without an ACL query."""

    def test_permits_everything(self):
        assert AllPublic().is_user_authorized(None, ["a", "b"]) == {
            "a": AuthzStatus.PERMIT,
            "b": AuthzStatus.PERMIT,
        }

    def test_all_deny(self):
        assert all_deny(["a"]) == {"a": AuthzStatus.DENY}
