"""Access control models: principals, ACLs, caller identities and decisions."""

from dataclasses import dataclass, field
from enum import Enum
from typing import ClassVar, FrozenSet, Optional, Tuple

DEFAULT_NAMESPACE = "Default"


class PrincipalKind(str, Enum):
    USER = "user"
    GROUP = "group"


class AuthzStatus(str, Enum):
    """Authorization decision for one document."""

    PERMIT = "permit"
    DENY = "deny"


@dataclass(frozen=True)
class Principal:
    """A user or group name qualified by namespace."""

    name: str
    namespace: str = DEFAULT_NAMESPACE
    kind: PrincipalKind = PrincipalKind.USER

    @classmethod
    def user(cls, name: str, namespace: str = DEFAULT_NAMESPACE) -> "Principal":
        return cls(name=name, namespace=namespace, kind=PrincipalKind.USER)

    @classmethod
    def group(cls, name: str, namespace: str = DEFAULT_NAMESPACE) -> "Principal":
        return cls(name=name, namespace=namespace, kind=PrincipalKind.GROUP)

    @property
    def is_group(self) -> bool:
        return self.kind is PrincipalKind.GROUP


@dataclass(frozen=True)
class Acl:
    """Permit/deny lists for one document.

    Each tuple keeps first-occurrence order and holds every principal once.
    `Acl.EMPTY` marks a secured document that permits nobody; a document with
    no ACL at all (None) is public.
    """

    permit_users: Tuple[Principal, ...] = ()
    deny_users: Tuple[Principal, ...] = ()
    permit_groups: Tuple[Principal, ...] = ()
    deny_groups: Tuple[Principal, ...] = ()

    EMPTY: ClassVar["Acl"]

    @property
    def is_empty(self) -> bool:
        return not (self.permit_users or self.deny_users or self.permit_groups or self.deny_groups)


Acl.EMPTY = Acl()


@dataclass(frozen=True)
class AuthnIdentity:
    """An authenticated caller: its user principal and group memberships."""

    user: Optional[Principal]
    groups: FrozenSet[Principal] = field(default_factory=frozenset)
