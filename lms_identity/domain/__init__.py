"""Identity domain: references, records, collaborator contracts and the resolver."""

from .account import AccountRecord, Role, SeedAccount
from .contracts import AccountStore, SeedAccountProvider, StoreError
from .reference import (
    AccountReference,
    EmailReference,
    LegacyIdReference,
    OpaqueIdReference,
    classify_reference,
)
from .resolver import IdentityResolver

__all__ = [
    "AccountRecord",
    "AccountReference",
    "AccountStore",
    "EmailReference",
    "IdentityResolver",
    "LegacyIdReference",
    "OpaqueIdReference",
    "Role",
    "SeedAccount",
    "SeedAccountProvider",
    "StoreError",
    "classify_reference",
]
