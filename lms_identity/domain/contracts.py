"""Collaborator contracts the identity resolver depends on."""

from __future__ import annotations

from typing import Protocol, Sequence

from .account import AccountRecord, Role, SeedAccount


class StoreError(Exception):
    """Failure reported by an account store (transport, timeout or constraint)."""

    def __init__(self, operation: str, message: str, *, conflict: bool = False) -> None:
        super().__init__(f"{operation}: {message}")
        self.operation = operation
        self.conflict = conflict


class AccountStore(Protocol):
    """Account persistence used for lookups and lazy provisioning."""

    async def find_account_by_email(
        self, email: str, case_insensitive: bool = True
    ) -> AccountRecord | None:
        ...

    async def insert_account(self, email: str, role: Role) -> AccountRecord:
        """Insert a row; raises ``StoreError`` when the email already exists."""
        ...


class SeedAccountProvider(Protocol):
    """Read-only source of identities eligible for provisioning."""

    def list_seed_accounts(self) -> Sequence[SeedAccount]:
        ...
