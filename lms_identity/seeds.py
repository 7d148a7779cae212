"""Seed identities eligible for lazy provisioning."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Iterable, Sequence

from pydantic import BaseModel, EmailStr, TypeAdapter, ValidationError, field_validator

from .domain.account import Role, SeedAccount

DEFAULT_SEED_ACCOUNTS: tuple[SeedAccount, ...] = (
    SeedAccount(legacy_id="1", email="admin@gmail.com", role=Role.admin),
    SeedAccount(legacy_id="2", email="instructor@gmail.com", role=Role.instructor),
    SeedAccount(legacy_id="3", email="contentcreator@gmail.com", role=Role.content_creator),
    SeedAccount(legacy_id="4", email="student@gmail.com", role=Role.user),
)


class SeedAccountEntry(BaseModel):
    """One entry of a seed accounts JSON file."""

    legacy_id: str
    email: EmailStr
    role: Role

    @field_validator("legacy_id", mode="before")
    @classmethod
    def _stringify_legacy_id(cls, value: object) -> object:
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value


_ENTRIES = TypeAdapter(list[SeedAccountEntry])


class StaticSeedAccountProvider:
    """Seed provider over a fixed, ordered list of accounts."""

    def __init__(self, accounts: Iterable[SeedAccount]) -> None:
        self._accounts = tuple(accounts)
        _ensure_unambiguous(self._accounts)

    def list_seed_accounts(self) -> Sequence[SeedAccount]:
        return self._accounts


def load_seed_accounts(path: str | Path) -> list[SeedAccount]:
    """Read seed accounts from a JSON array of ``{legacy_id, email, role}`` objects.

    Raises
    ------
    ValueError
        When the file is not valid JSON or an entry fails validation.
    """
    raw = Path(path).read_text(encoding="utf-8")
    try:
        entries = _ENTRIES.validate_python(json.loads(raw))
    except (json.JSONDecodeError, ValidationError) as exc:
        raise ValueError(f"invalid seed accounts file {path}: {exc}") from exc
    return [
        SeedAccount(legacy_id=entry.legacy_id.strip(), email=str(entry.email), role=entry.role)
        for entry in entries
    ]


def build_seed_provider(path: str | None) -> StaticSeedAccountProvider:
    """Return a provider for ``path``, or for the built-in demo accounts when unset."""
    if path:
        return StaticSeedAccountProvider(load_seed_accounts(path))
    return StaticSeedAccountProvider(DEFAULT_SEED_ACCOUNTS)


def _ensure_unambiguous(accounts: Sequence[SeedAccount]) -> None:
    legacy_ids: set[str] = set()
    emails: set[str] = set()
    for account in accounts:
        email = account.email.lower()
        if account.legacy_id in legacy_ids:
            raise ValueError(f"duplicate seed legacy id {account.legacy_id!r}")
        if email in emails:
            raise ValueError(f"duplicate seed email {account.email!r}")
        legacy_ids.add(account.legacy_id)
        emails.add(email)
