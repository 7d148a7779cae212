from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class Role(str, Enum):
    admin = "admin"
    instructor = "instructor"
    content_creator = "contentCreator"
    user = "user"


@dataclass(slots=True, frozen=True)
class AccountRecord:
    """Canonical account row; ``id`` is the identifier every other table keys on."""

    id: str
    email: str
    role: Role


@dataclass(slots=True, frozen=True)
class SeedAccount:
    """Known identity that may be provisioned on first resolution."""

    legacy_id: str
    email: str
    role: Role
