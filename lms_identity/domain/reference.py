"""Classification of raw user references into their three shapes."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union


@dataclass(slots=True, frozen=True)
class EmailReference:
    email: str

    kind = "email"


@dataclass(slots=True, frozen=True)
class OpaqueIdReference:
    """A store-issued identifier, trusted to be canonical already."""

    account_id: str

    kind = "opaque"


@dataclass(slots=True, frozen=True)
class LegacyIdReference:
    token: str

    kind = "legacy"


AccountReference = Union[EmailReference, OpaqueIdReference, LegacyIdReference]


def classify_reference(raw: str | None) -> AccountReference | None:
    """Trim ``raw`` and classify it, returning ``None`` when nothing is left.

    ``@`` is checked before the hyphen, so ``first-last@example.com`` is an
    email and never an opaque id.
    """
    key = (raw or "").strip()
    if not key:
        return None
    if "@" in key:
        return EmailReference(key)
    if "-" in key:
        return OpaqueIdReference(key)
    return LegacyIdReference(key)
