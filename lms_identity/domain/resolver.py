"""Canonical identity resolution with lazy provisioning of seed accounts."""

from __future__ import annotations

import logging
import math
import re
from decimal import Decimal

from .account import SeedAccount
from .contracts import AccountStore, SeedAccountProvider, StoreError
from .reference import (
    EmailReference,
    LegacyIdReference,
    OpaqueIdReference,
    classify_reference,
)
from ..metrics import RESOLUTIONS, STORE_ERRORS

logger = logging.getLogger(__name__)


_DECIMAL = re.compile(r"[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?", re.ASCII)
_RADIX = re.compile(r"0(?:[xX][0-9a-fA-F]+|[oO][0-7]+|[bB][01]+)")


def _format_number(value: float) -> str:
    """Render ``value`` the way ECMAScript's ``Number#toString`` does."""
    if value == 0:
        return "0"
    sign = "-" if value < 0 else ""
    # repr gives the shortest round-tripping digits
    _, digits, exponent = Decimal(repr(abs(value))).normalize().as_tuple()
    mantissa = "".join(map(str, digits))
    k = len(mantissa)
    n = k + exponent
    if k <= n <= 21:
        return sign + mantissa + "0" * (n - k)
    if 0 < n <= 21:
        return sign + mantissa[:n] + "." + mantissa[n:]
    if -6 < n <= 0:
        return sign + "0." + "0" * -n + mantissa
    power = f"e{'+' if n > 0 else '-'}{abs(n - 1)}"
    if k == 1:
        return sign + mantissa + power
    return sign + mantissa[0] + "." + mantissa[1:] + power


def _numeric_form(token: str) -> str | None:
    """Return ``token`` re-parsed as a number and restringified (``"01"`` -> ``"1"``).

    Only ASCII decimal literals and ``0x``/``0o``/``0b`` integers count as
    numbers; anything else, and anything that overflows, yields ``None``.
    """
    try:
        if _RADIX.fullmatch(token):
            value = float(int(token, 0))
        elif _DECIMAL.fullmatch(token):
            value = float(token)
        else:
            return None
    except OverflowError:
        return None
    if not math.isfinite(value):
        return None
    return _format_number(value)


class IdentityResolver:
    """Map emails, legacy demo ids and opaque ids onto one canonical account id.

    The resolver is stateless between calls. Each call performs at most one
    lookup followed by at most one insert, and every store failure is logged
    and reported as ``None``.
    """

    def __init__(self, store: AccountStore, seeds: SeedAccountProvider) -> None:
        self._store = store
        self._seeds = seeds

    async def resolve(self, raw: str | None) -> str | None:
        """Return the canonical account id for ``raw`` or ``None`` when it cannot be resolved now."""
        reference = classify_reference(raw)
        if reference is None:
            RESOLUTIONS.labels(kind="empty", outcome="not_found").inc()
            return None

        if isinstance(reference, OpaqueIdReference):
            RESOLUTIONS.labels(kind=reference.kind, outcome="resolved").inc()
            return reference.account_id

        if isinstance(reference, EmailReference):
            result = await self._resolve_email(reference)
        else:
            result = await self._resolve_legacy(reference)
        if result is None:
            logger.debug("could not resolve %s reference %r", reference.kind, raw)
        return result

    async def _resolve_email(self, reference: EmailReference) -> str | None:
        kind = reference.kind
        try:
            existing = await self._store.find_account_by_email(reference.email)
        except StoreError as exc:
            return self._store_failed(kind, reference.email, "find_account_by_email", exc)
        if existing is not None:
            RESOLUTIONS.labels(kind=kind, outcome="resolved").inc()
            return existing.id

        wanted = reference.email.lower()
        seed = next(
            (s for s in self._seeds.list_seed_accounts() if s.email.lower() == wanted),
            None,
        )
        if seed is None:
            # never create rows for emails that no known identity owns
            RESOLUTIONS.labels(kind=kind, outcome="not_found").inc()
            return None
        return await self._provision(kind, reference.email, seed)

    async def _resolve_legacy(self, reference: LegacyIdReference) -> str | None:
        kind = reference.kind
        candidates = {reference.token}
        numeric = _numeric_form(reference.token)
        if numeric is not None:
            candidates.add(numeric)
        seed = next(
            (s for s in self._seeds.list_seed_accounts() if s.legacy_id in candidates),
            None,
        )
        if seed is None:
            RESOLUTIONS.labels(kind=kind, outcome="not_found").inc()
            return None

        try:
            existing = await self._store.find_account_by_email(seed.email)
        except StoreError as exc:
            return self._store_failed(kind, reference.token, "find_account_by_email", exc)
        if existing is not None:
            RESOLUTIONS.labels(kind=kind, outcome="resolved").inc()
            return existing.id
        return await self._provision(kind, reference.token, seed)

    async def _provision(self, kind: str, raw: str, seed: SeedAccount) -> str | None:
        try:
            created = await self._store.insert_account(seed.email, seed.role)
        except StoreError as exc:
            # a concurrent caller may have won the insert; no re-lookup
            return self._store_failed(kind, raw, "insert_account", exc)
        logger.info(
            "provisioned account %s for seed identity %s (%s)",
            created.id,
            seed.email,
            seed.role.value,
        )
        RESOLUTIONS.labels(kind=kind, outcome="provisioned").inc()
        return created.id

    def _store_failed(self, kind: str, raw: str, operation: str, exc: StoreError) -> None:
        logger.warning("account store %s failed while resolving %r: %s", operation, raw, exc)
        STORE_ERRORS.labels(operation=operation).inc()
        RESOLUTIONS.labels(kind=kind, outcome="error").inc()
        return None
