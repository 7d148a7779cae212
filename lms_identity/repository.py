"""Postgres-backed account store."""

from __future__ import annotations

from typing import Sequence

import psycopg
from psycopg import errors as pg_errors
from psycopg.rows import tuple_row
from psycopg_pool import AsyncConnectionPool

from .domain.account import AccountRecord, Role
from .domain.contracts import StoreError


class PostgresAccountStore:
    """Account lookups and inserts against the ``users`` table.

    Driver failures, pool checkout timeouts and statement timeouts are all
    raised as :class:`StoreError`.
    """

    def __init__(self, pool: AsyncConnectionPool) -> None:
        """Store the connection pool used for all database interactions."""
        self._pool = pool

    async def find_account_by_email(
        self, email: str, case_insensitive: bool = True
    ) -> AccountRecord | None:
        """Return the account whose email matches exactly, ignoring case by default."""
        predicate = "lower(email) = lower(%s)" if case_insensitive else "email = %s"
        try:
            async with self._pool.connection() as conn:
                async with conn.cursor(row_factory=tuple_row) as cur:
                    await cur.execute(
                        f"SELECT id, email, role FROM users WHERE {predicate} LIMIT 1",
                        (email,),
                    )
                    row = await cur.fetchone()
        except psycopg.Error as exc:
            raise StoreError("find_account_by_email", str(exc)) from exc
        if not row:
            return None
        return self._map_record(row)

    async def insert_account(self, email: str, role: Role) -> AccountRecord:
        """Insert a new account and return it with its store-issued id."""
        try:
            async with self._pool.connection() as conn:
                async with conn.cursor(row_factory=tuple_row) as cur:
                    await cur.execute(
                        """
                        INSERT INTO users (email, role)
                        VALUES (%s, %s)
                        RETURNING id, email, role
                        """,
                        (email, Role(role).value),
                    )
                    row = await cur.fetchone()
                await conn.commit()
        except pg_errors.UniqueViolation as exc:
            raise StoreError("insert_account", str(exc), conflict=True) from exc
        except psycopg.Error as exc:
            raise StoreError("insert_account", str(exc)) from exc
        return self._map_record(row)

    async def get_account(self, account_id: str) -> AccountRecord | None:
        """Fetch an account by id; malformed ids simply do not match."""
        try:
            async with self._pool.connection() as conn:
                async with conn.cursor(row_factory=tuple_row) as cur:
                    await cur.execute(
                        "SELECT id, email, role FROM users WHERE id::text = %s",
                        (account_id,),
                    )
                    row = await cur.fetchone()
        except psycopg.Error as exc:
            raise StoreError("get_account", str(exc)) from exc
        if not row:
            return None
        return self._map_record(row)

    async def find_accounts_by_emails(self, emails: Sequence[str]) -> list[AccountRecord]:
        """Return every account matching one of ``emails`` case-insensitively."""
        if not emails:
            return []
        try:
            async with self._pool.connection() as conn:
                async with conn.cursor(row_factory=tuple_row) as cur:
                    await cur.execute(
                        "SELECT id, email, role FROM users WHERE lower(email) = ANY(%s)",
                        ([email.lower() for email in emails],),
                    )
                    rows = await cur.fetchall()
        except psycopg.Error as exc:
            raise StoreError("find_accounts_by_emails", str(exc)) from exc
        return [self._map_record(row) for row in rows]

    def _map_record(self, row: tuple) -> AccountRecord:
        """Convert a raw database tuple into an ``AccountRecord``."""
        return AccountRecord(id=str(row[0]), email=row[1], role=Role(row[2]))
