"""Persistence layer for project billing state."""
from __future__ import annotations

from contextlib import contextmanager
from typing import Iterable, Optional

import psycopg2
import psycopg2.extras
from psycopg2 import sql
from psycopg2.extensions import connection as PgConnection
from psycopg2.extensions import cursor as PgCursor

from ...app_context import get_conn
from .models import AccountChanges, AccountRecord, AccountUser

_UPDATABLE_COLUMNS = frozenset(AccountChanges.model_fields)
_LOOKUP_COLUMNS = frozenset({"id", "stripe_id"})


@contextmanager
def managed_connection(conn: Optional[PgConnection] = None):
    """Context manager that manages transaction boundaries for optional connections."""

    if conn is not None:
        yield conn, False
        return

    connection = get_conn()
    try:
        yield connection, True
        connection.commit()
    except Exception:
        connection.rollback()
        raise
    finally:
        connection.close()


def _row_to_account(row: dict, domains: Iterable[dict], users: Iterable[dict]) -> AccountRecord:
    return AccountRecord(
        id=str(row["id"]),
        slug=row["slug"],
        stripe_id=row.get("stripe_id"),
        plan=row["plan"],
        usage_limit=int(row["usage_limit"]),
        links_limit=int(row["links_limit"]),
        domains_limit=int(row["domains_limit"]),
        tags_limit=int(row["tags_limit"]),
        users_limit=int(row["users_limit"]),
        billing_cycle_start=row.get("billing_cycle_start"),
        domains=tuple(domain["slug"] for domain in domains),
        users=tuple(AccountUser(name=user.get("name"), email=user.get("email")) for user in users),
    )


class PostgresAccountRepository:
    """Concrete repository reading and updating projects in PostgreSQL."""

    def __init__(self, *, conn: Optional[PgConnection] = None) -> None:
        self._conn = conn

    @contextmanager
    def _cursor(self) -> Iterable[PgCursor]:
        with managed_connection(self._conn) as (connection, managed):
            cursor = connection.cursor(cursor_factory=psycopg2.extras.RealDictCursor)
            try:
                yield cursor
                if managed:
                    connection.commit()
            except Exception:
                if managed:
                    connection.rollback()
                raise
            finally:
                cursor.close()

    def get_by_id(self, account_id: str) -> Optional[AccountRecord]:
        return self._fetch("id", account_id)

    def get_by_billing_id(self, stripe_id: str) -> Optional[AccountRecord]:
        return self._fetch("stripe_id", stripe_id)

    def update_by_id(self, account_id: str, changes: AccountChanges) -> Optional[AccountRecord]:
        return self._update("id", account_id, changes)

    def update_by_billing_id(self, stripe_id: str, changes: AccountChanges) -> Optional[AccountRecord]:
        return self._update("stripe_id", stripe_id, changes)

    def _fetch(self, column: str, value: str) -> Optional[AccountRecord]:
        if column not in _LOOKUP_COLUMNS:
            raise ValueError(f"Unsupported lookup column: {column}")
        with self._cursor() as cursor:
            cursor.execute(
                sql.SQL(
                    """
                    SELECT *
                    FROM projects
                    WHERE {column} = %s
                    LIMIT 1
                    """
                ).format(column=sql.Identifier(column)),
                (value,),
            )
            row = cursor.fetchone()
            return self._load_account(cursor, row) if row else None

    def _update(self, column: str, value: str, changes: AccountChanges) -> Optional[AccountRecord]:
        if column not in _LOOKUP_COLUMNS:
            raise ValueError(f"Unsupported lookup column: {column}")
        assignments = changes.assignments()
        unknown = set(assignments) - _UPDATABLE_COLUMNS
        if unknown:
            raise ValueError(f"Unsupported project columns: {sorted(unknown)}")
        if not assignments:
            raise ValueError("No project changes supplied")

        set_clause = sql.SQL(", ").join(
            sql.SQL("{} = {}").format(sql.Identifier(name), sql.Placeholder(name))
            for name in sorted(assignments)
        )
        with self._cursor() as cursor:
            cursor.execute(
                sql.SQL(
                    """
                    UPDATE projects
                    SET {assignments}, updated_at = NOW()
                    WHERE {column} = %(lookup_value)s
                    RETURNING *
                    """
                ).format(assignments=set_clause, column=sql.Identifier(column)),
                {**assignments, "lookup_value": value},
            )
            row = cursor.fetchone()
            return self._load_account(cursor, row) if row else None

    def _load_account(self, cursor: PgCursor, row: dict) -> AccountRecord:
        cursor.execute(
            """
            SELECT slug
            FROM domains
            WHERE project_id = %s
            ORDER BY slug
            """,
            (row["id"],),
        )
        domains = cursor.fetchall() or []
        cursor.execute(
            """
            SELECT u.name, u.email
            FROM project_users AS pu
            JOIN users AS u ON u.id = pu.user_id
            WHERE pu.project_id = %s
            ORDER BY u.email
            """,
            (row["id"],),
        )
        users = cursor.fetchall() or []
        return _row_to_account(row, domains, users)


__all__ = ["PostgresAccountRepository", "managed_connection"]
