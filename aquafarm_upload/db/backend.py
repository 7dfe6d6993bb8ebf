from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Protocol

import psycopg2
from psycopg2.extras import RealDictCursor

from .batch_insert import BatchInsertError, BatchMetrics, batch_insert, check_identifier

"""Persistence collaborator.

The pipeline only needs two calls from the hosted database:

- fetch_reference_set(table, columns, filters) -> QueryResult(data, error)
- batch_insert(table, records) -> QueryResult(data, error)

Both report failure through QueryResult.error instead of raising, the way the
dashboard's data services hand results back. PostgresBackend implements them
on top of a psycopg2 connection; batch_insert runs in one transaction so the
caller sees it as atomic.
"""

logger = logging.getLogger(__name__)

__all__ = [
    "QueryResult",
    "Backend",
    "PostgresBackend",
]


@dataclass(frozen=True)
class QueryResult:
    data: list[dict[str, Any]] | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class Backend(Protocol):
    def fetch_reference_set(
        self,
        table: str,
        columns: Sequence[str] | None = None,
        filters: Mapping[str, Any] | None = None,
    ) -> QueryResult: ...

    def batch_insert(self, table: str, records: Sequence[Mapping[str, Any]]) -> QueryResult: ...


def _log_batch_metrics(metrics: BatchMetrics) -> None:
    logger.debug(f"batch insert rows={metrics.batch_size} elapsed_sec={metrics.elapsed_seconds:.4f}")


class PostgresBackend:
    """Backend over a psycopg2 connection (autocommit off)."""

    def __init__(self, connection: Any, page_size: int = 1000) -> None:
        self._conn = connection
        self._page_size = page_size

    def fetch_reference_set(
        self,
        table: str,
        columns: Sequence[str] | None = None,
        filters: Mapping[str, Any] | None = None,
    ) -> QueryResult:
        """SELECT columns FROM table WHERE filters ORDER BY name.

        A None filter value becomes IS NULL (e.g. deleted_at).
        """
        try:
            check_identifier(table)
            cols_sql = ",".join(f'"{check_identifier(c)}"' for c in columns) if columns else "*"
            where: list[str] = []
            params: list[Any] = []
            for key, value in (filters or {}).items():
                check_identifier(key)
                if value is None:
                    where.append(f'"{key}" IS NULL')
                else:
                    where.append(f'"{key}" = %s')
                    params.append(value)
        except BatchInsertError as e:
            return QueryResult(error=str(e))

        sql = f"SELECT {cols_sql} FROM {table}"
        if where:
            sql += " WHERE " + " AND ".join(where)
        sql += ' ORDER BY "name"'

        try:
            with self._conn.cursor(cursor_factory=RealDictCursor) as cur:
                cur.execute(sql, params)
                rows = [dict(r) for r in cur.fetchall()]
            self._conn.commit()
        except psycopg2.Error as e:
            self._conn.rollback()
            logger.error(f"reference fetch failed table={table}: {e}")
            return QueryResult(error=str(e).strip())
        logger.debug(f"fetched reference table={table} rows={len(rows)}")
        return QueryResult(data=rows)

    def batch_insert(self, table: str, records: Sequence[Mapping[str, Any]]) -> QueryResult:
        """Insert all records in one transaction; rollback on any failure."""
        if not records:
            return QueryResult(data=[])
        columns = list(records[0].keys())
        rows = [[r.get(c) for c in columns] for r in records]
        try:
            with self._conn.cursor() as cur:
                result = batch_insert(
                    cur,
                    table,
                    columns,
                    rows,
                    returning=True,
                    page_size=self._page_size,
                    metrics_callback=_log_batch_metrics,
                )
            self._conn.commit()
        except (BatchInsertError, psycopg2.Error) as e:
            self._conn.rollback()
            logger.error(f"batch insert failed table={table}: {e}")
            return QueryResult(error=str(e).strip())
        returned = result.returned_values or []
        return QueryResult(data=[{"id": r[0]} for r in returned])
