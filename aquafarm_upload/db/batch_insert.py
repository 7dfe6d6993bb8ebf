from __future__ import annotations

import re
import time
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from typing import Any

from psycopg2.extras import execute_values

"""DB batch insert.

Uses psycopg2.extras.execute_values for a single multi-row INSERT. The caller
owns the transaction boundary (PostgresBackend commits / rolls back), so one
call either lands every row or, after rollback, none of them.
"""

__all__ = [
    "BatchInsertError",
    "BatchMetrics",
    "InsertResult",
    "batch_insert",
    "build_insert_sql",
    "check_identifier",
]

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*(\.[A-Za-z_][A-Za-z0-9_]*)?$")


class BatchInsertError(Exception):
    """Raised for a rejected identifier or a failed INSERT (caller rolls back)."""


@dataclass(frozen=True)
class BatchMetrics:
    """Timing of one execute_values round trip."""
    batch_size: int  # 送信行数
    elapsed_seconds: float
    start_time: float  # time.time()
    end_time: float  # time.time()

    @classmethod
    def measure(cls, batch_size: int, start_time: float) -> BatchMetrics:
        end_time = time.time()
        return cls(batch_size, end_time - start_time, start_time, end_time)


@dataclass(frozen=True)
class InsertResult:
    inserted_rows: int
    returned_values: list[tuple[Any, ...]] | None = None  # RETURNING id の結果


def check_identifier(name: str) -> str:
    """Reject table / column names that are not plain (optionally schema-qualified) identifiers."""
    if not isinstance(name, str) or not _IDENTIFIER.match(name):
        raise BatchInsertError(f"invalid identifier: {name!r}")
    return name


def build_insert_sql(table: str, columns: Sequence[str], returning: bool = False) -> str:
    """INSERT ... VALUES %s statement for execute_values; identifiers are checked and quoted."""
    check_identifier(table)
    quoted = ",".join(f'"{check_identifier(c)}"' for c in columns)
    sql = f"INSERT INTO {table} ({quoted}) VALUES %s"
    return sql + " RETURNING id" if returning else sql


def batch_insert(
    cursor: Any,
    table: str,
    columns: Sequence[str],
    rows: Iterable[Sequence[Any]],
    returning: bool = False,
    page_size: int = 1000,
    metrics_callback: Callable[[BatchMetrics], None] | None = None,
) -> InsertResult:
    """Insert all daily records of one upload with psycopg2.extras.execute_values.

    Parameters
    ----------
    cursor: psycopg2 cursor (transaction owned by the caller)
    table: 対象テーブル名 (例: daily_records)
    columns: 挿入列 (NormalizedRecord.to_dict() のキー順)
    rows: 行シーケンス (columns と同順)
    returning: True の場合 RETURNING id を付与
    page_size: execute_values の page_size
    metrics_callback: receives BatchMetrics after the round trip, whether it
        succeeded or not. Skipped when there are no rows.
    """
    sql = build_insert_sql(table, columns, returning)
    payload = list(rows)
    if not payload:
        return InsertResult(inserted_rows=0, returned_values=[] if returning else None)

    started = time.time()
    try:
        returned = execute_values(cursor, sql, payload, page_size=page_size, fetch=returning)
    except Exception as e:
        raise BatchInsertError(str(e)) from e
    finally:
        if metrics_callback is not None:
            metrics_callback(BatchMetrics.measure(len(payload), started))

    return InsertResult(inserted_rows=len(payload), returned_values=returned if returning else None)
