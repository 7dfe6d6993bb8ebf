from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from typing import Any

"""ReferenceSet: read-only lookup table over backend rows.

Cages and feed types are fetched once per upload session and then used to
check and resolve the human-entered identifiers in the spreadsheet (cage code
or name, feed type name). Matching is exact after trimming and lowercasing.
"""

__all__ = [
    "ReferenceSet",
    "normalize_key",
]


def normalize_key(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip().lower()


class ReferenceSet:
    """Snapshot of backend rows indexed by one or more key fields.

    The first row wins when two rows normalize to the same key, matching a
    linear "find first" over rows ordered by name.
    """

    def __init__(self, name: str, rows: Iterable[Mapping[str, Any]], key_fields: Iterable[str] = ("name",)) -> None:
        self.name = name
        self._rows: tuple[dict[str, Any], ...] = tuple(dict(r) for r in rows)
        self._indexes: dict[str, dict[str, dict[str, Any]]] = {}
        for key_field in key_fields:
            index: dict[str, dict[str, Any]] = {}
            for row in self._rows:
                key = normalize_key(row.get(key_field))
                if key and key not in index:
                    index[key] = row
            self._indexes[key_field] = index

    @property
    def rows(self) -> tuple[dict[str, Any], ...]:
        return self._rows

    def lookup(self, value: Any, key_field: str = "name") -> dict[str, Any] | None:
        """Return the row whose key_field matches value, or None."""
        try:
            index = self._indexes[key_field]
        except KeyError:
            raise KeyError(f"reference set '{self.name}' is not indexed by '{key_field}'") from None
        key = normalize_key(value)
        if not key:
            return None
        return index.get(key)

    def contains(self, value: Any, key_field: str = "name") -> bool:
        return self.lookup(value, key_field) is not None

    def first(self) -> dict[str, Any] | None:
        return self._rows[0] if self._rows else None

    def __len__(self) -> int:
        return len(self._rows)

    def __iter__(self) -> Iterator[dict[str, Any]]:
        return iter(self._rows)

    def __repr__(self) -> str:  # pragma: no cover (debug helper)
        return f"ReferenceSet(name={self.name!r}, rows={len(self._rows)})"
