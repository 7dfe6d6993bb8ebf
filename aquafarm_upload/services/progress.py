from __future__ import annotations

import sys
from typing import Any

from tqdm import tqdm
from tqdm.std import tqdm as TqdmType

"""Progress display service with tqdm (TTY only).

Used by CLI runs while the confirm step maps rows. A single tqdm instance is
created when stdout is a TTY; in non-TTY environments (CI, piped output) the
tracker is a no-op so no ANSI control sequences end up in logs.
"""

__all__ = [
    "RowProgress",
    "is_tty_enabled",
]


def is_tty_enabled() -> bool:
    """Check if TTY output is enabled."""
    return sys.stdout.isatty()


class RowProgress:
    """Progress tracker for mapping the rows of one upload."""

    def __init__(self, total_rows: int, *, description: str = "Mapping rows", enabled: bool | None = None) -> None:
        self.total_rows = total_rows
        self.description = description
        self.processed = 0
        self.enabled = is_tty_enabled() if enabled is None else enabled
        self.pbar: TqdmType[Any] | None
        if self.enabled:
            self.pbar = tqdm(
                total=total_rows,
                desc=description,
                unit="row",
                leave=False,
                ncols=80,
                ascii=True,
            )
        else:
            self.pbar = None

    def advance(self, row_number: int) -> None:
        """Mark one row as mapped (row_number is the spreadsheet row)."""
        self.processed += 1
        if self.pbar is not None:
            self.pbar.update(1)
            self.pbar.set_postfix(row=row_number)

    def close(self) -> None:
        if self.pbar is not None:
            self.pbar.close()
            self.pbar = None

    def __enter__(self) -> RowProgress:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()
