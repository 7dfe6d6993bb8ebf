from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

"""Upload result model.

Returned by UploadWizard.confirm() and rendered into the CLI SUMMARY line.
"""

__all__ = [
    "UploadResult",
]


@dataclass(frozen=True)
class UploadResult:
    """Outcome of one confirm attempt.

    success=False means nothing was written: either a row failed mapping
    (before any network call) or the backend rejected the batch insert.
    """
    success: bool
    record_type: str
    file_name: str  # アップロードファイル名
    total_rows: int  # デコード済データ行数
    inserted_rows: int  # 成功時のみ total_rows と一致
    start_time: datetime
    end_time: datetime
    elapsed_seconds: float
    error: str | None = None  # 失敗理由 (ユーザー向けメッセージ)

    @property
    def throughput_rows_per_sec(self) -> float:
        if self.elapsed_seconds <= 0:
            return 0.0
        return self.inserted_rows / self.elapsed_seconds
