from __future__ import annotations

import re
from contextlib import contextmanager
from pathlib import Path

import pytest

from aquafarm_upload.cli import __main__ as cli
from aquafarm_upload.logging.init import reset_logging

SUMMARY_RE = re.compile(
    r"^SUMMARY type=\S+ file=\S+ status=(success|failed) rows=\d+ inserted=\d+ "
    r"elapsed_sec=[0-9.]+ throughput_rps=[0-9.]+$"
)


@pytest.fixture(autouse=True)
def clean_logging():
    reset_logging()
    yield
    reset_logging()


@pytest.mark.parametrize("insert_error", [None, "connection reset"])
def test_single_summary_line(temp_workdir: Path, monkeypatch, make_backend, make_xlsx, daily_header, capsys, insert_error):
    backend = make_backend(insert_error=insert_error)

    @contextmanager
    def fake_open_backend(cfg):
        yield backend

    monkeypatch.setattr(cli, "_open_backend", fake_open_backend)
    path = temp_workdir / "data" / "daily.xlsx"
    path.write_bytes(make_xlsx([daily_header, ["C1", "2024-01-15", "1", "Starter", None, None, None]]))
    cli.main([str(path)])

    lines = [line for line in capsys.readouterr().out.splitlines() if line.startswith("SUMMARY")]
    assert len(lines) == 1
    assert SUMMARY_RE.match(lines[0])
    expected = "success" if insert_error is None else "failed"
    assert f"status={expected}" in lines[0]
