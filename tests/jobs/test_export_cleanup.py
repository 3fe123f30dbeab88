"""Tests for the export retention job (foundry/jobs/export_cleanup.py)."""

from __future__ import annotations

import uuid
from datetime import UTC, datetime
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

from foundry.core.config import Settings
from foundry.jobs.export_cleanup import purge_expired_exports, run_export_cleanup


def _session_with_rows(rows: list[tuple[uuid.UUID, str]]) -> AsyncMock:
    session = AsyncMock()
    result = MagicMock()
    result.all.return_value = rows
    session.execute = AsyncMock(return_value=result)
    session.flush = AsyncMock()
    return session


class TestPurgeExpiredExports:
    async def test_no_expired_exports(self) -> None:
        session = _session_with_rows([])

        summary = await purge_expired_exports(session)

        assert summary["rows_deleted"] == 0
        assert summary["files_deleted"] == 0
        session.flush.assert_not_awaited()

    async def test_deletes_rows_and_files(self, tmp_path: Path) -> None:
        first = tmp_path / "a.jsonl"
        second = tmp_path / "b.json"
        first.write_text("{}")
        second.write_text("[]")
        session = _session_with_rows([(uuid.uuid4(), str(first)), (uuid.uuid4(), str(second))])

        summary = await purge_expired_exports(session)

        assert summary["rows_deleted"] == 2
        assert summary["files_deleted"] == 2
        assert not first.exists()
        assert not second.exists()
        session.flush.assert_awaited_once()

    async def test_missing_file_still_drops_row(self, tmp_path: Path) -> None:
        session = _session_with_rows([(uuid.uuid4(), str(tmp_path / "gone.jsonl"))])

        summary = await purge_expired_exports(session)

        assert summary["rows_deleted"] == 1
        assert summary["files_deleted"] == 0

    async def test_run_at_uses_given_now(self) -> None:
        now = datetime(2024, 6, 1, tzinfo=UTC)
        summary = await purge_expired_exports(_session_with_rows([]), now=now)
        assert summary["run_at"] == now.isoformat()
        assert summary["duration_ms"] >= 0


class TestRunExportCleanup:
    async def test_commits_and_disposes_engine(self, test_settings: Settings) -> None:
        session = _session_with_rows([(uuid.uuid4(), "/nonexistent/export.jsonl")])
        session.commit = AsyncMock()
        engine = AsyncMock()
        factory = MagicMock()
        factory.return_value.__aenter__ = AsyncMock(return_value=session)
        factory.return_value.__aexit__ = AsyncMock(return_value=False)

        with patch("foundry.jobs.export_cleanup.create_engine", return_value=(engine, factory)):
            summary = await run_export_cleanup(test_settings)

        assert summary["rows_deleted"] == 1
        session.commit.assert_awaited_once()
        engine.dispose.assert_awaited_once()
