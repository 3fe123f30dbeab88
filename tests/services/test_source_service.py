"""Tests for the source service (foundry/services/sources.py)."""

from __future__ import annotations

import uuid
from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from foundry.core.config import Settings
from foundry.core.exceptions import ConnectorFailure
from foundry.core.models import Source, SourceStatus, SourceType
from foundry.services.sources import SourceService


def _result(scalar: Any = None) -> MagicMock:
    result = MagicMock()
    result.scalar_one_or_none.return_value = scalar
    return result


def _file_source(file_path: Path) -> Source:
    return Source(
        id=uuid.uuid4(),
        project_id=uuid.uuid4(),
        type=SourceType.FILE,
        name=file_path.name,
        status=SourceStatus.PENDING,
        file_path=str(file_path),
        config={},
        raw_schema=[],
    )


@pytest.fixture
def csv_file(tmp_path: Path) -> Path:
    path = tmp_path / "tickets.csv"
    path.write_text("subject,body\nRefund,Please refund my order\nLogin,Cannot log in\n")
    return path


@pytest.fixture
def service(mock_db_session: AsyncMock, test_settings: Settings) -> SourceService:
    return SourceService(mock_db_session, settings=test_settings)


class TestSourceService:
    async def test_connection_marks_connected(
        self, service: SourceService, mock_db_session: AsyncMock, csv_file: Path, org_id: uuid.UUID
    ) -> None:
        source = _file_source(csv_file)
        mock_db_session.execute.side_effect = [_result(source)]

        result = await service.test_connection(source.id, org_id)

        assert result.success is True
        assert source.status == SourceStatus.CONNECTED
        mock_db_session.commit.assert_awaited_once()

    async def test_connection_marks_error(
        self, service: SourceService, mock_db_session: AsyncMock, tmp_path: Path, org_id: uuid.UUID
    ) -> None:
        source = _file_source(tmp_path / "missing.csv")
        mock_db_session.execute.side_effect = [_result(source)]

        result = await service.test_connection(source.id, org_id)

        assert result.success is False
        assert source.status == SourceStatus.ERROR

    async def test_preview(
        self, service: SourceService, mock_db_session: AsyncMock, csv_file: Path, org_id: uuid.UUID
    ) -> None:
        source = _file_source(csv_file)
        mock_db_session.execute.side_effect = [_result(source)]

        preview = await service.get_preview(source.id, org_id)

        assert preview.columns == ["subject", "body"]
        assert preview.sample_data[0] == {"subject": "Refund", "body": "Please refund my order"}

    async def test_refresh_schema_stores_fields(
        self, service: SourceService, mock_db_session: AsyncMock, csv_file: Path, org_id: uuid.UUID
    ) -> None:
        source = _file_source(csv_file)
        mock_db_session.execute.side_effect = [_result(source)]

        schema = await service.refresh_schema(source.id, org_id)

        assert [f.name for f in schema] == ["subject", "body"]
        assert source.raw_schema[0] == {"name": "subject", "type": "string", "sample": ["Refund", "Login"]}
        assert source.last_sync_at is not None
        mock_db_session.commit.assert_awaited_once()

    async def test_refresh_schema_unreadable_file(
        self, service: SourceService, mock_db_session: AsyncMock, tmp_path: Path, org_id: uuid.UUID
    ) -> None:
        source = _file_source(tmp_path / "missing.csv")
        mock_db_session.execute.side_effect = [_result(source)]

        with pytest.raises(ConnectorFailure):
            await service.refresh_schema(source.id, org_id)
        mock_db_session.commit.assert_not_awaited()
