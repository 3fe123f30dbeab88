"""Tests for the mapping service (foundry/services/mapping.py)."""

from __future__ import annotations

import uuid
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from foundry.core.exceptions import NotFoundError, ValidationFailure
from foundry.core.models import AuditAction, MappingConfidence, Source, SourceMapping, SourceType
from foundry.processing.schemas import FieldMapping
from foundry.services.mapping import MappingService


def _result(scalar: Any = None, items: list[Any] | None = None) -> MagicMock:
    result = MagicMock()
    result.scalar_one_or_none.return_value = scalar
    result.scalars.return_value.all.return_value = items or []
    return result


def _source(raw_schema: list[dict[str, Any]] | None = None) -> Source:
    return Source(
        id=uuid.uuid4(),
        project_id=uuid.uuid4(),
        type=SourceType.FILE,
        name="tickets.csv",
        config={},
        raw_schema=raw_schema or [],
    )


@pytest.fixture
def service(mock_db_session: AsyncMock, audit_factory: Any) -> MappingService:
    return MappingService(mock_db_session, audit_factory)


def _added(session: AsyncMock) -> list[SourceMapping]:
    return [c.args[0] for c in session.add.call_args_list]


class TestUpdateMappings:
    async def test_saves_with_high_confidence(
        self,
        service: MappingService,
        mock_db_session: AsyncMock,
        audit_session: AsyncMock,
        org_id: uuid.UUID,
    ) -> None:
        source = _source()
        mock_db_session.execute.side_effect = [_result(scalar=source), _result()]
        mappings = [
            FieldMapping(source_field="Body", target_field="content"),
            FieldMapping(source_field="Email", target_field="email", is_pii=True),
        ]

        saved = await service.update_mappings(source.id, org_id, mappings)

        assert [m.confidence for m in saved] == [MappingConfidence.HIGH, MappingConfidence.HIGH]
        rows = _added(mock_db_session)
        assert [(r.source_field, r.target_field, r.confidence, r.is_pii) for r in rows] == [
            ("Body", "content", MappingConfidence.HIGH, False),
            ("Email", "email", MappingConfidence.HIGH, True),
        ]
        assert [r.position for r in rows] == [0, 1]
        mock_db_session.commit.assert_awaited_once()

        entry = audit_session.add.call_args[0][0]
        assert entry.action == AuditAction.MAPPING_UPDATED.value
        assert entry.details == {"mappingCount": 2}

    async def test_invalid_target_rejected_before_write(
        self, service: MappingService, mock_db_session: AsyncMock, org_id: uuid.UUID
    ) -> None:
        source = _source()
        mock_db_session.execute.side_effect = [_result(scalar=source)]

        with pytest.raises(ValidationFailure):
            await service.update_mappings(source.id, org_id, [FieldMapping(source_field="a", target_field="nope")])
        mock_db_session.commit.assert_not_awaited()
        mock_db_session.add.assert_not_called()

    async def test_unknown_source(self, service: MappingService, org_id: uuid.UUID) -> None:
        with pytest.raises(NotFoundError, match="Source"):
            await service.update_mappings(uuid.uuid4(), org_id, [])


class TestAutoDetect:
    async def test_detects_from_raw_schema(
        self, service: MappingService, mock_db_session: AsyncMock, org_id: uuid.UUID
    ) -> None:
        source = _source([{"name": "Customer Email", "type": "string", "sample": []}, {"name": "priority"}])
        mock_db_session.execute.side_effect = [_result(scalar=source), _result()]

        detected = await service.auto_detect(source.id, org_id)

        assert [(m.target_field, m.confidence) for m in detected] == [
            ("email", MappingConfidence.HIGH),
            ("metadata", MappingConfidence.LOW),
        ]
        assert [r.target_field for r in _added(mock_db_session)] == ["email", "metadata"]

    async def test_empty_schema_clears_mappings(
        self, service: MappingService, mock_db_session: AsyncMock, org_id: uuid.UUID
    ) -> None:
        source = _source()
        mock_db_session.execute.side_effect = [_result(scalar=source), _result()]

        assert await service.auto_detect(source.id, org_id) == []
        mock_db_session.add.assert_not_called()
        mock_db_session.commit.assert_awaited_once()


class TestPreview:
    async def test_preview_applies_saved_mappings(
        self, service: MappingService, mock_db_session: AsyncMock, org_id: uuid.UUID
    ) -> None:
        source = _source([{"name": "Body", "sample": ["hello", "world"]}])
        row = SourceMapping(
            source_id=source.id, source_field="Body", target_field="content", confidence=MappingConfidence.HIGH
        )
        mock_db_session.execute.side_effect = [_result(scalar=source), _result(items=[row])]

        preview = await service.get_preview(source.id, org_id)

        assert preview["mappings"][0].target_field == "content"
        assert preview["preview"] == [{"content": "hello"}, {"content": "world"}]
