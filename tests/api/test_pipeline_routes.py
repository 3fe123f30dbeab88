"""Tests for the HTTP surface: health, jobs, mappings, sources and exports."""

from __future__ import annotations

import uuid
from typing import Any
from unittest.mock import AsyncMock, MagicMock

from httpx import AsyncClient

from foundry.core.models import JobStatus, ProcessingJob, Project, Source, SourceType


def _result(scalar: Any = None, items: list[Any] | None = None) -> MagicMock:
    result = MagicMock()
    result.scalar_one_or_none.return_value = scalar
    result.scalars.return_value.all.return_value = items or []
    return result


# =============================================================================
# Health
# =============================================================================


class TestHealth:
    async def test_healthy(self, client: AsyncClient) -> None:
        response = await client.get("/api/v1/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["services"] == {"postgres": "up"}
        assert body["active_jobs"] == 0

    async def test_database_down(self, client: AsyncClient, mock_db_session: AsyncMock) -> None:
        mock_db_session.execute.side_effect = ConnectionError("refused")

        body = (await client.get("/api/v1/health")).json()

        assert body["status"] == "unhealthy"
        assert body["services"]["postgres"] == "down"


# =============================================================================
# Identity headers and error bodies
# =============================================================================


class TestErrors:
    async def test_missing_org_header(self, client: AsyncClient) -> None:
        response = await client.get(f"/api/v1/jobs/{uuid.uuid4()}")
        assert response.status_code == 422

    async def test_malformed_org_header(self, client: AsyncClient) -> None:
        response = await client.get(f"/api/v1/jobs/{uuid.uuid4()}", headers={"X-Organization-Id": "acme"})
        assert response.status_code == 400

    async def test_not_found_body(self, client: AsyncClient, org_headers: dict[str, str]) -> None:
        job_id = uuid.uuid4()
        response = await client.get(f"/api/v1/jobs/{job_id}", headers=org_headers)

        assert response.status_code == 404
        assert response.json() == {
            "error": {"code": "NOT_FOUND", "message": f"Processing job with id '{job_id}' not found"}
        }


# =============================================================================
# Jobs
# =============================================================================


class TestJobRoutes:
    async def test_start_job(
        self,
        client: AsyncClient,
        test_app: Any,
        mock_db_session: AsyncMock,
        org_headers: dict[str, str],
        org_id: uuid.UUID,
    ) -> None:
        project = Project(id=uuid.uuid4(), organization_id=org_id, name="P", pii_settings={}, filter_settings={})
        source = Source(id=uuid.uuid4(), project_id=project.id, type=SourceType.FILE, name="a.csv", config={})
        mock_db_session.execute.side_effect = [
            _result(scalar=project),
            _result(items=[source]),
            _result(scalar=None),
        ]

        response = await client.post(f"/api/v1/projects/{project.id}/jobs", headers=org_headers)

        assert response.status_code == 201
        body = response.json()
        assert body["status"] == "pending"
        assert body["project_id"] == str(project.id)
        assert body["config_snapshot"]["source_ids"] == [str(source.id)]
        test_app.state.task_runner.submit.assert_called_once()

    async def test_start_job_without_sources(
        self, client: AsyncClient, mock_db_session: AsyncMock, org_headers: dict[str, str], org_id: uuid.UUID
    ) -> None:
        project = Project(id=uuid.uuid4(), organization_id=org_id, name="P")
        mock_db_session.execute.side_effect = [_result(scalar=project), _result(items=[])]

        response = await client.post(
            f"/api/v1/projects/{project.id}/jobs", json={"sourceIds": []}, headers=org_headers
        )

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "NOT_ELIGIBLE"

    async def test_get_job(
        self, client: AsyncClient, mock_db_session: AsyncMock, org_headers: dict[str, str]
    ) -> None:
        job = ProcessingJob(
            id=uuid.uuid4(),
            project_id=uuid.uuid4(),
            status=JobStatus.PROCESSING,
            progress=67,
            records_total=3,
            records_processed=2,
            config_snapshot={},
        )
        mock_db_session.execute.side_effect = [_result(scalar=job)]

        response = await client.get(f"/api/v1/jobs/{job.id}", headers=org_headers)

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "processing"
        assert body["progress"] == 67
        assert body["records_processed"] == 2
        assert body["warnings"] == []

    async def test_cancel_finished_job(
        self, client: AsyncClient, mock_db_session: AsyncMock, org_headers: dict[str, str]
    ) -> None:
        job = ProcessingJob(id=uuid.uuid4(), project_id=uuid.uuid4(), status=JobStatus.COMPLETED)
        mock_db_session.execute.side_effect = [_result(scalar=job)]

        response = await client.post(f"/api/v1/jobs/{job.id}/cancel", headers=org_headers)

        assert response.status_code == 400
        assert response.json()["error"]["message"] == "Job cannot be cancelled"


# =============================================================================
# Mappings and sources
# =============================================================================


class TestMappingRoutes:
    async def test_put_mappings(
        self, client: AsyncClient, mock_db_session: AsyncMock, org_headers: dict[str, str]
    ) -> None:
        source = Source(id=uuid.uuid4(), project_id=uuid.uuid4(), type=SourceType.FILE, name="a.csv")
        mock_db_session.execute.side_effect = [_result(scalar=source), _result()]

        response = await client.put(
            f"/api/v1/sources/{source.id}/mappings",
            json={"mappings": [{"sourceField": "Body", "targetField": "content"}]},
            headers=org_headers,
        )

        assert response.status_code == 200
        assert response.json()["mappings"] == [
            {"source_field": "Body", "target_field": "content", "confidence": "high", "is_pii": False}
        ]

    async def test_put_unknown_target(
        self, client: AsyncClient, mock_db_session: AsyncMock, org_headers: dict[str, str]
    ) -> None:
        source = Source(id=uuid.uuid4(), project_id=uuid.uuid4(), type=SourceType.FILE, name="a.csv")
        mock_db_session.execute.side_effect = [_result(scalar=source)]

        response = await client.put(
            f"/api/v1/sources/{source.id}/mappings",
            json={"mappings": [{"sourceField": "Body", "targetField": "summary"}]},
            headers=org_headers,
        )

        assert response.status_code == 422
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"

    async def test_list_connectors(self, client: AsyncClient) -> None:
        response = await client.get("/api/v1/sources/connectors")

        assert response.status_code == 200
        assert {c["type"] for c in response.json()} == {"file", "teamwork", "gohighlevel"}


# =============================================================================
# Exports
# =============================================================================


class TestExportRoutes:
    async def test_export_pending_job(
        self, client: AsyncClient, mock_db_session: AsyncMock, org_headers: dict[str, str]
    ) -> None:
        job = ProcessingJob(id=uuid.uuid4(), project_id=uuid.uuid4(), status=JobStatus.PENDING)
        mock_db_session.execute.side_effect = [_result(scalar=job)]

        response = await client.post(f"/api/v1/jobs/{job.id}/exports", json={"format": "jsonl_qa"}, headers=org_headers)

        assert response.status_code == 400
        assert response.json()["error"]["message"] == "Can only export completed jobs"

    async def test_unknown_format(self, client: AsyncClient, org_headers: dict[str, str]) -> None:
        response = await client.post(
            f"/api/v1/jobs/{uuid.uuid4()}/exports", json={"format": "csv"}, headers=org_headers
        )

        assert response.status_code == 422
        assert response.json()["error"]["details"]["allowed"] == ["jsonl_conversation", "jsonl_qa", "json_raw"]

    async def test_unknown_export(self, client: AsyncClient, org_headers: dict[str, str]) -> None:
        response = await client.get(f"/api/v1/exports/{uuid.uuid4()}/download", headers=org_headers)
        assert response.status_code == 404
