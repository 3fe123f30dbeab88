"""Tests for the uploaded-file connector (foundry/integrations/file.py)."""

from __future__ import annotations

import json
from pathlib import Path
from types import SimpleNamespace

import pytest
from openpyxl import Workbook

from foundry.core.config import Settings
from foundry.core.exceptions import ConnectorFailure, ValidationFailure
from foundry.integrations import create_connector
from foundry.integrations.file import FileConnector, detect_file_kind


def _write_csv(path: Path) -> str:
    path.write_text("Customer Email,Message,Status\na@example.com,Hello there,open\n,,\nb@example.com,Thanks,closed\n")
    return str(path)


def _write_xlsx(path: Path) -> str:
    wb = Workbook()
    ws = wb.active
    ws.title = "Tickets"
    ws.append(["subject", "count", None])
    ws.append(["Refund", 3, "extra"])
    ws.append([None, None, None])
    ws.append(["Login", None, None])
    wb.save(path)
    return str(path)


@pytest.fixture
def connector_for(test_settings: Settings):
    def _make(file_path: str, **config: str) -> FileConnector:
        return FileConnector({"file_path": file_path, **config}, settings=test_settings)

    return _make


class TestDetectFileKind:
    @pytest.mark.parametrize(
        ("file_path", "mime_type", "expected"),
        [
            ("data.csv", None, "csv"),
            ("upload.bin", "text/csv", "csv"),
            ("book.xlsx", None, "excel"),
            ("upload", "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet", "excel"),
            ("records.JSON", None, "json"),
            ("notes.txt", "text/plain", None),
        ],
    )
    def test_kinds(self, file_path: str, mime_type: str | None, expected: str | None) -> None:
        assert detect_file_kind(file_path, mime_type) == expected


# =============================================================================
# Reading files
# =============================================================================


class TestCsv:
    async def test_fetch_skips_blank_rows(self, tmp_path: Path, connector_for) -> None:
        records = await connector_for(_write_csv(tmp_path / "t.csv")).fetch_data()
        assert records == [
            {"Customer Email": "a@example.com", "Message": "Hello there", "Status": "open"},
            {"Customer Email": "b@example.com", "Message": "Thanks", "Status": "closed"},
        ]

    async def test_limit(self, tmp_path: Path, connector_for) -> None:
        records = await connector_for(_write_csv(tmp_path / "t.csv")).fetch_data(limit=1)
        assert len(records) == 1

    async def test_custom_delimiter(self, tmp_path: Path, connector_for) -> None:
        path = tmp_path / "semi.csv"
        path.write_text("a;b\n1;2\n")
        assert await connector_for(str(path), delimiter=";").fetch_data() == [{"a": "1", "b": "2"}]

    async def test_schema_reports_strings(self, tmp_path: Path, connector_for) -> None:
        schema = await connector_for(_write_csv(tmp_path / "t.csv")).detect_schema()
        assert [f.name for f in schema] == ["Customer Email", "Message", "Status"]
        assert {f.type for f in schema} == {"string"}
        assert schema[0].sample == ["a@example.com", "b@example.com"]


class TestExcel:
    async def test_fetch_first_sheet(self, tmp_path: Path, connector_for) -> None:
        records = await connector_for(_write_xlsx(tmp_path / "t.xlsx")).fetch_data()
        assert records == [{"subject": "Refund", "count": 3, "column_3": "extra"}, {"subject": "Login"}]

    async def test_missing_sheet(self, tmp_path: Path, connector_for) -> None:
        connector = connector_for(_write_xlsx(tmp_path / "t.xlsx"), sheet_name="Nope")
        with pytest.raises(ConnectorFailure, match="Worksheet 'Nope' not found"):
            await connector.fetch_data()

    async def test_corrupt_workbook(self, tmp_path: Path, connector_for) -> None:
        path = tmp_path / "broken.xlsx"
        path.write_bytes(b"not a zip")
        with pytest.raises(ConnectorFailure, match="Failed to read file"):
            await connector_for(str(path)).fetch_data()


class TestJson:
    async def test_array(self, tmp_path: Path, connector_for) -> None:
        path = tmp_path / "r.json"
        path.write_text(json.dumps([{"q": "hi", "n": 1}, "skipped", {"q": "yo", "n": None}]))
        connector = connector_for(str(path))

        assert await connector.fetch_data() == [{"q": "hi", "n": 1}, {"q": "yo", "n": None}]
        schema = await connector.detect_schema()
        assert [(f.name, f.type) for f in schema] == [("q", "string"), ("n", "number")]

    async def test_json_path(self, tmp_path: Path, connector_for) -> None:
        path = tmp_path / "r.json"
        path.write_text(json.dumps({"data": {"items": [{"id": 1}]}}))
        assert await connector_for(str(path), json_path="data.items").fetch_data() == [{"id": 1}]

    async def test_json_path_missing(self, tmp_path: Path, connector_for) -> None:
        path = tmp_path / "r.json"
        path.write_text(json.dumps({"data": {}}))
        with pytest.raises(ConnectorFailure, match="JSON path 'data.items' not found"):
            await connector_for(str(path), json_path="data.items").fetch_data()

    async def test_single_object_is_one_record(self, tmp_path: Path, connector_for) -> None:
        path = tmp_path / "r.json"
        path.write_text(json.dumps({"id": 7}))
        assert await connector_for(str(path)).fetch_data() == [{"id": 7}]

    async def test_malformed_json(self, tmp_path: Path, connector_for) -> None:
        path = tmp_path / "r.json"
        path.write_text("{not json")
        with pytest.raises(ConnectorFailure):
            await connector_for(str(path)).fetch_data()


# =============================================================================
# Connection, preview and factory
# =============================================================================


class TestFileConnector:
    async def test_connection(self, tmp_path: Path, connector_for) -> None:
        ok = await connector_for(_write_csv(tmp_path / "t.csv")).test_connection()
        missing = await connector_for(str(tmp_path / "gone.csv")).test_connection()
        assert ok.success is True
        assert missing.success is False
        assert missing.message == "File not found"

    async def test_unsupported_type(self, tmp_path: Path, connector_for) -> None:
        path = tmp_path / "notes.txt"
        path.write_text("hello")
        with pytest.raises(ConnectorFailure, match="Unsupported file type"):
            await connector_for(str(path)).fetch_data()

    async def test_preview_swallows_failures(self, tmp_path: Path, connector_for) -> None:
        preview = await connector_for(str(tmp_path / "gone.csv")).get_preview()
        assert preview.columns == []
        assert preview.sample_data == []

    async def test_preview_columns(self, tmp_path: Path, connector_for) -> None:
        preview = await connector_for(_write_csv(tmp_path / "t.csv")).get_preview()
        assert preview.columns == ["Customer Email", "Message", "Status"]
        assert len(preview.sample_data) == 2

    def test_create_connector_merges_file_path(self, tmp_path: Path, test_settings: Settings) -> None:
        source = SimpleNamespace(type="file", config=None, file_path="/uploads/a.csv", mime_type="text/csv")
        connector = create_connector(source, test_settings)  # type: ignore[arg-type]
        assert isinstance(connector, FileConnector)
        assert connector.file_path == "/uploads/a.csv"
        assert connector.kind == "csv"

    def test_create_connector_unknown_type(self, test_settings: Settings) -> None:
        source = SimpleNamespace(type="zendesk", config={}, file_path=None, mime_type=None)
        with pytest.raises(ValidationFailure, match="Unknown source type: zendesk"):
            create_connector(source, test_settings)  # type: ignore[arg-type]
