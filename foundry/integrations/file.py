"""File source connector for uploaded CSV, Excel and JSON files.

Config keys:
    file_path   path of the uploaded file (required)
    mime_type   uploaded content type, used before the file extension
    delimiter   CSV field delimiter (default ``,``)
    sheet_name  Excel worksheet to read (default: first sheet)
    json_path   dotted path to the record array inside a JSON document
"""

from __future__ import annotations

import asyncio
import csv
import json
import logging
from pathlib import Path
from typing import Any
from zipfile import BadZipFile

from openpyxl.utils.exceptions import InvalidFileException

from foundry.core.exceptions import ConnectorFailure
from foundry.integrations.base import ConnectionTestResult, SourceConnector, schema_from_records
from foundry.processing.schemas import RawSchemaField

logger = logging.getLogger(__name__)

CSV = "csv"
EXCEL = "excel"
JSON = "json"


def detect_file_kind(file_path: str, mime_type: str | None = None) -> str | None:
    """Classify a file as ``csv``, ``excel`` or ``json`` by content type, then extension."""
    mime = (mime_type or "").lower()
    ext = Path(file_path).suffix.lower()
    if mime == "text/csv" or ext == ".csv":
        return CSV
    if "spreadsheet" in mime or "excel" in mime or ext in (".xlsx", ".xlsm"):
        return EXCEL
    if mime == "application/json" or ext == ".json":
        return JSON
    return None


def read_csv(file_path: str, delimiter: str = ",") -> list[dict[str, Any]]:
    """Read a CSV file with a header row, skipping empty lines."""
    with open(file_path, encoding="utf-8-sig", errors="replace", newline="") as f:
        reader = csv.DictReader(f, delimiter=delimiter)
        return [dict(row) for row in reader if any(v not in (None, "") for v in row.values())]


def read_excel(file_path: str, sheet_name: str | None = None) -> list[dict[str, Any]]:
    """Read one worksheet; the first row holds the column names."""
    from openpyxl import load_workbook

    wb = load_workbook(file_path, read_only=True, data_only=True)
    try:
        if sheet_name is not None and sheet_name not in wb.sheetnames:
            raise ConnectorFailure("file", f"Worksheet '{sheet_name}' not found")
        ws = wb[sheet_name] if sheet_name else wb[wb.sheetnames[0]]
        records: list[dict[str, Any]] = []
        headers: list[str] = []
        for row_idx, row in enumerate(ws.iter_rows(values_only=True)):
            if row_idx == 0:
                headers = [str(cell) if cell is not None else f"column_{i + 1}" for i, cell in enumerate(row)]
                continue
            if all(cell is None for cell in row):
                continue
            records.append({h: cell for h, cell in zip(headers, row, strict=False) if cell is not None})
        return records
    finally:
        wb.close()


def read_json(file_path: str, json_path: str | None = None) -> list[dict[str, Any]]:
    """Read a JSON array of records, or a single object as one record."""
    with open(file_path, encoding="utf-8") as f:
        data = json.load(f)
    if json_path:
        for part in json_path.split("."):
            if not isinstance(data, dict) or part not in data:
                raise ConnectorFailure("file", f"JSON path '{json_path}' not found")
            data = data[part]
    records = data if isinstance(data, list) else [data]
    return [r for r in records if isinstance(r, dict)]


class FileConnector(SourceConnector):
    """Connector for uploaded CSV, XLSX and JSON files."""

    source_type = "file"
    description = "Uploaded file - CSV, Excel (xlsx) or JSON"

    @property
    def file_path(self) -> str:
        return self._config_value("file_path", "filePath", default="")

    @property
    def kind(self) -> str | None:
        return detect_file_kind(self.file_path, self._config_value("mime_type", "mimeType"))

    async def test_connection(self) -> ConnectionTestResult:
        path = self.file_path
        if path and Path(path).is_file():
            return ConnectionTestResult(success=True, message="File accessible")
        return ConnectionTestResult(success=False, message="File not found")

    def _read_all(self) -> list[dict[str, Any]]:
        path = self.file_path
        kind = self.kind
        if not path:
            raise ConnectorFailure(self.source_type, "No file attached to source")
        if kind is None:
            raise ConnectorFailure(self.source_type, f"Unsupported file type: {Path(path).suffix or path}")
        try:
            if kind == CSV:
                return read_csv(path, self._config_value("delimiter", default=","))
            if kind == EXCEL:
                return read_excel(path, self._config_value("sheet_name", "sheetName"))
            return read_json(path, self._config_value("json_path", "jsonPath"))
        except ConnectorFailure:
            raise
        except (OSError, ValueError, KeyError, csv.Error, BadZipFile, InvalidFileException) as e:
            logger.warning("Failed to read %s file %s: %s", kind, Path(path).name, e)
            raise ConnectorFailure(self.source_type, f"Failed to read file: {e}") from e

    async def fetch_data(self, limit: int | None = None, since: str | None = None) -> list[dict[str, Any]]:
        """Read every record of the file. ``since`` does not apply to files."""
        records = await asyncio.to_thread(self._read_all)
        return records[:limit] if limit else records

    async def detect_schema(self) -> list[RawSchemaField]:
        """Columns of the file; CSV and Excel columns are always reported as ``string``."""
        records = await self.fetch_data()
        return schema_from_records(records, typed=self.kind == JSON)
