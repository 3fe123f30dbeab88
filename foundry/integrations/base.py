"""Abstract source connector and registry.

Every source type (uploaded file, Teamwork Desk, GoHighLevel) exposes the
same capability set, so the orchestrator and the preview/mapping code
never branch on the source type.
"""

from __future__ import annotations

import abc
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from foundry.core.config import Settings, get_settings
from foundry.core.exceptions import ConnectorFailure, ValidationFailure
from foundry.processing.schemas import RawSchemaField

if TYPE_CHECKING:
    from foundry.core.models import Source

logger = logging.getLogger(__name__)

SCHEMA_SAMPLE_SIZE = 3


@dataclass
class ConnectionTestResult:
    success: bool
    message: str


@dataclass
class SourcePreview:
    """First rows of a source, for the mapping screen."""

    columns: list[str] = field(default_factory=list)
    sample_data: list[dict[str, Any]] = field(default_factory=list)


def json_type_name(value: Any) -> str:
    """Name a value's JSON type (``string``, ``number``, ``boolean``, ``object``, ``null``)."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, int | float):
        return "number"
    if isinstance(value, str):
        return "string"
    return "object"


def schema_from_records(records: list[dict[str, Any]], *, typed: bool = True) -> list[RawSchemaField]:
    """Describe the columns of the first record with up to three samples each.

    Args:
        records: Parsed rows.
        typed: Use the first row's JSON type names; otherwise every column
            is reported as ``string``.
    """
    if not records:
        return []
    first = records[0]
    head = records[:SCHEMA_SAMPLE_SIZE]
    return [
        RawSchemaField(
            name=key,
            type=json_type_name(first[key]) if typed else "string",
            sample=[row.get(key) for row in head],
        )
        for key in first
    ]


class SourceConnector(abc.ABC):
    """Abstract base class for source connectors.

    Subclasses must implement:
    - test_connection(): Verify the source is reachable.
    - fetch_data(): Return the source's raw records.

    Args:
        config: Connector-specific configuration from the source row.
        settings: Application settings (timeouts, preview size).
    """

    source_type: str = ""
    description: str = "Base source connector"

    def __init__(self, config: dict[str, Any], settings: Settings | None = None) -> None:
        self._config = dict(config or {})
        self._settings = settings or get_settings()

    def _config_value(self, *keys: str, default: Any = None) -> Any:
        for key in keys:
            value = self._config.get(key)
            if value not in (None, ""):
                return value
        return default

    @abc.abstractmethod
    async def test_connection(self) -> ConnectionTestResult:
        """Check that the source can be read with the current config."""
        ...

    @abc.abstractmethod
    async def fetch_data(self, limit: int | None = None, since: str | None = None) -> list[dict[str, Any]]:
        """Fetch raw records from the source.

        Args:
            limit: Maximum number of records to return.
            since: Only records updated after this ISO timestamp, where
                the source supports it.

        Raises:
            ConnectorFailure: The source could not be read.
        """
        ...

    async def get_preview(self) -> SourcePreview:
        """Return the first rows of the source, or an empty preview on failure."""
        limit = self._settings.preview_row_limit
        try:
            rows = await self.fetch_data(limit=limit)
        except ConnectorFailure as e:
            logger.warning("Preview failed for %s source: %s", self.source_type, e)
            return SourcePreview()
        rows = rows[:limit]
        return SourcePreview(columns=list(rows[0]) if rows else [], sample_data=rows)

    async def detect_schema(self) -> list[RawSchemaField]:
        """Describe the source's raw fields from its first rows."""
        preview = await self.get_preview()
        return schema_from_records(preview.sample_data)

    async def disconnect(self) -> None:  # noqa: B027
        """Clean up connection resources."""


class ConnectorRegistry:
    """Registry of available connector types."""

    _connectors: dict[str, type[SourceConnector]] = {}

    @classmethod
    def register(cls, name: str, connector_cls: type[SourceConnector]) -> None:
        """Register a connector type."""
        cls._connectors[name] = connector_cls

    @classmethod
    def get(cls, name: str) -> type[SourceConnector] | None:
        """Get a connector class by name."""
        return cls._connectors.get(name)

    @classmethod
    def list_connectors(cls) -> dict[str, type[SourceConnector]]:
        """List all registered connectors."""
        return dict(cls._connectors)


def create_connector(source: Source, settings: Settings | None = None) -> SourceConnector:
    """Build the connector for a source row.

    File sources carry their location on the row itself rather than in
    ``config``; it is merged in here.

    Raises:
        ValidationFailure: No connector is registered for the source type.
    """
    source_type = str(source.type)
    connector_cls = ConnectorRegistry.get(source_type)
    if connector_cls is None:
        raise ValidationFailure(f"Unknown source type: {source_type}")
    config = dict(source.config or {})
    if source.file_path:
        config.setdefault("file_path", source.file_path)
    if source.mime_type:
        config.setdefault("mime_type", source.mime_type)
    return connector_cls(config, settings=settings)


def _register_builtin_connectors() -> None:
    """Register built-in connectors."""
    from foundry.integrations.file import FileConnector
    from foundry.integrations.gohighlevel import GoHighLevelConnector
    from foundry.integrations.teamwork import TeamworkConnector

    ConnectorRegistry.register("file", FileConnector)
    ConnectorRegistry.register("teamwork", TeamworkConnector)
    ConnectorRegistry.register("gohighlevel", GoHighLevelConnector)


_register_builtin_connectors()
