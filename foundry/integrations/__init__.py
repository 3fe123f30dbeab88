"""Source connectors: uploaded files and helpdesk/CRM APIs."""

from foundry.integrations.base import (
    ConnectionTestResult,
    ConnectorRegistry,
    SourceConnector,
    SourcePreview,
    create_connector,
)

__all__ = [
    "ConnectionTestResult",
    "ConnectorRegistry",
    "SourceConnector",
    "SourcePreview",
    "create_connector",
]
