"""GoHighLevel connector.

Pulls conversations through the LeadConnector API.

Config keys:
    api_key      Fernet-encrypted private integration token
    location_id  sub-account (location) to read conversations from
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from foundry.core.exceptions import ConnectorFailure
from foundry.integrations.base import ConnectionTestResult, SourceConnector
from foundry.integrations.utils import decrypt_credential, describe_status_error, retry_request

logger = logging.getLogger(__name__)

BASE_URL = "https://services.leadconnectorhq.com"
API_VERSION = "2021-07-28"


def flatten_conversation(conv: dict[str, Any]) -> dict[str, Any]:
    """Flatten a conversation into the raw record shape used for mapping."""
    contact = conv.get("contact") or {}
    contact_name = f"{contact.get('firstName') or ''} {contact.get('lastName') or ''}".strip()
    return {
        "id": conv.get("id"),
        "type": conv.get("type"),
        "contactId": conv.get("contactId"),
        "contactEmail": contact.get("email"),
        "contactPhone": contact.get("phone"),
        "contactName": contact_name,
        "lastMessage": conv.get("lastMessageBody"),
        "lastMessageType": conv.get("lastMessageType"),
        "lastMessageDate": conv.get("lastMessageDate"),
        "unreadCount": conv.get("unreadCount"),
        "status": conv.get("status"),
        "createdAt": conv.get("dateAdded"),
        "updatedAt": conv.get("dateUpdated"),
    }


class GoHighLevelConnector(SourceConnector):
    """Connector for GoHighLevel conversations."""

    source_type = "gohighlevel"
    description = "GoHighLevel - CRM conversations"

    @property
    def location_id(self) -> str:
        return self._config_value("location_id", "locationId", default="")

    def _headers(self) -> dict[str, str]:
        api_key = decrypt_credential(self.source_type, self._config_value("api_key", "apiKey"))
        return {
            "Authorization": f"Bearer {api_key}",
            "Version": API_VERSION,
            "Accept": "application/json",
        }

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self._settings.connector_timeout_seconds)

    async def test_connection(self) -> ConnectionTestResult:
        """Check the token by reading the configured location."""
        try:
            headers = self._headers()
            async with self._client() as client:
                await retry_request(
                    client, "GET", f"{BASE_URL}/locations/{self.location_id}", headers=headers, max_retries=1
                )
        except httpx.HTTPStatusError as e:
            if e.response.status_code == 401:
                return ConnectionTestResult(success=False, message="Invalid API key")
            return ConnectionTestResult(success=False, message=f"Connection failed: {describe_status_error(e)}")
        except (httpx.RequestError, ConnectorFailure) as e:
            logger.warning("GoHighLevel connection test failed: %s", e)
            return ConnectionTestResult(success=False, message=f"Connection error: {e}")
        return ConnectionTestResult(success=True, message="Connection successful")

    async def fetch_data(self, limit: int | None = None, since: str | None = None) -> list[dict[str, Any]]:
        """Fetch conversations. The conversations endpoint has no ``since`` filter."""
        params: dict[str, Any] = {}
        if self.location_id:
            params["locationId"] = self.location_id
        if limit:
            params["limit"] = limit

        headers = self._headers()
        try:
            async with self._client() as client:
                response = await retry_request(
                    client,
                    "GET",
                    f"{BASE_URL}/conversations",
                    params=params,
                    headers=headers,
                    max_retries=self._settings.connector_max_retries,
                )
                payload = response.json()
        except httpx.HTTPStatusError as e:
            logger.error("GoHighLevel fetch failed: %s", e)
            raise ConnectorFailure(
                self.source_type, f"Failed to fetch GoHighLevel data: {describe_status_error(e)}"
            ) from e
        except httpx.RequestError as e:
            logger.error("GoHighLevel fetch connection error: %s", e)
            raise ConnectorFailure(self.source_type, f"GoHighLevel connection error: {e}") from e
        except ValueError as e:
            raise ConnectorFailure(self.source_type, "GoHighLevel returned malformed JSON") from e

        conversations = payload.get("conversations") if isinstance(payload, dict) else None
        records = [flatten_conversation(c) for c in conversations or [] if isinstance(c, dict)]
        logger.info("Fetched %d GoHighLevel conversation(s)", len(records))
        return records
