"""Teamwork Desk connector.

Pulls helpdesk tickets through the Desk v1 API and flattens each ticket
into a raw record.

Config keys:
    subdomain   account subdomain (``{subdomain}.teamwork.com``)
    api_key     Fernet-encrypted API key
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from foundry.core.exceptions import ConnectorFailure
from foundry.integrations.base import ConnectionTestResult, SourceConnector
from foundry.integrations.utils import decrypt_credential, describe_status_error, retry_request

logger = logging.getLogger(__name__)


def flatten_ticket(ticket: dict[str, Any]) -> dict[str, Any]:
    """Flatten a Desk ticket into the raw record shape used for mapping."""
    customer = ticket.get("customer") or {}
    assignee = ticket.get("assignee") or {}
    tags = ticket.get("tags")
    return {
        "id": ticket.get("id"),
        "subject": ticket.get("subject"),
        "content": ticket.get("preview") or ticket.get("description"),
        "status": ticket.get("status"),
        "priority": ticket.get("priority"),
        "customerEmail": customer.get("email"),
        "customerName": customer.get("name"),
        "assignedTo": assignee.get("name"),
        "createdAt": ticket.get("createdAt"),
        "updatedAt": ticket.get("updatedAt"),
        "tags": ", ".join(str(t) for t in tags) if isinstance(tags, list) else None,
    }


class TeamworkConnector(SourceConnector):
    """Connector for Teamwork Desk helpdesk tickets."""

    source_type = "teamwork"
    description = "Teamwork Desk - Helpdesk tickets"

    @property
    def base_url(self) -> str:
        subdomain = self._config_value("subdomain")
        if not subdomain:
            raise ConnectorFailure(self.source_type, "Teamwork subdomain not configured")
        return f"https://{subdomain}.teamwork.com"

    def _auth(self) -> httpx.BasicAuth:
        api_key = decrypt_credential(self.source_type, self._config_value("api_key", "apiKey"))
        return httpx.BasicAuth(api_key, "x")

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self._settings.connector_timeout_seconds, auth=self._auth())

    async def test_connection(self) -> ConnectionTestResult:
        """Check the API key against the ``me`` endpoint."""
        try:
            async with self._client() as client:
                await retry_request(client, "GET", f"{self.base_url}/desk/v1/me.json", max_retries=1)
        except httpx.HTTPStatusError as e:
            if e.response.status_code == 401:
                return ConnectionTestResult(success=False, message="Invalid API key")
            return ConnectionTestResult(success=False, message=f"Connection failed: {describe_status_error(e)}")
        except (httpx.RequestError, ConnectorFailure) as e:
            logger.warning("Teamwork connection test failed: %s", e)
            return ConnectionTestResult(success=False, message=f"Connection error: {e}")
        return ConnectionTestResult(success=True, message="Connection successful")

    async def fetch_data(self, limit: int | None = None, since: str | None = None) -> list[dict[str, Any]]:
        params: dict[str, Any] = {}
        if limit:
            params["pageSize"] = limit
        if since:
            params["updatedAfter"] = since

        try:
            async with self._client() as client:
                response = await retry_request(
                    client,
                    "GET",
                    f"{self.base_url}/desk/v1/tickets.json",
                    params=params,
                    max_retries=self._settings.connector_max_retries,
                )
                payload = response.json()
        except httpx.HTTPStatusError as e:
            logger.error("Teamwork fetch failed: %s", e)
            raise ConnectorFailure(
                self.source_type, f"Failed to fetch Teamwork data: {describe_status_error(e)}"
            ) from e
        except httpx.RequestError as e:
            logger.error("Teamwork fetch connection error: %s", e)
            raise ConnectorFailure(self.source_type, f"Teamwork connection error: {e}") from e
        except ValueError as e:
            raise ConnectorFailure(self.source_type, "Teamwork returned malformed JSON") from e

        tickets = payload.get("tickets") if isinstance(payload, dict) else None
        records = [flatten_ticket(t) for t in tickets or [] if isinstance(t, dict)]
        logger.info("Fetched %d Teamwork ticket(s)", len(records))
        return records
