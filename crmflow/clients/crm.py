"""CRM record API client."""

from typing import Any

import httpx

from crmflow.core.config import Settings, get_settings
from crmflow.core.exceptions import ActionHandlerError
from crmflow.core.logging import get_logger

logger = get_logger(__name__)


class CrmClient:
    """Thin async client for the CRM's record endpoints.

    Every call raises ActionHandlerError on network errors or non-2xx
    responses, tagged with the action kind that issued it.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        client: httpx.AsyncClient | None = None,
    ):
        settings = settings or get_settings()
        headers = {"Accept": "application/json"}
        if settings.crm_api_token:
            headers["Authorization"] = f"Bearer {settings.crm_api_token}"
        self._client = client or httpx.AsyncClient(
            base_url=settings.crm_api_url.rstrip("/"),
            headers=headers,
            timeout=settings.action_timeout_seconds,
        )

    async def update_record(
        self,
        action_type: str,
        entity_type: str,
        entity_id: str,
        fields: dict[str, Any],
    ) -> dict[str, Any]:
        """Patch fields on a lead/client/sale/... record."""
        return await self._request(
            action_type, "PATCH", f"/records/{entity_type}/{entity_id}", json=fields
        )

    async def create_task(self, action_type: str, task: dict[str, Any]) -> dict[str, Any]:
        return await self._request(action_type, "POST", "/tasks", json=task)

    async def add_campaign_member(
        self,
        action_type: str,
        campaign_id: str,
        entity_type: str,
        entity_id: str,
    ) -> dict[str, Any]:
        return await self._request(
            action_type,
            "POST",
            f"/campaigns/{campaign_id}/members",
            json={"entity_type": entity_type, "entity_id": entity_id},
        )

    async def create_notification(
        self, action_type: str, notification: dict[str, Any]
    ) -> dict[str, Any]:
        return await self._request(action_type, "POST", "/notifications", json=notification)

    async def _request(
        self,
        action_type: str,
        method: str,
        path: str,
        json: dict[str, Any],
    ) -> dict[str, Any]:
        try:
            response = await self._client.request(method, path, json=json)
        except httpx.HTTPError as e:
            raise ActionHandlerError(action_type, f"CRM API unreachable: {e}") from e

        if response.is_error:
            raise ActionHandlerError(
                action_type,
                f"CRM API {method} {path} returned {response.status_code}",
            )

        logger.debug("CRM API call succeeded", method=method, path=path, status=response.status_code)
        if not response.content:
            return {}
        try:
            body = response.json()
        except ValueError:
            return {}
        return body if isinstance(body, dict) else {"data": body}

    async def close(self) -> None:
        """Close HTTP client."""
        await self._client.aclose()
