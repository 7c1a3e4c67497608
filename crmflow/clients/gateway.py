"""HTTP messaging gateways for SMS and WhatsApp."""

from typing import Any

import httpx

from crmflow.core.exceptions import ActionHandlerError
from crmflow.core.logging import get_logger

logger = get_logger(__name__)


class MessagingGateway:
    """Send text messages through a provider's HTTP send endpoint.

    The provider is expected to accept ``{"to", "message", ...}`` as JSON and
    answer 2xx on acceptance.
    """

    def __init__(
        self,
        channel: str,
        url: str,
        token: str = "",
        sender_id: str = "",
        timeout: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ):
        self._channel = channel
        self._url = url
        self._sender_id = sender_id
        headers = {"Authorization": f"Bearer {token}"} if token else {}
        self._client = client or httpx.AsyncClient(timeout=timeout, headers=headers)

    @property
    def channel(self) -> str:
        return self._channel

    async def send(self, action_type: str, to: str, message: str, **extra: Any) -> str | None:
        """Send one message.

        Returns:
            Provider message id, if the provider returned one

        Raises:
            ActionHandlerError: If the gateway is not configured or rejects the message
        """
        if not self._url:
            raise ActionHandlerError(action_type, f"{self._channel} gateway not configured")

        body: dict[str, Any] = {"to": to, "message": message, **extra}
        if self._sender_id:
            body["sender"] = self._sender_id

        try:
            response = await self._client.post(self._url, json=body)
        except httpx.HTTPError as e:
            raise ActionHandlerError(action_type, f"{self._channel} gateway unreachable: {e}") from e

        if response.is_error:
            raise ActionHandlerError(
                action_type,
                f"{self._channel} gateway returned {response.status_code}",
            )

        logger.info("Message sent", channel=self._channel)
        try:
            result = response.json()
        except ValueError:
            return None
        if isinstance(result, dict):
            message_id = result.get("message_id") or result.get("id")
            return str(message_id) if message_id is not None else None
        return None

    async def close(self) -> None:
        """Close HTTP client."""
        await self._client.aclose()
