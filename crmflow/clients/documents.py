"""Document generation service client."""

from typing import Any

import httpx

from crmflow.core.exceptions import ActionHandlerError


class DocumentServiceClient:
    """Renders CRM document templates (agreements, receipts, ...) remotely."""

    def __init__(self, base_url: str, timeout: float = 15.0, client: httpx.AsyncClient | None = None):
        self._base_url = base_url.rstrip("/")
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def generate(
        self,
        template_id: str,
        data: dict[str, Any],
        output_format: str = "pdf",
        file_name: str | None = None,
    ) -> dict[str, Any]:
        """Request a document render.

        Returns:
            Service response, typically ``{"document_id", "url"}``

        Raises:
            ActionHandlerError: If the service is not configured or fails
        """
        if not self._base_url:
            raise ActionHandlerError("generate_document", "document service not configured")

        body: dict[str, Any] = {
            "template_id": template_id,
            "format": output_format,
            "data": data,
        }
        if file_name:
            body["file_name"] = file_name

        try:
            response = await self._client.post(f"{self._base_url}/documents", json=body)
        except httpx.HTTPError as e:
            raise ActionHandlerError("generate_document", f"document service unreachable: {e}") from e

        if response.is_error:
            raise ActionHandlerError(
                "generate_document",
                f"document service returned {response.status_code}",
            )
        try:
            result = response.json()
        except ValueError:
            return {}
        return result if isinstance(result, dict) else {}

    async def close(self) -> None:
        await self._client.aclose()
