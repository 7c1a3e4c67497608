"""Outbound webhook action handler."""

from typing import Literal

import httpx
from pydantic import BaseModel, Field, field_validator

from crmflow.actions.base import ActionContext, ActionHandler, HandlerResult
from crmflow.actions.templating import TemplateRenderer
from crmflow.core.config import Settings, get_settings
from crmflow.core.logging import get_logger
from crmflow.models.rule import ActionType

logger = get_logger(__name__)


class WebhookConfig(BaseModel):
    url: str = Field(..., description="Endpoint receiving the payload")
    method: Literal["POST", "PUT", "PATCH"] = "POST"
    headers: dict[str, str] = Field(default_factory=dict)
    timeout: float | None = Field(default=None, gt=0, description="Request timeout in seconds")

    @field_validator("url")
    @classmethod
    def validate_url(cls, value: str) -> str:
        if not value.startswith(("http://", "https://")):
            raise ValueError("webhook url must be http(s)")
        return value

    @field_validator("method", mode="before")
    @classmethod
    def upper_method(cls, value: str) -> str:
        return value.upper() if isinstance(value, str) else value


class WebhookHandler(ActionHandler):
    """POST the event payload as JSON to an external endpoint.

    Non-2xx responses and transport errors (including timeouts) are failed
    results; nothing is raised to the dispatcher.
    """

    config_model = WebhookConfig

    def __init__(
        self,
        settings: Settings | None = None,
        client: httpx.AsyncClient | None = None,
        renderer: TemplateRenderer | None = None,
    ):
        super().__init__(renderer)
        self._settings = settings or get_settings()
        self._client = client or httpx.AsyncClient()

    @property
    def action_type(self) -> ActionType:
        return ActionType.WEBHOOK

    def _timeout(self, config: WebhookConfig) -> float:
        requested = config.timeout or self._settings.webhook_default_timeout_seconds
        return min(requested, self._settings.webhook_max_timeout_seconds)

    async def execute(self, config: WebhookConfig, context: ActionContext) -> HandlerResult:
        headers = {
            **config.headers,
            "X-Workflow-Trigger": context.trigger_event,
            "X-Workflow-Rule": context.rule_id,
        }
        try:
            response = await self._client.request(
                config.method,
                config.url,
                json=context.payload,
                headers=headers,
                timeout=self._timeout(config),
            )
        except httpx.TimeoutException:
            return HandlerResult(success=False, detail=f"Webhook timed out after {self._timeout(config)}s")
        except httpx.HTTPError as e:
            return HandlerResult(success=False, detail=f"Webhook request failed: {e}")
        except (TypeError, ValueError) as e:
            return HandlerResult(success=False, detail=f"Payload is not JSON serializable: {e}")

        if not response.is_success:
            logger.warning(
                "Webhook returned error status",
                rule_id=context.rule_id,
                status=response.status_code,
            )
            return HandlerResult(success=False, detail=f"Webhook returned {response.status_code}")

        return HandlerResult(success=True, detail=f"Webhook returned {response.status_code}")

    async def close(self) -> None:
        """Close HTTP client."""
        await self._client.aclose()
