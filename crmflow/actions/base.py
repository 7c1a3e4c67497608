"""Base class for workflow action handlers."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, ClassVar, Generic, TypeVar

from pydantic import BaseModel, ValidationError

from crmflow.actions.templating import TemplateError, TemplateRenderer, build_context
from crmflow.core.exceptions import ActionHandlerError
from crmflow.core.logging import get_logger
from crmflow.engine.conditions import MISSING, resolve_field
from crmflow.models.rule import ActionType

logger = get_logger(__name__)

ConfigT = TypeVar("ConfigT", bound=BaseModel)


@dataclass
class HandlerResult:
    """Result of running one action."""

    success: bool
    detail: str = ""


@dataclass
class ActionContext:
    """What a handler knows about the run it belongs to."""

    rule_id: str
    trigger_event: str
    payload: dict[str, Any]

    def field(self, path: str) -> Any:
        """Payload value at a dotted path, or None if absent."""
        value = resolve_field(self.payload, path)
        return None if value is MISSING else value


class ActionHandler(ABC, Generic[ConfigT]):
    """Adapter between one action kind and one external collaborator.

    Subclasses declare ``config_model`` and implement ``execute``. Config
    strings are rendered as templates and validated before ``execute`` runs,
    so a bad config is a failed result rather than an exception.
    """

    config_model: ClassVar[type[BaseModel]]

    def __init__(self, renderer: TemplateRenderer | None = None):
        self._renderer = renderer or TemplateRenderer()

    @property
    @abstractmethod
    def action_type(self) -> ActionType:
        """Action kind this handler serves."""

    @abstractmethod
    async def execute(self, config: ConfigT, context: ActionContext) -> HandlerResult:
        """Perform the action.

        Raises:
            ActionHandlerError: If the collaborator call fails
        """

    async def run(self, config: dict[str, Any], context: ActionContext) -> HandlerResult:
        """Render, validate and execute an action config."""
        try:
            rendered = self._renderer.render_config(
                config,
                build_context(context.payload, context.trigger_event, context.rule_id),
            )
        except TemplateError as e:
            return HandlerResult(success=False, detail=f"Template error: {e}")

        try:
            parsed = self.config_model.model_validate(rendered)
        except ValidationError as e:
            return HandlerResult(
                success=False,
                detail=f"Invalid config: {e.error_count()} error(s): {_summarize(e)}",
            )

        try:
            return await self.execute(parsed, context)  # type: ignore[arg-type]
        except ActionHandlerError as e:
            logger.warning(
                "Action handler failed",
                action_type=self.action_type.value,
                rule_id=context.rule_id,
                error=str(e),
            )
            return HandlerResult(success=False, detail=str(e))

    def resolve_entity(
        self,
        context: ActionContext,
        entity_type: str | None,
        entity_id: str | int | None,
    ) -> tuple[str, str]:
        """Target record from config, falling back to payload entity_type/entity_id."""
        resolved_type = entity_type or context.field("entity_type")
        resolved_id = entity_id if entity_id not in (None, "") else context.field("entity_id")
        if not resolved_type or resolved_id in (None, ""):
            raise ActionHandlerError(
                self.action_type.value,
                "no target record (set entity_type/entity_id in config or payload)",
            )
        return str(resolved_type), str(resolved_id)

    async def close(self) -> None:
        """Clean up resources. Override if needed."""
        pass


def _summarize(error: ValidationError) -> str:
    parts = []
    for item in error.errors():
        location = ".".join(str(part) for part in item["loc"]) or "config"
        parts.append(f"{location}: {item['msg']}")
    return "; ".join(parts)
