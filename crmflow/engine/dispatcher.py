"""Action dispatch for fired workflow rules."""

import asyncio
import copy
import time
import uuid
from typing import Any

from crmflow.actions.base import ActionContext, HandlerResult
from crmflow.actions.registry import ActionRegistry
from crmflow.core.config import get_settings
from crmflow.core.exceptions import StorageUnavailableError
from crmflow.core.logging import get_logger
from crmflow.models.execution import ActionOutcome, ExecutionRecord
from crmflow.models.rule import Action, WorkflowRule
from crmflow.observability.metrics import ACTION_LATENCY, ACTIONS_EXECUTED
from crmflow.storage.execution_log import ExecutionLog

logger = get_logger(__name__)


class ActionDispatcher:
    """Runs a rule's actions in order and records every attempt.

    Best effort: an unknown kind, a failed handler or a timeout is recorded
    and the next action still runs.
    """

    def __init__(
        self,
        registry: ActionRegistry,
        execution_log: ExecutionLog,
        action_timeout: float | None = None,
    ):
        self._registry = registry
        self._execution_log = execution_log
        self._action_timeout = action_timeout or get_settings().action_timeout_seconds

    @property
    def registry(self) -> ActionRegistry:
        return self._registry

    async def dispatch(self, rule: WorkflowRule, payload: dict[str, Any]) -> list[ExecutionRecord]:
        """Execute every action of a fired rule.

        Args:
            rule: Rule whose conditions passed
            payload: Trigger payload

        Returns:
            One execution record per action, in action order
        """
        records: list[ExecutionRecord] = []
        for index, action in enumerate(rule.actions):
            record = await self._run_action(rule, index, action, payload)
            records.append(record)
            await self._record(record)
        return records

    async def _run_action(
        self,
        rule: WorkflowRule,
        index: int,
        action: Action,
        payload: dict[str, Any],
    ) -> ExecutionRecord:
        snapshot = copy.deepcopy(payload)
        start = time.perf_counter()
        result, outcome = await self._invoke(rule, action, snapshot)
        latency = time.perf_counter() - start

        ACTIONS_EXECUTED.labels(action_type=action.type, outcome=outcome.value).inc()
        if outcome != ActionOutcome.SKIPPED:
            ACTION_LATENCY.labels(action_type=action.type).observe(latency)

        logger.info(
            "Action executed",
            rule_id=rule.rule_id,
            action_index=index,
            action_type=action.type,
            outcome=outcome.value,
            detail=result.detail,
        )

        return ExecutionRecord(
            execution_id=f"exec_{uuid.uuid4().hex[:12]}",
            rule_id=rule.rule_id,
            trigger_event=rule.trigger_event.value,
            action_index=index,
            action_type=action.type,
            action_config=copy.deepcopy(action.config),
            payload=snapshot,
            outcome=outcome,
            detail=result.detail,
            latency_ms=int(latency * 1000),
        )

    async def _invoke(
        self,
        rule: WorkflowRule,
        action: Action,
        payload: dict[str, Any],
    ) -> tuple[HandlerResult, ActionOutcome]:
        kind = action.kind
        if kind is None:
            logger.warning("Unknown action kind, skipping", rule_id=rule.rule_id, action_type=action.type)
            return HandlerResult(success=False, detail=f"Unknown action kind: {action.type}"), ActionOutcome.SKIPPED

        handler = self._registry.get(kind)
        if handler is None:
            logger.warning("No handler registered, skipping", rule_id=rule.rule_id, action_type=action.type)
            return HandlerResult(success=False, detail=f"No handler registered for {action.type}"), ActionOutcome.SKIPPED

        context = ActionContext(
            rule_id=rule.rule_id,
            trigger_event=rule.trigger_event.value,
            payload=copy.deepcopy(payload),
        )
        try:
            result = await asyncio.wait_for(
                handler.run(dict(action.config), context),
                timeout=self._action_timeout,
            )
        except asyncio.TimeoutError:
            result = HandlerResult(success=False, detail=f"Timed out after {self._action_timeout}s")
        except Exception as e:
            logger.error(
                "Action handler raised",
                rule_id=rule.rule_id,
                action_type=action.type,
                error=str(e),
                exc_info=True,
            )
            result = HandlerResult(success=False, detail=f"Unexpected error: {e}")

        return result, ActionOutcome.SUCCESS if result.success else ActionOutcome.FAILED

    async def _record(self, record: ExecutionRecord) -> None:
        try:
            await self._execution_log.append(record)
        except StorageUnavailableError as e:
            logger.error(
                "Failed to write execution record",
                rule_id=record.rule_id,
                execution_id=record.execution_id,
                error=str(e),
            )

    async def close(self) -> None:
        """Release handler resources."""
        await self._registry.close()
