"""Workflow orchestrator: trigger -> rules -> conditions -> actions."""

from dataclasses import dataclass, field
from typing import Any

from redis.asyncio import Redis

from crmflow.actions.registry import ActionRegistry, build_action_registry
from crmflow.core.config import Settings, get_settings
from crmflow.core.logging import get_logger
from crmflow.engine.conditions import ConditionEvaluator
from crmflow.engine.dispatcher import ActionDispatcher
from crmflow.models.execution import ExecutionRecord
from crmflow.models.rule import WorkflowRule
from crmflow.models.trigger import TriggerRegistry
from crmflow.observability.metrics import RULES_EVALUATED, RULES_FIRED, TRIGGERS_RECEIVED
from crmflow.observability.tracing import TraceContext
from crmflow.storage.execution_log import ExecutionLog
from crmflow.storage.rule_store import RuleStore

logger = get_logger(__name__)


@dataclass
class TriggerSummary:
    """What one trigger invocation did. Informational only."""

    trigger: str
    rules_matched: int = 0
    rules_fired: list[str] = field(default_factory=list)
    records: list[ExecutionRecord] = field(default_factory=list)


class WorkflowEngine:
    """Processes trigger events against the stored workflow rules."""

    def __init__(
        self,
        rule_store: RuleStore,
        dispatcher: ActionDispatcher,
        triggers: TriggerRegistry,
        evaluator: ConditionEvaluator | None = None,
    ):
        self._rule_store = rule_store
        self._dispatcher = dispatcher
        self._triggers = triggers
        self._evaluator = evaluator or ConditionEvaluator()

    @property
    def triggers(self) -> TriggerRegistry:
        return self._triggers

    @property
    def actions(self) -> ActionRegistry:
        return self._dispatcher.registry

    async def process_trigger(self, trigger_name: str, payload: dict[str, Any]) -> TriggerSummary:
        """Run every active rule bound to a trigger.

        Rules are processed in storage order; each is gated by its conditions
        and, when they pass, its actions are dispatched.

        Args:
            trigger_name: Registered trigger name
            payload: Event payload

        Returns:
            Summary of matched/fired rules and execution records

        Raises:
            ValueError: If trigger_name is empty
            StorageUnavailableError: If rules cannot be loaded
        """
        if not trigger_name:
            raise ValueError("trigger name must be non-empty")

        summary = TriggerSummary(trigger=trigger_name)
        if not self._triggers.is_registered(trigger_name):
            logger.warning("Unregistered trigger ignored", trigger=trigger_name)
            return summary

        with TraceContext(trigger=trigger_name):
            TRIGGERS_RECEIVED.labels(trigger=trigger_name).inc()
            rules = await self._rule_store.list_active_by_trigger(trigger_name)
            summary.rules_matched = len(rules)
            if not rules:
                logger.debug("No active rules for trigger", trigger=trigger_name)
                return summary

            logger.info("Processing trigger", trigger=trigger_name, rule_count=len(rules))

            for rule in rules:
                records = await self.execute_workflow(rule, payload)
                if records is not None:
                    summary.rules_fired.append(rule.rule_id)
                    summary.records.extend(records)

            logger.info(
                "Trigger processing complete",
                trigger=trigger_name,
                rules_fired=len(summary.rules_fired),
                actions=len(summary.records),
            )
        return summary

    async def execute_workflow(
        self,
        rule: WorkflowRule,
        payload: dict[str, Any],
    ) -> list[ExecutionRecord] | None:
        """Evaluate one rule and dispatch its actions if it fires.

        Returns:
            Execution records, or None if the conditions did not pass
        """
        RULES_EVALUATED.labels(trigger=rule.trigger_event.value).inc()
        if not self.dry_run(rule, payload):
            logger.debug("Rule conditions not met", rule_id=rule.rule_id)
            return None

        RULES_FIRED.labels(trigger=rule.trigger_event.value).inc()
        logger.info("Rule fired", rule_id=rule.rule_id, actions=len(rule.actions))
        return await self._dispatcher.dispatch(rule, payload)

    def dry_run(self, rule: WorkflowRule, payload: dict[str, Any]) -> bool:
        """Evaluate a rule's conditions without running any action or counting metrics."""
        return self._evaluator.evaluate(rule.conditions, payload)

    async def close(self) -> None:
        """Release action handler resources."""
        await self._dispatcher.close()


def build_workflow_engine(redis: Redis, settings: Settings | None = None) -> WorkflowEngine:
    """Wire the engine with its production collaborators.

    Called once per process; the result is passed to whatever needs it.
    """
    settings = settings or get_settings()
    dispatcher = ActionDispatcher(
        build_action_registry(settings),
        ExecutionLog(redis),
        action_timeout=settings.action_timeout_seconds,
    )
    return WorkflowEngine(RuleStore(redis), dispatcher, TriggerRegistry())
