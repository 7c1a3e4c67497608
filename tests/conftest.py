"""Pytest configuration and fixtures."""

from typing import Any, AsyncIterator

import pytest
import pytest_asyncio
from fakeredis.aioredis import FakeRedis
from pydantic import BaseModel, ConfigDict

from crmflow.actions.base import ActionContext, ActionHandler, HandlerResult
from crmflow.actions.registry import ActionRegistry
from crmflow.core.exceptions import ActionHandlerError
from crmflow.models.execution import ExecutionRecord
from crmflow.models.rule import ActionType, WorkflowRule


class AnyConfig(BaseModel):
    model_config = ConfigDict(extra="allow")


class RecordingHandler(ActionHandler):
    """Stub collaborator: records calls, optionally fails."""

    config_model = AnyConfig

    def __init__(self, kind: ActionType, calls: list, fail: bool = False, raises: Exception | None = None):
        super().__init__()
        self._kind = kind
        self._calls = calls
        self._fail = fail
        self._raises = raises

    @property
    def action_type(self) -> ActionType:
        return self._kind

    async def execute(self, config: AnyConfig, context: ActionContext) -> HandlerResult:
        self._calls.append((self._kind.value, context.payload, config.model_dump()))
        if self._raises is not None:
            raise self._raises
        if self._fail:
            raise ActionHandlerError(self._kind.value, "collaborator down")
        return HandlerResult(success=True, detail="ok")


class InMemoryExecutionLog:
    """Execution log double that keeps records in a list."""

    def __init__(self) -> None:
        self.records: list[ExecutionRecord] = []

    async def append(self, record: ExecutionRecord) -> None:
        self.records.append(record)


class InMemoryRuleStore:
    """Rule store double serving active rules by trigger."""

    def __init__(self, rules: list[WorkflowRule]):
        self._rules = rules
        self.requested: list[str] = []

    async def list_active_by_trigger(self, trigger: str) -> list[WorkflowRule]:
        self.requested.append(trigger)
        return [r for r in self._rules if r.trigger_event.value == trigger and r.is_active]


@pytest.fixture
def calls() -> list:
    return []


@pytest.fixture
def stub_registry(calls: list) -> ActionRegistry:
    """Every action kind wired to a succeeding recording handler."""
    return ActionRegistry([RecordingHandler(kind, calls) for kind in ActionType])


@pytest_asyncio.fixture
async def fake_redis() -> AsyncIterator[FakeRedis]:
    """In-process Redis for storage tests."""
    redis = FakeRedis(decode_responses=True)
    yield redis
    await redis.flushall()
    await redis.aclose()


@pytest.fixture
def converted_rule_data() -> dict[str, Any]:
    """Lead conversion rule as the rule-authoring UI stores it."""
    return {
        "rule_id": "wf_converted",
        "name": "Lead converted follow-up",
        "trigger_event": "lead_status_changed",
        "is_active": True,
        "conditions": [
            {"field": "status", "operator": "equals", "value": "converted"},
        ],
        "actions": [
            {"type": "create_task", "config": {"title": "Prepare sale agreement", "due_in_days": 2}},
            {
                "type": "send_email",
                "config": {
                    "to_field": "email",
                    "subject": "Welcome aboard",
                    "body": "Hi {{ name }}, thanks for choosing us.",
                },
            },
        ],
    }
