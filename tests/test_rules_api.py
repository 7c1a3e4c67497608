"""Tests for rule management behaviors."""

from datetime import datetime

import pytest
from conftest import InMemoryExecutionLog, InMemoryRuleStore, RecordingHandler
from pydantic import ValidationError

from crmflow.actions.registry import ActionRegistry
from crmflow.api.routes import history as history_api
from crmflow.api.routes import rules as rules_api
from crmflow.api.routes import test as test_api
from crmflow.api.routes import triggers as triggers_api
from crmflow.engine.dispatcher import ActionDispatcher
from crmflow.engine.workflow import WorkflowEngine
from crmflow.models.execution import ActionOutcome, ExecutionRecord
from crmflow.models.rule import Action, ActionType, Condition, RuleMetadata, WorkflowRule
from crmflow.models.trigger import TriggerEvent, TriggerRegistry
from crmflow.schemas.common import PaginationParams
from crmflow.schemas.rule import RuleCreate, RuleStatusUpdate, RuleUpdate
from crmflow.schemas.test import DryRunRequest, ValidateRequest


class FakeRuleStore:
    """In-memory rule store for API tests."""

    def __init__(self, rules: list[WorkflowRule]):
        self._rules = {rule.rule_id: rule for rule in rules}
        self.include_inactive: bool | None = None

    async def create(self, rule: WorkflowRule) -> WorkflowRule:
        self._rules[rule.rule_id] = rule
        return rule

    async def list_all(self) -> list[WorkflowRule]:
        return list(self._rules.values())

    async def list_by_trigger(self, trigger: str, include_inactive: bool = False) -> list[WorkflowRule]:
        self.include_inactive = include_inactive
        return [
            rule for rule in self._rules.values()
            if rule.trigger_event.value == trigger and (include_inactive or rule.is_active)
        ]

    async def get(self, rule_id: str) -> WorkflowRule | None:
        return self._rules.get(rule_id)

    async def update(self, rule_id: str, rule: WorkflowRule) -> WorkflowRule | None:
        if rule_id not in self._rules:
            return None
        rule.metadata.version += 1
        self._rules[rule_id] = rule
        return rule

    async def delete(self, rule_id: str) -> bool:
        return self._rules.pop(rule_id, None) is not None

    async def set_active(self, rule_id: str, active: bool) -> bool:
        rule = self._rules.get(rule_id)
        if rule is None:
            return False
        rule.is_active = active
        return True


class FakeExecutionLog:
    def __init__(self, records: list[ExecutionRecord]):
        self._records = records

    async def list_for_rule(self, rule_id: str, limit: int | None = None) -> list[ExecutionRecord]:
        return [r for r in self._records if r.rule_id == rule_id]


def make_rule(
    rule_id: str,
    name: str,
    is_active: bool,
    priority: int,
    trigger_event: TriggerEvent,
    created_at: datetime,
) -> WorkflowRule:
    return WorkflowRule(
        rule_id=rule_id,
        name=name,
        description="",
        trigger_event=trigger_event,
        is_active=is_active,
        priority=priority,
        conditions=[Condition(field="status", operator="equals", value="converted")],
        actions=[Action(type="create_task", config={"title": "Follow up"})],
        metadata=RuleMetadata(created_at=created_at, updated_at=created_at),
    )


def make_record(index: int, outcome: ActionOutcome, action_type: str = "create_task") -> ExecutionRecord:
    return ExecutionRecord(
        execution_id=f"exec_{index}",
        rule_id="rule_a",
        trigger_event="lead_status_changed",
        action_index=0,
        action_type=action_type,
        outcome=outcome,
    )


@pytest.fixture
def pagination() -> PaginationParams:
    return PaginationParams(page=1, page_size=20)


def test_rule_create_requires_at_least_one_action() -> None:
    with pytest.raises(ValidationError):
        RuleCreate(name="No actions", trigger_event="lead_created", actions=[])


def test_rule_create_rejects_unknown_operator() -> None:
    with pytest.raises(ValidationError):
        RuleCreate(
            name="Bad operator",
            trigger_event="lead_created",
            conditions=[{"field": "status", "operator": "starts_with", "value": "con"}],
            actions=[{"type": "create_task", "config": {"title": "x"}}],
        )


def test_rule_update_actions_requires_non_empty() -> None:
    with pytest.raises(ValidationError):
        RuleUpdate(actions=[])


@pytest.mark.asyncio
async def test_create_rule_assigns_id(pagination: PaginationParams) -> None:
    store = FakeRuleStore([])

    response = await rules_api.create_rule(
        data=RuleCreate(
            name="Welcome new client",
            trigger_event="client_created",
            actions=[{"type": "send_email", "config": {"to_field": "email", "subject": "Hi", "body": "Welcome"}}],
            created_by="agent_7",
        ),
        store=store,
    )

    assert response.data is not None
    assert response.data.rule_id.startswith("wf_")
    stored = await store.get(response.data.rule_id)
    assert stored.trigger_event == TriggerEvent.CLIENT_CREATED
    assert stored.metadata.created_by == "agent_7"


@pytest.mark.asyncio
async def test_list_rules_filters_trigger_active_and_name(pagination: PaginationParams) -> None:
    rules = [
        make_rule("rule_a", "Alpha Rule", True, 100, TriggerEvent.LEAD_STATUS_CHANGED, datetime(2024, 1, 1)),
        make_rule("rule_b", "Beta Rule", False, 50, TriggerEvent.LEAD_STATUS_CHANGED, datetime(2024, 1, 2)),
        make_rule("rule_c", "Beta Other", False, 10, TriggerEvent.SALE_CREATED, datetime(2024, 1, 3)),
    ]
    store = FakeRuleStore(rules)

    response = await rules_api.list_rules(
        store=store,
        pagination=pagination,
        trigger_event=TriggerEvent.LEAD_STATUS_CHANGED,
        is_active=False,
        name_contains="beta",
    )

    assert store.include_inactive is True
    assert response.total == 1
    assert response.data[0].rule_id == "rule_b"


@pytest.mark.asyncio
async def test_list_rules_paginates() -> None:
    rules = [
        make_rule(f"rule_{i}", f"Rule {i}", True, 100, TriggerEvent.LEAD_CREATED, datetime(2024, 1, 1))
        for i in range(5)
    ]

    response = await rules_api.list_rules(
        store=FakeRuleStore(rules),
        pagination=PaginationParams(page=2, page_size=2),
        trigger_event=None,
        is_active=None,
        name_contains=None,
    )

    assert response.total == 5
    assert [r.rule_id for r in response.data] == ["rule_2", "rule_3"]


@pytest.mark.asyncio
async def test_patch_rule_updates_selected_fields_only() -> None:
    rule = make_rule("rule_patch", "Patch Rule", True, 100, TriggerEvent.LEAD_STATUS_CHANGED, datetime(2024, 1, 1))
    store = FakeRuleStore([rule])

    response = await rules_api.update_rule(
        rule_id="rule_patch",
        data=RuleUpdate(description="Updated description", is_active=False),
        store=store,
    )

    assert response.data is not None
    assert response.data.description == "Updated description"
    assert response.data.is_active is False
    assert response.data.name == "Patch Rule"
    assert response.data.trigger_event == TriggerEvent.LEAD_STATUS_CHANGED
    assert response.data.conditions[0].value == "converted"


@pytest.mark.asyncio
async def test_replace_rule_overwrites_fields() -> None:
    rule = make_rule("rule_replace", "Replace Rule", True, 100, TriggerEvent.LEAD_STATUS_CHANGED, datetime(2024, 1, 1))
    store = FakeRuleStore([rule])
    replacement = RuleCreate(
        name="Replacement",
        description="Replaced body",
        trigger_event="payment_received",
        is_active=False,
        priority=300,
        conditions=[{"field": "amount", "operator": "greater_than", "value": 1000}],
        actions=[{"type": "generate_document", "config": {"template_id": "receipt"}}],
    )

    response = await rules_api.replace_rule(rule_id="rule_replace", data=replacement, store=store)

    assert response.data is not None
    assert response.data.name == "Replacement"
    assert response.data.is_active is False
    assert response.data.priority == 300
    assert response.data.trigger_event == TriggerEvent.PAYMENT_RECEIVED
    assert response.data.actions[0].type == "generate_document"
    assert response.data.metadata.created_at == datetime(2024, 1, 1)


@pytest.mark.asyncio
async def test_status_update_and_delete() -> None:
    rule = make_rule("rule_a", "Alpha", True, 100, TriggerEvent.LEAD_CREATED, datetime(2024, 1, 1))
    store = FakeRuleStore([rule])

    response = await rules_api.update_rule_status(
        rule_id="rule_a",
        data=RuleStatusUpdate(is_active=False),
        store=store,
    )
    assert response.data.is_active is False

    deleted = await rules_api.delete_rule(rule_id="rule_a", store=store)
    assert deleted.message == "Rule rule_a deleted"
    assert await store.get("rule_a") is None


@pytest.mark.asyncio
async def test_history_filters_by_outcome(pagination: PaginationParams) -> None:
    rule = make_rule("rule_a", "Alpha", True, 100, TriggerEvent.LEAD_STATUS_CHANGED, datetime(2024, 1, 1))
    log = FakeExecutionLog([
        make_record(3, ActionOutcome.FAILED, "send_sms"),
        make_record(2, ActionOutcome.SUCCESS),
        make_record(1, ActionOutcome.FAILED),
    ])

    response = await history_api.get_rule_history(
        rule_id="rule_a",
        store=FakeRuleStore([rule]),
        execution_log=log,
        pagination=pagination,
        outcome=ActionOutcome.FAILED,
        action_type=None,
    )

    assert response.total == 2
    assert [r.execution_id for r in response.data] == ["exec_3", "exec_1"]


@pytest.mark.asyncio
async def test_dry_run_does_not_dispatch(
    converted_rule_data: dict,
    stub_registry: ActionRegistry,
    calls: list,
) -> None:
    rule = WorkflowRule.model_validate(converted_rule_data)
    log = InMemoryExecutionLog()
    engine = WorkflowEngine(
        InMemoryRuleStore([rule]),
        ActionDispatcher(stub_registry, log, action_timeout=1),
        TriggerRegistry(),
    )

    response = await test_api.test_rule(
        data=DryRunRequest(rule_id="wf_converted", payloads=[{"status": "converted"}, {"status": "lost"}]),
        store=FakeRuleStore([rule]),
        engine=engine,
    )

    assert [r.would_fire for r in response.data.results] == [True, False]
    assert response.data.results[0].actions == ["create_task", "send_email"]
    assert calls == []
    assert log.records == []


@pytest.mark.asyncio
async def test_validate_reports_errors_and_warnings() -> None:
    invalid = await test_api.validate_rule(
        ValidateRequest(rule={
            "trigger_event": "lead_created",
            "conditions": [{"field": "status", "operator": "starts_with", "value": "n"}],
        })
    )
    assert invalid.data.valid is False
    assert "operator" in invalid.data.errors[0]

    valid = await test_api.validate_rule(
        ValidateRequest(rule={
            "trigger_event": "lead_created",
            "actions": [{"type": "send_fax", "config": {}}],
        })
    )
    assert valid.data.valid is True
    assert valid.data.warnings == ["actions.0: unknown action kind 'send_fax' will be skipped"]


@pytest.mark.asyncio
async def test_fire_trigger_runs_workflows(
    converted_rule_data: dict,
    stub_registry: ActionRegistry,
    calls: list,
) -> None:
    rule = WorkflowRule.model_validate(converted_rule_data)
    engine = WorkflowEngine(
        InMemoryRuleStore([rule]),
        ActionDispatcher(stub_registry, InMemoryExecutionLog(), action_timeout=1),
        TriggerRegistry(),
    )

    response = await triggers_api.fire_trigger(
        trigger_name="lead_status_changed",
        engine=engine,
        payload={"status": "converted", "email": "a@example.com", "name": "Ana"},
    )

    assert response.data.rules_fired == ["wf_converted"]
    assert len(response.data.records) == 2
    assert len(calls) == 2


def make_engine(registry: ActionRegistry) -> WorkflowEngine:
    return WorkflowEngine(
        InMemoryRuleStore([]),
        ActionDispatcher(registry, InMemoryExecutionLog(), action_timeout=1),
        TriggerRegistry(),
    )


@pytest.mark.asyncio
async def test_action_catalogue_lists_registered_handlers(stub_registry: ActionRegistry) -> None:
    response = await triggers_api.list_actions(engine=make_engine(stub_registry))

    names = [item.name for item in response.data]
    assert names[0] == "assign_to_user"
    assert names[-1] == "webhook"
    assert len(names) == 10
    assert all(item.description for item in response.data)


@pytest.mark.asyncio
async def test_action_catalogue_omits_kinds_without_handler(calls: list) -> None:
    registry = ActionRegistry([
        RecordingHandler(ActionType.WEBHOOK, calls),
        RecordingHandler(ActionType.CREATE_TASK, calls),
    ])

    response = await triggers_api.list_actions(engine=make_engine(registry))

    assert [item.name for item in response.data] == ["create_task", "webhook"]
