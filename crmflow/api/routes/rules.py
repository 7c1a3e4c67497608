"""Workflow rule management API routes."""

import uuid
from datetime import datetime, timezone

from fastapi import APIRouter, HTTPException, Query

from crmflow.api.deps import PaginationDep, RuleStoreDep
from crmflow.core.logging import get_logger
from crmflow.models.rule import RuleMetadata, WorkflowRule
from crmflow.models.trigger import TriggerEvent
from crmflow.schemas.common import APIResponse, PaginatedResponse
from crmflow.schemas.rule import (
    RuleCreate,
    RuleCreateResponse,
    RuleResponse,
    RuleStatusUpdate,
    RuleUpdate,
)
from crmflow.storage.rule_store import RuleStore

logger = get_logger(__name__)

router = APIRouter(prefix="/rules", tags=["rules"])


def _new_rule_id() -> str:
    return f"wf_{datetime.now(timezone.utc).strftime('%Y%m%d')}_{uuid.uuid4().hex[:8]}"


def _not_found(rule_id: str) -> HTTPException:
    return HTTPException(status_code=404, detail=f"Rule {rule_id} not found")


async def _rule_or_404(store: RuleStore, rule_id: str) -> WorkflowRule:
    rule = await store.get(rule_id)
    if not rule:
        raise _not_found(rule_id)
    return rule


def _build_rule(rule_id: str, data: RuleCreate, metadata: RuleMetadata) -> WorkflowRule:
    return WorkflowRule(
        rule_id=rule_id,
        name=data.name,
        description=data.description,
        trigger_event=data.trigger_event,
        is_active=data.is_active,
        priority=data.priority,
        conditions=data.conditions,
        actions=data.actions,
        metadata=metadata,
    )


def _respond(rule: WorkflowRule) -> APIResponse[RuleResponse]:
    return APIResponse(data=RuleResponse.model_validate(rule.model_dump()))


@router.post("", response_model=APIResponse[RuleCreateResponse])
async def create_rule(
    data: RuleCreate,
    store: RuleStoreDep,
) -> APIResponse[RuleCreateResponse]:
    """Create a new workflow rule."""
    rule = _build_rule(_new_rule_id(), data, RuleMetadata(created_by=data.created_by))
    created = await store.create(rule)
    logger.info("Rule created", rule_id=created.rule_id, trigger=created.trigger_event.value)

    return APIResponse(
        data=RuleCreateResponse(
            rule_id=created.rule_id,
            created_at=created.metadata.created_at,
        )
    )


@router.get("", response_model=PaginatedResponse[RuleResponse])
async def list_rules(
    store: RuleStoreDep,
    pagination: PaginationDep,
    trigger_event: TriggerEvent | None = Query(default=None, description="Filter by trigger"),
    is_active: bool | None = Query(default=None, description="Filter by active status"),
    name_contains: str | None = Query(default=None, description="Filter by name substring"),
) -> PaginatedResponse[RuleResponse]:
    """List rules, highest priority first, with optional filtering."""
    if trigger_event:
        rules = await store.list_by_trigger(trigger_event.value, include_inactive=True)
    else:
        rules = await store.list_all()

    if is_active is not None:
        rules = [r for r in rules if r.is_active == is_active]
    if name_contains:
        needle = name_contains.lower()
        rules = [r for r in rules if needle in r.name.lower()]

    return PaginatedResponse[RuleResponse].paginate(
        [RuleResponse.model_validate(r.model_dump()) for r in rules],
        pagination,
    )


@router.get("/{rule_id}", response_model=APIResponse[RuleResponse])
async def get_rule(
    rule_id: str,
    store: RuleStoreDep,
) -> APIResponse[RuleResponse]:
    """Get a single rule by ID."""
    return _respond(await _rule_or_404(store, rule_id))


@router.put("/{rule_id}", response_model=APIResponse[RuleResponse])
async def replace_rule(
    rule_id: str,
    data: RuleCreate,
    store: RuleStoreDep,
) -> APIResponse[RuleResponse]:
    """Replace a rule's definition, keeping its id and creation metadata."""
    existing = await _rule_or_404(store, rule_id)

    result = await store.update(rule_id, _build_rule(rule_id, data, existing.metadata))
    if not result:
        raise _not_found(rule_id)
    return _respond(result)


@router.patch("/{rule_id}", response_model=APIResponse[RuleResponse])
async def update_rule(
    rule_id: str,
    data: RuleUpdate,
    store: RuleStoreDep,
) -> APIResponse[RuleResponse]:
    """Change only the fields present in the request body."""
    existing = await _rule_or_404(store, rule_id)

    merged = existing.model_dump()
    merged.update(data.model_dump(exclude_unset=True))

    result = await store.update(rule_id, WorkflowRule.model_validate(merged))
    if not result:
        raise _not_found(rule_id)
    return _respond(result)


@router.delete("/{rule_id}", response_model=APIResponse)
async def delete_rule(
    rule_id: str,
    store: RuleStoreDep,
) -> APIResponse:
    """Delete a rule. Its execution records are kept."""
    if not await store.delete(rule_id):
        raise _not_found(rule_id)

    logger.info("Rule deleted", rule_id=rule_id)
    return APIResponse(message=f"Rule {rule_id} deleted")


@router.patch("/{rule_id}/status", response_model=APIResponse[RuleResponse])
async def update_rule_status(
    rule_id: str,
    data: RuleStatusUpdate,
    store: RuleStoreDep,
) -> APIResponse[RuleResponse]:
    """Activate or deactivate a rule."""
    if not await store.set_active(rule_id, data.is_active):
        raise _not_found(rule_id)

    return _respond(await _rule_or_404(store, rule_id))
