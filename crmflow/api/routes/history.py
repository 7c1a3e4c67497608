"""Execution history API routes."""

from fastapi import APIRouter, HTTPException, Query

from crmflow.api.deps import ExecutionLogDep, PaginationDep, RuleStoreDep
from crmflow.models.execution import ActionOutcome, ExecutionRecord
from crmflow.schemas.common import PaginatedResponse

router = APIRouter(prefix="/rules", tags=["rules"])


@router.get("/{rule_id}/history", response_model=PaginatedResponse[ExecutionRecord])
async def get_rule_history(
    rule_id: str,
    store: RuleStoreDep,
    execution_log: ExecutionLogDep,
    pagination: PaginationDep,
    outcome: ActionOutcome | None = Query(default=None, description="Filter by action outcome"),
    action_type: str | None = Query(default=None, description="Filter by action kind"),
) -> PaginatedResponse[ExecutionRecord]:
    """Get the action execution history of a rule, newest first."""
    rule = await store.get(rule_id)
    if not rule:
        raise HTTPException(status_code=404, detail=f"Rule {rule_id} not found")

    records = await execution_log.list_for_rule(rule_id)
    if outcome is not None:
        records = [r for r in records if r.outcome == outcome]
    if action_type:
        records = [r for r in records if r.action_type == action_type]

    return PaginatedResponse[ExecutionRecord].paginate(records, pagination)
