"""Rule dry-run and validation API routes."""

from fastapi import APIRouter, HTTPException

from crmflow.api.deps import EngineDep, RuleStoreDep
from crmflow.core.exceptions import ConfigurationError
from crmflow.schemas.common import APIResponse
from crmflow.schemas.test import (
    DryRunRequest,
    DryRunResponse,
    DryRunResult,
    ValidateRequest,
    ValidateResponse,
)
from crmflow.storage.rule_store import parse_rule

router = APIRouter(prefix="/rules", tags=["rules"])


@router.post("/test", response_model=APIResponse[DryRunResponse])
async def test_rule(
    data: DryRunRequest,
    store: RuleStoreDep,
    engine: EngineDep,
) -> APIResponse[DryRunResponse]:
    """Evaluate a rule's conditions against sample payloads.

    No action runs and nothing is written to the execution log.
    """
    rule = await store.get(data.rule_id)
    if not rule:
        raise HTTPException(status_code=404, detail=f"Rule {data.rule_id} not found")

    results = []
    for index, payload in enumerate(data.payloads):
        would_fire = engine.dry_run(rule, payload)
        results.append(
            DryRunResult(
                payload_index=index,
                would_fire=would_fire,
                actions=[action.type for action in rule.actions] if would_fire else [],
            )
        )

    return APIResponse(data=DryRunResponse(rule_id=rule.rule_id, results=results))


@router.post("/validate", response_model=APIResponse[ValidateResponse])
async def validate_rule(data: ValidateRequest) -> APIResponse[ValidateResponse]:
    """Check whether a raw rule document would load."""
    document = {"rule_id": "validation", "name": "validation", **data.rule}
    try:
        rule = parse_rule(document)
    except ConfigurationError as e:
        return APIResponse(data=ValidateResponse(valid=False, errors=[str(e)]))

    warnings = [
        f"actions.{index}: unknown action kind '{action.type}' will be skipped"
        for index, action in enumerate(rule.actions)
        if action.kind is None
    ]
    if not rule.actions:
        warnings.append("rule has no actions")

    return APIResponse(data=ValidateResponse(valid=True, warnings=warnings))
