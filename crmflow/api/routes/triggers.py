"""Trigger catalogue and manual firing routes."""

from typing import Any

from fastapi import APIRouter, Body, HTTPException

from crmflow.api.deps import EngineDep
from crmflow.schemas.common import APIResponse
from crmflow.schemas.trigger import ActionInfo, FireResponse, TriggerInfo

router = APIRouter(tags=["triggers"])


@router.get("/triggers", response_model=APIResponse[list[TriggerInfo]])
async def list_triggers(engine: EngineDep) -> APIResponse[list[TriggerInfo]]:
    """List the events workflows can react to."""
    return APIResponse(
        data=[TriggerInfo(name=name, description=description) for name, description in engine.triggers.list_triggers()]
    )


@router.get("/actions", response_model=APIResponse[list[ActionInfo]])
async def list_actions(engine: EngineDep) -> APIResponse[list[ActionInfo]]:
    """List the action kinds this engine has handlers for."""
    return APIResponse(
        data=[ActionInfo(name=name, description=description) for name, description in engine.actions.list_actions()]
    )


@router.post("/triggers/{trigger_name}/fire", response_model=APIResponse[FireResponse])
async def fire_trigger(
    trigger_name: str,
    engine: EngineDep,
    payload: dict[str, Any] = Body(default_factory=dict),
) -> APIResponse[FireResponse]:
    """Fire a trigger with the given payload and run matching workflows."""
    if not engine.triggers.is_registered(trigger_name):
        raise HTTPException(status_code=404, detail=f"Trigger {trigger_name} not found")

    summary = await engine.process_trigger(trigger_name, payload)
    return APIResponse(
        data=FireResponse(
            trigger=summary.trigger,
            rules_matched=summary.rules_matched,
            rules_fired=summary.rules_fired,
            records=summary.records,
        )
    )
