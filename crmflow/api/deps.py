"""API dependency injection."""

from typing import Annotated

from fastapi import Depends, Query, Request

from crmflow.engine.workflow import WorkflowEngine
from crmflow.schemas.common import PaginationParams
from crmflow.storage.execution_log import ExecutionLog
from crmflow.storage.redis_client import get_redis
from crmflow.storage.rule_store import RuleStore


def get_rule_store() -> RuleStore:
    """Get rule store instance."""
    return RuleStore(get_redis())


def get_execution_log() -> ExecutionLog:
    """Get execution log instance."""
    return ExecutionLog(get_redis())


def get_engine(request: Request) -> WorkflowEngine:
    """Engine built once in the application lifespan."""
    return request.app.state.engine


RuleStoreDep = Annotated[RuleStore, Depends(get_rule_store)]
ExecutionLogDep = Annotated[ExecutionLog, Depends(get_execution_log)]
EngineDep = Annotated[WorkflowEngine, Depends(get_engine)]


def get_pagination(
    page: int = Query(default=1, ge=1, description="Page number"),
    page_size: int = Query(default=20, ge=1, le=100, description="Items per page"),
) -> PaginationParams:
    """Get pagination parameters from query."""
    return PaginationParams(page=page, page_size=page_size)


PaginationDep = Annotated[PaginationParams, Depends(get_pagination)]
