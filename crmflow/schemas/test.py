"""Rule dry-run and validation API schemas."""

from typing import Any

from pydantic import BaseModel, Field


class DryRunRequest(BaseModel):
    """Request schema for a rule dry-run."""

    rule_id: str = Field(..., description="Rule ID to test")
    payloads: list[dict[str, Any]] = Field(..., min_length=1, description="Sample event payloads")


class DryRunResult(BaseModel):
    """Result for a single sample payload."""

    payload_index: int = Field(..., description="Index of the payload in the request")
    would_fire: bool = Field(..., description="Whether all conditions hold")
    actions: list[str] = Field(default_factory=list, description="Action kinds that would run")


class DryRunResponse(BaseModel):
    """Response schema for a rule dry-run."""

    rule_id: str
    results: list[DryRunResult] = Field(default_factory=list)


class ValidateRequest(BaseModel):
    """Request schema for rule validation."""

    rule: dict[str, Any] = Field(..., description="Raw rule document to validate")


class ValidateResponse(BaseModel):
    """Response schema for rule validation."""

    valid: bool = Field(..., description="Whether the rule would load")
    errors: list[str] = Field(default_factory=list, description="Validation errors")
    warnings: list[str] = Field(default_factory=list, description="Non-fatal findings")
