"""Workflow engine exception hierarchy."""


class WorkflowError(Exception):
    """Base exception for the workflow engine."""


class StorageUnavailableError(WorkflowError):
    """Rule or execution storage could not be reached.

    Aborts the whole trigger invocation: acting on a partial rule list is
    worse than not acting at all.
    """

    def __init__(self, operation: str, original_error: Exception) -> None:
        super().__init__(f"Storage unavailable during {operation}: {original_error}")
        self.operation = operation
        self.original_error = original_error


class ConfigurationError(WorkflowError):
    """A stored rule is malformed (unknown operator, bad shape, unknown trigger)."""

    def __init__(self, message: str, rule_id: str | None = None) -> None:
        super().__init__(message)
        self.rule_id = rule_id


class ActionHandlerError(WorkflowError):
    """An action handler or its collaborator failed.

    Recorded as a failed execution; never aborts sibling actions.
    """

    def __init__(self, action_type: str, message: str) -> None:
        super().__init__(f"{action_type}: {message}")
        self.action_type = action_type
