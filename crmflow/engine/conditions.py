"""Condition evaluation for workflow rules."""

import re
from collections.abc import Mapping, Sequence
from typing import Any

from crmflow.core.exceptions import ConfigurationError
from crmflow.core.logging import get_logger
from crmflow.models.rule import Condition, ConditionOperator

logger = get_logger(__name__)

_NUMERIC_RE = re.compile(r"^\s*[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?\s*$")


class _Missing:
    """Marker for a payload field that is not present."""

    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False


MISSING: Any = _Missing()


def resolve_field(payload: Mapping[str, Any], path: str) -> Any:
    """Look up a dotted field path in the payload.

    Mappings are traversed by key and lists by integer index. A key that
    literally contains dots wins over traversal.

    Args:
        payload: Event payload
        path: Field reference, e.g. "lead.status" or "items.0.price"

    Returns:
        Field value, or MISSING if any segment is absent
    """
    if path in payload:
        return payload[path]

    current: Any = payload
    for part in path.split("."):
        if isinstance(current, Mapping):
            if part not in current:
                return MISSING
            current = current[part]
        elif isinstance(current, (list, tuple)) and part.isdigit():
            index = int(part)
            if index >= len(current):
                return MISSING
            current = current[index]
        else:
            return MISSING
    return current


def to_number(value: Any) -> float | None:
    """Coerce a number or numeric string to float.

    Booleans, None and non-numeric strings return None.
    """
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str) and _NUMERIC_RE.match(value):
        return float(value)
    return None


def _truthy(value: Any) -> bool:
    if isinstance(value, str):
        return value not in ("", "0")
    return bool(value)


def _number_to_string(value: int | float) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def loose_equals(left: Any, right: Any) -> bool:
    """Compare two values the way the CRM's rule data was authored to expect.

    Rules were written against a loosely typed comparison, so:

    - a number and a numeric string compare numerically ("5" == 5, "1e3" == 1000)
    - two numeric strings compare numerically ("10" == "10.0")
    - a number and a non-numeric string compare as strings
    - a boolean on either side compares truthiness ("0" and "" are falsy)
    - None equals "", 0, False and empty containers
    - lists and mappings compare element-wise with the same rules
    """
    if left is None and right is None:
        return True
    if left is None or right is None:
        other = right if left is None else left
        if isinstance(other, str):
            return other == ""
        return not _truthy(other)

    if isinstance(left, bool) or isinstance(right, bool):
        return _truthy(left) == _truthy(right)

    if isinstance(left, Mapping) or isinstance(right, Mapping):
        if not (isinstance(left, Mapping) and isinstance(right, Mapping)):
            return False
        if set(left) != set(right):
            return False
        return all(loose_equals(left[key], right[key]) for key in left)

    if isinstance(left, (list, tuple)) or isinstance(right, (list, tuple)):
        if not (isinstance(left, (list, tuple)) and isinstance(right, (list, tuple))):
            return False
        if len(left) != len(right):
            return False
        return all(loose_equals(a, b) for a, b in zip(left, right))

    left_num = to_number(left)
    right_num = to_number(right)
    if left_num is not None and right_num is not None:
        return left_num == right_num

    if isinstance(left, (int, float)) and isinstance(right, str):
        return _number_to_string(left) == right
    if isinstance(right, (int, float)) and isinstance(left, str):
        return _number_to_string(right) == left

    return left == right


def _contains(field_value: Any, value: Any) -> bool:
    if field_value is MISSING:
        return False
    if isinstance(field_value, str):
        if isinstance(value, str):
            return value in field_value
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return _number_to_string(value) in field_value
        return False
    if isinstance(field_value, Sequence):
        return any(loose_equals(item, value) for item in field_value)
    return False


def _compare_numbers(field_value: Any, value: Any) -> tuple[float, float] | None:
    left = to_number(field_value)
    right = to_number(value)
    if left is None or right is None:
        return None
    return left, right


class ConditionEvaluator:
    """Evaluates rule conditions against an event payload."""

    def evaluate(self, conditions: Sequence[Condition], payload: Mapping[str, Any]) -> bool:
        """Check whether every condition holds.

        Args:
            conditions: Rule conditions (AND-combined, evaluated in order)
            payload: Event payload

        Returns:
            True if the list is empty or all conditions hold
        """
        for condition in conditions:
            if not self.check(condition, payload):
                logger.debug(
                    "Condition not met",
                    field=condition.field,
                    operator=condition.operator.value,
                )
                return False
        return True

    def check(self, condition: Condition, payload: Mapping[str, Any]) -> bool:
        """Evaluate a single condition."""
        field_value = resolve_field(payload, condition.field)
        operator = condition.operator
        value = condition.value

        if operator == ConditionOperator.EQUALS:
            return field_value is not MISSING and loose_equals(field_value, value)

        elif operator == ConditionOperator.NOT_EQUALS:
            return field_value is MISSING or not loose_equals(field_value, value)

        elif operator == ConditionOperator.CONTAINS:
            return _contains(field_value, value)

        elif operator == ConditionOperator.GREATER_THAN:
            numbers = _compare_numbers(field_value, value)
            return numbers is not None and numbers[0] > numbers[1]

        elif operator == ConditionOperator.LESS_THAN:
            numbers = _compare_numbers(field_value, value)
            return numbers is not None and numbers[0] < numbers[1]

        elif operator == ConditionOperator.IN:
            if field_value is MISSING:
                return False
            return any(loose_equals(field_value, candidate) for candidate in value)

        else:
            raise ConfigurationError(f"Unsupported condition operator: {operator}")
