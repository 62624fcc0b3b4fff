"""Step condition evaluation."""

from __future__ import annotations

import logging
from typing import Any, Mapping, Optional

from .definitions import ConditionOperator, StepCondition
from .references import MISSING, Scope

logger = logging.getLogger(__name__)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _to_number(value: Any) -> Optional[float]:
    if _is_number(value):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            return None
    return None


def _strict_equals(left: Any, right: Any) -> bool:
    if isinstance(left, bool) or isinstance(right, bool):
        return isinstance(left, bool) and isinstance(right, bool) and left == right
    return left == right


def _exists(value: Any) -> bool:
    return value is not MISSING and value is not None and value != ""


def evaluate(
    condition: StepCondition,
    inputs: Mapping[str, Any],
    outputs: Mapping[str, Any],
    context: Optional[Mapping[str, Any]] = None,
) -> bool:
    """
    Evaluate a step condition.

    The first segment of ``condition.field`` selects the namespace
    (``inputs``, ``context`` or a step id); the rest navigates into it.
    Unknown operators evaluate to False.
    """
    scope = Scope(inputs=inputs, outputs=outputs, context=context or {})
    value = condition.reference.lookup(scope)
    operator = condition.operator
    expected = condition.value

    if operator == ConditionOperator.EXISTS:
        return _exists(value)
    if operator == ConditionOperator.NOT_EXISTS:
        return not _exists(value)
    if operator == ConditionOperator.EQUALS:
        return _strict_equals(None if value is MISSING else value, expected)
    if operator == ConditionOperator.NOT_EQUALS:
        return not _strict_equals(None if value is MISSING else value, expected)
    if operator == ConditionOperator.CONTAINS:
        return isinstance(value, str) and str(expected) in value
    if operator in (ConditionOperator.GT, ConditionOperator.LT):
        threshold = _to_number(expected)
        if not _is_number(value) or threshold is None:
            return False
        return value > threshold if operator == ConditionOperator.GT else value < threshold

    logger.warning("Unknown condition operator %r on field %s", operator, condition.field)
    return False
