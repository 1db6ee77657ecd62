"""Typed operator evaluation for filter rules.

Equality is lenient: numbers compare by value across int/float/numeric
strings, and as a last resort values compare by their JSON-ish text, so the
string ``"true"`` equals the boolean ``true``. Every other operator is strict
about operand types and raises FilterEvaluationError on a mismatch rather
than returning False.
"""

from __future__ import annotations

import json
import re
from collections.abc import Callable
from decimal import Decimal, InvalidOperation
from functools import lru_cache

from courier.exceptions import FilterEvaluationError
from courier.models import FilterOperator, JsonValue

OperatorFn = Callable[[JsonValue, JsonValue], bool]


def _type_name(value: JsonValue) -> str:
    if value is None:
        return "null"
    return type(value).__name__


def to_decimal(value: JsonValue) -> Decimal | None:
    """Coerce a JSON number (or numeric string) to Decimal.

    Booleans are not numbers. Non-finite values are rejected.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return Decimal(value)
    if isinstance(value, float):
        number = Decimal(str(value))
    elif isinstance(value, str):
        try:
            number = Decimal(value)
        except InvalidOperation:
            return None
    else:
        return None
    if not number.is_finite():
        return None
    return number


def to_text(value: JsonValue) -> str:
    """Textual form used for the last-resort equality comparison."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, str):
        return value
    if isinstance(value, (list, dict)):
        return json.dumps(value, sort_keys=True, separators=(",", ":"), default=str)
    return str(value)


def _structurally_equal(a: JsonValue, b: JsonValue) -> bool:
    # bool is an int subclass; keep true != 1
    if isinstance(a, bool) or isinstance(b, bool):
        return isinstance(a, bool) and isinstance(b, bool) and a is b
    if isinstance(a, (int, float)) and isinstance(b, (int, float)):
        a_num, b_num = to_decimal(a), to_decimal(b)
        if a_num is not None and b_num is not None:
            return a_num == b_num
    if isinstance(a, dict) and isinstance(b, dict):
        if a.keys() != b.keys():
            return False
        return all(_structurally_equal(a[key], b[key]) for key in a)
    if isinstance(a, list) and isinstance(b, list):
        if len(a) != len(b):
            return False
        return all(_structurally_equal(x, y) for x, y in zip(a, b, strict=True))
    if type(a) is not type(b):
        return False
    return bool(a == b)


def values_equal(a: JsonValue, b: JsonValue) -> bool:
    """Compare two JSON values with numeric and textual coercion."""
    if a is None and b is None:
        return True
    if a is None or b is None:
        return False

    if _structurally_equal(a, b):
        return True

    a_num = to_decimal(a)
    b_num = to_decimal(b)
    if a_num is not None and b_num is not None:
        return a_num == b_num

    return to_text(a) == to_text(b)


def _require_text(operator: str, actual: JsonValue, expected: JsonValue) -> tuple[str, str]:
    if not isinstance(actual, str):
        raise FilterEvaluationError(
            operator, f"{operator} operator requires string value, got {_type_name(actual)}"
        )
    if not isinstance(expected, str):
        raise FilterEvaluationError(
            operator,
            f"{operator} operator requires string comparison value, got {_type_name(expected)}",
        )
    return actual, expected


def _require_number(operator: str, value: JsonValue, role: str) -> Decimal:
    number = to_decimal(value)
    if number is None:
        raise FilterEvaluationError(
            operator, f"{operator} operator requires numeric {role}, got {_type_name(value)}"
        )
    return number


def _require_list(operator: str, value: JsonValue, role: str) -> list[JsonValue]:
    if not isinstance(value, list):
        raise FilterEvaluationError(
            operator, f"{operator} operator requires array {role}, got {_type_name(value)}"
        )
    return value


@lru_cache(maxsize=256)
def _compile(pattern: str) -> re.Pattern[str]:
    return re.compile(pattern)


def _equals(actual: JsonValue, expected: JsonValue) -> bool:
    return values_equal(actual, expected)


def _contains(actual: JsonValue, expected: JsonValue) -> bool:
    text, needle = _require_text("contains", actual, expected)
    return needle in text


def _starts_with(actual: JsonValue, expected: JsonValue) -> bool:
    text, prefix = _require_text("starts_with", actual, expected)
    return text.startswith(prefix)


def _ends_with(actual: JsonValue, expected: JsonValue) -> bool:
    text, suffix = _require_text("ends_with", actual, expected)
    return text.endswith(suffix)


def _regex(actual: JsonValue, expected: JsonValue) -> bool:
    if not isinstance(actual, str):
        raise FilterEvaluationError(
            "regex", f"regex operator requires string value, got {_type_name(actual)}"
        )
    if not isinstance(expected, str):
        raise FilterEvaluationError(
            "regex", f"regex operator requires string pattern, got {_type_name(expected)}"
        )
    try:
        pattern = _compile(expected)
    except re.error as e:
        raise FilterEvaluationError("regex", f"invalid regex pattern: {e}") from e
    return pattern.search(actual) is not None


def _numeric_pair(operator: str, actual: JsonValue, expected: JsonValue) -> tuple[Decimal, Decimal]:
    return (
        _require_number(operator, actual, "value"),
        _require_number(operator, expected, "comparison value"),
    )


def _greater_than(actual: JsonValue, expected: JsonValue) -> bool:
    a, b = _numeric_pair("gt", actual, expected)
    return a > b


def _greater_than_or_equal(actual: JsonValue, expected: JsonValue) -> bool:
    a, b = _numeric_pair("gte", actual, expected)
    return a >= b


def _less_than(actual: JsonValue, expected: JsonValue) -> bool:
    a, b = _numeric_pair("lt", actual, expected)
    return a < b


def _less_than_or_equal(actual: JsonValue, expected: JsonValue) -> bool:
    a, b = _numeric_pair("lte", actual, expected)
    return a <= b


def _in(actual: JsonValue, expected: JsonValue) -> bool:
    candidates = _require_list("in", expected, "comparison value")
    return any(values_equal(actual, item) for item in candidates)


def _is_empty(actual: JsonValue, expected: JsonValue) -> bool:
    if actual is None:
        return True
    if isinstance(actual, (str, list, dict)):
        return len(actual) == 0
    raise FilterEvaluationError(
        "is_empty",
        f"is_empty operator requires string, array, or object value, got {_type_name(actual)}",
    )


def _between(actual: JsonValue, expected: JsonValue) -> bool:
    value = _require_number("between", actual, "value")
    if not isinstance(expected, dict):
        raise FilterEvaluationError(
            "between",
            "between operator requires range object with 'min' and 'max', "
            f"got {_type_name(expected)}",
        )
    if "min" not in expected or "max" not in expected:
        raise FilterEvaluationError(
            "between", "between operator requires both 'min' and 'max' values in range object"
        )
    low = _require_number("between", expected["min"], "'min' value")
    high = _require_number("between", expected["max"], "'max' value")
    return low <= value <= high


def _matches_any(actual: JsonValue, expected: JsonValue) -> bool:
    items = _require_list("matches_any", actual, "value")
    wanted = _require_list("matches_any", expected, "comparison value")
    return any(values_equal(item, want) for item in items for want in wanted)


def _matches_all(actual: JsonValue, expected: JsonValue) -> bool:
    items = _require_list("matches_all", actual, "value")
    wanted = _require_list("matches_all", expected, "comparison value")
    return all(any(values_equal(item, want) for item in items) for want in wanted)


def _negate(fn: OperatorFn) -> OperatorFn:
    def negated(actual: JsonValue, expected: JsonValue) -> bool:
        return not fn(actual, expected)

    return negated


# exists / not_exists depend on presence only and are handled by the evaluator
OPERATORS: dict[str, OperatorFn] = {
    FilterOperator.EQUALS.value: _equals,
    FilterOperator.NOT_EQUALS.value: _negate(_equals),
    FilterOperator.CONTAINS.value: _contains,
    FilterOperator.NOT_CONTAINS.value: _negate(_contains),
    FilterOperator.STARTS_WITH.value: _starts_with,
    FilterOperator.ENDS_WITH.value: _ends_with,
    FilterOperator.REGEX.value: _regex,
    FilterOperator.GREATER_THAN.value: _greater_than,
    FilterOperator.GREATER_THAN_OR_EQUAL.value: _greater_than_or_equal,
    FilterOperator.LESS_THAN.value: _less_than,
    FilterOperator.LESS_THAN_OR_EQUAL.value: _less_than_or_equal,
    FilterOperator.IN.value: _in,
    FilterOperator.NOT_IN.value: _negate(_in),
    FilterOperator.IS_EMPTY.value: _is_empty,
    FilterOperator.IS_NOT_EMPTY.value: _negate(_is_empty),
    FilterOperator.BETWEEN.value: _between,
    FilterOperator.MATCHES_ANY.value: _matches_any,
    FilterOperator.MATCHES_ALL.value: _matches_all,
}


def evaluate_operator(operator: str, actual: JsonValue, expected: JsonValue) -> bool:
    """Apply a value operator to an extracted field.

    Args:
        operator: Operator name (a FilterOperator value).
        actual: Value extracted from the payload (the field was found).
        expected: The rule's comparison value.

    Returns:
        Whether the comparison holds.

    Raises:
        FilterEvaluationError: Unknown operator, wrong operand types, or an
            invalid regex.
    """
    fn = OPERATORS.get(operator)
    if fn is None:
        raise FilterEvaluationError(operator, f"unknown operator: {operator}")
    return fn(actual, expected)
