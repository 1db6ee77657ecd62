"""Webhook payload filtering.

Example:
    ```python
    from courier.filters import FilterEvaluator
    from courier.models import FilterRule

    rules = [FilterRule(field_path="$.data.user.name", operator="equals", value="John")]
    outcome = FilterEvaluator().evaluate(rules, {"data": {"user": {"name": "John"}}})
    assert outcome.passed
    ```
"""

from .evaluator import FilterEvaluator, group_rules
from .operators import OPERATORS, evaluate_operator, to_decimal, values_equal
from .paths import extract_value, normalize_path

__all__ = [
    "OPERATORS",
    "FilterEvaluator",
    "evaluate_operator",
    "extract_value",
    "group_rules",
    "normalize_path",
    "to_decimal",
    "values_equal",
]
