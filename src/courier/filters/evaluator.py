"""Filter rule evaluation.

Rules are grouped by ``logic_group``. Every enabled rule in a group must pass
for the group to pass (AND); the first passing group makes the whole
evaluation pass (OR). Groups are visited in ascending group id so the
reported reason is reproducible.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Iterable
from typing import TYPE_CHECKING

from courier.exceptions import CourierError, FilterEvaluationError, StorageError
from courier.models import FilterOperator, FilterOutcome, FilterRule, JsonValue

from .operators import evaluate_operator
from .paths import extract_value

if TYPE_CHECKING:
    from courier.storage import FilterSource

logger = logging.getLogger(__name__)


def group_rules(rules: Iterable[FilterRule]) -> dict[int, list[FilterRule]]:
    """Group enabled rules by logic group, ordered by ascending group id."""
    grouped: dict[int, list[FilterRule]] = defaultdict(list)
    for rule in rules:
        if rule.enabled:
            grouped[rule.logic_group].append(rule)
    return {group_id: grouped[group_id] for group_id in sorted(grouped)}


class FilterEvaluator:
    """Decides whether a webhook payload matches its filter rules.

    Example:
        ```python
        evaluator = FilterEvaluator(store)

        outcome = evaluator.evaluate(rules, payload)
        if not outcome.passed:
            await store.mark_filtered(event.id, outcome.reason)
        ```
    """

    def __init__(self, source: FilterSource | None = None) -> None:
        """Initialize the evaluator.

        Args:
            source: Where evaluate_webhook loads rules from. Optional when
                rules are always passed in directly.
        """
        self._source = source

    def evaluate_single(self, rule: FilterRule, payload: JsonValue) -> bool:
        """Evaluate one rule against a payload.

        Raises:
            FilterEvaluationError: If the rule is malformed for the payload.
        """
        if not rule.enabled:
            return True

        value, found = extract_value(rule.field_path, payload)

        if rule.operator == FilterOperator.EXISTS.value:
            return found
        if rule.operator == FilterOperator.NOT_EXISTS.value:
            return not found

        if not found:
            return False

        return evaluate_operator(rule.operator, value, rule.value)

    def evaluate(self, rules: Iterable[FilterRule], payload: JsonValue) -> FilterOutcome:
        """Evaluate a set of rules against a payload.

        Args:
            rules: The webhook's filter rules.
            payload: Decoded JSON body of the event.

        Returns:
            FilterOutcome describing which group passed, or which rules
            failed in every group.

        Raises:
            FilterEvaluationError: If any evaluated rule is malformed.
        """
        rules = list(rules)
        if not rules:
            return FilterOutcome(passed=True, reason="no filters configured")

        grouped = group_rules(rules)
        if not grouped:
            return FilterOutcome(passed=True, reason="all filters disabled")

        details: dict[str, list[str]] = {}
        failed_groups: list[str] = []

        for group_id, group in grouped.items():
            failed_rules: list[str] = []
            for rule in group:
                try:
                    passed = self.evaluate_single(rule, payload)
                except FilterEvaluationError as e:
                    raise FilterEvaluationError(
                        e.operator, f"filter evaluation error: {e.message}"
                    ) from e
                if not passed:
                    failed_rules.append(rule.describe())

            if not failed_rules:
                logger.debug("Filter group %d passed", group_id)
                return FilterOutcome(
                    passed=True,
                    reason=f"logic group {group_id} passed",
                    details=dict(details),
                )

            failed_groups.append(f"group {group_id}")
            details[f"group_{group_id}_failed_filters"] = failed_rules

        logger.debug("No filter groups passed: %s", ", ".join(failed_groups))
        return FilterOutcome(
            passed=False,
            reason=f"no logic groups passed: {', '.join(failed_groups)}",
            details=details,
        )

    async def evaluate_webhook(self, webhook_id: str, payload: JsonValue) -> FilterOutcome:
        """Load a webhook's rules from the filter source and evaluate them.

        Raises:
            StorageError: If the rules cannot be loaded.
            FilterEvaluationError: If any evaluated rule is malformed.
        """
        if self._source is None:
            raise StorageError("no filter source configured")

        try:
            rules = await self._source.rules_for_webhook(webhook_id)
        except CourierError:
            raise
        except Exception as e:
            raise StorageError(f"failed to get filters: {e}") from e

        return self.evaluate(rules, payload)
