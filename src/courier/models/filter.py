"""Filter rule models.

A webhook's rules are split into logic groups. Rules sharing a group are
AND-ed; distinct groups are OR-ed.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .base import JsonValue, generate_id


class FilterOperator(str, Enum):
    """Comparison applied between an extracted field and a rule's value."""

    EXISTS = "exists"
    NOT_EXISTS = "not_exists"
    EQUALS = "equals"
    NOT_EQUALS = "not_equals"
    CONTAINS = "contains"
    NOT_CONTAINS = "not_contains"
    STARTS_WITH = "starts_with"
    ENDS_WITH = "ends_with"
    REGEX = "regex"
    GREATER_THAN = "gt"
    GREATER_THAN_OR_EQUAL = "gte"
    LESS_THAN = "lt"
    LESS_THAN_OR_EQUAL = "lte"
    IN = "in"
    NOT_IN = "not_in"
    IS_EMPTY = "is_empty"
    IS_NOT_EMPTY = "is_not_empty"
    BETWEEN = "between"
    MATCHES_ANY = "matches_any"
    MATCHES_ALL = "matches_all"


class FilterRule(BaseModel):
    """A single declarative condition on a webhook payload.

    The operator is stored as plain text so rules loaded from storage with
    an operator this version does not know still load; evaluating such a
    rule raises FilterEvaluationError.

    Attributes:
        id: Unique identifier for this rule.
        webhook_id: Webhook the rule belongs to (optional for ad-hoc rules).
        field_path: Dot/bracket path into the payload, e.g. "$.data.items[0].id".
        operator: One of the FilterOperator values.
        value: Comparison value (any JSON value).
        logic_group: Rules in the same group are AND-ed, groups are OR-ed.
        enabled: Disabled rules always pass and are ignored by grouping.
    """

    model_config = ConfigDict(extra="forbid")

    id: str = Field(default_factory=lambda: generate_id("flt"))
    webhook_id: str | None = Field(default=None, description="Owning webhook")
    field_path: str = Field(description="JSON path of the field to test")
    operator: str = Field(description="Comparison operator")
    value: JsonValue = Field(default=None, description="Comparison value")
    logic_group: int = Field(default=0, description="AND group; groups are OR-ed")
    enabled: bool = Field(default=True, description="Whether the rule is active")

    @field_validator("operator", mode="before")
    @classmethod
    def _operator_as_text(cls, value: Any) -> Any:
        if isinstance(value, FilterOperator):
            return value.value
        return value

    def describe(self) -> str:
        """Render the rule as "<path> <operator> <value>" for diagnostics."""
        return f"{self.field_path} {self.operator} {self.value}"


class FilterOutcome(BaseModel):
    """Result of evaluating a webhook's rules against one payload."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    passed: bool
    reason: str
    details: dict[str, Any] = Field(default_factory=dict)


__all__ = [
    "FilterOperator",
    "FilterOutcome",
    "FilterRule",
]
