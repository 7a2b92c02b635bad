"""Filter composition algebra.

Learn: A FilterGroup is a boolean tree — AND/OR over conditions and nested
groups. Groups are immutable values. merge_filters() is the only way two
trees are combined, and it only ever ANDs them: adding a conjunct can narrow
a result set but never widen it. That is why the tenant boundary always goes
in as `base` and anything a client sends goes in as `additional`.

No flattening: AND(base, additional) keeps base as its own first subtree so
the boundary can never be "simplified away" by restructuring.
"""

import uuid
from typing import Any, Literal, Optional, Union

from pydantic import BaseModel, Field

FilterOperator = Literal[
    "equals",
    "not_equals",
    "contains",
    "not_contains",
    "starts_with",
    "ends_with",
    "is_empty",
    "is_not_empty",
    "gt",
    "gte",
    "lt",
    "lte",
    "between",
    "in",
    "not_in",
]

# System columns address row metadata rather than the row's JSON data.
COMPANY_COLUMN = "$company_id"
TABLE_COLUMN = "$table_id"


class FilterCondition(BaseModel):
    column: str = Field(..., min_length=1)
    operator: FilterOperator
    value: Any = None

    model_config = {"frozen": True, "extra": "forbid"}


class FilterGroup(BaseModel):
    operator: Literal["AND", "OR"] = "AND"
    conditions: tuple[Union["FilterGroup", FilterCondition], ...] = ()

    model_config = {"frozen": True, "extra": "forbid"}


FilterGroup.model_rebuild()


def merge_filters(
    base: Optional[FilterGroup],
    additional: Optional[FilterGroup],
) -> Optional[FilterGroup]:
    """AND two filter trees together.

    - neither → None
    - one → a copy of it (never the caller's object)
    - both → FilterGroup(AND, [base, additional]), base first
    """
    if base is None and additional is None:
        return None
    if base is None:
        return additional.model_copy(deep=True)
    if additional is None:
        return base.model_copy(deep=True)
    return FilterGroup(operator="AND", conditions=(base, additional))


def tenant_boundary(company_id: uuid.UUID, table_id: uuid.UUID) -> FilterGroup:
    """The filter every row query of a table must be ANDed under."""
    return FilterGroup(
        operator="AND",
        conditions=(
            FilterCondition(column=COMPANY_COLUMN, operator="equals", value=str(company_id)),
            FilterCondition(column=TABLE_COLUMN, operator="equals", value=str(table_id)),
        ),
    )


def parse_filter(raw: Optional[dict]) -> Optional[FilterGroup]:
    """Load a stored/posted filter tree; empty input means no filter."""
    if not raw:
        return None
    return FilterGroup.model_validate(raw)
