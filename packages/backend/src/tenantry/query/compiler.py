"""Compile filter trees and sorts into SQLAlchemy clauses over DataRow.

Learn: Row values live in the JSON `data` column, so each condition becomes
a JSON-path comparison (data["status"].as_string() == "open"). SQLAlchemy
renders that as ->> on PostgreSQL and JSON_EXTRACT on SQLite.

A condition on a column the table doesn't have is an error, not a no-op.
Silently dropping a condition would widen the result.
"""

import uuid
from typing import Any, Optional

from sqlalchemy import and_, not_, or_
from sqlalchemy.sql.elements import ColumnElement

from tenantry.db.models import DataRow
from tenantry.errors import ValidationError
from tenantry.query.filters import (
    COMPANY_COLUMN,
    TABLE_COLUMN,
    FilterCondition,
    FilterGroup,
)

_SYSTEM_COLUMNS = {
    COMPANY_COLUMN: DataRow.company_id,
    TABLE_COLUMN: DataRow.table_id,
}


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _like_escape(value: Any) -> str:
    """Literal text for a LIKE pattern; % and _ in filter values match themselves."""
    return str(value).replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _typed(column: str, sample: Any):
    expr = DataRow.data[column]
    if isinstance(sample, bool):
        return expr.as_boolean()
    if _is_number(sample):
        return expr.as_float()
    return expr.as_string()


def _system_condition(cond: FilterCondition) -> ColumnElement:
    if cond.operator != "equals":
        raise ValidationError(f"Only 'equals' is supported on {cond.column}")
    try:
        value = uuid.UUID(str(cond.value))
    except ValueError:
        raise ValidationError(f"Invalid id for {cond.column}")
    return _SYSTEM_COLUMNS[cond.column] == value


def _compile_condition(cond: FilterCondition, fields: set[str]) -> ColumnElement:
    if cond.column in _SYSTEM_COLUMNS:
        return _system_condition(cond)
    if cond.column not in fields:
        raise ValidationError(f"Unknown column in filter: {cond.column}")

    op, value, name = cond.operator, cond.value, cond.column
    text = DataRow.data[name].as_string()

    if op == "equals":
        return _typed(name, value) == value
    if op == "not_equals":
        return _typed(name, value) != value
    if op == "contains":
        return text.ilike(f"%{_like_escape(value)}%", escape="\\")
    if op == "not_contains":
        return not_(text.ilike(f"%{_like_escape(value)}%", escape="\\"))
    if op == "starts_with":
        return text.ilike(f"{_like_escape(value)}%", escape="\\")
    if op == "ends_with":
        return text.ilike(f"%{_like_escape(value)}", escape="\\")
    if op == "is_empty":
        return or_(text.is_(None), text == "")
    if op == "is_not_empty":
        return and_(text.is_not(None), text != "")
    if op in ("gt", "gte", "lt", "lte"):
        expr = _typed(name, value)
        return {
            "gt": expr > value,
            "gte": expr >= value,
            "lt": expr < value,
            "lte": expr <= value,
        }[op]
    if op == "between":
        if not isinstance(value, (list, tuple)) or len(value) != 2:
            raise ValidationError("'between' expects a [low, high] pair")
        return _typed(name, value[0]).between(value[0], value[1])
    if op in ("in", "not_in"):
        if not isinstance(value, (list, tuple)) or not value:
            raise ValidationError(f"'{op}' expects a non-empty list")
        expr = _typed(name, value[0])
        return expr.in_(list(value)) if op == "in" else expr.not_in(list(value))
    raise ValidationError(f"Unsupported filter operator: {op}")


def compile_filter(
    group: Optional[FilterGroup],
    fields: set[str],
) -> Optional[ColumnElement]:
    """Compile a filter tree. None or an empty group means no constraint."""
    if group is None:
        return None
    clauses = []
    for item in group.conditions:
        if isinstance(item, FilterGroup):
            clause = compile_filter(item, fields)
        else:
            clause = _compile_condition(item, fields)
        if clause is not None:
            clauses.append(clause)
    if not clauses:
        return None
    if group.operator == "OR":
        return or_(*clauses)
    return and_(*clauses)


def compile_sorts(sorts: list[dict], fields: set[str]) -> list[ColumnElement]:
    order_by = []
    for sort in sorts or []:
        name = sort.get("column")
        if name not in fields:
            raise ValidationError(f"Unknown column in sort: {name}")
        expr = DataRow.data[name].as_string()
        order_by.append(expr.desc() if sort.get("direction") == "desc" else expr.asc())
    return order_by
