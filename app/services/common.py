import enum
from uuid import UUID

from fastapi import HTTPException
from sqlalchemy.orm import Query


def coerce_uuid(value: UUID | str | None) -> UUID | None:
    if value is None or isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except (TypeError, ValueError) as exc:
        raise HTTPException(status_code=400, detail="Invalid id") from exc


def validate_enum(value: str, enum_cls: type[enum.Enum], field: str) -> enum.Enum:
    try:
        return enum_cls(value)
    except ValueError as exc:
        allowed = ", ".join(item.value for item in enum_cls)
        raise HTTPException(status_code=400, detail=f"Invalid {field}. Allowed: {allowed}") from exc


def apply_ordering(query: Query, order_by: str, order_dir: str, allowed_columns: dict) -> Query:
    if order_by not in allowed_columns:
        allowed = ", ".join(sorted(allowed_columns))
        raise HTTPException(status_code=400, detail=f"Invalid order_by. Allowed: {allowed}")
    column = allowed_columns[order_by]
    if order_dir == "desc":
        return query.order_by(column.desc())
    return query.order_by(column.asc())


def apply_pagination(query: Query, limit: int, offset: int) -> Query:
    return query.limit(limit).offset(offset)
