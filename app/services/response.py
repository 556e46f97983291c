from typing import Any


def list_response(items: list, limit: int, offset: int) -> dict[str, Any]:
    return {"items": items, "count": len(items), "limit": limit, "offset": offset}


class ListResponseMixin:
    """Adds ``list_response`` to services whose ``list`` ends with limit, offset."""

    @classmethod
    def list_response(cls, db, *args, **kwargs) -> dict[str, Any]:
        items = cls.list(db, *args, **kwargs)
        if "limit" in kwargs:
            limit = kwargs["limit"]
            offset = kwargs.get("offset", 0)
        else:
            limit, offset = args[-2], args[-1]
        return list_response(items, limit, offset)
