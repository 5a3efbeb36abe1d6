"""
Success envelopes shared by all handlers.

Failures are rendered by the exception handlers in `errors`.
"""

from __future__ import annotations

from typing import Any, Iterable, Optional

from fastapi import Response
from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel

from .pagination import PageParams, page_meta, set_pagination_headers


def _dump(data: Any) -> Any:
    if isinstance(data, BaseModel):
        return data.model_dump(mode="json", by_alias=True)
    if isinstance(data, (list, tuple)):
        return [_dump(item) for item in data]
    return jsonable_encoder(data)


def success(data: Any, meta: Optional[dict] = None) -> dict:
    body: dict[str, Any] = {"success": True, "data": _dump(data)}
    if meta:
        body["meta"] = meta
    return body


def paginated(response: Response, items: Iterable[Any], params: PageParams, total: int) -> dict:
    set_pagination_headers(response, total=total, page=params.page, page_size=params.limit)
    return success(list(items), page_meta(params, total))
