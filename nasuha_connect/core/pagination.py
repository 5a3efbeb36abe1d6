"""Pagination helpers with hard caps."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional

from fastapi import Query, Request, Response


DEFAULT_PAGE_SIZE = 20
DEFAULT_MAX_PAGE_SIZE = 100


def clamp_limit(limit: int, max_size: int = DEFAULT_MAX_PAGE_SIZE) -> int:
    if max_size < 1:
        max_size = DEFAULT_MAX_PAGE_SIZE
    if limit < 1:
        return 1
    return min(limit, max_size)


@dataclass(frozen=True)
class PageParams:
    page: int
    limit: int

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


def page_params(
    request: Request,
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1),
) -> PageParams:
    return PageParams(page=page, limit=clamp_limit(limit, request.app.state.settings.api_max_page_size))


def page_meta(params: PageParams, total: int) -> dict:
    return {
        "page": params.page,
        "limit": params.limit,
        "total": total,
        "totalPages": math.ceil(total / params.limit) if params.limit else 0,
    }


def set_pagination_headers(
    response: Optional[Response],
    *,
    total: Optional[int],
    page: int,
    page_size: int,
) -> None:
    if not response:
        return
    if total is not None:
        response.headers["X-Total-Count"] = str(total)
    response.headers["X-Page"] = str(page)
    response.headers["X-Page-Size"] = str(page_size)
