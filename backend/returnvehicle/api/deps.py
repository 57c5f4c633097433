"""
Shared route dependencies.
"""

from dataclasses import dataclass

from fastapi import Query

from returnvehicle.core.config import get_settings

settings = get_settings()


@dataclass
class PageParams:
    page: int
    limit: int


def pagination(default_limit: int):
    """Page/limit query params; oversized limits are clamped, not rejected."""

    def _dependency(
        page: int = Query(1, ge=1),
        limit: int = Query(default_limit, ge=1),
    ) -> PageParams:
        return PageParams(page=page, limit=min(limit, settings.PAGE_LIMIT_MAX))

    return _dependency
