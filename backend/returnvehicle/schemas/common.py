"""
Shared schema configuration and the paginated list envelope.
"""

import math
from typing import Generic, TypeVar

from pydantic import AliasGenerator, BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

T = TypeVar("T")

# Responses are read from ORM attributes by field name and rendered in camelCase
RESPONSE_CONFIG = ConfigDict(
    from_attributes=True,
    alias_generator=AliasGenerator(serialization_alias=to_camel),
)

# Requests accept camelCase (what the SPA sends) or snake_case
REQUEST_CONFIG = ConfigDict(
    alias_generator=to_camel,
    populate_by_name=True,
    str_strip_whitespace=True,
)


class Page(BaseModel, Generic[T]):
    items: list[T]
    total: int
    page: int
    pages: int
    limit: int

    @classmethod
    def build(cls, items: list, total: int, page: int, limit: int) -> "Page[T]":
        return cls(items=items, total=total, page=page, pages=math.ceil(total / limit) if limit else 0, limit=limit)
