"""
Small helpers shared by the services: id parsing, paging, the local calendar.
"""

import uuid
from datetime import date, datetime
from zoneinfo import ZoneInfo

from sqlalchemy import Select, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from returnvehicle.core.config import get_settings
from returnvehicle.core.exceptions import ValidationError

settings = get_settings()


def parse_id(value, label: str) -> uuid.UUID:
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except (TypeError, ValueError):
        raise ValidationError(f"invalid {label} id")


def local_today() -> date:
    """Calendar date in the marketplace timezone; journeys are day-granular."""
    return datetime.now(ZoneInfo(settings.TIMEZONE)).date()


def like_pattern(term: str) -> str:
    escaped = term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


async def paginate(db: AsyncSession, stmt: Select, order_by, page: int, limit: int) -> tuple[list, int]:
    total = (await db.execute(select(func.count()).select_from(stmt.order_by(None).subquery()))).scalar()
    result = await db.execute(stmt.order_by(order_by).offset((page - 1) * limit).limit(limit))
    return list(result.scalars().all()), total
