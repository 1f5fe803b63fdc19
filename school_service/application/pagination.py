import math
from dataclasses import dataclass
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from ..infrastructure.metrics import db_queries_total

DEFAULT_LIMIT = 10
MAX_LIMIT = 100


@dataclass
class Page:
    items: list[Any]
    total: int
    page: int
    limit: int

    @property
    def pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.limit else 0


def clamp_page(page: int | None) -> int:
    """Pages are 1-based; zero, negative or missing pages mean the first one."""
    if page is None or page < 1:
        return 1
    return page


def paginate(db: Session, stmt, page: int | None = 1, limit: int = DEFAULT_LIMIT) -> Page:
    """Runs the page query and its count over the same WHERE clause.

    The total ignores offset/limit and ordering; both statements run in the
    session's current transaction.
    """
    page = clamp_page(page)
    limit = max(1, min(limit, MAX_LIMIT))

    count_stmt = select(func.count()).select_from(stmt.order_by(None).subquery())
    total = db.execute(count_stmt).scalar_one()
    rows = db.execute(stmt.offset((page - 1) * limit).limit(limit)).scalars().all()
    db_queries_total.inc(2)
    return Page(items=list(rows), total=total, page=page, limit=limit)
