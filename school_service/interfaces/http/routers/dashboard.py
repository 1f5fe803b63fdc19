from fastapi import APIRouter, Depends
from sqlalchemy import Integer, cast, func, select
from sqlalchemy.orm import Session

from ....application.scopes import SCOPES, build_scope
from ....domain.entities import Principal
from ....domain.permissions import READ
from ....infrastructure.db import get_db
from ....infrastructure.metrics import db_queries_total
from ....infrastructure.models import Attendance, Result
from ..authz import require_permission
from ..schemas import DashboardStats

router = APIRouter(prefix="/api/dashboard", tags=["dashboard"])

COUNTED = ("students", "teachers", "parents", "classes", "lessons", "exams", "assignments", "results")


def _count(db: Session, principal: Principal, entity: str) -> int:
    model = SCOPES[entity].model
    return db.execute(select(func.count()).select_from(model).where(build_scope(principal, entity))).scalar_one()


@router.get("/stats", response_model=DashboardStats)
def stats(
    principal: Principal = Depends(require_permission("dashboard", READ)),
    db: Session = Depends(get_db),
):
    """Counts of what the caller can see; every number goes through the same scope as the lists."""
    counts = {entity: _count(db, principal, entity) for entity in COUNTED}

    rate = db.execute(
        select(func.avg(cast(Attendance.present, Integer))).where(build_scope(principal, "attendance"))
    ).scalar_one()
    average = db.execute(
        select(func.avg(Result.score)).where(build_scope(principal, "results"))
    ).scalar_one()
    db_queries_total.inc(len(COUNTED) + 2)

    return DashboardStats(
        role=principal.role,
        attendance_rate=round(float(rate) * 100, 1) if rate is not None else None,
        average_score=round(float(average), 1) if average is not None else None,
        **counts,
    )
