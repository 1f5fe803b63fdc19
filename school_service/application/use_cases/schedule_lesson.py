from datetime import datetime

from sqlalchemy import and_, or_, select
from sqlalchemy.orm import Session

from ...domain.errors import ValidationError
from ...infrastructure.models import Lesson
from ...infrastructure.security import as_utc


def find_conflict(db: Session, day: str, start_time: datetime, end_time: datetime,
                  teacher_id: str, class_id: int, exclude_id: int | None = None) -> Lesson | None:
    """First lesson on the same day overlapping [start, end) for the teacher or the class."""
    overlap = and_(Lesson.day == day, Lesson.start_time < end_time, Lesson.end_time > start_time)
    stmt = select(Lesson).where(
        overlap,
        or_(Lesson.teacher_id == teacher_id, Lesson.class_id == class_id),
    )
    if exclude_id is not None:
        stmt = stmt.where(Lesson.id != exclude_id)
    return db.execute(stmt.limit(1)).scalar_one_or_none()


def check_schedule(db: Session, day: str, start_time: datetime, end_time: datetime,
                   teacher_id: str, class_id: int, exclude_id: int | None = None) -> None:
    # при частичном обновлении одно из времён приходит из БД
    start_time, end_time = as_utc(start_time), as_utc(end_time)
    if end_time <= start_time:
        raise ValidationError("end_time must be after start_time", field="end_time")
    conflict = find_conflict(db, day, start_time, end_time, teacher_id, class_id, exclude_id)
    if conflict is not None:
        raise ValidationError(f"Time conflict with lesson {conflict.id}", field="start_time")
