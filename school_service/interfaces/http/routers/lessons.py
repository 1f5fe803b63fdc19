from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session

from ....application.filters import lesson_filters
from ....application.ownership import get_or_404
from ....application.pagination import DEFAULT_LIMIT, MAX_LIMIT, paginate
from ....application.scopes import get_visible, scoped_select
from ....application.use_cases.schedule_lesson import check_schedule
from ....domain.entities import Principal, Role
from ....domain.errors import AuthorizationError, ValidationError
from ....domain.permissions import CREATE, DELETE, READ, UPDATE
from ....infrastructure.db import get_db
from ....infrastructure.models import Class, Lesson, Subject, Teacher
from ....infrastructure.repositories import log_audit
from ..authz import require_permission
from ..schemas import LessonCreate, LessonOut, LessonUpdate, Page

router = APIRouter(prefix="/api/lessons", tags=["lessons"])


def _resolve_teacher(principal: Principal, teacher_id: str | None) -> str:
    """Teachers always schedule for themselves; admins must name the teacher."""
    if principal.role is Role.TEACHER:
        if teacher_id is not None and teacher_id != principal.id:
            raise AuthorizationError("Teachers can only schedule their own lessons")
        return principal.id
    if teacher_id is None:
        raise ValidationError("teacher_id is required", field="teacher_id")
    return teacher_id


@router.get("", response_model=Page[LessonOut])
def list_lessons(
    principal: Principal = Depends(require_permission("lessons", READ)),
    db: Session = Depends(get_db),
    page: int = Query(1),
    limit: int = Query(DEFAULT_LIMIT, ge=1, le=MAX_LIMIT),
    search: str | None = None,
    class_id: int | None = Query(None, alias="classId"),
    teacher_id: str | None = Query(None, alias="teacherId"),
    subject_id: int | None = Query(None, alias="subjectId"),
    day: str | None = None,
):
    stmt = scoped_select(principal, "lessons", *lesson_filters(search, class_id, teacher_id, subject_id, day))
    return Page[LessonOut].build(paginate(db, stmt, page, limit), LessonOut)


@router.get("/{lesson_id}", response_model=LessonOut)
def get_lesson(
    lesson_id: int,
    principal: Principal = Depends(require_permission("lessons", READ)),
    db: Session = Depends(get_db),
):
    return get_visible(db, principal, "lessons", lesson_id, "Lesson")


@router.post("", response_model=LessonOut, status_code=status.HTTP_201_CREATED)
def create_lesson(
    payload: LessonCreate,
    principal: Principal = Depends(require_permission("lessons", CREATE)),
    db: Session = Depends(get_db),
):
    teacher_id = _resolve_teacher(principal, payload.teacher_id)
    get_or_404(db, Teacher, teacher_id, "Teacher")
    get_or_404(db, Subject, payload.subject_id, "Subject")
    get_or_404(db, Class, payload.class_id, "Class")
    check_schedule(db, payload.day, payload.start_time, payload.end_time, teacher_id, payload.class_id)

    row = Lesson(**payload.model_dump(exclude={"teacher_id"}), teacher_id=teacher_id)
    db.add(row)
    db.flush()
    log_audit(db, principal, "CREATE", "Lesson", row.id, payload.model_dump(mode="json"))
    db.commit(); db.refresh(row)
    return row


@router.put("/{lesson_id}", response_model=LessonOut)
def update_lesson(
    lesson_id: int,
    payload: LessonUpdate,
    principal: Principal = Depends(require_permission("lessons", UPDATE)),
    db: Session = Depends(get_db),
):
    row = get_visible(db, principal, "lessons", lesson_id, "Lesson")
    changes = {k: v for k, v in payload.model_dump(exclude_unset=True).items() if v is not None}

    if "teacher_id" in changes:
        changes["teacher_id"] = _resolve_teacher(principal, changes["teacher_id"])
        get_or_404(db, Teacher, changes["teacher_id"], "Teacher")
    if "subject_id" in changes:
        get_or_404(db, Subject, changes["subject_id"], "Subject")
    if "class_id" in changes:
        get_or_404(db, Class, changes["class_id"], "Class")

    if changes.keys() & {"day", "start_time", "end_time", "teacher_id", "class_id"}:
        check_schedule(
            db,
            changes.get("day", row.day),
            changes.get("start_time", row.start_time),
            changes.get("end_time", row.end_time),
            changes.get("teacher_id", row.teacher_id),
            changes.get("class_id", row.class_id),
            exclude_id=row.id,
        )

    for field, value in changes.items():
        setattr(row, field, value)
    log_audit(db, principal, "UPDATE", "Lesson", row.id, payload.model_dump(mode="json", exclude_unset=True))
    db.commit(); db.refresh(row)
    return row


@router.delete("/{lesson_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_lesson(
    lesson_id: int,
    principal: Principal = Depends(require_permission("lessons", DELETE)),
    db: Session = Depends(get_db),
):
    row = get_visible(db, principal, "lessons", lesson_id, "Lesson")
    db.delete(row)
    log_audit(db, principal, "DELETE", "Lesson", lesson_id)
    db.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)
