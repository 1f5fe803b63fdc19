from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session

from ....application.filters import result_filters
from ....application.pagination import DEFAULT_LIMIT, MAX_LIMIT, paginate
from ....application.scopes import get_visible, scoped_select
from ....application.use_cases.record_result import RecordResult
from ....domain.entities import Principal
from ....domain.permissions import CREATE, DELETE, READ, UPDATE
from ....infrastructure.db import get_db
from ....infrastructure.repositories import log_audit
from ..authz import require_permission
from ..schemas import Page, ResultCreate, ResultOut, ResultUpdate

router = APIRouter(prefix="/api/results", tags=["results"])


@router.get("", response_model=Page[ResultOut])
def list_results(
    principal: Principal = Depends(require_permission("results", READ)),
    db: Session = Depends(get_db),
    page: int = Query(1),
    limit: int = Query(DEFAULT_LIMIT, ge=1, le=MAX_LIMIT),
    student_id: str | None = Query(None, alias="studentId"),
    exam_id: int | None = Query(None, alias="examId"),
    assignment_id: int | None = Query(None, alias="assignmentId"),
    lesson_id: int | None = Query(None, alias="lessonId"),
    class_id: int | None = Query(None, alias="classId"),
    subject_id: int | None = Query(None, alias="subjectId"),
):
    filters = result_filters(student_id, exam_id, assignment_id, lesson_id, class_id, subject_id)
    stmt = scoped_select(principal, "results", *filters)
    return Page[ResultOut].build(paginate(db, stmt, page, limit), ResultOut)


@router.get("/{result_id}", response_model=ResultOut)
def get_result(
    result_id: int,
    principal: Principal = Depends(require_permission("results", READ)),
    db: Session = Depends(get_db),
):
    return get_visible(db, principal, "results", result_id, "Result")


@router.post("", response_model=ResultOut, status_code=status.HTTP_201_CREATED)
def create_result(
    payload: ResultCreate,
    principal: Principal = Depends(require_permission("results", CREATE)),
    db: Session = Depends(get_db),
):
    row = RecordResult(db).execute(
        principal,
        payload.student_id,
        payload.score,
        exam_id=payload.exam_id,
        assignment_id=payload.assignment_id,
    )
    db.flush()
    log_audit(db, principal, "CREATE", "Result", row.id, payload.model_dump(mode="json"))
    db.commit(); db.refresh(row)
    return row


@router.put("/{result_id}", response_model=ResultOut)
def update_result(
    result_id: int,
    payload: ResultUpdate,
    principal: Principal = Depends(require_permission("results", UPDATE)),
    db: Session = Depends(get_db),
):
    row = get_visible(db, principal, "results", result_id, "Result")
    previous = row.score
    row.score = payload.score
    log_audit(db, principal, "UPDATE", "Result", row.id, {"score": [previous, payload.score]})
    db.commit(); db.refresh(row)
    return row


@router.delete("/{result_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_result(
    result_id: int,
    principal: Principal = Depends(require_permission("results", DELETE)),
    db: Session = Depends(get_db),
):
    row = get_visible(db, principal, "results", result_id, "Result")
    db.delete(row)
    log_audit(db, principal, "DELETE", "Result", result_id)
    db.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)
