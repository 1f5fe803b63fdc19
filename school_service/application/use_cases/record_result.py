from sqlalchemy import select
from sqlalchemy.orm import Session

from ...domain.entities import Principal
from ...domain.errors import ConflictError, ValidationError
from ...infrastructure.models import Assignment, Exam, Result, Student
from ..ownership import ensure_teaches, get_or_404


class RecordResult:
    """Validates and stores a score for exactly one exam or assignment."""

    def __init__(self, db: Session):
        self.db = db

    def execute(self, principal: Principal, student_id: str, score: int,
                exam_id: int | None = None, assignment_id: int | None = None) -> Result:
        if (exam_id is None) == (assignment_id is None):
            raise ValidationError("Exactly one of exam_id or assignment_id is required", field="exam_id")

        student = get_or_404(self.db, Student, student_id, "Student")
        if exam_id is not None:
            assessment = get_or_404(self.db, Exam, exam_id, "Exam")
            duplicate = select(Result.id).where(Result.student_id == student_id, Result.exam_id == exam_id)
        else:
            assessment = get_or_404(self.db, Assignment, assignment_id, "Assignment")
            duplicate = select(Result.id).where(Result.student_id == student_id, Result.assignment_id == assignment_id)

        lesson = assessment.lesson
        ensure_teaches(principal, lesson)
        if student.class_id != lesson.class_id:
            raise ValidationError("Student is not enrolled in the class for this lesson", field="student_id")
        if self.db.execute(duplicate).first() is not None:
            raise ConflictError("Result already exists for this student and assessment")

        result = Result(score=score, student_id=student_id, exam_id=exam_id, assignment_id=assignment_id)
        self.db.add(result)
        return result
