import logging
import math
from typing import Optional, Union

from sqlalchemy import String, cast, delete, func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.exceptions import BadRequestException
from app.models.student import Student
from app.schemas.student import (
    StudentBase,
    StudentListOptions,
    StudentPage,
)
from app.schemas.student import Student as StudentSchema
from app.services.student.validation import (
    FailureKind,
    WriteFailure,
    check_duplicate,
)

logger = logging.getLogger(__name__)

# API field name -> mapped column. Only these may be filtered or sorted on.
COLUMNS = {
    "id": Student.id,
    "name": Student.name,
    "gender": Student.gender,
    "studentId": Student.student_id,
    "birthDate": Student.birth_date,
    "phone": Student.phone,
    "email": Student.email,
    "address": Student.address,
}


def _begin_write(db: Session, isolation_level: Optional[str]) -> None:
    """Start the check+write transaction at the requested isolation level."""
    if isolation_level:
        db.connection(execution_options={"isolation_level": isolation_level})


def _field_values(student: StudentBase) -> dict:
    return {
        "name": student.name,
        "gender": student.gender,
        "student_id": student.student_id,
        "birth_date": student.birth_date,
        "phone": student.phone,
        "email": student.email,
        "address": student.address,
    }


def create_student(
    db: Session,
    student: StudentBase,
    force: bool = False,
    isolation_level: Optional[str] = None
) -> Union[Student, WriteFailure]:
    """
    Insert a new student.

    Unless ``force`` is set, the uniqueness checks run first; the first
    collision is returned and nothing is inserted. Storage errors are
    returned as a ``FailureKind.ERROR`` failure.
    """
    try:
        _begin_write(db, isolation_level)
        if not force:
            failure = check_duplicate(db, student)
            if failure:
                db.rollback()
                return failure

        db_student = Student(**_field_values(student))
        db.add(db_student)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Create student failed: {e}", exc_info=True)
        return WriteFailure(kind=FailureKind.ERROR, msg=str(e))

    logger.info(f"Created student {db_student.id} ({student.student_id})")
    return db_student


def get_students(db: Session, options: StudentListOptions) -> StudentPage:
    """
    Return one page of students plus the unpaginated match count.

    Raises BadRequestException when ``filter_column`` is not a known column.
    """
    query = select(Student)
    count_query = select(func.count()).select_from(Student)

    if options.filter_column and options.filter_keyword:
        column = COLUMNS.get(options.filter_column)
        if column is None:
            raise BadRequestException(f"Invalid filter column: {options.filter_column}")
        condition = cast(column, String).icontains(options.filter_keyword, autoescape=True)
        query = query.where(condition)
        count_query = count_query.where(condition)

    sort_column = COLUMNS.get(options.sort_field, Student.id)
    order = sort_column.desc() if options.sort_order == "desc" else sort_column.asc()
    offset = (options.page - 1) * options.page_size
    query = query.order_by(order).limit(options.page_size).offset(offset)

    total = db.execute(count_query).scalar_one()
    total_pages = math.ceil(total / options.page_size) if total else 1
    rows = db.execute(query).scalars().all()

    return StudentPage(
        list=[StudentSchema.model_validate(row) for row in rows],
        total=total,
        total_pages=total_pages,
        current_page=options.page,
    )


def update_student(
    db: Session,
    student_id: int,
    student: StudentBase,
    force: bool = False,
    isolation_level: Optional[str] = None
) -> Union[int, WriteFailure]:
    """
    Replace every field of the student with id ``student_id``.

    Returns the affected-row count (0 when the id does not exist) or a
    WriteFailure. The row itself is excluded from the uniqueness checks.
    """
    try:
        _begin_write(db, isolation_level)
        if not force:
            failure = check_duplicate(db, student, exclude_id=student_id)
            if failure:
                db.rollback()
                return failure

        result = db.execute(
            update(Student)
            .where(Student.id == student_id)
            .values({getattr(Student, key): value for key, value in _field_values(student).items()})
        )
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Update student {student_id} failed: {e}", exc_info=True)
        return WriteFailure(kind=FailureKind.ERROR, msg=str(e))

    logger.info(f"Updated student {student_id}: {result.rowcount} row(s)")
    return result.rowcount


def delete_student(db: Session, student_id: int) -> int:
    """Delete a student; returns the affected-row count. Storage errors propagate."""
    try:
        result = db.execute(delete(Student).where(Student.id == student_id))
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise

    logger.info(f"Deleted student {student_id}: {result.rowcount} row(s)")
    return result.rowcount
