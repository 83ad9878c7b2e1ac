"""
Uniqueness pre-checks run before a student is written.

Checks are evaluated in a fixed order and stop at the first collision:
studentId -> phone -> email -> name.
"""
import enum
import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import exists, select
from sqlalchemy.orm import Session

from app.models.student import Student
from app.schemas.student import StudentBase

logger = logging.getLogger(__name__)


class FailureKind(str, enum.Enum):
    ID_ERR = "idErr"
    PHONE_ERR = "phoneErr"
    EMAIL_ERR = "emailErr"
    DUPLICATE = "duplicate"
    ERROR = "error"


@dataclass(frozen=True)
class WriteFailure:
    """An expected rejection of a create/update, returned instead of raised."""
    kind: FailureKind
    msg: str


@dataclass(frozen=True)
class UniqueCheck:
    column: object
    field: str
    kind: FailureKind
    msg: str


UNIQUE_CHECKS = (
    UniqueCheck(Student.student_id, "student_id", FailureKind.ID_ERR, "ID duplicate!"),
    UniqueCheck(Student.phone, "phone", FailureKind.PHONE_ERR, "Phone duplicate!"),
    UniqueCheck(Student.email, "email", FailureKind.EMAIL_ERR, "Email duplicate!"),
    UniqueCheck(Student.name, "name", FailureKind.DUPLICATE, "Name exists!"),
)


def _is_taken(db: Session, check: UniqueCheck, value: str, exclude_id: Optional[int]) -> bool:
    condition = check.column == value
    if exclude_id is not None:
        condition = condition & (Student.id != exclude_id)
    return db.execute(select(exists().where(condition))).scalar()


def check_duplicate(
    db: Session,
    student: StudentBase,
    exclude_id: Optional[int] = None
) -> Optional[WriteFailure]:
    """
    Return the first uniqueness failure for ``student``, or None.

    ``exclude_id`` is the id of the row being updated; it never collides
    with itself. Storage errors propagate to the caller.
    """
    for check in UNIQUE_CHECKS:
        value = getattr(student, check.field)
        if _is_taken(db, check, value, exclude_id):
            logger.info(f"Rejected write: {check.kind.value} ({check.field}={value!r})")
            return WriteFailure(kind=check.kind, msg=check.msg)
    return None
