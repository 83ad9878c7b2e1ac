import logging

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.api.deps import get_db, get_list_options, get_settings, parse_int
from app.core.config import Settings
from app.core.exceptions import DatabaseException, NotFoundException
from app.core.handlers import public_error_message
from app.schemas.student import StudentListOptions, StudentWriteRequest
from app.services.student import student as crud_student
from app.services.student.validation import FailureKind, WriteFailure

logger = logging.getLogger(__name__)

router = APIRouter()

# FailureKind -> (HTTP status, response code).
# A duplicate name is a soft failure the client may override with force=true.
FAILURE_RESPONSES = {
    FailureKind.DUPLICATE: (status.HTTP_200_OK, 1),
    FailureKind.ID_ERR: (status.HTTP_500_INTERNAL_SERVER_ERROR, -2),
    FailureKind.PHONE_ERR: (status.HTTP_500_INTERNAL_SERVER_ERROR, -3),
    FailureKind.EMAIL_ERR: (status.HTTP_500_INTERNAL_SERVER_ERROR, -4),
    FailureKind.ERROR: (status.HTTP_500_INTERNAL_SERVER_ERROR, -1),
}


def _not_found_message(student_id) -> str:
    return f"Student No.{student_id} does not exist, please check!"


def _failure_response(request: Request, failure: WriteFailure) -> JSONResponse:
    status_code, code = FAILURE_RESPONSES[failure.kind]
    msg = failure.msg
    if failure.kind is FailureKind.ERROR:
        msg = public_error_message(request, failure.msg)
    return JSONResponse(
        status_code=status_code,
        content={"code": code, "type": failure.kind.value, "msg": msg}
    )


@router.post("")
def create_student(
    request: Request,
    payload: StudentWriteRequest,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings)
):
    """
    Create a student.

    - **student**: all seven student fields (camelCase)
    - **force**: skip the studentId/phone/email/name duplicate checks
    """
    result = crud_student.create_student(
        db,
        payload.student,
        force=bool(payload.force),
        isolation_level=settings.DB_WRITE_ISOLATION_LEVEL
    )
    if isinstance(result, WriteFailure):
        return _failure_response(request, result)

    data = {"id": result.id, **payload.student.model_dump(by_alias=True, mode="json")}
    return {"code": 0, "data": data}


@router.get("")
def get_students(
    request: Request,
    options: StudentListOptions = Depends(get_list_options),
    db: Session = Depends(get_db)
):
    """
    List students with filtering, sorting and pagination.

    - **filterColumn** / **filterKeyword**: case-insensitive substring filter
    - **sortField** / **sortOrder**: any student column, `asc` or `desc`
    - **page** / **pageSize**: 1-based page number and page size
    """
    try:
        page = crud_student.get_students(db, options)
    except SQLAlchemyError as e:
        logger.error(f"List students failed: {e}", exc_info=True)
        raise DatabaseException(public_error_message(request, str(e)))

    return {"success": True, "data": page.model_dump(by_alias=True, mode="json")}


@router.put("/{student_id}")
def update_student(
    request: Request,
    student_id: str,
    payload: StudentWriteRequest,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings)
):
    """
    Replace all fields of a student. The id never changes.
    """
    row_id = parse_int(student_id)
    if row_id is None:
        return JSONResponse(
            status_code=status.HTTP_404_NOT_FOUND,
            content={"code": -1, "msg": _not_found_message(student_id)}
        )

    result = crud_student.update_student(
        db,
        row_id,
        payload.student,
        force=bool(payload.force),
        isolation_level=settings.DB_WRITE_ISOLATION_LEVEL
    )
    if isinstance(result, WriteFailure):
        return _failure_response(request, result)

    if result == 0:
        return JSONResponse(
            status_code=status.HTTP_404_NOT_FOUND,
            content={"code": -1, "msg": _not_found_message(row_id)}
        )

    data = {"id": row_id, **payload.student.model_dump(by_alias=True, mode="json")}
    return {"code": 0, "data": data}


@router.delete("/{student_id}")
def delete_student(
    request: Request,
    student_id: str,
    db: Session = Depends(get_db)
):
    """
    Delete a student permanently.
    """
    row_id = parse_int(student_id)
    if row_id is None:
        raise NotFoundException(_not_found_message(student_id))

    try:
        affected = crud_student.delete_student(db, row_id)
    except SQLAlchemyError as e:
        logger.error(f"Delete student {row_id} failed: {e}", exc_info=True)
        raise DatabaseException(public_error_message(request, str(e)))

    if affected == 0:
        raise NotFoundException(_not_found_message(row_id))

    return {"success": True}
