# app/core/handlers.py
import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException
from app.core.exceptions import BaseAPIException

logger = logging.getLogger(__name__)

GENERIC_ERROR_MESSAGE = "An unexpected error occurred. Please contact support."


def public_error_message(request: Request, detail: str) -> str:
    """Text shown to clients for an internal failure; raw only when allowed."""
    if request.app.state.settings.EXPOSE_ERROR_DETAILS:
        return detail
    return GENERIC_ERROR_MESSAGE


# 1. Errors raised on purpose by the API (BadRequest, NotFound, Database...)
async def custom_api_exception_handler(request: Request, exc: BaseAPIException):
    content = {"success": False, "message": exc.message}
    if exc.details:
        content["details"] = exc.details
    return JSONResponse(status_code=exc.status_code, content=content)


# 2. Pydantic validation errors (client sent the wrong shape or type)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    details = {}
    for error in exc.errors():
        # "body.student.email" -> "student.email"
        field = ".".join(str(x) for x in error["loc"] if x != "body")
        details[field] = error["msg"]

    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "success": False,
            "message": "Input validation failed",
            "details": details
        },
    )


# 3. Standard HTTP errors (unknown URL, wrong method...)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "message": str(exc.detail)},
        headers=getattr(exc, "headers", None),
    )


# 4. Database errors nobody caught on the way up
async def database_exception_handler(request: Request, exc: SQLAlchemyError):
    logger.error(f"Database error: {exc}", exc_info=True)

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"success": False, "message": public_error_message(request, str(exc))},
    )


# 5. Anything else: log the full traceback, hide the details from the client
async def general_exception_handler(request: Request, exc: Exception):
    logger.critical(f"Unhandled Exception: {exc}", exc_info=True)

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"success": False, "message": public_error_message(request, str(exc))},
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(BaseAPIException, custom_api_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(SQLAlchemyError, database_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)
