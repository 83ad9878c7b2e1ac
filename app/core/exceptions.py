from typing import Any, Dict, Optional
from fastapi import status


class BaseAPIException(Exception):
    """
    Parent class for every custom error raised by the API.
    Keeps the error payload returned to the frontend in one format.
    """
    def __init__(
        self,
        message: str,
        code: str = "INTERNAL_ERROR",
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details
        super().__init__(self.message)


class BadRequestException(BaseAPIException):
    """400: invalid request (unknown filter column, bad parameter...)"""
    def __init__(self, message: str = "Bad Request", details: dict = None):
        super().__init__(
            message=message,
            code="BAD_REQUEST",
            status_code=status.HTTP_400_BAD_REQUEST,
            details=details
        )


class NotFoundException(BaseAPIException):
    """404: resource not found"""
    def __init__(self, message: str = "Resource not found"):
        super().__init__(
            message=message,
            code="NOT_FOUND",
            status_code=status.HTTP_404_NOT_FOUND
        )


class DatabaseException(BaseAPIException):
    """
    500: the database rejected or failed a statement
    (connection lost, constraint violation, ...).
    """
    def __init__(self, message: str):
        super().__init__(
            message=message,
            code="DATABASE_ERROR",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR
        )
