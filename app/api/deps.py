import re
from typing import Generator, Optional

from fastapi import Query, Request
from sqlalchemy.orm import Session

from app.core.config import Settings
from app.schemas.student import StudentListOptions

_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")


def parse_int(value: Optional[str], default: Optional[int] = None) -> Optional[int]:
    """
    Lenient integer parse: "12", " 12", "12abc" -> 12; anything without a
    leading integer -> ``default``.
    """
    if value is None:
        return default
    match = _LEADING_INT.match(value)
    if not match:
        return default
    return int(match.group(1))


def get_db(request: Request) -> Generator[Session, None, None]:
    """
    Dependency that yields a database session.

    Sessions come from the factory built by ``create_app`` (``app.state``),
    and are closed automatically once the request is finished.
    """
    db = request.app.state.session_factory()
    try:
        yield db
    finally:
        db.close()


def get_settings(request: Request) -> Settings:
    """Settings the running application was built with."""
    return request.app.state.settings


def get_list_options(
    request: Request,
    filter_column: str = Query("", alias="filterColumn"),
    filter_keyword: str = Query("", alias="filterKeyword"),
    sort_field: str = Query("id", alias="sortField"),
    sort_order: str = Query("asc", alias="sortOrder"),
    page: Optional[str] = Query(None),
    page_size: Optional[str] = Query(None, alias="pageSize"),
) -> StudentListOptions:
    """
    Query string -> StudentListOptions.

    page/pageSize never fail validation: missing, non-numeric or
    non-positive values fall back to their defaults.
    """
    settings = get_settings(request)

    page_number = parse_int(page)
    if not page_number or page_number < 1:
        page_number = 1

    size = parse_int(page_size)
    if not size or size < 1:
        size = settings.LIST_DEFAULT_PAGE_SIZE
    if settings.LIST_MAX_PAGE_SIZE:
        size = min(size, settings.LIST_MAX_PAGE_SIZE)

    return StudentListOptions(
        filter_column=filter_column or "",
        filter_keyword=filter_keyword or "",
        sort_field=sort_field or "id",
        sort_order=sort_order or "asc",
        page=page_number,
        page_size=size,
    )
