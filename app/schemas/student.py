from datetime import date
from typing import List, Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class StudentBase(BaseModel):
    name: str
    gender: str
    student_id: str
    birth_date: date
    phone: str
    email: str
    address: str

    # Wire format is camelCase (studentId, birthDate)
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class StudentCreate(StudentBase):
    pass


class StudentInDB(StudentBase):
    id: int

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True
    )


class Student(StudentInDB):
    pass


class StudentWriteRequest(BaseModel):
    """Body of create and update requests."""
    student: StudentCreate
    force: Optional[bool] = False


class StudentListOptions(BaseModel):
    """Normalized list parameters handed to the data access layer."""
    filter_column: str = ""
    filter_keyword: str = ""
    sort_field: str = "id"
    sort_order: str = "asc"
    page: int = 1
    page_size: int = 10


class StudentPage(BaseModel):
    list: List[Student]
    total: int
    total_pages: int
    current_page: int

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)
