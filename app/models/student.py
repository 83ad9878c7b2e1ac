from sqlalchemy import Column, Date, Integer, Text
from app.core.database import Base


class Student(Base):
    __tablename__ = "students"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(Text, nullable=False)
    gender = Column(Text, nullable=False)
    # camelCase column names are part of the persisted schema
    student_id = Column("studentId", Text, unique=True, nullable=False)
    birth_date = Column("birthDate", Date, nullable=False)
    phone = Column(Text, nullable=False)
    email = Column(Text, nullable=False)
    address = Column(Text, nullable=False)
