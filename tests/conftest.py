import pytest
from fastapi.testclient import TestClient

from app.core.config import Settings
from app.core.database import create_db_engine, create_session_factory, init_db
from app.main import create_app

ALLOWED_ORIGIN = "http://localhost:3000"


@pytest.fixture
def settings():
    return Settings(
        _env_file=None,
        DATABASE_URL="sqlite://",
        BACKEND_CORS_ORIGINS=[ALLOWED_ORIGIN],
        STATIC_DIR="__no_static_dir__",
        LOG_LEVEL="WARNING",
    )


@pytest.fixture
def client(settings):
    app = create_app(settings)
    # Entering the context runs the lifespan, which creates the table
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def db(settings):
    engine = create_db_engine(settings)
    init_db(engine)
    session = create_session_factory(engine)()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()


@pytest.fixture
def make_student():
    """Factory for camelCase student payloads that are unique per ``n``."""
    def _make(n=1, **overrides):
        student = {
            "name": f"Student {n}",
            "gender": "female" if n % 2 else "male",
            "studentId": f"S{n:04d}",
            "birthDate": f"2001-02-{(n % 28) + 1:02d}",
            "phone": f"555-01{n:02d}",
            "email": f"student{n}@example.com",
            "address": f"{n} Main Street",
        }
        student.update(overrides)
        return student
    return _make


@pytest.fixture
def create(client, make_student):
    """POST a student and return the created record."""
    def _create(n=1, **overrides):
        response = client.post("/api/students", json={"student": make_student(n, **overrides)})
        assert response.status_code == 200, response.text
        assert response.json()["code"] == 0
        return response.json()["data"]
    return _create
