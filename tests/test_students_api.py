import pytest
from fastapi.testclient import TestClient
from sqlalchemy import text
from sqlalchemy.exc import OperationalError

from app.core.handlers import GENERIC_ERROR_MESSAGE
from app.main import create_app

ALLOWED_ORIGIN = "http://localhost:3000"


def list_students(client, **params):
    response = client.get("/api/students", params=params)
    assert response.status_code == 200, response.text
    body = response.json()
    assert body["success"] is True
    return body["data"]


def drop_students_table(client):
    with client.app.state.engine.begin() as connection:
        connection.execute(text("DROP TABLE students"))


# =============================================================================
# CREATE
# =============================================================================

def test_create_returns_generated_id(client, make_student):
    student = make_student(1)

    response = client.post("/api/students", json={"student": student})

    assert response.status_code == 200
    body = response.json()
    assert body["code"] == 0
    assert isinstance(body["data"]["id"], int)
    assert body["data"] == {"id": body["data"]["id"], **student}


def test_create_duplicate_name_is_soft_failure(client, create, make_student):
    create(1)

    response = client.post(
        "/api/students",
        json={"student": make_student(2, name="Student 1")}
    )

    assert response.status_code == 200
    assert response.json() == {"code": 1, "type": "duplicate", "msg": "Name exists!"}
    assert list_students(client)["total"] == 1


@pytest.mark.parametrize("field, code, kind", [
    ("studentId", -2, "idErr"),
    ("phone", -3, "phoneErr"),
    ("email", -4, "emailErr"),
])
def test_create_duplicate_unique_field(client, create, make_student, field, code, kind):
    existing = create(1)

    response = client.post(
        "/api/students",
        json={"student": make_student(2, **{field: existing[field]})}
    )

    assert response.status_code == 500
    body = response.json()
    assert body["code"] == code
    assert body["type"] == kind
    assert list_students(client)["total"] == 1


def test_create_checks_student_id_before_other_fields(client, create, make_student):
    existing = create(1)

    # Everything collides; studentId is checked first
    response = client.post("/api/students", json={"student": make_student(1)})

    assert response.status_code == 500
    assert response.json()["type"] == "idErr"
    assert existing["id"] == list_students(client)["list"][0]["id"]


def test_create_force_skips_duplicate_checks(client, create, make_student):
    existing = create(1)

    response = client.post("/api/students", json={
        "student": make_student(2, name=existing["name"], phone=existing["phone"], email=existing["email"]),
        "force": True,
    })

    assert response.status_code == 200
    assert response.json()["code"] == 0
    assert list_students(client)["total"] == 2


def test_create_force_still_enforces_student_id_constraint(client, create, make_student):
    create(1)

    response = client.post("/api/students", json={"student": make_student(1), "force": True})

    assert response.status_code == 500
    body = response.json()
    assert body["code"] == -1
    assert body["type"] == "error"
    # Raw database text is not leaked by default
    assert "UNIQUE" not in body["msg"]
    assert list_students(client)["total"] == 1


def test_create_rejects_incomplete_student(client, make_student):
    student = make_student(1)
    del student["email"]

    response = client.post("/api/students", json={"student": student})

    assert response.status_code == 422
    body = response.json()
    assert body["success"] is False
    assert "student.email" in body["details"]


# =============================================================================
# LIST
# =============================================================================

def test_list_empty_table(client):
    data = list_students(client, page=1, pageSize=10)

    assert data == {"list": [], "total": 0, "totalPages": 1, "currentPage": 1}


def test_list_filter_by_email_substring(client, create):
    create(1, email="alice@example.com")
    bob = create(2, email="bob@sample.org")
    create(3, email="carol@example.com")

    data = list_students(client, filterColumn="email", filterKeyword="SAMPLE")

    assert data["total"] == 1
    assert data["list"] == [bob]


def test_list_filter_by_birth_date(client, create):
    create(1, birthDate="1999-12-31")
    match = create(2, birthDate="2003-05-04")

    data = list_students(client, filterColumn="birthDate", filterKeyword="2003-05")

    assert data["list"] == [match]


def test_list_rejects_unknown_filter_column(client, create):
    create(1)

    response = client.get(
        "/api/students",
        params={"filterColumn": "name\" OR 1=1 --", "filterKeyword": "x"}
    )

    assert response.status_code == 400
    assert response.json()["success"] is False


def test_list_ignores_filter_without_keyword(client, create):
    create(1)
    create(2)

    data = list_students(client, filterColumn="not_a_column", filterKeyword="")

    assert data["total"] == 2


def test_list_sorts_descending(client, create):
    for n in (2, 3, 1):
        create(n)

    data = list_students(client, sortField="name", sortOrder="desc")

    assert [s["name"] for s in data["list"]] == ["Student 3", "Student 2", "Student 1"]


def test_list_unknown_sort_field_falls_back_to_id(client, create):
    ids = [create(n)["id"] for n in (3, 1, 2)]

    data = list_students(client, sortField="password", sortOrder="sideways")

    assert [s["id"] for s in data["list"]] == sorted(ids)


def test_list_pagination(client, create):
    for n in range(1, 13):
        create(n)

    data = list_students(client, page=3, pageSize=5)

    assert data["total"] == 12
    assert data["totalPages"] == 3
    assert data["currentPage"] == 3
    assert [s["studentId"] for s in data["list"]] == ["S0011", "S0012"]


@pytest.mark.parametrize("page, page_size, expected_page, expected_size", [
    ("abc", "", 1, 10),
    ("0", "0", 1, 10),
    ("2xyz", "5abc", 2, 5),
    ("-3", "-1", 1, 10),
])
def test_list_lenient_paging_params(client, create, page, page_size, expected_page, expected_size):
    for n in range(1, 13):
        create(n)

    data = list_students(client, page=page, pageSize=page_size)

    assert data["currentPage"] == expected_page
    assert data["totalPages"] == -(-12 // expected_size)


def test_list_honours_large_page_size(client, create):
    for n in range(1, 121):
        create(n)

    data = list_students(client, page=1, pageSize=200)

    assert len(data["list"]) == 120
    assert data["total"] == 120
    assert data["totalPages"] == 1


def test_list_page_size_cap_when_configured(settings, make_student):
    capped = settings.model_copy(update={"LIST_MAX_PAGE_SIZE": 5})
    with TestClient(create_app(capped)) as capped_client:
        for n in range(1, 9):
            capped_client.post("/api/students", json={"student": make_student(n)})

        data = list_students(capped_client, pageSize=50)

    assert len(data["list"]) == 5
    assert data["totalPages"] == 2


# =============================================================================
# UPDATE
# =============================================================================

def test_update_missing_student_returns_404(client, make_student):
    response = client.put("/api/students/999", json={"student": make_student(1)})

    assert response.status_code == 404
    assert response.json() == {
        "code": -1,
        "msg": "Student No.999 does not exist, please check!",
    }


def test_update_replaces_fields(client, create, make_student):
    existing = create(1)
    changed = make_student(1, phone="555-9999")

    response = client.put(f"/api/students/{existing['id']}", json={"student": changed, "force": False})

    assert response.status_code == 200
    assert response.json() == {"code": 0, "data": {"id": existing["id"], **changed}}
    assert list_students(client)["list"] == [{"id": existing["id"], **changed}]


def test_update_does_not_collide_with_itself(client, create, make_student):
    existing = create(1)

    response = client.put(f"/api/students/{existing['id']}", json={"student": make_student(1)})

    assert response.status_code == 200
    assert response.json()["code"] == 0


def test_update_duplicate_email_of_other_student(client, create, make_student):
    create(1)
    second = create(2)

    response = client.put(
        f"/api/students/{second['id']}",
        json={"student": make_student(2, email="student1@example.com")}
    )

    assert response.status_code == 500
    assert response.json()["code"] == -4
    assert list_students(client, filterColumn="id", filterKeyword=str(second["id"]))["list"][0]["email"] == "student2@example.com"


def test_update_duplicate_name_then_force(client, create, make_student):
    create(1)
    second = create(2)
    renamed = make_student(2, name="Student 1")

    soft = client.put(f"/api/students/{second['id']}", json={"student": renamed})
    forced = client.put(f"/api/students/{second['id']}", json={"student": renamed, "force": True})

    assert soft.status_code == 200
    assert soft.json()["code"] == 1
    assert forced.status_code == 200
    assert forced.json()["code"] == 0


# =============================================================================
# DELETE
# =============================================================================

def test_delete_removes_student(client, create):
    keep = create(1)
    gone = create(2)

    response = client.delete(f"/api/students/{gone['id']}")

    assert response.status_code == 200
    assert response.json() == {"success": True}
    assert [s["id"] for s in list_students(client)["list"]] == [keep["id"]]


@pytest.mark.parametrize("student_id", ["12345", "abc"])
def test_delete_missing_student_returns_404(client, student_id):
    response = client.delete(f"/api/students/{student_id}")

    assert response.status_code == 404
    body = response.json()
    assert body["success"] is False
    assert "does not exist" in body["message"]


# =============================================================================
# ROUND TRIP / MISC
# =============================================================================

def test_create_then_find_by_student_id(client, make_student):
    student = make_student(7, studentId="2024-CS-0042")
    created = client.post("/api/students", json={"student": student}).json()["data"]

    data = list_students(client, filterColumn="studentId", filterKeyword="cs-0042")

    assert data["list"] == [{"id": created["id"], **student}]


def test_cors_allows_listed_origin_only(client):
    allowed = client.get("/api/students", headers={"Origin": ALLOWED_ORIGIN})
    denied = client.get("/api/students", headers={"Origin": "https://evil.example"})

    assert allowed.headers["access-control-allow-origin"] == ALLOWED_ORIGIN
    assert allowed.headers["access-control-allow-credentials"] == "true"
    assert "access-control-allow-origin" not in denied.headers


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


# =============================================================================
# STORAGE FAILURES
# =============================================================================

def test_list_storage_failure_hides_details(client, create):
    create(1)
    drop_students_table(client)

    response = client.get("/api/students")

    assert response.status_code == 500
    assert response.json() == {"success": False, "message": GENERIC_ERROR_MESSAGE}


def test_delete_storage_failure_hides_details(client, create):
    existing = create(1)
    drop_students_table(client)

    response = client.delete(f"/api/students/{existing['id']}")

    assert response.status_code == 500
    assert response.json() == {"success": False, "message": GENERIC_ERROR_MESSAGE}


def test_storage_failure_details_exposed_when_enabled(settings):
    exposed = settings.model_copy(update={"EXPOSE_ERROR_DETAILS": True})
    with TestClient(create_app(exposed)) as exposed_client:
        drop_students_table(exposed_client)

        listed = exposed_client.get("/api/students")
        deleted = exposed_client.delete("/api/students/1")

    for response in (listed, deleted):
        assert response.status_code == 500
        body = response.json()
        assert body["success"] is False
        assert "no such table" in body["message"]


def test_uncaught_database_error_is_handled(settings):
    app = create_app(settings)

    @app.get("/broken")
    def broken():
        raise OperationalError("SELECT 1", {}, Exception("connection lost"))

    with TestClient(app) as broken_client:
        response = broken_client.get("/broken")

    assert response.status_code == 500
    assert response.json() == {"success": False, "message": GENERIC_ERROR_MESSAGE}
