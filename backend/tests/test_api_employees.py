"""
Tests for app/api/v1/employees.py - Employee registration, listing, update, promotion and soft delete.
"""
import pytest
from datetime import date

from tests.utils.factories import (
    TEST_PASSWORD,
    create_assignment,
    create_employee,
    create_manager,
    manager_login,
)


class TestEmployeeIdHelpers:

    def test_generate_employee_id_format(self):
        from app.api.v1.employees import generate_employee_id

        employee_id = generate_employee_id()

        assert employee_id.startswith("EMP")
        assert len(employee_id) == 8

    def test_manager_id_for(self):
        from app.api.v1.employees import manager_id_for

        assert manager_id_for("EMPa1b2c") == "MNGa1b2c"

    def test_validate_employee_id(self):
        from app.api.helpers import validate_employee_id
        from fastapi import HTTPException

        assert validate_employee_id("MNGa1b2c") == "MNGa1b2c"
        with pytest.raises(HTTPException) as exc_info:
            validate_employee_id("XYZ123")
        assert exc_info.value.detail == "Invalid Employee ID format"
        with pytest.raises(HTTPException) as exc_info:
            validate_employee_id("MNGa1b2c", prefixes=("EMP",))
        assert exc_info.value.detail == "Employee ID must start with EMP"

    def test_build_pagination(self):
        from app.api.helpers import build_pagination

        assert build_pagination(total=25, page=2, limit=10).model_dump() == {
            "total": 25,
            "page": 2,
            "limit": 10,
            "totalPages": 3,
            "hasNextPage": True,
            "hasPrevPage": True,
        }
        assert build_pagination(total=0, page=1, limit=10).hasNextPage is False


class TestRegisterEmployee:

    @pytest.mark.asyncio
    async def test_register(self, admin_client):
        response = await admin_client.post("/api/v1/employees", json={
            "first_name": "Sita",
            "last_name": "Sharma",
            "email": "sita@example.com",
            "date_of_birth": "1994-05-01",
            "blood_group": "O+",
        })

        assert response.status_code == 201
        data = response.json()["data"]
        assert data["employee_id"].startswith("EMP")
        assert len(data["employee_id"]) == 8
        assert data["date_of_birth"] == "1994-05-01"
        assert data["manager_id"] is None
        assert data["deleted_at"] is None

    @pytest.mark.asyncio
    async def test_missing_field(self, admin_client):
        response = await admin_client.post("/api/v1/employees", json={
            "last_name": "Sharma",
            "email": "sita@example.com",
        })

        assert response.status_code == 400
        assert response.json() == {"success": False, "message": "first_name is required"}

    @pytest.mark.asyncio
    async def test_duplicate_email(self, admin_client, db_session):
        await create_employee(db_session, "EMP00001", email="taken@example.com")

        response = await admin_client.post("/api/v1/employees", json={
            "first_name": "A", "last_name": "B", "email": "Taken@example.com",
        })

        assert response.status_code == 409

    @pytest.mark.asyncio
    async def test_requires_session(self, client):
        response = await client.post("/api/v1/employees", json={
            "first_name": "A", "last_name": "B", "email": "a@example.com",
        })

        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_manager_cannot_register(self, client, db_session):
        account = await create_manager(db_session, "EMPa1b2c")
        await manager_login(client, account.email)

        response = await client.post("/api/v1/employees", json={
            "first_name": "A", "last_name": "B", "email": "a@example.com",
        })

        assert response.status_code == 403
        assert response.json()["success"] is False


class TestListEmployees:

    @pytest.mark.asyncio
    async def test_pagination(self, admin_client, db_session):
        for i in range(3):
            await create_employee(db_session, f"EMP0000{i}")

        response = await admin_client.get("/api/v1/employees", params={"page": 1, "limit": 2})

        assert response.status_code == 200
        body = response.json()
        assert len(body["data"]) == 2
        assert body["pagination"] == {
            "total": 3,
            "page": 1,
            "limit": 2,
            "totalPages": 2,
            "hasNextPage": True,
            "hasPrevPage": False,
        }

    @pytest.mark.asyncio
    async def test_search(self, admin_client, db_session):
        await create_employee(db_session, "EMP00001", first_name="Ram", last_name="Thapa")
        await create_employee(db_session, "EMP00002", first_name="Hari", last_name="Karki")

        response = await admin_client.get("/api/v1/employees", params={"search": "thap"})

        data = response.json()["data"]
        assert [e["employee_id"] for e in data] == ["EMP00001"]

    @pytest.mark.asyncio
    async def test_managers_listing(self, admin_client, db_session):
        await create_manager(db_session, "EMPa1b2c")
        await create_employee(db_session, "EMP00002")

        response = await admin_client.get("/api/v1/employees/managers")

        body = response.json()
        assert body["count"] == 1
        assert body["data"][0]["manager_id"] == "MNGa1b2c"

    @pytest.mark.asyncio
    async def test_read_by_manager_id(self, admin_client, db_session):
        await create_manager(db_session, "EMPa1b2c")

        response = await admin_client.get("/api/v1/employees/MNGa1b2c")

        assert response.status_code == 200
        assert response.json()["data"]["employee_id"] == "EMPa1b2c"

    @pytest.mark.asyncio
    async def test_invalid_id_format(self, admin_client):
        response = await admin_client.get("/api/v1/employees/abc")

        assert response.status_code == 400
        assert response.json()["message"] == "Invalid Employee ID format"

    @pytest.mark.asyncio
    async def test_not_found(self, admin_client):
        response = await admin_client.get("/api/v1/employees/EMPfffff")

        assert response.status_code == 404
        assert response.json()["message"] == "Employee not found"


class TestSoftDelete:

    @pytest.mark.asyncio
    async def test_deleted_employee_moves_to_deleted_list(self, admin_client, db_session):
        await create_employee(db_session, "EMP00001")
        await create_employee(db_session, "EMP00002")

        response = await admin_client.delete("/api/v1/employees/EMP00001")
        assert response.status_code == 200
        assert response.json()["data"]["employee_id"] == "EMP00001"

        listed = await admin_client.get("/api/v1/employees")
        assert [e["employee_id"] for e in listed.json()["data"]] == ["EMP00002"]

        deleted = await admin_client.get("/api/v1/employees/deleted")
        deleted_body = deleted.json()
        assert [e["employee_id"] for e in deleted_body["data"]] == ["EMP00001"]
        assert deleted_body["data"][0]["deleted_at"] is not None
        assert deleted_body["pagination"]["limit"] == 100

        single = await admin_client.get("/api/v1/employees/EMP00001")
        assert single.status_code == 404

    @pytest.mark.asyncio
    async def test_delete_twice_is_404(self, admin_client, db_session):
        await create_employee(db_session, "EMP00001")

        await admin_client.delete("/api/v1/employees/EMP00001")
        response = await admin_client.delete("/api/v1/employees/EMP00001")

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_records_include_deleted(self, admin_client, db_session):
        await create_employee(db_session, "EMP00001")
        await create_employee(db_session, "EMP00002")
        await create_assignment(db_session, "EMP00001", salary=50000)
        await admin_client.delete("/api/v1/employees/EMP00001")

        response = await admin_client.get("/api/v1/employees/records")

        body = response.json()
        assert body["count"] == 2
        by_id = {r["employee_id"]: r for r in body["data"]}
        assert by_id["EMP00001"]["deleted_at"] is not None
        assert by_id["EMP00001"]["department_history"][0]["salary_per_month_npr"] == 50000.0
        assert by_id["EMP00002"]["department_history"] == []

        single = await admin_client.get("/api/v1/employees/EMP00001/records")
        assert single.status_code == 200
        assert single.json()["data"]["employee_id"] == "EMP00001"

    @pytest.mark.asyncio
    async def test_records_name_the_reviewer(self, admin_client, db_session):
        from app.models.performance import PerformanceReview

        await create_manager(db_session, "EMPa1b2c")
        await create_employee(db_session, "EMP00001")
        db_session.add(PerformanceReview(
            employee_id="EMP00001",
            reviewer_id="MNGa1b2c",
            review_date=date(2024, 6, 1),
            performance_score=88,
        ))
        await db_session.commit()

        response = await admin_client.get("/api/v1/employees/EMP00001/records")

        review = response.json()["data"]["performance_history"][0]
        assert review["reviewer_name"] == "Mira Manager"
        assert review["performance_score"] == 88


class TestUpdateEmployee:

    @pytest.mark.asyncio
    async def test_update_fields(self, admin_client, db_session):
        await create_employee(db_session, "EMP00001")

        response = await admin_client.patch("/api/v1/employees/EMP00001", json={
            "phone_number": "9800000000",
            "unknown_field": "ignored",
        })

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["phone_number"] == "9800000000"
        assert data["is_manager"] is False

    @pytest.mark.asyncio
    async def test_empty_update(self, admin_client, db_session):
        await create_employee(db_session, "EMP00001")

        response = await admin_client.patch("/api/v1/employees/EMP00001", json={})

        assert response.status_code == 400
        assert response.json()["message"] == "No valid fields to update"

    @pytest.mark.asyncio
    async def test_manager_id_rejected(self, admin_client):
        response = await admin_client.patch("/api/v1/employees/MNGa1b2c", json={"phone_number": "1"})

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_promotion_requires_password(self, admin_client, db_session):
        await create_employee(db_session, "EMP00001")

        response = await admin_client.patch("/api/v1/employees/EMP00001", json={"promote_to_manager": True})

        assert response.status_code == 400
        assert response.json()["message"] == "Password is required for manager promotion"

    @pytest.mark.asyncio
    async def test_promotion_creates_manager_login(self, admin_client, db_session):
        await create_employee(db_session, "EMPabcde", email="lead@example.com")

        response = await admin_client.patch("/api/v1/employees/EMPabcde", json={
            "promote_to_manager": True,
            "password": TEST_PASSWORD,
        })

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["is_manager"] is True
        assert data["assigned_manager_id"] == "MNGabcde"
        assert data["manager_id"] == "MNGabcde"

        again = await admin_client.patch("/api/v1/employees/EMPabcde", json={
            "promote_to_manager": True,
            "password": TEST_PASSWORD,
        })
        assert again.status_code == 400
        assert again.json()["message"] == "Employee is already a manager"

        admin_client.cookies.clear()
        login_response = await manager_login(admin_client, "lead@example.com")
        assert login_response.json()["user"]["manager_id"] == "MNGabcde"

    @pytest.mark.asyncio
    async def test_promotion_rolls_back_on_email_conflict(self, admin_client, db_session):
        from app.core.security import get_password_hash
        from app.models.employee import Employee
        from app.models.manager import ManagerRole
        from sqlalchemy import select

        await create_employee(db_session, "EMP00001", email="dup@example.com")
        await create_employee(db_session, "EMP00002")
        db_session.add(ManagerRole(
            employee_id="EMP00002",
            manager_id="MNG00002",
            email="dup@example.com",
            password_hash=get_password_hash(TEST_PASSWORD),
        ))
        await db_session.commit()

        response = await admin_client.patch("/api/v1/employees/EMP00001", json={
            "promote_to_manager": True,
            "password": TEST_PASSWORD,
            "phone_number": "123",
        })

        assert response.status_code == 409
        db_session.expire_all()
        employee = (await db_session.execute(
            select(Employee).where(Employee.employee_id == "EMP00001")
        )).scalar_one()
        assert employee.manager_id is None
        assert employee.phone_number is None
