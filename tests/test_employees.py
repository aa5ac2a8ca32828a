"""Tests for admin employee management endpoints."""

import pytest
from httpx import AsyncClient
from sqlalchemy import func, select

from staffdesk.core.security import verify_password
from staffdesk.models.attendance import Attendance
from staffdesk.models.leave import LeaveApplication
from staffdesk.models.session import UserSession
from staffdesk.models.user import User


async def _fetch_user(session_factory, username: str) -> User | None:
    async with session_factory() as session:
        result = await session.execute(select(User).where(User.username == username))
        return result.scalar_one_or_none()


async def _count(session_factory, model, **filters) -> int:
    async with session_factory() as session:
        query = select(func.count()).select_from(model)
        for column, value in filters.items():
            query = query.where(getattr(model, column) == value)
        return await session.scalar(query)


@pytest.mark.asyncio
async def test_create_employee(async_client: AsyncClient, admin_headers):
    resp = await async_client.post(
        "/api/v1/admin/employees",
        data={
            "username": "alice",
            "password": "pw123456",
            "name": "Alice A",
            "email": "alice@company.com",
            "department": "Engineering",
        },
        headers=admin_headers,
    )
    assert resp.status_code == 201
    data = resp.json()
    assert data["username"] == "alice"
    assert data["name"] == "Alice A"
    assert data["role"] == "user"
    assert data["department"] == "Engineering"
    assert data["profile_image"] is None


@pytest.mark.asyncio
async def test_created_password_verifies(async_client: AsyncClient, admin_headers, session_factory):
    await async_client.post(
        "/api/v1/admin/employees",
        data={"username": "bob", "password": "s3cret-pw", "name": "Bob"},
        headers=admin_headers,
    )
    bob = await _fetch_user(session_factory, "bob")
    assert bob.hashed_password != "s3cret-pw"
    assert verify_password("s3cret-pw", bob.hashed_password)


@pytest.mark.asyncio
async def test_create_requires_username_password_name(async_client: AsyncClient, admin_headers, session_factory):
    resp = await async_client.post(
        "/api/v1/admin/employees",
        data={"username": "carol", "password": "", "name": "Carol"},
        headers=admin_headers,
    )
    assert resp.status_code == 422
    assert resp.json()["detail"] == "Username, password, and name are required"
    assert await _fetch_user(session_factory, "carol") is None


@pytest.mark.asyncio
async def test_duplicate_username_rejected(async_client: AsyncClient, admin_headers, alice, session_factory):
    resp = await async_client.post(
        "/api/v1/admin/employees",
        data={"username": "alice", "password": "other-pw", "name": "Impostor"},
        headers=admin_headers,
    )
    assert resp.status_code == 409
    assert resp.json()["detail"] == "Username already exists"

    original = await _fetch_user(session_factory, "alice")
    assert original.id == alice.id
    assert original.name == "Alice A"
    assert verify_password("pw123456", original.hashed_password)


@pytest.mark.asyncio
async def test_list_employees_hides_admin(async_client: AsyncClient, admin_headers, make_user):
    await make_user("zed", name="Zed")
    await make_user("amy", name="Amy")
    resp = await async_client.get("/api/v1/admin/employees", headers=admin_headers)
    assert resp.status_code == 200
    data = resp.json()
    assert data["user"]["role"] == "admin"
    assert [e["name"] for e in data["employees"]] == ["Amy", "Zed"]


@pytest.mark.asyncio
async def test_list_employees_search(async_client: AsyncClient, admin_headers, make_user):
    await make_user("jdoe", name="John Doe")
    await make_user("jsmith", name="Jane Smith")
    resp = await async_client.get("/api/v1/admin/employees?search=doe", headers=admin_headers)
    assert [e["username"] for e in resp.json()["employees"]] == ["jdoe"]


@pytest.mark.asyncio
async def test_view_employee(async_client: AsyncClient, admin_headers, alice, alice_headers):
    await async_client.post("/api/v1/user/attendance", headers=alice_headers)
    await async_client.post(
        "/api/v1/user/leave-applications",
        json={"start_date": "2024-01-10", "end_date": "2024-01-12", "reason": "trip"},
        headers=alice_headers,
    )

    resp = await async_client.get(f"/api/v1/admin/employees/{alice.id}", headers=admin_headers)
    assert resp.status_code == 200
    data = resp.json()
    assert data["employee"]["name"] == "Alice A"
    assert data["attendance_summary"] == {"total_days": 1, "present_days": 1, "absent_days": 0}
    assert len(data["recent_attendance"]) == 1
    assert data["leave_applications"][0]["reason"] == "trip"


@pytest.mark.asyncio
async def test_view_admin_account_is_not_found(async_client: AsyncClient, admin_headers, session_factory):
    admin = await _fetch_user(session_factory, "admin")
    resp = await async_client.get(f"/api/v1/admin/employees/{admin.id}", headers=admin_headers)
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_update_employee(async_client: AsyncClient, admin_headers, alice, session_factory):
    resp = await async_client.put(
        f"/api/v1/admin/employees/{alice.id}",
        data={"username": "alice", "name": "Alice Anders", "department": "Sales"},
        headers=admin_headers,
    )
    assert resp.status_code == 200
    data = resp.json()
    assert data["name"] == "Alice Anders"
    assert data["department"] == "Sales"

    # Unrelated edits keep the old password
    stored = await _fetch_user(session_factory, "alice")
    assert verify_password("pw123456", stored.hashed_password)


@pytest.mark.asyncio
async def test_update_employee_password(async_client: AsyncClient, admin_headers, alice, session_factory):
    resp = await async_client.put(
        f"/api/v1/admin/employees/{alice.id}",
        data={"username": "alice", "name": "Alice A", "password": "fresh-pw"},
        headers=admin_headers,
    )
    assert resp.status_code == 200
    stored = await _fetch_user(session_factory, "alice")
    assert verify_password("fresh-pw", stored.hashed_password)
    assert not verify_password("pw123456", stored.hashed_password)


@pytest.mark.asyncio
async def test_rename_to_taken_username(async_client: AsyncClient, admin_headers, alice, make_user, session_factory):
    await make_user("bob", name="Bob")
    resp = await async_client.put(
        f"/api/v1/admin/employees/{alice.id}",
        data={"username": "bob", "name": "Alice A"},
        headers=admin_headers,
    )
    assert resp.status_code == 409
    assert resp.json()["detail"] == "Username already exists"
    assert (await _fetch_user(session_factory, "alice")) is not None


@pytest.mark.asyncio
async def test_update_requires_username_and_name(async_client: AsyncClient, admin_headers, alice):
    resp = await async_client.put(
        f"/api/v1/admin/employees/{alice.id}",
        data={"username": "alice", "name": "  "},
        headers=admin_headers,
    )
    assert resp.status_code == 422
    assert resp.json()["detail"] == "Username and name are required"


@pytest.mark.asyncio
async def test_update_missing_employee(async_client: AsyncClient, admin_headers):
    resp = await async_client.put(
        "/api/v1/admin/employees/9999",
        data={"username": "ghost", "name": "Ghost"},
        headers=admin_headers,
    )
    assert resp.status_code == 404
    assert resp.json()["detail"] == "Employee not found"


@pytest.mark.asyncio
async def test_create_then_delete_scenario(async_client: AsyncClient, admin_headers):
    created = await async_client.post(
        "/api/v1/admin/employees",
        data={"username": "alice", "password": "pw123456", "name": "Alice A"},
        headers=admin_headers,
    )
    eid = created.json()["id"]

    view = await async_client.get(f"/api/v1/admin/employees/{eid}", headers=admin_headers)
    assert view.json()["employee"]["role"] == "user"
    assert view.json()["employee"]["name"] == "Alice A"

    resp = await async_client.delete(f"/api/v1/admin/employees/{eid}", headers=admin_headers)
    assert resp.status_code == 200
    assert resp.json()["success"] is True

    view = await async_client.get(f"/api/v1/admin/employees/{eid}", headers=admin_headers)
    assert view.status_code == 404


@pytest.mark.asyncio
async def test_delete_cascades(async_client: AsyncClient, admin_headers, alice, alice_headers, session_factory):
    await async_client.post("/api/v1/user/attendance", headers=alice_headers)
    await async_client.post(
        "/api/v1/user/leave-applications",
        json={"start_date": "2024-03-01", "end_date": "2024-03-02", "reason": "dentist"},
        headers=alice_headers,
    )

    resp = await async_client.delete(f"/api/v1/admin/employees/{alice.id}", headers=admin_headers)
    assert resp.status_code == 200

    assert await _count(session_factory, Attendance, user_id=alice.id) == 0
    assert await _count(session_factory, LeaveApplication, user_id=alice.id) == 0
    assert await _count(session_factory, UserSession, user_id=alice.id) == 0
    assert await _fetch_user(session_factory, "alice") is None

    # The deleted user's token stops working straight away
    me = await async_client.get("/api/v1/auth/me", headers=alice_headers)
    assert me.status_code == 401


@pytest.mark.asyncio
async def test_delete_missing_employee(async_client: AsyncClient, admin_headers):
    resp = await async_client.delete("/api/v1/admin/employees/9999", headers=admin_headers)
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_admin_cannot_be_deleted(async_client: AsyncClient, admin_headers, session_factory):
    admin = await _fetch_user(session_factory, "admin")
    resp = await async_client.delete(f"/api/v1/admin/employees/{admin.id}", headers=admin_headers)
    assert resp.status_code == 404
    assert await _fetch_user(session_factory, "admin") is not None


@pytest.mark.asyncio
async def test_bulk_delete(async_client: AsyncClient, admin_headers, make_user, session_factory):
    a = await make_user("a1")
    b = await make_user("b1")
    keep = await make_user("c1")
    admin = await _fetch_user(session_factory, "admin")

    resp = await async_client.post(
        "/api/v1/admin/employees/bulk-delete",
        json={"employee_ids": [a.id, b.id, admin.id, 9999]},
        headers=admin_headers,
    )
    assert resp.status_code == 200
    assert resp.json()["deleted"] == 2

    assert await _fetch_user(session_factory, "a1") is None
    assert await _fetch_user(session_factory, "b1") is None
    assert (await _fetch_user(session_factory, "c1")).id == keep.id
    assert await _fetch_user(session_factory, "admin") is not None


@pytest.mark.asyncio
async def test_bulk_delete_requires_selection(async_client: AsyncClient, admin_headers, alice, session_factory):
    resp = await async_client.post(
        "/api/v1/admin/employees/bulk-delete",
        json={"employee_ids": []},
        headers=admin_headers,
    )
    assert resp.status_code == 422
    assert resp.json()["detail"] == "Please select at least one employee to delete"
    assert await _fetch_user(session_factory, "alice") is not None


@pytest.mark.asyncio
async def test_admin_dashboard_stats(async_client: AsyncClient, admin_headers, alice_headers, make_user):
    await make_user("bob")
    await async_client.post("/api/v1/user/attendance", headers=alice_headers)
    await async_client.post(
        "/api/v1/user/leave-applications",
        json={"start_date": "2024-05-01", "end_date": "2024-05-01", "reason": "errand"},
        headers=alice_headers,
    )
    resp = await async_client.get("/api/v1/admin/dashboard", headers=admin_headers)
    assert resp.status_code == 200
    assert resp.json()["stats"] == {
        "total_employees": 2,
        "pending_leaves": 1,
        "today_attendance": 1,
    }
