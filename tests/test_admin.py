"""
tests/test_admin.py
Tests for admin endpoints: overview, summary, forced cancellation,
slot deletion and the subject catalogue.
"""

import pytest
from httpx import AsyncClient

from tests.conftest import create_subject


async def book(client: AsyncClient, student, tutor, slot, subject_name="Math 101") -> int:
    response = await client.post(
        "/appointments",
        json={
            "student_id": student.user_id,
            "tutor_id": tutor.user_id,
            "subject_name": subject_name,
            "availability_id": slot.availability_id,
        },
    )
    assert response.status_code == 201
    return response.json()["appointment_id"]


# ── Overview ───────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_availability_overview(client: AsyncClient, student, tutor, math, slot):
    appointment_id = await book(client, student, tutor, slot)

    response = await client.get("/admin/availability")

    assert response.status_code == 200
    [row] = response.json()
    assert row["tutor_name"] == "Ada Lovelace"
    assert row["status"] == "pending"
    assert row["appointment_id"] == appointment_id
    assert row["appointment_status"] == "pending"
    assert row["student_name"] == "Sam Student"


@pytest.mark.asyncio
async def test_summary(client: AsyncClient, student, tutor, admin, math, slot):
    await book(client, student, tutor, slot)

    response = await client.get("/admin/summary")

    assert response.status_code == 200
    assert response.json() == {
        "total_users": 3,
        "total_students": 1,
        "total_tutors": 1,
        "total_appointments": 1,
        "active_appointments": 1,
        "pending_appointments": 1,
        "accepted_appointments": 0,
    }


# ── Session Oversight ──────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_cancel_session_reopens_slot(client: AsyncClient, student, tutor, math, slot):
    appointment_id = await book(client, student, tutor, slot)
    await client.put(f"/appointments/{appointment_id}/status", json={"status": "accepted"})

    response = await client.post(f"/admin/appointments/{appointment_id}/cancel")

    assert response.status_code == 200
    search = await client.get("/search/availability", params={"date": "2025-10-27"})
    assert [r["availability_id"] for r in search.json()] == [slot.availability_id]

    student_inbox = await client.get(f"/notifications/{student.user_id}")
    tutor_inbox = await client.get(f"/notifications/{tutor.user_id}")
    assert student_inbox.json()[0]["message"].startswith("An administrator cancelled")
    assert tutor_inbox.json()[0]["message"].startswith("An administrator cancelled")


@pytest.mark.asyncio
async def test_cancel_declined_session_gets_409(client: AsyncClient, student, tutor, math, slot):
    appointment_id = await book(client, student, tutor, slot)
    await client.put(f"/appointments/{appointment_id}/status", json={"status": "declined"})

    response = await client.post(f"/admin/appointments/{appointment_id}/cancel")

    assert response.status_code == 409
    assert response.json()["detail"]["message"] == "not cancellable"


@pytest.mark.asyncio
async def test_delete_slot(client: AsyncClient, tutor, slot):
    response = await client.delete(f"/admin/availability/{slot.availability_id}")
    assert response.status_code == 200

    remaining = await client.get("/admin/availability")
    assert remaining.json() == []


@pytest.mark.asyncio
async def test_delete_booked_slot_gets_409(client: AsyncClient, student, tutor, math, slot):
    await book(client, student, tutor, slot)

    response = await client.delete(f"/admin/availability/{slot.availability_id}")

    assert response.status_code == 409


@pytest.mark.asyncio
async def test_delete_missing_slot_gets_404(client: AsyncClient):
    response = await client.delete("/admin/availability/55")
    assert response.status_code == 404


# ── Subject Catalogue ──────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_add_subject(client: AsyncClient):
    response = await client.post("/admin/subjects", json={"subject_name": "  Biology "})

    assert response.status_code == 201
    assert isinstance(response.json()["subject_id"], int)
    subjects = await client.get("/subjects")
    assert [s["subject_name"] for s in subjects.json()] == ["Biology"]


@pytest.mark.asyncio
async def test_add_duplicate_subject_gets_409(client: AsyncClient, math):
    response = await client.post("/admin/subjects", json={"subject_name": "Math 101"})
    assert response.status_code == 409
    assert response.json()["detail"]["code"] == "ConflictError"
    assert response.json()["detail"]["message"] == "Subject already exists"
    assert [s["subject_name"] for s in (await client.get("/subjects")).json()] == ["Math 101"]


@pytest.mark.asyncio
async def test_add_blank_subject_gets_422(client: AsyncClient):
    response = await client.post("/admin/subjects", json={"subject_name": "   "})
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_delete_unused_subject(client: AsyncClient, session_factory):
    unused = await create_subject(session_factory, "Geology")

    response = await client.delete(f"/admin/subjects/{unused.subject_id}")

    assert response.status_code == 200
    assert (await client.get("/subjects")).json() == []


@pytest.mark.asyncio
async def test_delete_subject_in_use_gets_409(client: AsyncClient, math):
    response = await client.delete(f"/admin/subjects/{math.subject_id}")
    assert response.status_code == 409
    assert response.json()["detail"]["code"] == "ConflictError"
    assert response.json()["detail"]["details"]["tutors"] == 1


@pytest.mark.asyncio
async def test_delete_missing_subject_gets_404(client: AsyncClient):
    response = await client.delete("/admin/subjects/77")

    assert response.status_code == 404
    assert response.json()["detail"]["code"] == "NotFoundError"
