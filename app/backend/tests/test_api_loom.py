from datetime import date, timedelta

import pytest
from httpx import AsyncClient

from .factories import build_participant_create, build_rule_create, build_staff_create


async def _seed_program(api_client: AsyncClient, *, participants: int = 2, staff: int = 1) -> dict:
    program_day = date.today() + timedelta(days=3)
    rule = (
        await api_client.post(
            "/api/rules/", json=build_rule_create(day_of_week=program_day.weekday()).model_dump(mode="json")
        )
    ).json()
    for index in range(participants):
        participant = (
            await api_client.post(
                "/api/resources/participants",
                json=build_participant_create(first_name=f"Api{index}").model_dump(mode="json"),
            )
        ).json()
        await api_client.post(
            f"/api/rules/{rule['id']}/enrolments",
            json={"participant_id": participant["id"], "start_date": date.today().isoformat()},
        )
    for index in range(staff):
        await api_client.post(
            "/api/resources/staff", json=build_staff_create(first_name=f"Api{index}").model_dump(mode="json")
        )
    return {"rule": rule, "program_day": program_day}


@pytest.mark.anyio("asyncio")
async def test_window_generate_resize_and_roll(api_client: AsyncClient) -> None:
    seeded = await _seed_program(api_client)

    initial = await api_client.get("/api/loom/window")
    assert initial.status_code == 200
    assert initial.json()["weeks"] == 4

    generate_response = await api_client.post("/api/loom/window/generate", json={"weeks": 2})
    assert generate_response.status_code == 200
    generated = generate_response.json()
    assert generated["window"]["weeks"] == 2
    assert generated["window"]["start"] == date.today().isoformat()
    assert generated["projection"]["instances_created"] == 2

    instances = (await api_client.get("/api/loom/instances")).json()
    assert [item["instance_date"] for item in instances] == [
        seeded["program_day"].isoformat(),
        (seeded["program_day"] + timedelta(days=7)).isoformat(),
    ]

    too_large = await api_client.put("/api/loom/window", json={"weeks": 17})
    assert too_large.status_code == 422

    grow_response = await api_client.put("/api/loom/window", json={"weeks": 3})
    assert grow_response.status_code == 200
    grown = grow_response.json()
    assert grown["previous_weeks"] == 2
    assert grown["projected_start"] == (date.today() + timedelta(days=14)).isoformat()
    assert grown["projection"]["instances_created"] == 1

    roll_response = await api_client.post("/api/loom/window/roll")
    assert roll_response.status_code == 200
    rolled = roll_response.json()
    assert rolled["archive"]["instances_archived"] == 0
    assert rolled["window"]["weeks"] == 3


@pytest.mark.anyio("asyncio")
async def test_generate_with_bad_size_is_rejected(api_client: AsyncClient) -> None:
    response = await api_client.post("/api/loom/window/generate", json={"weeks": 0})
    assert response.status_code == 422
    assert "between 1 and 16" in response.json()["detail"]


@pytest.mark.anyio("asyncio")
async def test_instance_detail_and_operator_edits(api_client: AsyncClient) -> None:
    await _seed_program(api_client, participants=2, staff=1)
    await api_client.post("/api/loom/window/generate", json={"weeks": 1})
    instance = (await api_client.get("/api/loom/instances")).json()[0]

    detail_response = await api_client.get(f"/api/loom/instances/{instance['id']}")
    assert detail_response.status_code == 200
    detail = detail_response.json()
    assert len(detail["attendance"]) == 2
    assert len(detail["staff_assignments"]) == 1
    assert detail["required_staff"] == 1

    edit_response = await api_client.patch(
        f"/api/loom/instances/{instance['id']}", json={"notes": "Moved to the hall", "end_time": "15:00"}
    )
    assert edit_response.status_code == 200
    edited = edit_response.json()
    assert edited["is_overridden"] is True
    assert edited["end_time"] == "15:00:00"

    invalid_edit = await api_client.patch(f"/api/loom/instances/{instance['id']}", json={"end_time": "09:00"})
    assert invalid_edit.status_code == 422

    for field in ("start_time", "end_time", "transport_required"):
        cleared = await api_client.patch(f"/api/loom/instances/{instance['id']}", json={field: None})
        assert cleared.status_code == 422
    unchanged = (await api_client.get(f"/api/loom/instances/{instance['id']}")).json()
    assert unchanged["end_time"] == "15:00:00"
    assert unchanged["start_time"] == instance["start_time"]

    regenerate = await api_client.post("/api/loom/window/generate", params={"full_rebuild": True})
    assert regenerate.status_code == 200
    assert regenerate.json()["projection"]["overrides_preserved"] == 1

    missing = await api_client.get("/api/loom/instances/9999")
    assert missing.status_code == 404


@pytest.mark.anyio("asyncio")
async def test_cancellation_and_reoptimisation(api_client: AsyncClient) -> None:
    await _seed_program(api_client, participants=5, staff=2)
    await api_client.post("/api/loom/window/generate", json={"weeks": 1})
    instance = (await api_client.get("/api/loom/instances")).json()[0]
    assert instance["required_staff"] == 2
    detail = (await api_client.get(f"/api/loom/instances/{instance['id']}")).json()
    attendance_id = detail["attendance"][0]["id"]

    cancel_response = await api_client.post(
        f"/api/loom/attendance/{attendance_id}/cancel", json={"reason": "Family event"}
    )
    assert cancel_response.status_code == 200
    cancelled = cancel_response.json()
    assert cancelled["cancellation_type"] == "normal"
    assert cancelled["billing_impact"] is False
    assert cancelled["remaining_participants"] == 4

    again = await api_client.post(f"/api/loom/attendance/{attendance_id}/cancel")
    assert again.status_code == 409

    reinstate = await api_client.patch(f"/api/loom/attendance/{attendance_id}", json={"status": "confirmed"})
    assert reinstate.status_code == 409

    bad_type = await api_client.post(
        f"/api/loom/attendance/{detail['attendance'][1]['id']}/cancel", json={"cancellation_type": "late"}
    )
    assert bad_type.status_code == 422

    reoptimize_response = await api_client.post(f"/api/loom/instances/{instance['id']}/reoptimize")
    assert reoptimize_response.status_code == 200
    outcome = reoptimize_response.json()
    assert outcome["staff"]["required_staff"] == 1
    assert outcome["needs_attention"] is False

    missing = await api_client.post("/api/loom/attendance/9999/cancel")
    assert missing.status_code == 404


@pytest.mark.anyio("asyncio")
async def test_sickness_without_cover_flags_instance(api_client: AsyncClient) -> None:
    await _seed_program(api_client, participants=2, staff=1)
    await api_client.post("/api/loom/window/generate", json={"weeks": 1})
    instance = (await api_client.get("/api/loom/instances")).json()[0]
    shift = (await api_client.get(f"/api/loom/instances/{instance['id']}")).json()["staff_assignments"][0]

    sickness_response = await api_client.post(f"/api/loom/shifts/{shift['id']}/sickness", json={"reason": "Flu"})
    assert sickness_response.status_code == 200
    result = sickness_response.json()
    assert result["replacement_found"] is False
    assert result["needs_attention"] is True

    refreshed = (await api_client.get(f"/api/loom/instances/{instance['id']}")).json()
    assert refreshed["needs_attention"] is True
    assert refreshed["staff_assignments"][0]["status"] == "staff_sick"

    repeat = await api_client.post(f"/api/loom/shifts/{shift['id']}/sickness")
    assert repeat.status_code == 409


@pytest.mark.anyio("asyncio")
async def test_manual_allocation_endpoints(api_client: AsyncClient) -> None:
    await _seed_program(api_client, participants=3, staff=1)
    await api_client.post("/api/loom/window/generate", json={"weeks": 1})
    instance = (await api_client.get("/api/loom/instances")).json()[0]

    participants = await api_client.post(f"/api/loom/instances/{instance['id']}/participants")
    assert participants.status_code == 200
    assert participants.json()["projected"] == 0

    staff = await api_client.post(f"/api/loom/instances/{instance['id']}/staff")
    assert staff.status_code == 200
    assert staff.json()["required_staff"] == 1
    assert staff.json()["shortfall"] == 0

    vehicles = await api_client.post(f"/api/loom/instances/{instance['id']}/vehicles")
    assert vehicles.status_code == 200
    assert vehicles.json()["status"] == "not_required"

    missing = await api_client.post("/api/loom/instances/9999/participants")
    assert missing.status_code == 404


@pytest.mark.anyio("asyncio")
async def test_staff_endpoint_clears_attention_once_covered(api_client: AsyncClient) -> None:
    await _seed_program(api_client, participants=2, staff=0)
    await api_client.post("/api/loom/window/generate", json={"weeks": 1})
    instance = (await api_client.get("/api/loom/instances")).json()[0]
    assert instance["staff_shortfall"] == 1
    assert instance["needs_attention"] is True

    await api_client.post("/api/resources/staff", json=build_staff_create(first_name="Relief").model_dump(mode="json"))
    staff = await api_client.post(f"/api/loom/instances/{instance['id']}/staff")
    assert staff.status_code == 200
    assert staff.json()["shortfall"] == 0

    refreshed = (await api_client.get(f"/api/loom/instances/{instance['id']}")).json()
    assert refreshed["staff_shortfall"] == 0
    assert refreshed["needs_attention"] is False
