import pytest
from httpx import AsyncClient

from .factories import (
    build_participant_create,
    build_staff_create,
    build_vehicle_create,
    build_venue_create,
)


@pytest.mark.anyio("asyncio")
async def test_participant_api_crud(api_client: AsyncClient) -> None:
    payload = build_participant_create(supervision_multiplier=1.5).model_dump(mode="json")

    create_response = await api_client.post("/api/resources/participants", json=payload)
    assert create_response.status_code == 201
    created = create_response.json()
    participant_id = created["id"]
    assert created["supervision_multiplier"] == 1.5

    list_response = await api_client.get("/api/resources/participants")
    assert list_response.status_code == 200
    assert [item["id"] for item in list_response.json()] == [participant_id]

    update_response = await api_client.put(
        f"/api/resources/participants/{participant_id}",
        json={"supervision_multiplier": 2.0, "notes": "updated via api test"},
    )
    assert update_response.status_code == 200
    updated = update_response.json()
    assert updated["supervision_multiplier"] == 2.0
    assert updated["notes"] == "updated via api test"

    missing_response = await api_client.put("/api/resources/participants/999", json={"notes": "x"})
    assert missing_response.status_code == 404


@pytest.mark.anyio("asyncio")
async def test_participant_multiplier_below_one_is_rejected(api_client: AsyncClient) -> None:
    payload = build_participant_create(supervision_multiplier=1.0).model_dump(mode="json")
    payload["supervision_multiplier"] = 0.5

    response = await api_client.post("/api/resources/participants", json=payload)
    assert response.status_code == 422


@pytest.mark.anyio("asyncio")
async def test_staff_api_keeps_availability(api_client: AsyncClient) -> None:
    payload = build_staff_create(can_drive=True).model_dump(mode="json")

    create_response = await api_client.post("/api/resources/staff", json=payload)
    assert create_response.status_code == 201
    created = create_response.json()
    assert created["can_drive"] is True
    assert len(created["availability"]) == 7

    update_response = await api_client.put(f"/api/resources/staff/{created['id']}", json={"active": False})
    assert update_response.status_code == 200
    assert update_response.json()["active"] is False

    list_response = await api_client.get("/api/resources/staff")
    assert list_response.status_code == 200
    assert len(list_response.json()) == 1


@pytest.mark.anyio("asyncio")
async def test_vehicle_and_venue_api(api_client: AsyncClient) -> None:
    vehicle_payload = build_vehicle_create(seats=12).model_dump(mode="json")
    vehicle_payload["blackouts"] = [
        {"start_at": "2026-03-02T00:00:00", "end_at": "2026-03-03T00:00:00", "reason": "Service"}
    ]
    vehicle_response = await api_client.post("/api/resources/vehicles", json=vehicle_payload)
    assert vehicle_response.status_code == 201
    assert vehicle_response.json()["seats"] == 12
    assert vehicle_response.json()["blackouts"][0]["reason"] == "Service"

    venue_response = await api_client.post(
        "/api/resources/venues", json=build_venue_create().model_dump(mode="json")
    )
    assert venue_response.status_code == 201

    venues = await api_client.get("/api/resources/venues")
    assert venues.status_code == 200
    assert venues.json()[0]["name"] == "Factory Hall"

    invalid = await api_client.post("/api/resources/vehicles", json={"name": "Empty", "seats": 0})
    assert invalid.status_code == 422
