import pytest
from httpx import AsyncClient

from .factories import build_participant_create, build_rate_create, build_rule_create


@pytest.mark.anyio("asyncio")
async def test_rule_api_crud(api_client: AsyncClient) -> None:
    payload = build_rule_create(
        transport_required=True,
        time_slots=[
            {"kind": "pickup", "start": "09:00", "end": "10:00"},
            {"kind": "activity", "start": "10:00", "end": "14:00", "label": "Workshop"},
        ],
    ).model_dump(mode="json")

    create_response = await api_client.post("/api/rules/", json=payload)
    assert create_response.status_code == 201
    created = create_response.json()
    rule_id = created["id"]
    assert [slot["kind"] for slot in created["time_slots"]] == ["pickup", "activity"]

    list_response = await api_client.get("/api/rules/")
    assert list_response.status_code == 200
    assert [rule["id"] for rule in list_response.json()] == [rule_id]

    get_response = await api_client.get(f"/api/rules/{rule_id}")
    assert get_response.status_code == 200
    assert get_response.json()["name"] == payload["name"]

    missing_response = await api_client.get("/api/rules/999")
    assert missing_response.status_code == 404


@pytest.mark.anyio("asyncio")
async def test_rule_times_are_validated(api_client: AsyncClient) -> None:
    payload = build_rule_create().model_dump(mode="json")
    payload["end_time"] = payload["start_time"]

    response = await api_client.post("/api/rules/", json=payload)
    assert response.status_code == 422


@pytest.mark.anyio("asyncio")
async def test_rule_children_api(api_client: AsyncClient) -> None:
    rule = (await api_client.post("/api/rules/", json=build_rule_create().model_dump(mode="json"))).json()
    participant = (
        await api_client.post(
            "/api/resources/participants", json=build_participant_create().model_dump(mode="json")
        )
    ).json()

    exception_response = await api_client.post(
        f"/api/rules/{rule['id']}/exceptions",
        json={"exception_date": "2026-03-09", "exception_type": "cancelled", "reason": "Public holiday"},
    )
    assert exception_response.status_code == 201
    assert exception_response.json()["exception_type"] == "cancelled"

    enrolment_response = await api_client.post(
        f"/api/rules/{rule['id']}/enrolments",
        json={"participant_id": participant["id"], "start_date": "2026-03-01", "pickup_required": True},
    )
    assert enrolment_response.status_code == 201
    assert enrolment_response.json()["pickup_required"] is True

    unknown_participant = await api_client.post(
        f"/api/rules/{rule['id']}/enrolments", json={"participant_id": 999, "start_date": "2026-03-01"}
    )
    assert unknown_participant.status_code == 404

    rate_response = await api_client.post(
        f"/api/rules/{rule['id']}/rates", json=build_rate_create().model_dump(mode="json")
    )
    assert rate_response.status_code == 201
    rates = await api_client.get(f"/api/rules/{rule['id']}/rates")
    assert rates.status_code == 200
    assert rates.json()[0]["unit_price"] == 60.0


@pytest.mark.anyio("asyncio")
async def test_ratio_table_api(api_client: AsyncClient) -> None:
    payload = {
        "name": "High support",
        "brackets": [
            {"min_participants": 1, "max_participants": 2, "required_staff": 1},
            {"min_participants": 3, "max_participants": 4, "required_staff": 2},
        ],
    }
    create_response = await api_client.post("/api/rules/ratio-tables", json=payload)
    assert create_response.status_code == 201
    assert len(create_response.json()["brackets"]) == 2

    list_response = await api_client.get("/api/rules/ratio-tables")
    assert list_response.status_code == 200
    assert list_response.json()[0]["name"] == "High support"

    overlapping = {
        "name": "Broken",
        "brackets": [
            {"min_participants": 1, "max_participants": 4, "required_staff": 1},
            {"min_participants": 3, "max_participants": 6, "required_staff": 2},
        ],
    }
    invalid_response = await api_client.post("/api/rules/ratio-tables", json=overlapping)
    assert invalid_response.status_code == 422
