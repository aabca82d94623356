import pytest
from httpx import AsyncClient


@pytest.mark.anyio("asyncio")
async def test_settings_endpoint_reports_window_bounds(api_client: AsyncClient) -> None:
    response = await api_client.get("/api/system/settings")
    assert response.status_code == 200
    data = response.json()
    assert data["min_window_weeks"] == 1
    assert data["max_window_weeks"] == 16
    assert data["default_window_weeks"] == 4
    assert data["short_notice_threshold_hours"] == 2.0


@pytest.mark.anyio("asyncio")
async def test_health_endpoint(api_client: AsyncClient) -> None:
    response = await api_client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}
