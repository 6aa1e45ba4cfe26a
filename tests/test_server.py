from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from backend.kpi_dashboard.repository import InMemoryRecordRepository, RecordRepository
from backend.kpi_dashboard import server as server_module
from backend.kpi_dashboard.server import create_app
from conftest import DAY, JAN_1, NEW_USER_EVENTS, build_record


class FailingRepository(RecordRepository):
    def fetch(self, start=None, end=None):
        raise ConnectionError("data remote unreachable")


@pytest.fixture
def client(config):
    records = [
        build_record(timestamp=JAN_1, browser="Firefox", sites=2, events=NEW_USER_EVENTS),
        build_record(timestamp=JAN_1 + 10, browser="Chrome", sites=4, events=["screen.set_password"]),
        build_record(timestamp=JAN_1 + 20, browser="Opera", sites=6),
        build_record(timestamp=JAN_1 + DAY, browser="Firefox", sites=1),
    ]
    return TestClient(create_app(config, repository=InMemoryRecordRepository(records)))


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


def test_segmentations(client, config):
    assert client.get("/data/segmentations").json() == {name: list(segments) for name, segments in config.segmentations.items()}


def test_sites_report(client):
    response = client.get("/data/sites", params={"end": JAN_1 + 100})

    assert response.status_code == 200
    assert response.json() == {"Total": [{"category": "2024-01-01", "value": 4}]}


def test_assertions_report_by_browser(client):
    response = client.get("/data/assertions", params={"segmentation": "Browser"})

    assert response.json() == {
        "Chrome": [{"category": "2024-01-01", "value": 1}],
        "Firefox": [{"category": "2024-01-01", "value": 1}, {"category": "2024-01-02", "value": 1}],
        "Other": [{"category": "2024-01-01", "value": 1}],
    }


def test_new_user_report(client):
    response = client.get("/data/new_user")

    assert response.json() == {
        "Total": [
            {"category": "Account staged", "value": 1},
            {"category": "Email confirmed", "value": 1},
            {"category": "Logged in", "value": 1},
            {"category": "Password set", "value": 2},
        ]
    }


def test_new_user_time_report(client):
    response = client.get("/data/new_user_time", params={"start": JAN_1})

    assert response.json() == {
        "Password set": {"2024-01-01": 1.0},
        "Account staged": {"2024-01-01": 0.5},
        "Email confirmed": {"2024-01-01": 0.5},
        "Logged in": {"2024-01-01": 0.5},
    }


def test_invalid_segmentation_is_a_client_error(client):
    response = client.get("/data/sites", params={"segmentation": "Resolution"})

    assert response.status_code == 400


def test_unknown_report(client):
    assert client.get("/data/conversions").status_code == 404


def test_non_integer_bounds_are_rejected(client):
    assert client.get("/data/sites", params={"start": "yesterday"}).status_code == 422


def test_fetch_failures_surface_as_server_errors(config):
    client = TestClient(create_app(config, repository=FailingRepository()))

    response = client.get("/data/assertions")

    assert response.status_code == 500
    assert "data remote unreachable" in response.json()["detail"]


def test_new_user_time_ignores_segmentation(client):
    response = client.get("/data/new_user_time", params={"segmentation": "Browser"})

    # segmentation is not a parameter of the time series, so it is ignored
    assert response.status_code == 200
    assert set(response.json()) == {"Password set", "Account staged", "Email confirmed", "Logged in"}


def test_openapi_documents_report_shapes(client):
    schema = client.get("/openapi.json").json()
    components = schema["components"]["schemas"]

    assert components["PointPayload"]["required"] == ["category", "value"]
    assert {"SummaryReportResponse", "TimeReportResponse", "SegmentationsResponse"} <= set(components)
    report_response = schema["paths"]["/data/{report}"]["get"]["responses"]["200"]
    assert report_response["content"]["application/json"]["schema"] == {
        "$ref": "#/components/schemas/SummaryReportResponse"
    }


def test_main_runs_the_app_with_uvicorn(monkeypatch):
    calls = []
    monkeypatch.setattr(server_module.uvicorn, "run", lambda app, **kwargs: calls.append((app, kwargs)))
    monkeypatch.setenv("KPI_DASHBOARD_PORT", "8123")

    server_module.main()

    assert calls == [(server_module.app, {"host": "127.0.0.1", "port": 8123})]
