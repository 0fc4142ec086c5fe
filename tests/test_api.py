from __future__ import annotations

from typing import Iterator

import pytest
from fastapi.testclient import TestClient

import main
from config import Settings, load_settings
from services import NasaServices


@pytest.fixture
def client(services: NasaServices) -> Iterator[TestClient]:
    main.app.dependency_overrides[main.get_services] = lambda: services
    yield TestClient(main.app)
    main.app.dependency_overrides.clear()


def test_neo_range_exceeded_is_rejected_before_upstream(client: TestClient, fake_upstream) -> None:
    response = client.get("/api/neo", params={"start_date": "2020-01-01", "end_date": "2020-01-20"})

    assert response.status_code == 400
    body = response.json()
    assert body["success"] is False
    assert body["error"]["message"] == "Date range cannot exceed 7 days"
    assert "data" not in body
    assert fake_upstream.requests == []


def test_neo_requires_both_dates(client: TestClient) -> None:
    response = client.get("/api/neo", params={"start_date": "2020-01-01"})

    assert response.status_code == 400
    assert response.json()["error"]["message"] == "start_date and end_date parameters are required"


def test_apod_success(client: TestClient, fake_upstream) -> None:
    fake_upstream.routes["/planetary/apod"] = (
        200,
        {
            "date": "2024-01-01",
            "title": "Orion Nebula",
            "explanation": "A stellar nursery.",
            "url": "https://apod.nasa.gov/apod/image/orion.jpg",
            "media_type": "image",
            "copyright": "Someone",
        },
    )

    response = client.get("/api/apod", params={"date": "2024-01-01"})

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["data"]["copyright"] == "Someone"
    assert "error" not in body


def test_mars_rover_latest_photos(client: TestClient, fake_upstream) -> None:
    fake_upstream.routes["/mars-photos/api/v1/manifests/curiosity"] = (200, {"photo_manifest": {"max_date": "2020-07-01"}})
    fake_upstream.routes["/mars-photos/api/v1/rovers/curiosity/photos"] = (200, {"photos": []})

    response = client.get("/api/mars-rover/curiosity/photos")

    assert response.status_code == 200
    assert fake_upstream.params()["earth_date"] == "2020-07-01"


def test_malformed_query_type_is_a_400(client: TestClient, fake_upstream) -> None:
    response = client.get("/api/mars-rover/curiosity/photos", params={"sol": "abc"})

    assert response.status_code == 400
    body = response.json()
    assert body["success"] is False
    assert body["error"]["message"].startswith("Invalid sol")
    assert fake_upstream.requests == []


def test_image_library_search(client: TestClient, fake_upstream) -> None:
    fake_upstream.routes["/search"] = (200, {"collection": {"items": []}})

    response = client.get("/api/image-library/search", params={"q": "nebula", "page_size": 500})

    assert response.status_code == 200
    assert fake_upstream.params()["page_size"] == "100"


def test_upstream_status_is_forwarded(client: TestClient, fake_upstream) -> None:
    fake_upstream.routes["/EPIC/api/natural"] = (429, {"error": {"message": "OVER_RATE_LIMIT"}})

    response = client.get("/api/epic")

    assert response.status_code == 429
    assert response.json()["error"]["message"] == "OVER_RATE_LIMIT"


def test_open_breaker_answers_503(client: TestClient, fake_upstream) -> None:
    fake_upstream.routes["/EPIC/api/natural"] = (500, "down")

    for _ in range(2):
        assert client.get("/api/epic").status_code == 500
    response = client.get("/api/epic")

    assert response.status_code == 503
    assert response.json()["error"]["message"] == "External service unavailable"
    assert len(fake_upstream.requests) == 2


def test_unknown_route(client: TestClient) -> None:
    response = client.get("/api/nope")

    assert response.status_code == 404
    assert response.json() == {"success": False, "error": {"message": "Route /api/nope not found"}}


def test_health_reports_breakers(client: TestClient) -> None:
    response = client.get("/health")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "OK"
    assert {upstream["name"] for upstream in body["upstreams"]} == {
        "apod",
        "neo",
        "mars-rover",
        "epic",
        "image-library",
    }
    assert all(upstream["state"] == "CLOSED" for upstream in body["upstreams"])


def test_api_info_lists_endpoints(client: TestClient) -> None:
    body = client.get("/api").json()

    assert body["success"] is True
    assert set(body["data"]["endpoints"]) == {"apod", "neo", "marsRover", "epic", "imageLibrary"}


def test_stack_only_in_development(client: TestClient, fake_upstream, monkeypatch: pytest.MonkeyPatch) -> None:
    fake_upstream.routes["/planetary/apod"] = (200, ["not", "an", "object"])

    monkeypatch.setattr(main, "settings", Settings(environment="development"))
    body = client.get("/api/apod").json()
    assert body["error"]["message"] == "Failed to fetch Astronomy Picture of the Day"
    assert "AttributeError" in body["error"]["stack"]

    monkeypatch.setattr(main, "settings", Settings(environment="production"))
    body = client.get("/api/apod").json()
    assert body["error"] == {"message": "Failed to fetch Astronomy Picture of the Day"}


def test_unset_app_env_hides_stack(client: TestClient, fake_upstream, monkeypatch: pytest.MonkeyPatch) -> None:
    fake_upstream.routes["/planetary/apod"] = (200, ["not", "an", "object"])
    monkeypatch.delenv("APP_ENV", raising=False)
    monkeypatch.setattr(main, "settings", load_settings())

    body = client.get("/api/apod").json()

    assert body["error"] == {"message": "Failed to fetch Astronomy Picture of the Day"}
