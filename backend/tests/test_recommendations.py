import json
from unittest.mock import MagicMock, patch

import pytest
from fastapi.testclient import TestClient

from backend.app import app, get_llm_config, get_places_config
from backend.llm.config import LLMConfig
from backend.places.config import PlacesConfig

client = TestClient(app)

PLACES_CONFIG = PlacesConfig(api_key="server-key", public_api_key="browser-key")
LLM_OFF = LLMConfig(api_key="", enabled=False)
LLM_ON = LLMConfig(api_key="test-key", enabled=True)

CENTER = {"lat": 12.9716, "lng": 77.5946}


def _place(pid, rating, count, open_now=None, **extra):
    place = {
        "id": pid,
        "displayName": {"text": f"Place {pid}"},
        "location": {"latitude": 12.9716, "longitude": 77.5946},
        "rating": rating,
        "userRatingCount": count,
        "photos": [{"name": f"places/{pid}/photos/main"}],
    }
    if open_now is not None:
        place["currentOpeningHours"] = {"openNow": open_now}
    place.update(extra)
    return place


SAMPLE_PLACES = [
    _place("a", 4.8, 5, open_now=True),
    _place("b", 4.2, 400, open_now=False),
    _place("c", 4.0, 900, open_now=True),
    _place("d", 3.5, 50),
]


def _places_response(places) -> MagicMock:
    response = MagicMock()
    response.ok = True
    response.status_code = 200
    response.json.return_value = {"places": places}
    return response


@pytest.fixture(autouse=True)
def _configs():
    app.dependency_overrides[get_places_config] = lambda: PLACES_CONFIG
    app.dependency_overrides[get_llm_config] = lambda: LLM_OFF
    yield
    app.dependency_overrides.clear()


def test_health():
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}


# ── Search ───────────────────────────────────────────────────────────────


@patch("backend.places.client.requests.post")
def test_search_returns_ranked_results(mock_post):
    mock_post.return_value = _places_response(SAMPLE_PLACES)

    resp = client.post("/api/restaurants", json=CENTER)

    assert resp.status_code == 200
    body = resp.json()
    assert body["ai"] is None
    ids = [r["candidate"]["id"] for r in body["results"]]
    assert ids == ["c", "b", "d", "a"]
    scores = [r["score"] for r in body["results"]]
    assert scores == sorted(scores, reverse=True)
    assert mock_post.call_args.args[0].endswith("/places:searchNearby")


@patch("backend.places.client.requests.post")
def test_search_respects_top_k(mock_post):
    mock_post.return_value = _places_response(SAMPLE_PLACES)

    resp = client.post("/api/restaurants", json={**CENTER, "topK": 2})

    assert len(resp.json()["results"]) == 2


@patch("backend.places.client.requests.post")
def test_search_clamps_top_k(mock_post):
    mock_post.return_value = _places_response([_place(str(i), 4.0, 10) for i in range(20)])

    resp = client.post("/api/restaurants", json={**CENTER, "topK": 99})

    assert resp.status_code == 200
    assert len(resp.json()["results"]) == 20


@patch("backend.places.client.requests.post")
def test_search_open_now_nearby_filters_locally(mock_post):
    mock_post.return_value = _places_response(SAMPLE_PLACES)

    resp = client.post("/api/restaurants", json={**CENTER, "openNow": True})

    ids = {r["candidate"]["id"] for r in resp.json()["results"]}
    assert ids == {"a", "c"}


@patch("backend.places.client.requests.post")
def test_search_open_now_keyword_trusts_upstream(mock_post):
    mock_post.return_value = _places_response(SAMPLE_PLACES)

    resp = client.post("/api/restaurants", json={**CENTER, "openNow": True, "cuisine": "dosa"})

    assert len(resp.json()["results"]) == 4
    assert mock_post.call_args.args[0].endswith("/places:searchText")
    assert mock_post.call_args.kwargs["json"]["openNow"] is True


@patch("backend.places.client.requests.post")
def test_search_accepts_snake_case_and_filters(mock_post):
    mock_post.return_value = _places_response([
        _place("veg", 4.0, 200, servesVegetarianFood=True, delivery=True),
        _place("meat", 4.0, 200, servesVegetarianFood=False, delivery=True),
    ])

    resp = client.post(
        "/api/restaurants",
        json={**CENTER, "dietary": "veg", "services": {"delivery": True}, "top_k": 5},
    )

    assert resp.status_code == 200
    results = resp.json()["results"]
    assert [r["candidate"]["id"] for r in results] == ["veg", "meat"]
    assert results[0]["candidate"]["services"]["delivery"] is True


@patch("backend.places.client.requests.post")
def test_search_resolves_photo_urls(mock_post):
    mock_post.return_value = _places_response([_place("a", 4.0, 10)])

    resp = client.post("/api/restaurants", json=CENTER)

    urls = resp.json()["results"][0]["photo_urls"]
    assert urls == ["https://places.googleapis.com/v1/places/a/photos/main/media?key=browser-key&maxHeightPx=300"]


@patch("backend.llm.groq_client.Groq")
@patch("backend.places.client.requests.post")
def test_search_uses_llm_reordering(mock_post, mock_groq_cls):
    mock_post.return_value = _places_response(SAMPLE_PLACES)
    message = MagicMock()
    message.content = json.dumps({
        "rationale": "Prefer the open, well-reviewed spots.",
        "reordered": [{"id": "a", "reason": "Top rated."}],
    })
    mock_groq_cls.return_value.chat.completions.create.return_value = MagicMock(
        choices=[MagicMock(message=message)]
    )
    app.dependency_overrides[get_llm_config] = lambda: LLM_ON

    resp = client.post("/api/restaurants", json=CENTER)

    body = resp.json()
    assert body["ai"]["rationale"] == "Prefer the open, well-reviewed spots."
    assert [r["candidate"]["id"] for r in body["results"]] == ["a", "c", "b", "d"]
    assert body["results"][0]["reason"] == "Top rated."


@patch("backend.llm.groq_client.Groq")
@patch("backend.places.client.requests.post")
def test_search_llm_failure_keeps_heuristic_order(mock_post, mock_groq_cls):
    mock_post.return_value = _places_response(SAMPLE_PLACES)
    mock_groq_cls.return_value.chat.completions.create.side_effect = Exception("API timeout")
    app.dependency_overrides[get_llm_config] = lambda: LLM_ON

    resp = client.post("/api/restaurants", json=CENTER)

    assert resp.status_code == 200
    body = resp.json()
    assert body["ai"] is None
    assert [r["candidate"]["id"] for r in body["results"]] == ["c", "b", "d", "a"]


# ── Search errors ────────────────────────────────────────────────────────


def test_search_requires_coordinates():
    resp = client.post("/api/restaurants", json={"lat": 12.9})
    assert resp.status_code == 400


def test_search_rejects_non_numeric_coordinates():
    resp = client.post("/api/restaurants", json={"lat": "north", "lng": 77.5})
    assert resp.status_code == 400


@pytest.mark.parametrize(
    "coords",
    [
        {"lat": True, "lng": 77.5},
        {"lat": "12.5", "lng": 77.5},
        {"lat": 12.5, "lng": "77.5"},
    ],
)
def test_search_rejects_loosely_typed_coordinates(coords):
    resp = client.post("/api/restaurants", json=coords)
    assert resp.status_code == 400


@patch("backend.places.client.requests.post")
def test_search_accepts_integer_coordinates(mock_post):
    mock_post.return_value = _places_response([])

    resp = client.post("/api/restaurants", json={"lat": 12, "lng": 77})

    assert resp.status_code == 200
    assert resp.json()["results"] == []


@patch("backend.places.client.requests.post")
def test_search_skips_malformed_place_records(mock_post):
    mock_post.return_value = _places_response([
        _place("good", 4.5, 120),
        _place("bad", "N/A", 80),
        _place("fractional", 4.0, 12.5),
    ])

    resp = client.post("/api/restaurants", json=CENTER)

    assert resp.status_code == 200
    assert [r["candidate"]["id"] for r in resp.json()["results"]] == ["good"]


def test_search_rejects_bad_rating():
    resp = client.post("/api/restaurants", json={**CENTER, "minRating": 6.0})
    assert resp.status_code == 400


def test_search_rejects_non_positive_radius():
    resp = client.post("/api/restaurants", json={**CENTER, "radiusMeters": 0})
    assert resp.status_code == 400


@patch("backend.places.client.requests.post")
def test_search_provider_failure_is_502(mock_post):
    response = MagicMock(ok=False, status_code=429, text="RESOURCE_EXHAUSTED")
    mock_post.return_value = response

    resp = client.post("/api/restaurants", json=CENTER)

    assert resp.status_code == 502
    assert resp.json()["detail"]["upstream"] == "RESOURCE_EXHAUSTED"


def test_search_missing_server_key_is_500():
    app.dependency_overrides[get_places_config] = lambda: PlacesConfig(api_key="")

    resp = client.post("/api/restaurants", json=CENTER)

    assert resp.status_code == 500


@patch("backend.app.search_restaurants", side_effect=RuntimeError("kaboom"))
def test_search_unexpected_error_is_500(mock_search):
    resp = client.post("/api/restaurants", json=CENTER)

    assert resp.status_code == 500
    assert resp.json()["detail"] == "kaboom"


# ── Geocode ──────────────────────────────────────────────────────────────


@patch("backend.places.client.requests.get")
def test_geocode_endpoint(mock_get):
    mock_get.return_value = MagicMock(ok=True, status_code=200)
    mock_get.return_value.json.return_value = {
        "status": "OK",
        "results": [{"formatted_address": "Indiranagar, Bengaluru", "geometry": {"location": {"lat": 12.97, "lng": 77.64}}}],
    }

    resp = client.post("/api/geocode", json={"query": "  Indiranagar "})

    assert resp.status_code == 200
    assert resp.json() == {"lat": 12.97, "lng": 77.64, "formatted": "Indiranagar, Bengaluru"}
    assert mock_get.call_args.kwargs["params"]["address"] == "Indiranagar"


def test_geocode_blank_query_is_400():
    assert client.post("/api/geocode", json={"query": "   "}).status_code == 400
    assert client.post("/api/geocode", json={}).status_code == 400


@patch("backend.places.client.requests.get")
def test_geocode_no_result_is_404(mock_get):
    mock_get.return_value = MagicMock(ok=True, status_code=200)
    mock_get.return_value.json.return_value = {"status": "ZERO_RESULTS", "results": []}

    resp = client.post("/api/geocode", json={"query": "Nonexistent12345"})

    assert resp.status_code == 404


@patch("backend.places.client.requests.get")
def test_geocode_provider_error_is_502(mock_get):
    mock_get.return_value = MagicMock(ok=False, status_code=503, text="unavailable")

    resp = client.post("/api/geocode", json={"query": "BTM"})

    assert resp.status_code == 502


def test_geocode_missing_server_key_is_500():
    app.dependency_overrides[get_places_config] = lambda: PlacesConfig(api_key="")

    resp = client.post("/api/geocode", json={"query": "BTM"})

    assert resp.status_code == 500
