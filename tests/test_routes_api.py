import re
from datetime import date
from unittest.mock import AsyncMock, MagicMock

from bson import ObjectId
from fastapi.testclient import TestClient
from pymongo import ASCENDING
from pymongo.errors import ServerSelectionTimeoutError

from app.api.deps import get_catalog_service, get_store
from app.main import app

COMEDIES = [
    {"_id": ObjectId(), "imdb_id": f"tt{i:07d}", "title": f"Comedy {i}", "year": 2015 + i % 5}
    for i in range(30)
]


def test_list_content_default_envelope(client, catalog):
    catalog.docs = COMEDIES[:3]

    response = client.get("/api/content")

    assert response.status_code == 200
    data = response.json()
    assert data["pagination"] == {"page": 1, "limit": 20, "total": 3, "pages": 1}
    assert [item["title"] for item in data["items"]] == ["Comedy 0", "Comedy 1", "Comedy 2"]
    assert data["items"][0]["_id"] == str(COMEDIES[0]["_id"])
    # fields missing from the stored document are not invented
    assert "overview" not in data["items"][0]


def test_list_content_combined_example(client, catalog):
    """genre, open-ended year range, ascending rating sort and page 2 of 10."""
    catalog.docs = COMEDIES

    response = client.get(
        "/api/content?genre=comedy&year_from=2015&sort=rating&order=asc&page=2&limit=10"
    )

    assert response.status_code == 200
    data = response.json()
    assert data["pagination"] == {"page": 2, "limit": 10, "total": 30, "pages": 3}
    assert [item["title"] for item in data["items"]] == [
        f"Comedy {i}" for i in range(10, 20)
    ]

    query, _ = catalog.find_calls[0]
    assert query == {
        "genres.name": {"$regex": "comedy", "$options": "i"},
        "year": {"$gte": 2015},
    }
    pattern = re.compile(query["genres.name"]["$regex"], re.IGNORECASE)
    assert all(pattern.search(name) for name in ("Comedy", "COMEDY", "comedy"))

    cursor = catalog.cursors[0]
    assert cursor.sort_spec == [("imdb_rating", ASCENDING)]
    assert cursor.skip_count == 10
    assert cursor.limit_count == 10


def test_list_content_clamps_limit(client, catalog):
    response = client.get("/api/content?limit=1000")

    assert response.json()["pagination"]["limit"] == 100
    assert catalog.cursors[0].limit_count == 100


def test_list_content_ignores_malformed_numbers(client, catalog):
    response = client.get("/api/content?year=abc&min_rating=lots&page=x&limit=y")

    assert response.status_code == 200
    assert response.json()["pagination"]["page"] == 1
    assert response.json()["pagination"]["limit"] == 20
    assert catalog.find_calls[0][0] == {}


def test_list_content_min_rating_and_type(client, catalog):
    client.get("/api/content?min_rating=7&type=tv&country=India")

    query, _ = catalog.find_calls[0]
    assert query["$or"] == [
        {"imdb_rating": {"$gte": 7.0}},
        {"tmdb_vote_average": {"$gte": 7.0}},
    ]
    assert query["content_type"] == "tv"
    assert query["countries"] == {"$regex": "India", "$options": "i"}


def test_get_content_by_imdb_id(client, catalog):
    catalog.docs = COMEDIES

    response = client.get("/api/content/tt0000004")

    assert response.status_code == 200
    assert response.json()["title"] == "Comedy 4"


def test_get_content_by_object_id(client, catalog):
    catalog.docs = COMEDIES

    response = client.get(f"/api/content/{COMEDIES[7]['_id']}")

    assert response.status_code == 200
    assert response.json()["imdb_id"] == "tt0000007"


def test_get_content_not_found(client, catalog):
    catalog.docs = COMEDIES

    for content_id in ("tt9999999", "not-a-valid-object-id", str(ObjectId())):
        response = client.get(f"/api/content/{content_id}")
        assert response.status_code == 404
        assert response.json() == {"error": "Content not found"}


def test_search(client, catalog):
    catalog.docs = COMEDIES[:2]

    response = client.get("/api/search?q=Comedy&limit=1")

    assert response.status_code == 200
    data = response.json()
    assert data["query"] == "Comedy"
    assert data["pagination"] == {"page": 1, "limit": 1, "total": 2, "pages": 2}
    assert len(data["items"]) == 1


def test_search_applies_filters(client, catalog):
    client.get("/api/search?q=nolan&year=2010&sort=title&order=asc")

    query, _ = catalog.find_calls[0]
    assert query["$and"][1] == {"year": 2010}
    # search ignores the requested sort
    assert catalog.cursors[0].sort_spec == [("imdb_rating", -1)]


def test_search_short_query_is_rejected(client, catalog):
    for path in (
        "/api/search",
        "/api/search?q=",
        "/api/search?q=a",
        "/api/search?q=a&genre=drama&page=2&limit=5",
    ):
        response = client.get(path)
        assert response.status_code == 400
        assert response.json() == {"error": "Search query must be at least 2 characters"}

    assert catalog.find_calls == []


def test_facet_lists(client, catalog):
    catalog.distinct_map = {
        "genres.name": ["Drama", None, "Action", " ", "Drama"],
        "languages": ["Hindi", "", "English"],
        "countries": [None, "India", "France"],
    }

    assert client.get("/api/genres").json() == ["Action", "Drama"]
    assert client.get("/api/languages").json() == ["English", "Hindi"]
    assert client.get("/api/countries").json() == ["France", "India"]


def test_years(client, catalog):
    catalog.aggregate_result = [{"_id": None, "min": 1950, "max": 2024}]

    assert client.get("/api/years").json() == {"min": 1950, "max": 2024}


def test_years_empty_catalog(client):
    assert client.get("/api/years").json() == {"min": 1900, "max": date.today().year}


def test_recent(client, recent):
    recent.docs = COMEDIES

    response = client.get("/api/recent?limit=100")

    assert response.status_code == 200
    assert len(response.json()) == 30
    assert recent.cursors[0].limit_count == 50


def test_stats(client, service):
    service.stats = AsyncMock(
        return_value={"total": 3, "movies": 2, "shows": 1, "genres": 4, "languages": 2}
    )

    response = client.get("/api/stats")

    assert response.status_code == 200
    assert response.json() == {
        "total": 3,
        "movies": 2,
        "shows": 1,
        "genres": 4,
        "languages": 2,
    }


def test_store_failure_is_generic_500(client, catalog):
    catalog.error = ServerSelectionTimeoutError("no servers available")

    for path in ("/api/content", "/api/content/tt0000001", "/api/genres", "/api/stats"):
        response = client.get(path)
        assert response.status_code == 500
        assert response.json() == {"error": "Internal server error"}


def test_unexpected_error_is_generic_500(service):
    service.recent = AsyncMock(side_effect=RuntimeError("boom"))
    app.dependency_overrides[get_catalog_service] = lambda: service
    try:
        response = TestClient(app, raise_server_exceptions=False).get("/api/recent")
    finally:
        app.dependency_overrides.clear()

    assert response.status_code == 500
    assert response.json() == {"error": "Internal server error"}


def test_unknown_route_uses_error_key(client):
    response = client.get("/api/nope")

    assert response.status_code == 404
    assert "error" in response.json()


def test_cors_allows_listed_origin(client):
    response = client.get("/api/genres", headers={"Origin": "http://localhost:3000"})

    assert response.headers["access-control-allow-origin"] == "http://localhost:3000"


def test_cors_allows_origin_pattern(client):
    response = client.get("/api/genres", headers={"Origin": "https://someone.github.io"})

    assert response.headers["access-control-allow-origin"] == "https://someone.github.io"


def test_cors_rejects_unknown_origin(client):
    response = client.get("/api/genres", headers={"Origin": "https://evil.example.com"})

    assert "access-control-allow-origin" not in response.headers


def test_cors_preflight_only_allows_get(client):
    response = client.options(
        "/api/content",
        headers={
            "Origin": "http://localhost:5173",
            "Access-Control-Request-Method": "POST",
        },
    )

    assert response.status_code == 400


def test_root(client):
    assert client.get("/").json() == {
        "status": "ok",
        "service": "tldrcontent-api",
        "version": "1.0.0",
    }


def test_health_reports_db_state():
    store = MagicMock()
    store.ping = AsyncMock(return_value=True)
    app.dependency_overrides[get_store] = lambda: store
    try:
        client = TestClient(app)
        assert client.get("/health").json() == {"status": "healthy", "db": "connected"}

        store.ping.return_value = False
        assert client.get("/health").json() == {
            "status": "healthy",
            "db": "disconnected",
        }
    finally:
        app.dependency_overrides.clear()


def test_list_content_order_without_sort_key_keeps_default(client, catalog):
    client.get("/api/content?order=asc")

    assert catalog.cursors[0].sort_spec == [("release_date", -1)]


def test_irregular_documents_pass_through(client, catalog, recent):
    odd = {
        "_id": ObjectId(),
        "title": "Odd",
        "year": "2019?",
        "runtime": "45 min",
        "genres": ["Drama"],
        "languages": [None, 3],
        "imdb_rating": "N/A",
    }
    catalog.docs = [{"_id": ObjectId(), "title": "Ok"}, odd]
    recent.docs = [odd]

    response = client.get("/api/content")

    assert response.status_code == 200
    items = response.json()["items"]
    assert items[0] == {"_id": str(catalog.docs[0]["_id"]), "title": "Ok"}
    assert items[1]["runtime"] == "45 min"
    assert items[1]["genres"] == ["Drama"]
    assert items[1]["imdb_rating"] == "N/A"

    assert client.get("/api/search?q=Od").status_code == 200
    assert client.get(f"/api/content/{odd['_id']}").json()["year"] == "2019?"
    assert client.get("/api/recent").json()[0]["languages"] == [None, 3]


def test_cors_origin_pattern_accepts_any_scheme(client):
    response = client.get("/api/genres", headers={"Origin": "http://preview.lumiolabs.in"})

    assert response.headers["access-control-allow-origin"] == "http://preview.lumiolabs.in"
