"""
Tests for the /api endpoints.

Tests verify:
1. Success and failure envelopes
2. Status codes for each error kind
3. The table -> record -> translation round trip over HTTP

Database setup is handled by the fixtures in conftest.py.
"""

import pytest


@pytest.fixture
def api(client):
    """Client with an ``articles`` table, one record and en/fr languages."""
    client.post("/api/languages", json={"code": "en", "name": "English"})
    client.post("/api/languages", json={"code": "fr", "name": "French"})
    response = client.post(
        "/api/tables",
        json={
            "name": "articles",
            "fields": [
                {"name": "title", "type": "text"},
                {"name": "body", "type": "textarea"},
            ],
        },
    )
    assert response.status_code == 201
    response = client.post("/api/records/articles", json={"title": "Hi", "body": "World"})
    assert response.status_code == 201
    return client


def assert_failure(response, status_code):
    assert response.status_code == status_code
    data = response.json()
    assert data["success"] is False
    assert data["error"]
    assert "timestamp" in data


class TestTableEndpoints:
    """Tests for /api/tables."""

    def test_create_table(self, client):
        response = client.post(
            "/api/tables",
            json={"name": "blog posts", "fields": [{"name": "title", "type": "text"}]},
        )
        assert response.status_code == 201
        data = response.json()
        assert data["success"] is True
        assert data["data"]["name"] == "blogposts"
        assert data["data"]["fields"][0]["storage_type"] == "TEXT"
        assert "timestamp" in data["meta"]

    def test_duplicate_table(self, api):
        response = api.post(
            "/api/tables",
            json={"name": "articles", "fields": [{"name": "title", "type": "text"}]},
        )
        assert_failure(response, 409)

    def test_reserved_table(self, client):
        response = client.post(
            "/api/tables",
            json={"name": "media", "fields": [{"name": "title", "type": "text"}]},
        )
        assert_failure(response, 400)

    def test_unknown_field_type(self, client):
        response = client.post(
            "/api/tables",
            json={"name": "things", "fields": [{"name": "title", "type": "blob"}]},
        )
        assert_failure(response, 400)

    def test_list_tables(self, api):
        response = api.get("/api/tables")
        assert response.status_code == 200
        data = response.json()
        assert data["meta"]["total_tables"] == 1
        assert data["data"][0]["name"] == "articles"
        assert data["data"][0]["record_count"] == 1

    def test_fields(self, api):
        response = api.post(
            "/api/tables/articles/fields", json={"name": "views", "type": "number"}
        )
        assert response.status_code == 201
        assert response.json()["data"]["storage_type"] == "INTEGER"

        response = api.post(
            "/api/tables/articles/fields", json={"name": "views", "type": "number"}
        )
        assert_failure(response, 409)

        response = api.get("/api/tables/articles/fields")
        assert [f["name"] for f in response.json()["data"]] == ["title", "body", "views"]

    def test_fields_of_unknown_table(self, client):
        assert_failure(client.get("/api/tables/missing/fields"), 404)

    def test_foreign_options(self, api):
        api.post(
            "/api/tables",
            json={
                "name": "comments",
                "fields": [
                    {"name": "text", "type": "textarea"},
                    {
                        "name": "article",
                        "type": "foreign_key",
                        "foreign_table": "articles",
                        "foreign_display": "title",
                    },
                ],
            },
        )
        response = api.get("/api/tables/comments/fields/article/options")
        assert response.status_code == 200
        assert response.json()["data"] == [{"id": 1, "label": "Hi"}]


class TestRecordEndpoints:
    """Tests for /api/records, /api/record and /api/search."""

    def test_list_records(self, api):
        response = api.get("/api/records", params={"table": "articles", "limit": 1000})
        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["data"] == [{"id": 1, "title": "Hi", "body": "World"}]
        assert data["meta"]["total"] == 1
        assert data["meta"]["limit"] == 100
        assert data["meta"]["has_more"] is False

    def test_list_bad_order_by(self, api):
        response = api.get(
            "/api/records", params={"table": "articles", "order_by": "nope"}
        )
        assert_failure(response, 400)

    def test_list_unknown_table(self, client):
        assert_failure(client.get("/api/records", params={"table": "missing"}), 404)

    def test_missing_table_param(self, client):
        assert_failure(client.get("/api/records"), 400)

    def test_get_record(self, api):
        response = api.get("/api/record", params={"table": "articles", "id": 1})
        assert response.status_code == 200
        assert response.json()["data"]["title"] == "Hi"

        assert_failure(api.get("/api/record", params={"table": "articles", "id": 5}), 404)

    def test_create_with_unknown_field(self, api):
        response = api.post("/api/records/articles", json={"author": 3})
        assert_failure(response, 400)

    def test_update_and_delete(self, api):
        response = api.put("/api/records/articles/1", json={"title": "Hello"})
        assert response.status_code == 200
        assert response.json()["data"]["title"] == "Hello"

        response = api.delete("/api/records/articles/1")
        assert response.status_code == 200
        assert_failure(api.delete("/api/records/articles/1"), 404)

    def test_search(self, api):
        response = api.get("/api/search", params={"table": "articles", "q": "hi"})
        assert response.status_code == 200
        data = response.json()
        assert [r["id"] for r in data["data"]] == [1]
        assert data["meta"]["fields_searched"] == ["title", "body"]

        assert_failure(api.get("/api/search", params={"table": "articles"}), 400)


class TestLanguageEndpoints:
    def test_list_languages(self, api):
        response = api.get("/api/languages", params={"lang": "fr"})
        data = response.json()["data"]
        assert [lang["code"] for lang in data["languages"]] == ["en"]
        assert data["default_language"] == "en"
        # fr is inactive, so the caller falls back to the default
        assert data["current_language"] == "en"

    def test_toggle_and_default(self, api):
        response = api.post("/api/languages/fr/toggle", json={"activate": True})
        assert response.status_code == 200
        assert response.json()["data"]["is_active"] is True

        response = api.post("/api/languages/fr/default")
        assert response.json()["data"]["is_default"] is True

        response = api.post("/api/languages/fr/toggle", json={"activate": False})
        assert_failure(response, 400)

    def test_duplicate_language(self, api):
        response = api.post("/api/languages", json={"code": "fr", "name": "French"})
        assert_failure(response, 409)

    def test_unknown_language(self, api):
        assert_failure(api.post("/api/languages/xx/default"), 404)


class TestTranslationEndpoints:
    def test_batch_then_read(self, api):
        response = api.post(
            "/api/translations/batch",
            json={
                "table": "articles",
                "record_id": 1,
                "language_code": "fr",
                "translations": {"title": "Salut", "body": ""},
            },
        )
        assert response.status_code == 200
        assert response.json()["data"]["saved"] == 1

        response = api.get("/api/record", params={"table": "articles", "id": 1, "lang": "fr"})
        record = response.json()["data"]
        assert record["title"] == "Hi"
        assert record["translations"] == {"title": "Salut"}

        response = api.get(
            "/api/translations", params={"table": "articles", "record_id": 1, "lang": "fr"}
        )
        assert response.json()["data"]["translations"]["title"]["value"] == "Salut"

        response = api.get("/api/translations", params={"table": "articles", "record_id": 1})
        assert list(response.json()["data"]["translations"]) == ["fr"]

    def test_single_upsert(self, api):
        response = api.put(
            "/api/translations",
            json={
                "table": "articles",
                "record_id": 1,
                "field_name": "body",
                "language_code": "fr",
                "value": "Monde",
            },
        )
        assert response.status_code == 200
        assert response.json()["data"]["value"] == "Monde"

    def test_unknown_language_read(self, api):
        response = api.get(
            "/api/translations", params={"table": "articles", "record_id": 1, "lang": "xx"}
        )
        assert_failure(response, 404)

    def test_default_language_rejected(self, api):
        response = api.put(
            "/api/translations",
            json={
                "table": "articles",
                "record_id": 1,
                "field_name": "title",
                "language_code": "en",
                "value": "Hi",
            },
        )
        assert_failure(response, 400)

    def test_empty_batch(self, api):
        response = api.post(
            "/api/translations/batch",
            json={
                "table": "articles",
                "record_id": 1,
                "language_code": "fr",
                "translations": {"title": "  "},
            },
        )
        assert_failure(response, 400)


class TestMediaEndpoints:
    def test_register_and_list(self, client):
        for name in ("a", "b", "c"):
            response = client.post(
                "/api/media",
                json={
                    "filename": f"{name}.png",
                    "original_filename": f"{name}.png",
                    "path": f"media/{name}.png",
                    "mime_type": "image/png",
                    "file_size": 10,
                    "tags": "logo" if name == "a" else "",
                },
            )
            assert response.status_code == 201

        response = client.get("/api/media", params={"limit": 2})
        data = response.json()
        assert data["meta"]["total"] == 3
        assert data["meta"]["has_more"] is True
        assert len(data["data"]) == 2

        response = client.get("/api/media", params={"tag": "logo"})
        assert [m["filename"] for m in response.json()["data"]] == ["a.png"]

    def test_get_missing_media(self, client):
        assert_failure(client.get("/api/media/5"), 404)
