"""Integration tests for article API routes."""

from uuid import uuid4


class TestAuth:
    def test_missing_token(self, client):
        resp = client.get("/api/articles", headers={"Authorization": ""})
        assert resp.status_code == 401

    def test_wrong_token(self, client):
        resp = client.get("/api/articles", headers={"Authorization": "Bearer nope"})
        assert resp.status_code == 401

    def test_no_configured_token_rejects_everything(self, client, settings):
        settings.api_token = None
        resp = client.get("/api/articles")
        assert resp.status_code == 401

    def test_health_is_public(self, client):
        resp = client.get("/health", headers={"Authorization": ""})
        assert resp.status_code == 200
        assert resp.json()["status"] == "ok"


class TestArticleCrud:
    def test_create(self, client):
        resp = client.post(
            "/api/articles",
            json={"title": "Hello", "content": "World", "tags": ["a"], "category": "news"},
        )

        assert resp.status_code == 201
        data = resp.json()
        assert data["status"] == "draft"
        assert data["tags"] == ["a"]
        assert data["xhs_note_id"] is None

    def test_create_missing_title(self, client):
        resp = client.post("/api/articles", json={"content": "no title"})
        assert resp.status_code == 400
        assert "detail" in resp.json()

    def test_create_blank_title(self, client):
        assert client.post("/api/articles", json={"title": "  "}).status_code == 400

    def test_get(self, client, article):
        resp = client.get(f"/api/articles/{article['id']}")
        assert resp.status_code == 200
        assert resp.json()["title"] == "Fixture article"

    def test_get_missing(self, client):
        assert client.get(f"/api/articles/{uuid4()}").status_code == 404

    def test_partial_update(self, client, article):
        resp = client.put(f"/api/articles/{article['id']}", json={"tags": ["x"]})

        assert resp.status_code == 200
        data = resp.json()
        assert data["tags"] == ["x"]
        assert data["content"] == "Body"
        assert data["title"] == "Fixture article"

    def test_update_ignores_status(self, client, article):
        resp = client.put(
            f"/api/articles/{article['id']}", json={"status": "published", "title": "New"}
        )
        assert resp.json()["status"] == "draft"
        assert resp.json()["title"] == "New"

    def test_update_missing(self, client):
        assert client.put(f"/api/articles/{uuid4()}", json={"title": "x"}).status_code == 404

    def test_delete(self, client, article):
        resp = client.delete(f"/api/articles/{article['id']}")

        assert resp.status_code == 200
        assert "message" in resp.json()
        assert client.get(f"/api/articles/{article['id']}").status_code == 404
        assert client.delete(f"/api/articles/{article['id']}").status_code == 404


class TestListing:
    def test_filters_and_pagination(self, client):
        for title, content, tags in [
            ("Alpha", "x", ["t1"]),
            ("Beta", "mentions alpha", ["t2"]),
            ("Gamma", None, ["t1", "t2"]),
        ]:
            client.post("/api/articles", json={"title": title, "content": content, "tags": tags})

        resp = client.get("/api/articles")
        data = resp.json()
        assert resp.status_code == 200
        assert data["total"] == 3
        assert [a["title"] for a in data["articles"]] == ["Gamma", "Beta", "Alpha"]
        assert (data["limit"], data["offset"]) == (50, 0)

        data = client.get("/api/articles", params={"search": "ALPHA"}).json()
        assert {a["title"] for a in data["articles"]} == {"Alpha", "Beta"}

        data = client.get("/api/articles", params={"tag": "t1", "limit": 1}).json()
        assert data["total"] == 2
        assert len(data["articles"]) == 1

    def test_status_filter(self, client, article):
        client.post("/api/articles", json={"title": "Other"})
        client.put(f"/api/articles/{article['id']}/status", json={"status": "archived"})

        data = client.get("/api/articles", params={"status": "archived"}).json()

        assert [a["id"] for a in data["articles"]] == [article["id"]]

    def test_bad_status_filter(self, client):
        assert client.get("/api/articles", params={"status": "nope"}).status_code == 400


class TestStatus:
    def test_options(self, client, article):
        resp = client.get(f"/api/articles/{article['id']}/status")

        assert resp.json() == {
            "current_status": "draft",
            "allowed_next_statuses": ["pending_render", "archived"],
        }

    def test_transition(self, client, article):
        resp = client.put(
            f"/api/articles/{article['id']}/status", json={"status": "pending_render"}
        )

        assert resp.status_code == 200
        data = resp.json()
        assert data["previous_status"] == "draft"
        assert data["new_status"] == "pending_render"
        assert data["article"]["status"] == "pending_render"

    def test_invalid_transition(self, client, article):
        resp = client.put(f"/api/articles/{article['id']}/status", json={"status": "published"})

        assert resp.status_code == 400
        body = resp.json()
        assert "detail" in body
        assert body["allowed_next_statuses"] == ["pending_render", "archived"]

    def test_transition_missing_article(self, client):
        resp = client.put(f"/api/articles/{uuid4()}/status", json={"status": "archived"})
        assert resp.status_code == 404


class TestPublish:
    def test_publish_from_any_status(self, client, article):
        resp = client.post(
            f"/api/articles/{article['id']}/publish",
            json={"xhs_note_id": "note-1", "views": 10},
        )

        assert resp.status_code == 200
        data = resp.json()
        assert data["article"]["status"] == "published"
        assert data["article"]["xhs_note_id"] == "note-1"
        assert data["message"]

    def test_publish_requires_note_id(self, client, article):
        resp = client.post(f"/api/articles/{article['id']}/publish", json={})
        assert resp.status_code == 400

    def test_publish_negative_metric(self, client, article):
        resp = client.post(
            f"/api/articles/{article['id']}/publish", json={"xhs_note_id": "n", "likes": -3}
        )
        assert resp.status_code == 400

    def test_publish_missing(self, client):
        resp = client.post(f"/api/articles/{uuid4()}/publish", json={"xhs_note_id": "n"})
        assert resp.status_code == 404


class TestVersions:
    def test_versions_follow_edits(self, client, article):
        client.put(f"/api/articles/{article['id']}", json={"content": "Second"})
        client.put(f"/api/articles/{article['id']}", json={"title": "Third"})
        client.put(f"/api/articles/{article['id']}", json={"tags": ["no-version"]})

        data = client.get(f"/api/articles/{article['id']}/versions").json()

        assert data["article_id"] == article["id"]
        assert data["total"] == 3
        assert [v["version_num"] for v in data["versions"]] == [3, 2, 1]
        assert (data["versions"][0]["title"], data["versions"][0]["content"]) == (
            "Third",
            "Second",
        )

    def test_versions_missing_article(self, client):
        assert client.get(f"/api/articles/{uuid4()}/versions").status_code == 404
