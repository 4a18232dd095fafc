"""API endpoint tests."""

from fastapi.testclient import TestClient

from mentra.api import create_app
from mentra.config import Settings
from mentra.services.chat_handler import MODEL_FAILURE_REPLY
from mentra_models import NEW_THREAD_TITLE

from conftest import GREETING, FailingGateway


def create(client: TestClient) -> dict:
    response = client.post("/api/threads")
    assert response.status_code == 201
    return response.json()["thread"]


class TestHealth:
    """Test liveness endpoints."""

    def test_root(self, client):
        response = client.get("/")
        assert response.status_code == 200
        assert "Mentra backend is running" in response.text

    def test_health(self, client):
        assert client.get("/api/health").json() == {"ok": True}


class TestThreads:
    """Test thread lifecycle endpoints."""

    def test_create_thread(self, client):
        thread = create(client)

        assert thread["title"] == NEW_THREAD_TITLE
        assert thread["summary"] == ""
        assert len(thread["messages"]) == 1
        assert thread["messages"][0]["role"] == "assistant"
        assert thread["messages"][0]["content"] == GREETING
        assert isinstance(thread["updatedAt"], int)
        assert thread["updatedAt"] == thread["messages"][0]["createdAt"]

    def test_list_threads_most_recent_first(self, client):
        first = create(client)
        second = create(client)
        client.post(f"/api/threads/{first['id']}/messages", json={"content": "bump"})

        ids = [t["id"] for t in client.get("/api/threads").json()["threads"]]
        assert ids == [first["id"], second["id"]]

    def test_get_thread(self, client):
        thread = create(client)

        response = client.get(f"/api/threads/{thread['id']}")
        assert response.status_code == 200
        assert response.json()["thread"]["id"] == thread["id"]

    def test_get_missing_thread(self, client):
        response = client.get("/api/threads/missing")
        assert response.status_code == 404
        assert response.json() == {"error": "Thread not found"}

    def test_delete_thread(self, client):
        thread = create(client)

        response = client.delete(f"/api/threads/{thread['id']}")
        assert response.status_code == 200
        assert response.json() == {"ok": True}
        assert client.get("/api/threads").json()["threads"] == []

        again = client.delete(f"/api/threads/{thread['id']}")
        assert again.status_code == 404

    def test_delete_missing_leaves_list(self, client):
        create(client)
        before = client.get("/api/threads").json()

        response = client.delete("/api/threads/missing")

        assert response.status_code == 404
        assert client.get("/api/threads").json() == before


class TestMessages:
    """Test posting messages."""

    def test_json_message(self, client, gateway):
        thread = create(client)

        response = client.post(
            f"/api/threads/{thread['id']}/messages",
            json={"content": "What is recursion?", "responseStyle": "concise", "includePractice": False},
        )

        assert response.status_code == 201
        body = response.json()
        assert body["message"]["role"] == "assistant"
        assert body["message"]["content"] == gateway.reply
        assert len(body["thread"]["messages"]) == 3
        assert body["thread"]["title"] == "Recursion?"
        assert body["thread"]["updatedAt"] > thread["updatedAt"]

        instructions, _ = gateway.calls[0]
        assert "Keep the answer short" in instructions
        assert "practice questions" not in instructions

    def test_multipart_with_files(self, client, gateway):
        thread = create(client)

        response = client.post(
            f"/api/threads/{thread['id']}/messages",
            data={"content": "", "responseStyle": "beginner"},
            files=[
                ("files", ("notes.txt", b"Binary search halves the range.", "text/plain")),
                ("files", ("figure.png", b"\x89PNG", "image/png")),
            ],
        )

        assert response.status_code == 201
        user_turn = response.json()["thread"]["messages"][1]
        assert user_turn["role"] == "user"
        assert user_turn["content"] == (
            "--- Extracted from notes.txt ---\nBinary search halves the range.\n\n"
            "User uploaded file: figure.png (image/png)"
        )
        assert "Assume no background knowledge" in gateway.calls[0][0]

    def test_oversized_upload_becomes_placeholder(self, store, gateway):
        app = create_app(
            settings=Settings(compaction_enabled=False, max_upload_bytes=8),
            store=store,
            gateway=gateway,
        )
        with TestClient(app) as client:
            thread = create(client)
            response = client.post(
                f"/api/threads/{thread['id']}/messages",
                data={"content": "see attached"},
                files=[("files", ("big.txt", b"0123456789", "text/plain"))],
            )

        assert response.status_code == 201
        user_turn = response.json()["thread"]["messages"][1]
        assert user_turn["content"] == "see attached\n\n[Skipped big.txt: larger than 8 bytes]"

    def test_empty_message(self, client, gateway):
        thread = create(client)

        response = client.post(f"/api/threads/{thread['id']}/messages", json={"content": "  "})

        assert response.status_code == 400
        assert response.json() == {"error": "Message must include text or files"}
        assert gateway.calls == []
        assert len(client.get(f"/api/threads/{thread['id']}").json()["thread"]["messages"]) == 1

    def test_invalid_body(self, client):
        thread = create(client)

        response = client.post(
            f"/api/threads/{thread['id']}/messages",
            content=b"[1, 2, 3]",
            headers={"Content-Type": "application/json"},
        )

        assert response.status_code == 400

    def test_missing_thread(self, client):
        response = client.post("/api/threads/missing/messages", json={"content": "hi"})

        assert response.status_code == 404
        assert response.json() == {"error": "Thread not found"}

    def test_model_failure_returns_thread(self, store):
        app = create_app(
            settings=Settings(compaction_enabled=False),
            store=store,
            gateway=FailingGateway(),
        )
        with TestClient(app) as client:
            thread = create(client)
            response = client.post(f"/api/threads/{thread['id']}/messages", json={"content": "Hello"})

        assert response.status_code == 500
        body = response.json()
        assert body["error"] == "Model request failed"
        assert body["message"]["content"] == MODEL_FAILURE_REPLY
        assert body["thread"]["messages"][-1] == body["message"]
        assert body["thread"]["updatedAt"] > thread["updatedAt"]


class TestExport:
    """Test markdown export."""

    def test_export_markdown(self, client):
        thread = create(client)
        client.post(f"/api/threads/{thread['id']}/messages", json={"content": "Explain big-O notation"})

        response = client.get(f"/api/threads/{thread['id']}/export")

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/markdown")
        assert "filename*=UTF-8''Explain%20Big-o%20Notation.md" in response.headers["content-disposition"]
        text = response.text
        assert text.startswith("# Explain Big-o Notation\n")
        assert "## User — " in text
        assert "## Mentra — " in text
        assert "Explain big-O notation" in text

    def test_export_missing(self, client):
        assert client.get("/api/threads/missing/export").status_code == 404


class TestCors:
    """Test CORS configuration."""

    def test_allowed_origin(self, client):
        response = client.get("/api/health", headers={"Origin": "http://localhost:5173"})
        assert response.headers["access-control-allow-origin"] == "http://localhost:5173"
