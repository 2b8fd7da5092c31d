"""Smoke tests for the HTTP API."""

from io import BytesIO

import httpx
import pytest
from fastapi.testclient import TestClient
from PIL import Image

from conftest import TODAY, FakeProvider

from chatdiary.api.dependencies import ServiceContainer
from main import create_app


@pytest.fixture
def client(services: ServiceContainer) -> TestClient:
    return TestClient(create_app(services))


class TestRoot:
    def test_root(self, client: TestClient) -> None:
        response = client.get("/")
        assert response.status_code == 200
        assert response.json()["status"] == "running"

    def test_health(self, client: TestClient) -> None:
        assert client.get("/health").json() == {"status": "healthy", "code": 0}


class TestChatAPI:
    def test_send_and_reply(self, client: TestClient, provider: FakeProvider) -> None:
        sent = client.post(f"/api/chat/{TODAY}/messages", json={"text": "hi"})
        assert sent.status_code == 200
        assert sent.json()["data"]["sender"] == "user"

        provider.reply("hello\nhow are you?")
        reply = client.post(f"/api/chat/{TODAY}/reply")
        assert reply.status_code == 200
        assert [m["text"] for m in reply.json()["data"]] == ["hello", "how are you?"]

        messages = client.get(f"/api/chat/{TODAY}").json()["data"]
        assert [m["sender"] for m in messages] == ["ai", "user", "ai", "ai"]

    def test_reply_failure_reports_stored_error(self, client: TestClient, provider: FakeProvider) -> None:
        client.post(f"/api/chat/{TODAY}/messages", json={"text": "hi"})
        provider.fail(500, "boom")

        response = client.post(f"/api/chat/{TODAY}/reply")
        assert response.status_code == 502
        body = response.json()
        assert body["code"] == 3
        assert body["data"][0]["text"].startswith("Error: ")

    def test_edit_delete_clear(self, client: TestClient) -> None:
        message = client.post(f"/api/chat/{TODAY}/messages", json={"text": "hi"}).json()["data"]

        edited = client.patch(f"/api/chat/{TODAY}/messages/{message['id']}", json={"text": "hello"})
        assert edited.json()["data"]["text"] == "hello"

        deleted = client.delete(f"/api/chat/{TODAY}/messages", params={"ids": [message["id"]]})
        assert deleted.json()["data"] == {"deleted": 1}

        cleared = client.post(f"/api/chat/{TODAY}/clear").json()["data"]
        assert len(cleared) == 1

    def test_edit_unknown_message(self, client: TestClient) -> None:
        response = client.patch(f"/api/chat/{TODAY}/messages/42", json={"text": "x"})
        assert response.status_code == 404
        assert response.json()["code"] == 6


class TestDiariesAPI:
    def test_manual_save_and_edit(self, client: TestClient, provider: FakeProvider) -> None:
        provider.reply('{"events": "Rain", "atmosphere_or_emotion": "Cozy"}')
        saved = client.post("/api/diaries/manual", json={
            "date": TODAY, "draft": {"title": "Rain", "content": "It rained", "tags": ["weather"]},
        })
        assert saved.status_code == 200
        diary = saved.json()["data"]
        assert diary["ai_briefing"]["events"] == "Rain"
        assert "chatHistory" in diary and "createdAt" in diary

        updated = client.patch(f"/api/diaries/{diary['id']}", json={"title": "Storm", "mood": "sad"})
        assert updated.json()["data"]["title"] == "Storm"
        assert updated.json()["data"]["mood"] == "sad"

        comment = client.post(f"/api/diaries/{diary['id']}/comments", json={"text": "me too"}).json()["data"]
        assert comment["author"] == "user"
        assert client.delete(f"/api/diaries/{diary['id']}/comments/{comment['id']}").status_code == 200

        by_date = client.get(f"/api/diaries/date/{TODAY}").json()["data"]
        assert [d["id"] for d in by_date] == [diary["id"]]

        assert client.delete(f"/api/diaries/{diary['id']}").status_code == 200
        assert client.get(f"/api/diaries/{diary['id']}").status_code == 404

    def test_generate_without_chat(self, client: TestClient) -> None:
        response = client.post("/api/diaries/generate", json={"date": TODAY})
        assert response.status_code == 400
        assert response.json()["code"] == 1

    def test_save_generated(self, client: TestClient) -> None:
        response = client.post("/api/diaries/save", json={
            "date": TODAY, "diary": {"title": "", "content": "<p>x</p>", "mood": "happy"},
        })
        assert response.json()["data"]["title"] == "Daily Reflection"
        assert len(client.get("/api/diaries").json()["data"]) == 1

    def test_ai_comment(self, client: TestClient, provider: FakeProvider) -> None:
        diary = client.post("/api/diaries/save", json={"date": "2024-05-01", "diary": {"content": "x"}}).json()["data"]
        provider.reply("Look at you now.")

        response = client.post(f"/api/diaries/{diary['id']}/comment/ai", json={"activeDate": TODAY})
        assert response.json()["data"]["text"] == "Look at you now."

    def test_polish(self, client: TestClient, provider: FakeProvider) -> None:
        provider.reply("<content>Better</content>")
        response = client.post("/api/diaries/polish", json={
            "date": TODAY, "history": [{"role": "user", "content": "polish"}],
        })
        assert response.json()["data"]["segments"] == [{"kind": "content", "value": "Better"}]

    def test_drafts(self, client: TestClient) -> None:
        assert client.get(f"/api/diaries/drafts/{TODAY}").json()["data"] is None
        client.put(f"/api/diaries/drafts/{TODAY}", json={"title": "t", "isAssistantOpen": True})
        draft = client.get(f"/api/diaries/drafts/{TODAY}").json()["data"]
        assert draft["title"] == "t" and draft["isAssistantOpen"] is True
        client.delete(f"/api/diaries/drafts/{TODAY}")
        assert client.get(f"/api/diaries/drafts/{TODAY}").json()["data"] is None


class TestSettingsAPI:
    def test_default_persona_protected(self, client: TestClient) -> None:
        response = client.delete("/api/settings/personas/default")
        assert response.status_code == 403
        assert response.json()["code"] == 7

    def test_persona_create_and_select(self, client: TestClient) -> None:
        persona = client.post("/api/settings/personas", json={"name": "Coach", "replyStyle": "concise"}).json()["data"]
        assert persona["replyStyle"] == "concise"

        selected = client.post(f"/api/settings/personas/{persona['id']}/select").json()["data"]
        assert selected["currentPersonaId"] == persona["id"]

        deleted = client.delete(f"/api/settings/personas/{persona['id']}").json()["data"]
        assert deleted["currentPersonaId"] == "default"

    def test_api_config_and_models(self, client: TestClient, provider: FakeProvider) -> None:
        created = client.post("/api/settings/api-configs", json={
            "name": "Proxy", "provider": "custom", "apiKey": "k", "baseUrl": "https://proxy.example.com",
        }).json()["data"]
        client.post(f"/api/settings/api-configs/{created['id']}/select")

        provider.fail(404)
        provider.responses.append(httpx.Response(200, json={"data": [{"id": "m"}]}))
        response = client.get("/api/settings/models", params={"config_id": created["id"]})

        assert response.json()["data"] == ["m"]
        assert [str(r.url) for r in provider.requests] == [
            "https://proxy.example.com/v1/models",
            "https://proxy.example.com/models",
        ]

    def test_models_unauthorized(self, client: TestClient, provider: FakeProvider) -> None:
        provider.fail(401, "bad key")
        response = client.get("/api/settings/models")
        assert response.status_code == 502
        assert len(provider.requests) == 1

    def test_profile(self, client: TestClient) -> None:
        client.patch("/api/settings/profile", json={"username": "Lin", "shortTermGoals": "Sleep more"})
        profile = client.get("/api/settings/profile").json()["data"]
        assert profile["username"] == "Lin"
        assert profile["shortTermGoals"] == "Sleep more"

    def test_backup_round_trip(self, client: TestClient) -> None:
        client.post("/api/diaries/save", json={"date": TODAY, "diary": {"title": "A"}})
        backup = client.get("/api/settings/backup").json()["data"]
        assert backup["version"] == "1.0"

        client.post("/api/settings/backup", json={"diaries": []})
        assert client.get("/api/diaries").json()["data"] == []

        restored = client.post("/api/settings/backup", json=backup).json()["data"]
        assert restored["diaries"] == 1

    def test_invalid_backup(self, client: TestClient) -> None:
        response = client.post("/api/settings/backup", json=["nope"])
        assert response.status_code == 400
        assert response.json()["code"] == 8


class TestMediaAPI:
    def test_compress_upload(self, client: TestClient) -> None:
        buffer = BytesIO()
        Image.new("RGB", (1200, 600)).save(buffer, format="PNG")
        response = client.post(
            "/api/media/compress", files={"file": ("photo.png", buffer.getvalue(), "image/png")}
        )
        data = response.json()["data"]
        assert data["url"].startswith("data:image/webp;base64,")
        assert data["name"] == "photo.png"

    def test_rejects_non_image(self, client: TestClient) -> None:
        response = client.post("/api/media/compress", files={"file": ("a.txt", b"hello", "text/plain")})
        assert response.status_code == 400
