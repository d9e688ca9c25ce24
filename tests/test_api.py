"""
Tests for the HTTP surface.
"""

import httpx
import pytest
from fastapi.testclient import TestClient

from commit_watch.main import create_app
from commit_watch.service import CommitWatchService
from commit_watch.state.manager import InMemoryStateStore, StorageKeys

HISTORY_ENTRY = {
    "id": "github-commit-octo-org/hello-world-abc1234",
    "type": "commit",
    "platform": "github",
    "repo": "octo-org/hello-world",
    "priority": "high",
    "message": "Fix login redirect",
    "url": "https://github.com/octo-org/hello-world/commit/abc1234",
    "timestamp": "2024-05-01T12:00:00Z",
}


def github_handler(repo_payload):
    """Fake GitHub API accepting only the token 'good-token'."""

    def handler(request: httpx.Request) -> httpx.Response:
        if request.headers.get("Authorization") != "Bearer good-token":
            return httpx.Response(401, json={"message": "Bad credentials"})
        if request.url.path == "/user":
            return httpx.Response(200, json={"login": "octocat", "id": 1, "name": "Octo Cat"})
        if request.url.path == "/user/repos":
            page = int(request.url.params.get("page", "1"))
            return httpx.Response(200, json=[repo_payload] if page == 1 else [])
        return httpx.Response(404, json={"message": "Not Found"})

    return handler


@pytest.fixture
def store():
    return InMemoryStateStore(
        {
            StorageKeys.NOTIFICATION_HISTORY: [HISTORY_ENTRY],
            StorageKeys.UNREAD_COUNT: 2,
        }
    )


@pytest.fixture
def client(test_settings, store, github_repo_payload):
    http_client = httpx.AsyncClient(
        transport=httpx.MockTransport(github_handler(github_repo_payload))
    )
    service = CommitWatchService.create(test_settings, store=store, http_client=http_client)
    with TestClient(create_app(service)) as test_client:
        yield test_client


class TestBasicEndpoints:
    def test_root(self, client):
        response = client.get("/")
        assert response.status_code == 200
        assert response.json()["message"] == "Commit Watch"

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "healthy"}

    def test_status_when_signed_out(self, client):
        response = client.get("/status")

        assert response.status_code == 200
        data = response.json()
        assert data["authenticated"] is False
        assert data["platforms"]["github"]["authenticated"] is False
        assert data["unread_count"] == 2
        assert data["badge_text"] == "2"
        assert data["scheduler"]["armed"] is False


class TestAuthEndpoints:
    """Test sign-in and sign-out."""

    def test_authenticate_success(self, client):
        response = client.post("/auth/github", json={"token": "good-token"})

        assert response.status_code == 200
        assert response.json()["user"]["login"] == "octocat"

        status = client.get("/status").json()
        assert status["authenticated"] is True
        assert status["platforms"]["github"]["user"]["login"] == "octocat"
        assert status["scheduler"]["armed"] is True

        repos = client.get("/repositories").json()["repositories"]
        assert repos[0]["key"] == "github:octo-org/hello-world"
        assert repos[0]["enabled"] is True

    def test_authenticate_rejected(self, client):
        response = client.post("/auth/github", json={"token": "bad-token"})

        assert response.status_code == 401
        assert response.json()["error"] == "AUTHENTICATION_ERROR"
        assert client.get("/status").json()["authenticated"] is False

    def test_authenticate_requires_token(self, client):
        assert client.post("/auth/github", json={"token": ""}).status_code == 422

    def test_unknown_platform(self, client):
        assert client.post("/auth/bitbucket", json={"token": "x"}).status_code == 422

    def test_logout(self, client):
        client.post("/auth/github", json={"token": "good-token"})

        response = client.delete("/auth/github")

        assert response.status_code == 200
        status = client.get("/status").json()
        assert status["authenticated"] is False
        assert status["scheduler"]["armed"] is False

    def test_sweep_without_platform(self, client):
        response = client.post("/sweep")
        assert response.json() == {"success": False}


class TestSettingsEndpoints:
    def test_get_settings(self, client):
        settings = client.get("/settings").json()["settings"]
        assert settings["ignore_forks"] is True
        assert settings["enabled_repos"] == {}

    def test_update_settings(self, client):
        response = client.patch(
            "/settings", json={"enabled_repos": {"github:org/a": False}}
        )

        assert response.status_code == 200
        assert response.json()["settings"]["enabled_repos"] == {"github:org/a": False}
        assert client.get("/settings").json()["settings"]["enabled_repos"] == {
            "github:org/a": False
        }

    def test_invalid_settings(self, client):
        response = client.patch("/settings", json={"check_interval_minutes": -5})

        assert response.status_code == 422
        assert response.json()["error"] == "CONFIGURATION_ERROR"

    def test_unknown_setting(self, client):
        response = client.patch("/settings", json={"colour": "blue"})
        assert response.status_code == 422


class TestNotificationEndpoints:
    """Test history, unread state and interactions."""

    def test_history(self, client):
        data = client.get("/notifications").json()

        assert data["unread_count"] == 2
        assert data["history"][0]["id"] == HISTORY_ENTRY["id"]

    def test_clear_unread(self, client):
        client.post("/notifications/clear-unread")

        status = client.get("/status").json()
        assert status["unread_count"] == 0
        assert status["badge_text"] == ""

    def test_clear_history(self, client):
        client.delete("/notifications")
        assert client.get("/notifications").json()["history"] == []

    def test_click_resolves_url(self, client):
        response = client.post(f"/notifications/{HISTORY_ENTRY['id']}/click")
        assert response.json() == {"url": HISTORY_ENTRY["url"]}

    def test_click_unknown_falls_back_to_home(self, client):
        response = client.post("/notifications/gitlab-release-group/gone-v1/click")
        assert response.json() == {"url": "https://gitlab.com"}

    def test_action(self, client):
        open_response = client.post(
            f"/notifications/{HISTORY_ENTRY['id']}/action", json={"action_index": 0}
        )
        dismiss_response = client.post(
            f"/notifications/{HISTORY_ENTRY['id']}/action", json={"action_index": 1}
        )

        assert open_response.json() == {"url": HISTORY_ENTRY["url"]}
        assert dismiss_response.json() == {"url": None}

    def test_negative_action_index(self, client):
        response = client.post(
            f"/notifications/{HISTORY_ENTRY['id']}/action", json={"action_index": -1}
        )
        assert response.status_code == 422


class TestReleaseCache:
    def test_reset_release_cache(self, client, store):
        response = client.post("/releases/reset")

        assert response.status_code == 200
        assert store._data[StorageKeys.LAST_RELEASES] == {}
