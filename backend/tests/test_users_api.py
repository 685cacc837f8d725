"""
Profile tests - the store's update_profile and the /api/users/me endpoints.

An edited profile must reach the next generated prompt, since the twin
answers from whatever the store holds at request time.
"""

from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from errors import NotFoundError, ValidationError
from main import app
from routers.survey_orchestration import GenerationOrchestrator, get_orchestrator
from services.storage import JsonFileStore, get_store

HEADERS = {"X-User-Id": "1"}


@pytest.fixture
def user(store):
    return store.create_user(
        "ana",
        language="en",
        demographics={"age": 34, "occupation": "Teacher"},
        preferences={"tone": "Friendly", "interests": ["Chess"]},
    )


@pytest.fixture
def providers(store, make_provider, classifier, runtime, user):
    providers = {"gemini": make_provider("gemini"), "cloudflare": make_provider("cloudflare")}
    orchestrator = GenerationOrchestrator(providers, classifier=classifier, config=runtime)
    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_orchestrator] = lambda: orchestrator
    yield providers
    app.dependency_overrides.clear()


@pytest.fixture
def client(providers):
    return TestClient(app)


class TestUpdateProfile:
    """JsonFileStore.update_profile"""

    def test_merges_sections(self, store, user):
        updated = store.update_profile(user.id, demographics={"occupation": "Chef", "location": "Lima"})

        assert dict(updated.demographics) == {"age": 34, "occupation": "Chef", "location": "Lima"}
        assert dict(updated.preferences) == {"tone": "Friendly", "interests": ["Chess"]}
        assert updated.language == "en"

    def test_none_removes_key(self, store, user):
        updated = store.update_profile(user.id, preferences={"interests": None})
        assert dict(updated.preferences) == {"tone": "Friendly"}

    def test_language(self, store, user):
        assert store.update_profile(user.id, language="es").language == "es"

    def test_persisted(self, store, user):
        store.update_profile(user.id, demographics={"occupation": "Chef"}, language="es")

        reopened = JsonFileStore(store.path).get_user(user.id)
        assert reopened.demographics["occupation"] == "Chef"
        assert reopened.language == "es"

    def test_caller_dict_not_aliased(self, store, user):
        changes = {"interests": ["Chess", "Go"]}
        store.update_profile(user.id, preferences=changes)
        changes["interests"].append("Poker")

        assert store.get_user(user.id).preferences["interests"] == ["Chess", "Go"]

    def test_unknown_user(self, store):
        with pytest.raises(NotFoundError) as exc:
            store.update_profile(42, language="en")
        assert exc.value.message == "User 42 not found"

    def test_unsupported_language_leaves_store_untouched(self, store, user):
        with pytest.raises(ValidationError):
            store.update_profile(user.id, demographics={"occupation": "Chef"}, language="fr")

        assert store.get_user(user.id).demographics["occupation"] == "Teacher"


class TestMe:
    """GET/PATCH /api/users/me"""

    def test_get(self, client):
        body = client.get("/api/users/me", headers=HEADERS).json()

        assert body["id"] == 1
        assert body["username"] == "ana"
        assert body["demographics"] == {"age": 34, "occupation": "Teacher"}

    def test_requires_caller(self, client):
        assert client.get("/api/users/me").status_code == 401
        assert client.patch("/api/users/me/profile", json={}, headers={"X-User-Id": "7"}).status_code == 404

    def test_patch_profile(self, client, store):
        response = client.patch(
            "/api/users/me/profile",
            json={"demographics": {"occupation": "Chef"}, "preferences": {"tone": "Blunt"}},
            headers=HEADERS,
        )

        assert response.status_code == 200
        body = response.json()
        assert body["demographics"] == {"age": 34, "occupation": "Chef"}
        assert body["preferences"]["tone"] == "Blunt"
        assert store.get_user(1).preferences["tone"] == "Blunt"

    def test_patch_me_alias(self, client):
        body = client.patch("/api/users/me", json={"language": "es"}, headers=HEADERS).json()
        assert body["language"] == "es"

    def test_unsupported_language(self, client):
        response = client.patch("/api/users/me/profile", json={"language": "fr"}, headers=HEADERS)

        assert response.status_code == 400
        assert response.json() == {"message": "Unsupported language 'fr'", "details": "expected one of: es, en"}

    def test_unknown_field(self, client):
        response = client.patch("/api/users/me/profile", json={"username": "mallory"}, headers=HEADERS)

        assert response.status_code == 400
        assert response.json()["details"].startswith("body.username: ")

    def test_user_removed_mid_request(self, client, store):
        missing = NotFoundError("User 1 not found", resource_type="user", resource_id="1")
        with patch.object(store, "update_profile", side_effect=missing):
            response = client.patch("/api/users/me/profile", json={"language": "es"}, headers=HEADERS)

        assert response.status_code == 404
        assert response.json() == {"message": "User 1 not found"}

    def test_edit_reaches_system_prompt(self, client, providers):
        client.post("/api/survey/generate", json={"question": "Coffee?"}, headers=HEADERS)
        client.patch(
            "/api/users/me/profile",
            json={"demographics": {"occupation": "Astronaut"}, "preferences": {"tone": "Blunt"}},
            headers=HEADERS,
        )
        client.post("/api/survey/generate", json={"question": "Coffee?"}, headers=HEADERS)

        before, after = [request.system_prompt for _, _, request in providers["gemini"].calls]
        assert "Teacher" in before and "Astronaut" not in before
        assert "Astronaut" in after and "Teacher" not in after
        assert "Blunt" in after
