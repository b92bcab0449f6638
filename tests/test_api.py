"""HTTP-level tests: REST chat, GraphQL schema, health, CORS and error handlers."""

from collections.abc import Sequence
from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from chatrelay.app import get_app
from chatrelay.configs.config import AppConfig
from chatrelay.configs.system import LLMConfig, ServerConfig
from chatrelay.core.exceptions import ProviderError
from chatrelay.core.models import Completion, Message, Usage
from chatrelay.core.provider import ProviderClient, get_provider_client

CHAT_MUTATION = """
mutation Chat($input: ChatInput!) {
  chat(input: $input) {
    success
    message
    error
    model
    timestamp
    usage { promptTokens completionTokens totalTokens }
  }
}
"""

# =========================================================================
# Fixtures
# =========================================================================


class FakeProvider:
    name = "Fake"

    def __init__(self) -> None:
        self.calls: list[list[Message]] = []
        self.error: Exception | None = None
        self.content = "Hi! How can I help?"

    async def complete(
        self,
        messages: Sequence[Message],
        *,
        model: str,
        temperature: float,
        max_tokens: int,
    ) -> Completion:
        self.calls.append(list(messages))
        if self.error is not None:
            raise self.error
        return Completion(
            content=self.content,
            model=model,
            choice_count=1,
            usage=Usage(prompt_tokens=9, completion_tokens=6, total_tokens=15),
        )


def _app(**overrides):
    overrides.setdefault(
        "server", ServerConfig(environment="test", metrics_enabled=False)
    )
    return get_app(AppConfig(**overrides))


@pytest.fixture()
def provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture()
def client(provider: FakeProvider) -> TestClient:
    app = _app()
    app.dependency_overrides[get_provider_client] = lambda: provider
    return TestClient(app)


@pytest.fixture()
def unconfigured_client() -> TestClient:
    """App whose lifespan never ran, so no provider exists."""
    return TestClient(_app())


def _graphql(client: TestClient, query: str, variables: dict | None = None) -> dict:
    response = client.post("/graphql", json={"query": query, "variables": variables})
    assert response.status_code == 200
    return response.json()


# =========================================================================
# Health
# =========================================================================


class TestHealth:
    def test_rest_health(self, client):
        body = client.get("/health").json()

        assert body["status"] == "OK"
        assert body["environment"] == "test"
        assert body["version"] == "0.1.0"
        assert body["api"] == "DeepSeek"
        assert body["timestamp"].endswith("Z")

    def test_rest_health_works_without_api_key(self, unconfigured_client):
        assert unconfigured_client.get("/health").status_code == 200

    def test_graphql_hello_and_health(self, client):
        body = _graphql(client, "{ hello health { status environment version } }")

        assert body["data"]["hello"].startswith("Hello")
        assert body["data"]["health"] == {
            "status": "OK",
            "environment": "test",
            "version": "0.1.0",
        }


# =========================================================================
# Application factory and lifespan
# =========================================================================


class TestLifespan:
    def test_provider_is_built_and_closed(self, monkeypatch):
        aclose = AsyncMock()
        monkeypatch.setattr(ProviderClient, "aclose", aclose)
        app = _app(llm=LLMConfig(api_key="sk-test"))

        with TestClient(app):
            provider = app.state.provider
            assert isinstance(provider, ProviderClient)
            assert provider.name == "DeepSeek"

        aclose.assert_awaited_once()
        assert app.state.provider is None

    def test_missing_api_key_starts_without_provider(self):
        app = _app(llm=LLMConfig(api_key=""))

        with TestClient(app) as client:
            assert app.state.provider is None
            assert client.get("/health").status_code == 200
            response = client.post("/api/v1/chat", json={"message": "hi"})

        assert response.status_code == 500
        assert response.json()["code"] == "PROVIDER_NOT_CONFIGURED"

    def test_given_config_reaches_request_dependencies(self):
        app = _app(server=ServerConfig(environment="staging", metrics_enabled=False))

        body = TestClient(app).get("/health").json()

        assert body["environment"] == "staging"
        assert app.state.config.server.environment == "staging"

    def test_chat_through_started_app(self, monkeypatch):
        complete = AsyncMock(
            return_value=Completion(
                content="pong",
                model="deepseek-chat",
                choice_count=1,
                usage=Usage(prompt_tokens=3, completion_tokens=1, total_tokens=4),
            )
        )
        monkeypatch.setattr(ProviderClient, "complete", complete)
        app = _app(llm=LLMConfig(api_key="sk-test"))

        with TestClient(app) as client:
            response = client.post("/api/v1/chat", json={"message": "ping"})

        assert response.status_code == 200
        assert response.json()["message"] == "pong"
        assert complete.await_args.kwargs["model"] == "deepseek-chat"


# =========================================================================
# REST chat
# =========================================================================


class TestRestChat:
    def test_success(self, client, provider):
        response = client.post(
            "/api/v1/chat",
            json={
                "message": "Hello",
                "conversation": [
                    {"role": "user", "content": "earlier"},
                    {"role": "assistant", "content": "reply"},
                ],
                "max_tokens": 50,
            },
        )

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["message"] == "Hi! How can I help?"
        assert body["model"] == "deepseek-chat"
        assert body["usage"]["total_tokens"] == 15
        assert [m.role for m in provider.calls[0]] == [
            "system",
            "user",
            "assistant",
            "user",
        ]

    def test_blank_message_is_400(self, client, provider):
        response = client.post("/api/v1/chat", json={"message": "  "})

        assert response.status_code == 400
        assert response.json()["code"] == "INVALID_REQUEST"
        assert provider.calls == []

    def test_unknown_role_is_422(self, client):
        response = client.post(
            "/api/v1/chat",
            json={"message": "hi", "conversation": [{"role": "tool", "content": "x"}]},
        )
        assert response.status_code == 422

    def test_provider_rate_limit_is_429(self, client, provider):
        provider.error = ProviderError("Too many requests", status_code=429)

        response = client.post("/api/v1/chat", json={"message": "hi"})

        assert response.status_code == 429
        assert response.headers["retry-after"] == "5"

    def test_other_provider_errors_are_502(self, client, provider):
        provider.error = ProviderError("The API key is invalid", status_code=401)

        response = client.post("/api/v1/chat", json={"message": "hi"})

        assert response.status_code == 502
        assert response.json()["detail"] == "The API key is invalid"

    def test_empty_completion_is_502(self, client, provider):
        provider.content = ""

        response = client.post("/api/v1/chat", json={"message": "hi"})

        assert response.status_code == 502
        assert response.json()["code"] == "EMPTY_COMPLETION"

    def test_missing_api_key_is_500(self, unconfigured_client):
        response = unconfigured_client.post("/api/v1/chat", json={"message": "hi"})

        assert response.status_code == 500
        assert response.json()["code"] == "PROVIDER_NOT_CONFIGURED"


# =========================================================================
# GraphQL chat
# =========================================================================


class TestGraphQLChat:
    def test_success(self, client, provider):
        body = _graphql(
            client,
            CHAT_MUTATION,
            {
                "input": {
                    "message": "Hello",
                    "conversation": [{"role": "user", "content": "earlier"}],
                    "model": "deepseek-coder",
                    "temperature": 0.1,
                    "maxTokens": 20,
                }
            },
        )

        chat = body["data"]["chat"]
        assert chat["success"] is True
        assert chat["message"] == "Hi! How can I help?"
        assert chat["error"] is None
        assert chat["model"] == "deepseek-coder"
        assert chat["usage"] == {
            "promptTokens": 9,
            "completionTokens": 6,
            "totalTokens": 15,
        }
        assert chat["timestamp"]
        assert len(provider.calls[0]) == 3

    def test_validation_failure_is_an_envelope(self, client, provider):
        body = _graphql(client, CHAT_MUTATION, {"input": {"message": ""}})

        chat = body["data"]["chat"]
        assert chat["success"] is False
        assert chat["message"] is None
        assert chat["error"] == "Message must not be empty"
        assert chat["timestamp"]
        assert provider.calls == []

    def test_too_long_message(self, client):
        body = _graphql(client, CHAT_MUTATION, {"input": {"message": "a" * 4001}})

        assert "4000" in body["data"]["chat"]["error"]

    def test_unknown_role_is_an_envelope(self, client, provider):
        body = _graphql(
            client,
            CHAT_MUTATION,
            {
                "input": {
                    "message": "hi",
                    "conversation": [{"role": "robot", "content": "beep"}],
                }
            },
        )

        chat = body["data"]["chat"]
        assert chat["success"] is False
        assert "robot" in chat["error"]
        assert provider.calls == []

    def test_provider_error_is_an_envelope(self, client, provider):
        provider.error = ProviderError(
            "The provider is temporarily unavailable; please try again later",
            status_code=503,
        )

        chat = _graphql(client, CHAT_MUTATION, {"input": {"message": "hi"}})["data"]["chat"]

        assert chat["success"] is False
        assert "temporarily unavailable" in chat["error"]

    def test_unexpected_error_is_an_envelope(self, client, provider):
        provider.error = RuntimeError("kaboom")

        chat = _graphql(client, CHAT_MUTATION, {"input": {"message": "hi"}})["data"]["chat"]

        assert chat["success"] is False
        assert chat["error"] == "Error while processing request: kaboom"

    def test_missing_api_key_is_500(self, unconfigured_client):
        response = unconfigured_client.post(
            "/graphql", json={"query": CHAT_MUTATION, "variables": {"input": {"message": "hi"}}}
        )

        assert response.status_code == 500
        assert response.json()["error"] == "The provider API key is not configured"


# =========================================================================
# CORS
# =========================================================================


class TestCORS:
    def test_preflight_from_allowed_origin(self, client):
        response = client.options(
            "/graphql",
            headers={
                "Origin": "https://preview-42.pages.dev",
                "Access-Control-Request-Method": "POST",
                "Access-Control-Request-Headers": "Content-Type",
            },
        )

        assert response.status_code == 200
        assert response.headers["access-control-allow-origin"] == (
            "https://preview-42.pages.dev"
        )
        assert response.headers["access-control-allow-credentials"] == "true"
        assert response.headers["access-control-max-age"] == "86400"

    def test_preflight_from_unknown_origin_is_rejected(self, client):
        response = client.options(
            "/graphql",
            headers={
                "Origin": "https://evil.example",
                "Access-Control-Request-Method": "POST",
            },
        )

        assert response.status_code == 400
        assert "access-control-allow-origin" not in response.headers

    def test_simple_request_echoes_allowed_origin(self, client):
        response = client.get("/health", headers={"Origin": "http://localhost:5173"})

        assert response.headers["access-control-allow-origin"] == "http://localhost:5173"
