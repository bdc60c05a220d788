"""Tests for the HTTP API (FastAPI TestClient, container providers overridden)."""

from __future__ import annotations

import json
from contextlib import ExitStack

import pytest
from dependency_injector import providers
from fastapi.testclient import TestClient

from scholar_qa.container import ApplicationContainer, load_config_from_env
from scholar_qa.presentation.api import create_app

DIRECT = '{"canAnswer": true, "answer": "Paris."}'


def _frames(body: str) -> list[dict]:
    return [json.loads(chunk[len("data: ") :]) for chunk in body.split("\n\n") if chunk.startswith("data: ")]


@pytest.fixture
def make_client(provider_factory):
    """Build a TestClient around a container with a scripted provider and no real sources."""
    stack = ExitStack()

    def _make(complete_replies=None, stream_replies=None, env=None):
        container = ApplicationContainer()
        container.config.from_dict(load_config_from_env(env or {}))
        provider = provider_factory(complete_replies=complete_replies, stream_replies=stream_replies)
        container.text_provider.override(providers.Object(provider))
        container.source_adapters.override(providers.Object([]))
        return stack.enter_context(TestClient(create_app(container)))

    with stack:
        yield _make


class TestHealth:
    def test_health(self, make_client):
        response = make_client().get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "ok"
        assert body["environment"] == "production"
        assert body["version"]


class TestQuestionJson:
    def test_missing_query(self, make_client):
        response = make_client().get("/question")

        assert response.status_code == 400
        assert response.json() == {"error": "Missing query parameter"}

    def test_blank_query(self, make_client):
        assert make_client().get("/question", params={"query": "   "}).status_code == 400

    def test_direct_answer(self, make_client):
        client = make_client(complete_replies=[DIRECT], stream_replies=[["Paris ", "is the capital."]])

        response = client.get("/question", params={"query": "What is the capital of France?"})

        assert response.status_code == 200
        body = response.json()
        assert body["answer"] == "Paris is the capital."
        assert body["citations"] == []
        assert "note" in body

    def test_post_question(self, make_client):
        client = make_client(complete_replies=[DIRECT], stream_replies=[["ok"]])

        response = client.post("/question", json={"query": "q"})

        assert response.status_code == 200
        assert response.json()["answer"] == "ok"

    def test_post_missing_query(self, make_client):
        assert make_client().post("/question", json={}).status_code == 400

    def test_post_without_body(self, make_client):
        response = make_client().post("/question")

        assert response.status_code == 400
        assert response.json() == {"error": "Missing query parameter"}

    def test_post_unparseable_body(self, make_client):
        response = make_client().post(
            "/question", content=b"{not json", headers={"Content-Type": "application/json"}
        )

        assert response.status_code == 400
        assert response.json() == {"error": "Missing query parameter"}

    def test_failure_is_500_with_stage(self, make_client):
        client = make_client(complete_replies=["not json"])

        response = client.get("/question", params={"query": "q"})

        assert response.status_code == 500
        body = response.json()
        assert body["stage"] == "evaluating"
        assert "traceback" not in body

    def test_traceback_in_development(self, make_client):
        client = make_client(complete_replies=["not json"], env={"APP_ENV": "development"})

        body = client.get("/question", params={"query": "q"}).json()

        assert "ProviderResponseInvalidError" in body["traceback"]


class TestQuestionStream:
    def test_sse_frames(self, make_client):
        client = make_client(complete_replies=[DIRECT], stream_replies=[["a", "b"]])

        response = client.get("/question", params={"query": "q", "sse": "true"})

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/event-stream")
        assert response.headers["cache-control"] == "no-cache"
        frames = _frames(response.text)
        assert frames[0]["status"] == "connected"
        assert [f["content"] for f in frames if f["status"] == "token"] == ["a", "b"]
        assert frames[-1]["status"] == "complete"
        assert frames[-1]["result"]["answer"] == "ab"

    def test_stream_question_error_frame(self, make_client):
        client = make_client(complete_replies=["garbage"])

        response = client.get("/stream-question", params={"query": "q"})

        frames = _frames(response.text)
        assert frames[-1]["status"] == "error"
        assert frames[-1]["stage"] == "evaluating"
        assert sum(f["status"] in ("complete", "error") for f in frames) == 1

    def test_no_papers_over_sse(self, make_client):
        client = make_client(complete_replies=['{"canAnswer": false, "queryWord": "nothing"}'])

        response = client.post("/question", json={"query": "q", "stream": True})

        # No adapters configured: the search has no calls, so it returns no papers
        frames = _frames(response.text)
        assert frames[-1]["status"] == "complete"
        assert frames[-1]["result"]["citations"] == []

    def test_stream_question_missing_query(self, make_client):
        assert make_client().get("/stream-question").status_code == 400


class _Caller:
    """Stands in for the HTTP request; reports a disconnect once ``gone`` is set."""

    def __init__(self) -> None:
        self.gone = False

    async def is_disconnected(self) -> bool:
        return self.gone


class TestClientDisconnect:
    @staticmethod
    def _stream(container, caller, query="q"):
        app = create_app(container)
        route = next(r for r in app.routes if getattr(r, "path", None) == "/stream-question")
        return route.endpoint(caller, query=query)

    @staticmethod
    def _container(provider):
        container = ApplicationContainer()
        container.config.from_dict(load_config_from_env({}))
        container.text_provider.override(providers.Object(provider))
        container.source_adapters.override(providers.Object([]))
        return container

    @pytest.mark.asyncio
    async def test_disconnect_mid_answer_stops_and_closes_stream(self, provider_factory):
        provider = provider_factory(complete_replies=[DIRECT], stream_replies=[["a", "b", "c"]])
        caller = _Caller()
        response = await self._stream(self._container(provider), caller)

        frames = []
        async for chunk in response.body_iterator:
            frames.append(json.loads(chunk[len("data: ") :]))
            if frames[-1]["status"] == "token":
                caller.gone = True

        assert [f["content"] for f in frames if f["status"] == "token"] == ["a"]
        assert not any(f["status"] in ("complete", "error") for f in frames)
        assert provider.streams_closed == 1

    @pytest.mark.asyncio
    async def test_disconnect_before_generation_opens_no_stream(self, provider_factory):
        provider = provider_factory(complete_replies=[DIRECT], stream_replies=[["a"]])
        caller = _Caller()
        response = await self._stream(self._container(provider), caller)

        frames = []
        async for chunk in response.body_iterator:
            frames.append(json.loads(chunk[len("data: ") :]))
            caller.gone = True

        assert [f["status"] for f in frames] == ["connected"]
        assert provider.stream_calls == []
