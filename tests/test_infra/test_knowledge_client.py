"""Tests for the knowledge base search client."""

import json

import httpx
import pytest

from playbookrunner.config import KnowledgeConfig
from playbookrunner.infra.knowledge.client import KnowledgeClient


def _client(handler, **config) -> KnowledgeClient:
    return KnowledgeClient(KnowledgeConfig(**config), transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
async def test_search_returns_best_match():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"results": [{"content": "Ask about blockers"}, {"content": "x"}]})

    client = _client(handler, api_key="secret", top_k=3)
    assert await client.search("standup questions", ["playbooks"]) == "Ask about blockers"

    request = seen[0]
    assert request.url.path == "/search"
    assert request.headers["Authorization"] == "Bearer secret"
    assert json.loads(request.content) == {
        "query": "standup questions",
        "filters": {"tags": ["playbooks"]},
        "topK": 3,
    }
    await client.close()


@pytest.mark.asyncio
async def test_no_auth_header_without_key():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json={"results": []})

    client = _client(handler)
    assert await client.search("q", []) is None
    assert "Authorization" not in seen[0].headers
    await client.close()


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(500, text="boom"),
        httpx.Response(200, text="not json"),
        httpx.Response(200, json={"results": [{"title": "no content"}]}),
        httpx.Response(200, json=["unexpected"]),
    ],
)
async def test_bad_responses_mean_no_content(response):
    client = _client(lambda request: response)
    assert await client.search("q", ["playbooks"]) is None
    await client.close()


@pytest.mark.asyncio
async def test_timeout_means_no_content():
    def handler(request):
        raise httpx.ReadTimeout("slow", request=request)

    client = _client(handler)
    assert await client.search("q", ["playbooks"]) is None
    await client.close()


@pytest.mark.asyncio
async def test_health_check():
    client = _client(lambda request: httpx.Response(200 if request.url.path == "/health" else 404))
    assert await client.health_check() is True
    await client.close()

    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    down = _client(handler)
    assert await down.health_check() is False
    await down.close()
