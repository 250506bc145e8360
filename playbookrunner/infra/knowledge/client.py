"""Knowledge base search client used to materialize update prompts."""

from __future__ import annotations

import logging

import httpx

from playbookrunner.config import KnowledgeConfig

logger = logging.getLogger(__name__)


class KnowledgeClient:
    """Searches a knowledge base over HTTP (``POST /search``).

    All failures degrade to ``None`` ("no content found"); the request
    timeout bounds how long a caller can wait.
    """

    def __init__(self, config: KnowledgeConfig, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self._base_url = config.base_url.rstrip("/")
        self._top_k = config.top_k
        headers = {"Content-Type": "application/json"}
        if config.api_key:
            headers["Authorization"] = f"Bearer {config.api_key}"
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            headers=headers,
            timeout=config.timeout,
            transport=transport,
        )

    async def search(self, query: str, tags: list[str]) -> str | None:
        """Return the content of the best match for *query*, if any."""
        payload = {"query": query, "filters": {"tags": list(tags)}, "topK": self._top_k}
        try:
            response = await self._client.post("/search", json=payload)
            response.raise_for_status()
            data = response.json()
        except httpx.TimeoutException:
            logger.warning("Knowledge search timed out for %r", query)
            return None
        except httpx.HTTPError as e:
            logger.warning("Knowledge search failed: %s", e)
            return None
        except ValueError:
            logger.warning("Knowledge search returned invalid JSON")
            return None

        results = data.get("results") if isinstance(data, dict) else None
        if not results:
            return None
        content = results[0].get("content") if isinstance(results[0], dict) else None
        return content or None

    async def health_check(self) -> bool:
        try:
            response = await self._client.get("/health")
            return response.status_code == 200
        except httpx.HTTPError:
            return False

    async def close(self) -> None:
        await self._client.aclose()
