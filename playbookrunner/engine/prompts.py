"""Materialize scheduled update prompts through the knowledge lookup."""

from __future__ import annotations

import logging
from typing import Protocol

logger = logging.getLogger(__name__)


class KnowledgeLookup(Protocol):
    async def search(self, query: str, tags: list[str]) -> str | None: ...


class PromptResolver:
    """Replaces marked prompts with knowledge-base content.

    A prompt containing *marker* is looked up with the marker stripped; any
    failure or empty result falls back to the literal prompt text.
    """

    def __init__(self, lookup: KnowledgeLookup | None, marker: str, tags: list[str]) -> None:
        self._lookup = lookup
        self._marker = marker
        self._tags = list(tags)

    def is_marked(self, prompt: str) -> bool:
        return bool(self._marker) and self._marker in prompt

    async def resolve(self, prompt: str) -> str:
        if self._lookup is None or not self.is_marked(prompt):
            return prompt
        query = prompt.replace(self._marker, "").strip()
        if not query:
            return prompt
        try:
            content = await self._lookup.search(query, self._tags)
        except Exception:
            logger.warning("Knowledge lookup failed for %r, using literal prompt", query, exc_info=True)
            return prompt
        if not content or not content.strip():
            logger.debug("Knowledge lookup returned nothing for %r", query)
            return prompt
        return content
