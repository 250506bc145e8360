"""Participant notifications over the signal-cli JSON-RPC API."""

from __future__ import annotations

import logging
from typing import Protocol

import httpx

from playbookrunner.config import SignalConfig

logger = logging.getLogger(__name__)


class NotificationSink(Protocol):
    async def notify(self, participant_id: str, message: str) -> bool: ...


class LogNotifier:
    """Sink used when Signal is disabled: notifications are only logged."""

    async def notify(self, participant_id: str, message: str) -> bool:
        logger.info("Notification for %s: %s", participant_id, message[:200])
        return True

    async def close(self) -> None:
        return None


class SignalNotifier:
    """Sends notifications via signal-cli's ``send`` JSON-RPC method.

    Participant ids are mapped to phone numbers through the configured
    recipients table; unmapped ids are used as the recipient verbatim.
    """

    def __init__(self, config: SignalConfig, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self._account = config.account
        self._recipients = dict(config.recipients)
        self._client = httpx.AsyncClient(
            base_url=config.http_url.rstrip("/"),
            timeout=30.0,
            transport=transport,
        )

    def recipient_for(self, participant_id: str) -> str:
        return self._recipients.get(participant_id, participant_id)

    async def send_message(self, recipient: str, text: str) -> bool:
        payload = {
            "jsonrpc": "2.0",
            "method": "send",
            "id": 1,
            "params": {
                "account": self._account,
                "recipient": [recipient],
                "message": text,
            },
        }

        try:
            response = await self._client.post("/api/v1/rpc", json=payload)
            response.raise_for_status()
            result = response.json()
            if "error" in result:
                logger.error("Signal send failed: %s", result["error"])
                return False
            return True
        except httpx.HTTPError as e:
            logger.error("Signal send HTTP error: %s", e)
            return False
        except ValueError:
            logger.error("Signal send returned invalid JSON")
            return False

    async def notify(self, participant_id: str, message: str, max_chunk: int = 2000) -> bool:
        """Send *message*, split into numbered chunks if it is long."""
        recipient = self.recipient_for(participant_id)
        if len(message) <= max_chunk:
            return await self.send_message(recipient, message)

        chunks = []
        text = message
        while text:
            if len(text) <= max_chunk:
                chunks.append(text)
                break
            break_at = text.rfind("\n", 0, max_chunk)
            if break_at == -1:
                break_at = max_chunk
            chunks.append(text[:break_at])
            text = text[break_at:].lstrip("\n")

        for i, chunk in enumerate(chunks):
            if not await self.send_message(recipient, f"[{i + 1}/{len(chunks)}] {chunk}"):
                return False
        return True

    async def close(self) -> None:
        await self._client.aclose()
