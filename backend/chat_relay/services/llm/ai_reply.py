# backend/chat_relay/services/llm/ai_reply.py
"""
Antwortgenerator für den Chat-Relay.

``generate()`` wirft nie: jeder Fehler (HTTP-Status, Transport, Timeout) landet
als Text in der Antwort. Mock-Modus ist eine explizite Einstellung, der HTTP-Client
wird von außen übergeben.
"""
from __future__ import annotations

import asyncio
from typing import Any, Dict, Optional

import httpx
import structlog

from chat_relay.core.config import GROQ_CHAT_COMPLETIONS_URL, Settings

log = structlog.get_logger(__name__)

NO_CONTENT_REPLY = "AI returned no content."


def mock_reply(text: str) -> str:
    return f'You said: "{text}". (Mock reply - no GROQ_API_KEY configured.)'


def _extract_content(data: Any) -> Optional[str]:
    if not isinstance(data, dict):
        return None
    choices = data.get("choices")
    if not isinstance(choices, list) or not choices:
        return None
    first = choices[0]
    message = first.get("message") if isinstance(first, dict) else None
    content = message.get("content") if isinstance(message, dict) else None
    return content if isinstance(content, str) else None


class AIReplyGenerator:
    def __init__(
        self,
        *,
        http_client: Optional[httpx.AsyncClient] = None,
        api_key: Optional[str] = None,
        api_url: str = GROQ_CHAT_COMPLETIONS_URL,
        model: str = "llama-3.1-8b-instant",
        system_prompt: str = "You are a helpful assistant.",
        max_tokens: int = 300,
        temperature: float = 0.2,
        timeout_s: float = 30.0,
        mock: bool = False,
    ) -> None:
        self._client = http_client
        self._api_key = (api_key or "").strip() or None
        self._api_url = api_url
        self.model = model
        self.system_prompt = system_prompt
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.timeout_s = timeout_s
        self.mock = mock or self._api_key is None or http_client is None

    @classmethod
    def from_settings(cls, settings: Settings, http_client: Optional[httpx.AsyncClient]) -> "AIReplyGenerator":
        return cls(
            http_client=http_client,
            api_key=settings.groq_api_key,
            api_url=settings.groq_api_url,
            model=settings.groq_model,
            system_prompt=settings.ai_system_prompt,
            max_tokens=settings.ai_max_tokens,
            temperature=settings.ai_temperature,
            timeout_s=settings.ai_timeout_s,
            mock=settings.ai_mock,
        )

    def _payload(self, text: str) -> Dict[str, Any]:
        return {
            "model": self.model,
            "messages": [
                {"role": "system", "content": self.system_prompt},
                {"role": "user", "content": text},
            ],
            "max_tokens": self.max_tokens,
            "temperature": self.temperature,
        }

    async def _call(self, text: str) -> str:
        if self._client is None:
            raise RuntimeError("no http client configured for AI calls")
        resp = await self._client.post(
            self._api_url,
            headers={"Authorization": f"Bearer {self._api_key}"},
            json=self._payload(text),
        )
        if not resp.is_success:
            log.error("[ai] upstream_error", status=resp.status_code, body=resp.text[:500])
            return f"AI service error (status {resp.status_code})."

        content = _extract_content(resp.json())
        return content.strip() if content and content.strip() else NO_CONTENT_REPLY

    async def generate(self, text: str) -> str:
        if self.mock:
            return mock_reply(text)

        try:
            return await asyncio.wait_for(self._call(text), timeout=self.timeout_s)
        except asyncio.TimeoutError:
            log.error("[ai] timeout", timeout_s=self.timeout_s)
            return f"AI call failed: timed out after {self.timeout_s:g}s"
        except (httpx.HTTPError, ValueError) as e:
            # ValueError deckt kaputtes JSON ab
            reason = str(e) or e.__class__.__name__
            log.error("[ai] call_failed", err=reason)
            return f"AI call failed: {reason}"
        except Exception as e:
            log.exception("[ai] unexpected_error", err=repr(e))
            return f"AI call failed: {str(e) or e.__class__.__name__}"
