import json
import logging
import re

import httpx

from frontline.circuit_breaker import CircuitBreaker
from frontline.errors import LLMError

logger = logging.getLogger(__name__)

OPENAI_BASE_URL = "https://api.openai.com/v1"

_FENCED_JSON = re.compile(r"```(?:json)?\s*([\s\S]*?)\s*```")
_BARE_OBJECT = re.compile(r"\{[\s\S]*\}")


def parse_json_object(content: str) -> dict:
    """Pull a JSON object out of a model reply, tolerating code fences and chatter."""
    if not content or not content.strip():
        raise LLMError("empty model response")
    match = _FENCED_JSON.search(content) or _BARE_OBJECT.search(content)
    candidate = match.group(1) if match and match.lastindex else (match.group(0) if match else content)
    try:
        data = json.loads(candidate)
    except json.JSONDecodeError as e:
        raise LLMError(f"model returned invalid JSON: {e}") from e
    if not isinstance(data, dict):
        raise LLMError("model returned JSON that is not an object")
    return data


class LLMClient:
    """Chat-completions client over httpx.

    One shared breaker per client: after 3 consecutive failures, calls are
    skipped for 30s and callers receive their fallback value immediately
    instead of waiting on a dead endpoint mid-call.
    """

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-4o-mini",
        timeout: float = 5.0,
        base_url: str = OPENAI_BASE_URL,
        client: httpx.AsyncClient | None = None,
        circuit: CircuitBreaker | None = None,
    ):
        self.api_key = api_key
        self.model = model
        self.timeout = timeout
        self.base_url = base_url.rstrip("/")
        self.circuit = circuit or CircuitBreaker(
            failure_threshold=3,
            cooldown_seconds=30.0,
            label="LLM",
        )
        if client is not None:
            self._client = client
        else:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers={"Authorization": f"Bearer {api_key}"},
                timeout=self.timeout,
            )

    async def close(self):
        await self._client.aclose()

    async def complete(
        self,
        system: str,
        user: str,
        *,
        temperature: float = 0.2,
        max_tokens: int = 600,
        json_mode: bool = False,
    ) -> str:
        """Return the assistant message content. Raises LLMError on any failure."""
        payload = {
            "model": self.model,
            "temperature": temperature,
            "max_tokens": max_tokens,
            "messages": [
                {"role": "system", "content": system},
                {"role": "user", "content": user},
            ],
        }
        if json_mode:
            payload["response_format"] = {"type": "json_object"}
        try:
            resp = await self._client.post("/chat/completions", json=payload)
            resp.raise_for_status()
            return resp.json()["choices"][0]["message"]["content"] or ""
        except httpx.HTTPError as e:
            raise LLMError(f"chat completion failed: {e}") from e
        except (KeyError, IndexError, ValueError) as e:
            raise LLMError(f"unexpected chat completion payload: {e}") from e

    async def complete_json(self, system: str, user: str, **kwargs) -> dict:
        content = await self.complete(system, user, json_mode=True, **kwargs)
        return parse_json_object(content)
