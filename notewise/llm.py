import json
import logging
from typing import Any, Dict, Optional

import httpx

from .prompts import build_prompt
from .providers import CallParams, ProviderOutcome, text_outcome
from .schemas import GenerationRequest


logger = logging.getLogger("uvicorn.error")


def _extract_error_detail(response: httpx.Response) -> str:
    try:
        data = response.json()
        if isinstance(data, dict):
            for key in ("error", "detail", "message"):
                val = data.get(key)
                if isinstance(val, str) and val.strip():
                    return f"HTTP {response.status_code}: {val}"
            return f"HTTP {response.status_code}: {json.dumps(data, ensure_ascii=True)}"
    except Exception:
        pass
    return f"HTTP {response.status_code}"


async def post_for_outcome(
    client: httpx.AsyncClient,
    provider: str,
    url: str,
    payload: Dict[str, Any],
    headers: Optional[Dict[str, str]] = None,
) -> Any:
    """POST ``payload`` and return the decoded JSON body or a failure outcome.

    Shared by every adapter so transport trouble is classified the same way
    regardless of which backend produced it.
    """
    try:
        resp = await client.post(url, json=payload, headers=headers)
        resp.raise_for_status()
    except httpx.TimeoutException as exc:
        return ProviderOutcome.failure(provider, "timeout", str(exc) or "timed out")
    except httpx.HTTPStatusError as exc:
        return ProviderOutcome.failure(provider, "unavailable", _extract_error_detail(exc.response))
    except httpx.RequestError as exc:
        return ProviderOutcome.failure(provider, "unavailable", str(exc) or type(exc).__name__)
    try:
        return resp.json()
    except ValueError:
        return ProviderOutcome.failure(provider, "malformed", "response body is not JSON")


class OllamaClient:
    """Local backend speaking Ollama's ``/api/generate`` contract."""

    name = "ollama"

    def __init__(self, url: str, model: str, timeout: float = 60):
        self.url = url
        self.model = model
        self.client = httpx.AsyncClient(
            timeout=timeout,
            limits=httpx.Limits(max_connections=8, max_keepalive_connections=4),
        )

    def build_payload(self, prompt: str, params: CallParams) -> Dict[str, Any]:
        options: Dict[str, Any] = {"num_predict": params.max_tokens}
        if params.temperature is not None:
            options["temperature"] = params.temperature
        if params.stop:
            options["stop"] = list(params.stop)
        return {"model": self.model, "prompt": prompt, "stream": False, "options": options}

    async def generate(self, request: GenerationRequest, params: CallParams) -> ProviderOutcome:
        payload = self.build_payload(build_prompt(request), params)
        data = await post_for_outcome(self.client, self.name, self.url, payload)
        if isinstance(data, ProviderOutcome):
            if data.kind == "unavailable":
                # A local model that is simply not running is the common case.
                logger.info("Ollama unavailable at %s: %s", self.url, data.detail)
            return data
        if not isinstance(data, dict):
            return ProviderOutcome.failure(self.name, "malformed", "expected a JSON object")
        return text_outcome(self.name, data.get("response"))

    async def close(self) -> None:
        if not self.client.is_closed:
            await self.client.aclose()
