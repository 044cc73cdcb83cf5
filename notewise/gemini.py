import logging
from typing import Any, Dict, List, Optional

import httpx

from .llm import post_for_outcome
from .prompts import build_prompt
from .providers import CallParams, ProviderOutcome, text_outcome
from .schemas import GenerationRequest


logger = logging.getLogger("uvicorn.error")


def extract_candidate_text(data: Any) -> Optional[str]:
    """Join the text parts of the first candidate, or None if the shape is off."""
    if not isinstance(data, dict):
        return None
    candidates = data.get("candidates")
    if not isinstance(candidates, list) or not candidates:
        return None
    content = candidates[0].get("content") if isinstance(candidates[0], dict) else None
    parts = content.get("parts") if isinstance(content, dict) else None
    if not isinstance(parts, list):
        return None
    texts = [part.get("text") for part in parts if isinstance(part, dict) and isinstance(part.get("text"), str)]
    if not texts:
        return None
    return "".join(texts)


class GeminiClient:
    name = "gemini"

    def __init__(
        self,
        api_key: Optional[str],
        model: str = "gemini-1.5-flash-latest",
        base_url: str = "https://generativelanguage.googleapis.com/v1beta",
    ):
        self.api_key = api_key
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.client = httpx.AsyncClient(
            timeout=60,
            limits=httpx.Limits(max_connections=32, max_keepalive_connections=16),
        )

    @property
    def url(self) -> str:
        return f"{self.base_url}/models/{self.model}:generateContent"

    def build_payload(self, prompt: str, params: CallParams) -> Dict[str, Any]:
        generation_config: Dict[str, Any] = {"maxOutputTokens": params.max_tokens}
        if params.temperature is not None:
            generation_config["temperature"] = params.temperature
        if params.stop:
            generation_config["stopSequences"] = list(params.stop)
        contents: List[Dict[str, Any]] = [{"role": "user", "parts": [{"text": prompt}]}]
        return {"contents": contents, "generationConfig": generation_config}

    async def generate(self, request: GenerationRequest, params: CallParams) -> ProviderOutcome:
        headers = {"Content-Type": "application/json", "x-goog-api-key": self.api_key or ""}
        payload = self.build_payload(build_prompt(request), params)
        data = await post_for_outcome(self.client, self.name, self.url, payload, headers=headers)
        if isinstance(data, ProviderOutcome):
            logger.warning("Gemini request failed (%s): %s", data.kind, data.detail)
            return data
        text = extract_candidate_text(data)
        if text is None:
            return ProviderOutcome.failure(self.name, "malformed", "no candidate text in response")
        return text_outcome(self.name, text)

    async def close(self) -> None:
        # Safe to call multiple times
        if not self.client.is_closed:
            await self.client.aclose()
