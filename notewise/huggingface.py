import logging
from typing import Any, Optional

import httpx

from .llm import post_for_outcome
from .providers import SKIP_UNSUPPORTED_TASK, CallParams, ProviderOutcome, text_outcome
from .schemas import GenerationRequest, SummarizeRequest


logger = logging.getLogger("uvicorn.error")

TEXT_FIELDS = ("summary_text", "generated_text")


def extract_summary_text(data: Any) -> Optional[str]:
    """Accept ``[{"summary_text": ...}]`` as well as the bare object."""
    if isinstance(data, list):
        data = data[0] if data else None
    if not isinstance(data, dict):
        return None
    for key in TEXT_FIELDS:
        value = data.get(key)
        if isinstance(value, str):
            return value
    return None


class HuggingFaceClient:
    """Backup summarizer on the Hugging Face Inference API.

    The hosted model is a plain summarizer rather than an instruction follower,
    so it always receives the caller's raw text instead of the prompt.
    """

    name = "huggingface"

    def __init__(self, api_token: Optional[str], model_url: str):
        self.api_token = api_token
        self.model_url = model_url
        self.client = httpx.AsyncClient(
            timeout=60,
            limits=httpx.Limits(max_connections=32, max_keepalive_connections=16),
        )

    async def generate(self, request: GenerationRequest, params: CallParams) -> ProviderOutcome:
        if not isinstance(request, SummarizeRequest):
            return ProviderOutcome.skipped(self.name, SKIP_UNSUPPORTED_TASK)
        headers = {"Authorization": f"Bearer {self.api_token}"}
        data = await post_for_outcome(self.client, self.name, self.model_url, {"inputs": request.text}, headers=headers)
        if isinstance(data, ProviderOutcome):
            logger.warning("HuggingFace request failed (%s): %s", data.kind, data.detail)
            return data
        text = extract_summary_text(data)
        if text is None:
            return ProviderOutcome.failure(self.name, "malformed", "no summary_text in response")
        return text_outcome(self.name, text)

    async def close(self) -> None:
        if not self.client.is_closed:
            await self.client.aclose()
