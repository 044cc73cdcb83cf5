import json

import httpx
import pytest
import respx
from httpx import Response

from notewise.gemini import GeminiClient
from notewise.huggingface import HuggingFaceClient
from notewise.llm import OllamaClient
from notewise.prompts import build_prompt
from notewise.providers import build_call_params
from notewise.schemas import SuggestRequest, SummarizeRequest

OLLAMA_URL = "http://ollama.test/api/generate"
GEMINI_URL = "http://gemini.test/v1beta/models/gemini-test:generateContent"
HF_URL = "http://hf.test/models/bart"

SUMMARY = SummarizeRequest(text="The quick brown fox jumps over the lazy dog.", length="medium")
SUGGEST = SuggestRequest(word="quick", context="The quick brown fox")


async def _generate(client, request):
    try:
        return await client.generate(request, build_call_params(request))
    finally:
        await client.close()


@pytest.mark.asyncio
async def test_ollama_payload_shape_for_summary():
    captured = {}
    with respx.mock(assert_all_called=True) as respx_mock:
        def handler(request):
            captured["json"] = json.loads(request.content.decode("utf-8"))
            return Response(200, json={"response": "A fox jumps."})

        respx_mock.post(OLLAMA_URL).mock(side_effect=handler)
        outcome = await _generate(OllamaClient(OLLAMA_URL, "test-model"), SUMMARY)

    assert outcome.ok
    assert outcome.raw_text == "A fox jumps."
    payload = captured["json"]
    assert payload["model"] == "test-model"
    assert payload["stream"] is False
    assert payload["prompt"] == build_prompt(SUMMARY)
    assert payload["options"] == {"num_predict": 300, "temperature": 0.7}


@pytest.mark.asyncio
async def test_ollama_payload_for_suggestions_stops_on_newline():
    captured = {}
    with respx.mock(assert_all_called=True) as respx_mock:
        def handler(request):
            captured["json"] = json.loads(request.content.decode("utf-8"))
            return Response(200, json={"response": "fast, rapid, swift"})

        respx_mock.post(OLLAMA_URL).mock(side_effect=handler)
        outcome = await _generate(OllamaClient(OLLAMA_URL, "test-model"), SUGGEST)

    assert outcome.raw_text == "fast, rapid, swift"
    assert captured["json"]["options"] == {"num_predict": 25, "temperature": 0.1, "stop": ["\n"]}
    assert '"quick"' in captured["json"]["prompt"]
    assert "The quick brown fox" in captured["json"]["prompt"]


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "mock_kwargs, kind",
    [
        ({"side_effect": httpx.ConnectError("connection refused")}, "unavailable"),
        ({"side_effect": httpx.ReadTimeout("slow")}, "timeout"),
        ({"return_value": Response(500, json={"error": "model crashed"})}, "unavailable"),
        ({"return_value": Response(200, content=b"<html>oops</html>")}, "malformed"),
        ({"return_value": Response(200, json={"done": True})}, "malformed"),
        ({"return_value": Response(200, json=["not", "an", "object"])}, "malformed"),
        ({"return_value": Response(200, json={"response": "  \n "})}, "empty"),
    ],
)
async def test_ollama_failures_are_classified(mock_kwargs, kind):
    with respx.mock(assert_all_called=True) as respx_mock:
        respx_mock.post(OLLAMA_URL).mock(**mock_kwargs)
        outcome = await _generate(OllamaClient(OLLAMA_URL, "test-model"), SUMMARY)
    assert outcome.status == "failure"
    assert outcome.kind == kind
    assert outcome.provider == "ollama"


@pytest.mark.asyncio
async def test_ollama_http_error_detail_carries_status():
    with respx.mock(assert_all_called=True) as respx_mock:
        respx_mock.post(OLLAMA_URL).mock(return_value=Response(404, json={"error": "model not found"}))
        outcome = await _generate(OllamaClient(OLLAMA_URL, "test-model"), SUMMARY)
    assert outcome.detail == "HTTP 404: model not found"


@pytest.mark.asyncio
async def test_gemini_request_and_text_extraction():
    captured = {}
    with respx.mock(assert_all_called=True) as respx_mock:
        def handler(request):
            captured["json"] = json.loads(request.content.decode("utf-8"))
            captured["headers"] = request.headers
            return Response(
                200,
                json={"candidates": [{"content": {"parts": [{"text": "Sure: "}, {"text": "A fox jumps."}]}}]},
            )

        respx_mock.post(GEMINI_URL).mock(side_effect=handler)
        client = GeminiClient("gemini-key", model="gemini-test", base_url="http://gemini.test/v1beta/")
        outcome = await _generate(client, SUMMARY)

    assert outcome.raw_text == "Sure: A fox jumps."
    assert captured["headers"]["x-goog-api-key"] == "gemini-key"
    payload = captured["json"]
    assert payload["contents"][0]["parts"][0]["text"] == build_prompt(SUMMARY)
    assert payload["generationConfig"] == {"maxOutputTokens": 300, "temperature": 0.7}


@pytest.mark.asyncio
async def test_gemini_suggest_sets_stop_sequences():
    captured = {}
    with respx.mock(assert_all_called=True) as respx_mock:
        def handler(request):
            captured["json"] = json.loads(request.content.decode("utf-8"))
            return Response(200, json={"candidates": [{"content": {"parts": [{"text": "fast, swift"}]}}]})

        respx_mock.post(GEMINI_URL).mock(side_effect=handler)
        client = GeminiClient("gemini-key", model="gemini-test", base_url="http://gemini.test/v1beta")
        outcome = await _generate(client, SUGGEST)

    assert outcome.raw_text == "fast, swift"
    assert captured["json"]["generationConfig"]["stopSequences"] == ["\n"]


@pytest.mark.asyncio
async def test_gemini_blocked_response_is_malformed():
    with respx.mock(assert_all_called=True) as respx_mock:
        respx_mock.post(GEMINI_URL).mock(
            return_value=Response(200, json={"promptFeedback": {"blockReason": "SAFETY"}})
        )
        client = GeminiClient("gemini-key", model="gemini-test", base_url="http://gemini.test/v1beta")
        outcome = await _generate(client, SUMMARY)
    assert outcome.kind == "malformed"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "body",
    [
        [{"summary_text": "A fox jumps."}],
        {"summary_text": "A fox jumps."},
    ],
)
async def test_huggingface_accepts_both_response_shapes(body):
    captured = {}
    with respx.mock(assert_all_called=True) as respx_mock:
        def handler(request):
            captured["json"] = json.loads(request.content.decode("utf-8"))
            captured["headers"] = request.headers
            return Response(200, json=body)

        respx_mock.post(HF_URL).mock(side_effect=handler)
        outcome = await _generate(HuggingFaceClient("hf-token", HF_URL), SUMMARY)

    assert outcome.raw_text == "A fox jumps."
    assert captured["headers"]["Authorization"] == "Bearer hf-token"
    # Raw input text, not the instruction prompt.
    assert captured["json"] == {"inputs": SUMMARY.text}


@pytest.mark.asyncio
@pytest.mark.parametrize("body", [[], {"error": "loading"}, [{"label": "x"}]])
async def test_huggingface_missing_summary_is_malformed(body):
    with respx.mock(assert_all_called=True) as respx_mock:
        respx_mock.post(HF_URL).mock(return_value=Response(200, json=body))
        outcome = await _generate(HuggingFaceClient("hf-token", HF_URL), SUMMARY)
    assert outcome.kind == "malformed"


@pytest.mark.asyncio
async def test_huggingface_model_loading_is_unavailable():
    with respx.mock(assert_all_called=True) as respx_mock:
        respx_mock.post(HF_URL).mock(return_value=Response(503, json={"error": "Model is currently loading"}))
        outcome = await _generate(HuggingFaceClient("hf-token", HF_URL), SUMMARY)
    assert outcome.kind == "unavailable"
    assert "503" in outcome.detail


@pytest.mark.asyncio
async def test_huggingface_skips_suggestions_without_network():
    with respx.mock(assert_all_called=False) as respx_mock:
        route = respx_mock.post(HF_URL).mock(return_value=Response(200, json={"summary_text": "x"}))
        outcome = await _generate(HuggingFaceClient("hf-token", HF_URL), SUGGEST)
    assert outcome.status == "skipped"
    assert not route.called
