"""
Tests for the completion client and web search against mocked HTTP transports
"""
import asyncio
import json

import httpx
import pytest

from config import SolverConfig
from conftest import completion
from llm_client import SYSTEM_PROMPT, CompletionError, LLMClient, make_seed
from web_search import NO_RESULTS, UNAVAILABLE, WebSearch

PROXY_URL = "https://proxy.test/v1/chat/completions"


def make_client(handler, **overrides):
    config = SolverConfig(proxy_url=PROXY_URL, default_model="text-model", vision_model="vision-model", **overrides)
    return LLMClient(config, transport=httpx.MockTransport(handler))


def test_complete_returns_json_reply():
    captured = {}

    def handler(request):
        captured["url"] = str(request.url)
        captured["auth"] = request.headers.get("authorization")
        captured["body"] = json.loads(request.content)
        return httpx.Response(200, json=completion("FINAL: B"))

    client = make_client(handler, api_key="secret-key")
    reply = asyncio.run(client.complete("Which?", ["https://cdn.test/a.png"]))

    assert reply == completion("FINAL: B")
    assert client.last_response == reply
    assert captured["url"] == PROXY_URL
    assert captured["auth"] == "Bearer secret-key"

    body = captured["body"]
    assert body["model"] == "vision-model"
    assert body["reasoning_effort"] == "high"
    assert body["max_tokens"] == 65535
    assert body["temperature"] == 1
    assert body["messages"][0] == {"role": "system", "content": SYSTEM_PROMPT}
    assert body["messages"][1]["content"] == [
        {"type": "text", "text": "Which?"},
        {"type": "image_url", "image_url": {"url": "https://cdn.test/a.png"}},
    ]


def test_complete_returns_raw_text_when_not_json():
    client = make_client(lambda request: httpx.Response(200, text="FINAL: C"))
    assert asyncio.run(client.complete("Which?")) == "FINAL: C"


def test_complete_raises_on_error_status():
    client = make_client(lambda request: httpx.Response(502, text="upstream down"))
    with pytest.raises(CompletionError, match="HTTP 502"):
        asyncio.run(client.complete("Which?"))


def test_complete_requires_proxy_url():
    def handler(request):
        raise AssertionError("no request expected")

    client = make_client(handler)
    client.config.proxy_url = ""
    with pytest.raises(CompletionError, match="Proxy not configured"):
        asyncio.run(client.complete("Which?"))


def test_payload_without_images_or_thinking():
    client = make_client(lambda request: httpx.Response(200, json={}), think_before_answer=False, instant_mode=True)
    payload = client.build_payload("Q")
    assert payload["model"] == "text-model"
    assert payload["reasoning_effort"] == "low"
    assert payload["max_tokens"] == 64
    assert "Authorization" not in client.build_headers()

    client.config.instant_mode = False
    assert client.build_payload("Q")["reasoning_effort"] == "medium"


def test_seed_is_positive_31_bit():
    seed = make_seed()
    assert 0 <= seed <= 0x7FFFFFFF


# ============================================================================
# WEB SEARCH
# ============================================================================

def test_search_falls_back_through_fields():
    captured = {}

    def handler(request):
        captured["q"] = request.url.params["q"]
        return httpx.Response(200, json={"AbstractText": "", "Answer": "", "RelatedTopics": [{"Text": "Battle of Austerlitz, 1805"}]})

    search = WebSearch(transport=httpx.MockTransport(handler))
    assert asyncio.run(search.search("Austerlitz battle year")) == "Battle of Austerlitz, 1805"
    assert captured["q"] == "Austerlitz battle year"


def test_search_without_results():
    search = WebSearch(transport=httpx.MockTransport(lambda request: httpx.Response(200, json={"RelatedTopics": []})))
    assert asyncio.run(search.search("anything")) == NO_RESULTS


def test_search_failure_is_contained():
    def handler(request):
        raise httpx.ConnectError("boom", request=request)

    search = WebSearch(transport=httpx.MockTransport(handler))
    assert asyncio.run(search.search("history")) == UNAVAILABLE

    failing = WebSearch(transport=httpx.MockTransport(lambda request: httpx.Response(500)))
    assert asyncio.run(failing.search("history")) == UNAVAILABLE


def test_should_search_on_factual_keywords():
    search = WebSearch()
    assert search.should_search("In which YEAR did the war end?")
    assert not search.should_search("What is 2 + 2?")
