from types import SimpleNamespace

import httpx
import openai
import pytest
import requests

from clinassist.core.config import Settings
from clinassist.core.exceptions import ProviderResponseMalformed, ProviderUnavailable
from clinassist.schemas.requests import RequestKind
from clinassist.services import provider_gateway
from clinassist.services.prompt_compiler import CompiledPrompt
from clinassist.services.provider_gateway import (
    NEUTRAL_EMPTY_REPLY,
    NEUTRAL_FILTERED_REPLY,
    GeminiProvider,
    HuggingFaceProvider,
    OpenAIProvider,
    call_provider,
    get_provider,
)


PROMPT = CompiledPrompt(text="hello", kind=RequestKind.CHAT, temperature=0.3, max_output_tokens=800)


@pytest.fixture
def config():
    return Settings(GEMINI_API_KEY="gem-key", HF_API_TOKEN="hf-token", OPENAI_API_KEY="oa-key")


class FakeHttpResponse:
    def __init__(self, status_code=200, payload=None, text=""):
        self.status_code = status_code
        self._payload = payload
        self.text = text

    def json(self):
        if self._payload is None:
            raise ValueError("No JSON")
        return self._payload


def _patch_post(monkeypatch, response=None, error=None):
    calls = []

    def fake_post(url, headers=None, json=None, timeout=None):
        calls.append({"url": url, "headers": headers, "json": json, "timeout": timeout})
        if error is not None:
            raise error
        return response

    monkeypatch.setattr(provider_gateway.requests, "post", fake_post)
    return calls


# ------------------------------------------------------------------
# Gemini
# ------------------------------------------------------------------

def test_gemini_request_envelope(config):
    body = GeminiProvider(config).build_request(PROMPT)

    assert body["contents"][0]["parts"][0]["text"] == "hello"
    assert body["generationConfig"] == {
        "temperature": 0.3,
        "maxOutputTokens": 800,
        "topP": 0.8,
        "topK": 40,
    }
    assert {s["threshold"] for s in body["safetySettings"]} == {"BLOCK_ONLY_HIGH"}
    assert len(body["safetySettings"]) == 4


def test_gemini_generate_success(monkeypatch, config):
    payload = {
        "candidates": [{"content": {"parts": [{"text": "ASSESSMENT\n"}, {"text": "Viral illness."}]}}],
        "usageMetadata": {"candidatesTokenCount": 12},
    }
    calls = _patch_post(monkeypatch, FakeHttpResponse(payload=payload))

    response = GeminiProvider(config).generate(PROMPT)

    assert response.text == "ASSESSMENT\nViral illness."
    assert response.provider == "gemini"
    assert response.model == "gemini-pro"
    assert response.token_estimate == 12
    assert calls[0]["url"].endswith("/models/gemini-pro:generateContent")
    assert calls[0]["headers"]["x-goog-api-key"] == "gem-key"
    assert calls[0]["timeout"] == 30.0


@pytest.mark.parametrize(
    "payload,expected",
    [
        ({"candidates": []}, NEUTRAL_EMPTY_REPLY),
        ({"promptFeedback": {"blockReason": "SAFETY"}}, NEUTRAL_FILTERED_REPLY),
        ({"candidates": [{"finishReason": "SAFETY", "content": {"parts": []}}]}, NEUTRAL_FILTERED_REPLY),
        ({"candidates": [{"finishReason": "STOP", "content": {"parts": [{"text": "  "}]}}]}, NEUTRAL_EMPTY_REPLY),
    ],
)
def test_gemini_empty_or_filtered_answers_are_neutral(config, payload, expected):
    text, _ = GeminiProvider(config).decode_response(payload)
    assert text == expected


@pytest.mark.parametrize(
    "payload",
    [
        ["not", "a", "dict"],
        {"error": {"code": 400}},
        {"candidates": "oops"},
        {"candidates": [{"content": "text"}]},
        {"candidates": [{"content": {"parts": "text"}}]},
        {"candidates": [{"content": {"parts": [{"text": 42}]}}]},
        {"candidates": ["text"]},
        {"candidates": [{"content": {"parts": [{"text": "ok"}]}}], "usageMetadata": [1]},
        {"candidates": [{"content": {"parts": [{"text": "ok"}]}}], "usageMetadata": {"candidatesTokenCount": "12"}},
        {"promptFeedback": "blocked"},
    ],
)
def test_gemini_malformed_envelope(config, payload):
    with pytest.raises(ProviderResponseMalformed) as exc:
        GeminiProvider(config).decode_response(payload)
    assert exc.value.provider == "gemini"


def test_gemini_missing_levels_are_neutral(config):
    text, tokens = GeminiProvider(config).decode_response({"candidates": [{"finishReason": "STOP"}]})
    assert text == NEUTRAL_EMPTY_REPLY
    assert tokens is None


def test_gemini_wrongly_typed_envelope_through_generate(monkeypatch, config):
    _patch_post(monkeypatch, FakeHttpResponse(payload={"candidates": [{"content": "text"}]}))

    with pytest.raises(ProviderResponseMalformed):
        GeminiProvider(config).generate(PROMPT)


def test_http_error_status_is_unavailable(monkeypatch, config):
    _patch_post(monkeypatch, FakeHttpResponse(status_code=503, text="overloaded"))

    with pytest.raises(ProviderUnavailable) as exc:
        GeminiProvider(config).generate(PROMPT)

    assert "HTTP 503" in str(exc.value)
    assert exc.value.provider == "gemini"


def test_timeout_is_unavailable(monkeypatch, config):
    _patch_post(monkeypatch, error=requests.Timeout("slow"))

    with pytest.raises(ProviderUnavailable) as exc:
        HuggingFaceProvider(config).generate(PROMPT)

    assert "timed out" in str(exc.value)


def test_connection_error_is_unavailable(monkeypatch, config):
    _patch_post(monkeypatch, error=requests.ConnectionError("refused"))

    with pytest.raises(ProviderUnavailable):
        GeminiProvider(config).generate(PROMPT)


def test_non_json_body_is_malformed(monkeypatch, config):
    _patch_post(monkeypatch, FakeHttpResponse(payload=None, text="<html>"))

    with pytest.raises(ProviderResponseMalformed):
        GeminiProvider(config).generate(PROMPT)


def test_unconfigured_provider_never_calls_network(monkeypatch):
    calls = _patch_post(monkeypatch, FakeHttpResponse(payload={}))

    with pytest.raises(ProviderUnavailable) as exc:
        GeminiProvider(Settings(GEMINI_API_KEY="")).generate(PROMPT)

    assert "credentials not configured" in str(exc.value)
    assert calls == []


# ------------------------------------------------------------------
# Hugging Face
# ------------------------------------------------------------------

def test_huggingface_generate_success(monkeypatch, config):
    payload = {
        "choices": [{"message": {"content": " RED FLAGS\n- Syncope "}, "finish_reason": "stop"}],
        "usage": {"completion_tokens": 7},
    }
    calls = _patch_post(monkeypatch, FakeHttpResponse(payload=payload))

    response = HuggingFaceProvider(config).generate(PROMPT)

    assert response.text == "RED FLAGS\n- Syncope"
    assert response.token_estimate == 7
    assert calls[0]["url"] == "https://router.huggingface.co/v1/chat/completions"
    assert calls[0]["headers"]["Authorization"] == "Bearer hf-token"
    assert calls[0]["json"]["max_tokens"] == 800


def test_huggingface_content_filter(config):
    payload = {"choices": [{"message": {"content": ""}, "finish_reason": "content_filter"}]}
    text, _ = HuggingFaceProvider(config).decode_response(payload)
    assert text == NEUTRAL_FILTERED_REPLY


@pytest.mark.parametrize(
    "payload",
    [
        {"choices": [{"message": "hi"}]},
        {"choices": [{"message": {"content": ["hi"]}}]},
        {"choices": ["hi"]},
        {"choices": [{"message": {"content": "hi"}}], "usage": [1]},
        {"error": "model is loading"},
    ],
)
def test_huggingface_malformed_envelope(config, payload):
    with pytest.raises(ProviderResponseMalformed) as exc:
        HuggingFaceProvider(config).decode_response(payload)
    assert exc.value.provider == "huggingface"


def test_huggingface_missing_message_is_neutral(config):
    text, _ = HuggingFaceProvider(config).decode_response({"choices": [{"finish_reason": "stop"}]})
    assert text == NEUTRAL_EMPTY_REPLY


def test_token_estimate_falls_back_to_word_count(monkeypatch, config):
    payload = {"choices": [{"message": {"content": "one two three"}}]}
    _patch_post(monkeypatch, FakeHttpResponse(payload=payload))

    assert HuggingFaceProvider(config).generate(PROMPT).token_estimate == 3


# ------------------------------------------------------------------
# OpenAI
# ------------------------------------------------------------------

class FakeCompletions:
    def __init__(self, result=None, error=None):
        self.result = result
        self.error = error
        self.kwargs = None

    def create(self, **kwargs):
        self.kwargs = kwargs
        if self.error is not None:
            raise self.error
        return self.result


def _fake_client(completions):
    return SimpleNamespace(chat=SimpleNamespace(completions=completions))


def test_openai_generate_success(config):
    completion = SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content="ASSESSMENT\nOk"), finish_reason="stop")],
        usage=SimpleNamespace(completion_tokens=4),
    )
    completions = FakeCompletions(result=completion)

    response = OpenAIProvider(config, client=_fake_client(completions)).generate(PROMPT)

    assert response.text == "ASSESSMENT\nOk"
    assert response.token_estimate == 4
    assert completions.kwargs["model"] == "gpt-4o-mini"
    assert completions.kwargs["max_tokens"] == 800


def test_openai_connection_error_is_unavailable(config):
    request = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
    completions = FakeCompletions(error=openai.APIConnectionError(request=request))

    with pytest.raises(ProviderUnavailable):
        OpenAIProvider(config, client=_fake_client(completions)).generate(PROMPT)


# ------------------------------------------------------------------
# Probe / lookup
# ------------------------------------------------------------------

def test_probe_reports_false_instead_of_raising(monkeypatch, config):
    calls = _patch_post(monkeypatch, FakeHttpResponse(status_code=500, text="boom"))

    assert GeminiProvider(config).probe() is False
    assert calls[0]["json"]["generationConfig"]["maxOutputTokens"] == 1
    assert calls[0]["timeout"] == 10.0


def test_probe_without_credentials_is_false():
    assert HuggingFaceProvider(Settings(HF_API_TOKEN="")).probe() is False


def test_unknown_provider_id():
    with pytest.raises(ProviderUnavailable):
        get_provider("not-a-provider")


def test_call_provider_by_id(monkeypatch, config):
    payload = {"choices": [{"message": {"content": "ASSESSMENT\nOk"}}]}
    calls = _patch_post(monkeypatch, FakeHttpResponse(payload=payload))

    response = call_provider(PROMPT, "huggingface", config)

    assert response.provider == "huggingface"
    assert calls[0]["url"].endswith("/chat/completions")
