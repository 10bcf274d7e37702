from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Optional

import openai
import requests
from openai import OpenAI

from clinassist.core.config import Settings, settings as default_settings
from clinassist.core.exceptions import ProviderResponseMalformed, ProviderUnavailable
from clinassist.schemas.requests import RequestKind
from clinassist.services.prompt_compiler import CompiledPrompt
from clinassist.utils.logger import logger


NEUTRAL_EMPTY_REPLY = (
    "I'd be happy to help with your medical question. "
    "Could you please provide more details?"
)

NEUTRAL_FILTERED_REPLY = (
    "I apologize, but I couldn't generate a proper response. "
    "Please try rephrasing your question."
)

GEMINI_SAFETY_CATEGORIES = (
    "HARM_CATEGORY_HARASSMENT",
    "HARM_CATEGORY_HATE_SPEECH",
    "HARM_CATEGORY_SEXUALLY_EXPLICIT",
    "HARM_CATEGORY_DANGEROUS_CONTENT",
)

GEMINI_FILTERED_FINISH_REASONS = {"SAFETY", "RECITATION", "BLOCKLIST", "PROHIBITED_CONTENT", "SPII"}

PROBE_PROMPT = CompiledPrompt(
    text="Reply with the single word: ok",
    kind=RequestKind.CHAT,
    temperature=0.0,
    max_output_tokens=1,
)


@dataclass(frozen=True)
class ProviderResponse:
    text: str
    provider: str
    model: str
    elapsed_ms: int
    token_estimate: int


def estimate_token_count(text: str) -> int:
    return len((text or "").split())


# ------------------------------------------------------------------
# Capability interface
# ------------------------------------------------------------------

class GenerationProvider:
    """
    One AI backend. Subclasses own their request envelope and response
    decoder; transport errors surface as ProviderUnavailable and
    undecodable envelopes as ProviderResponseMalformed.
    """

    provider_id = "base"

    def __init__(self, config: Settings | None = None):
        self.config = config or default_settings

    @property
    def model(self) -> str:
        raise NotImplementedError

    def is_configured(self) -> bool:
        raise NotImplementedError

    def _send(self, prompt: CompiledPrompt, timeout: float) -> tuple[str, Optional[int]]:
        raise NotImplementedError

    def generate(self, prompt: CompiledPrompt) -> ProviderResponse:
        return self._generate(prompt, timeout=float(self.config.PER_CALL_TIMEOUT_SECONDS))

    def _generate(self, prompt: CompiledPrompt, *, timeout: float) -> ProviderResponse:
        if not self.is_configured():
            raise ProviderUnavailable("credentials not configured", provider=self.provider_id)

        started = time.monotonic()
        text, tokens = self._send(prompt, timeout)
        elapsed_ms = int((time.monotonic() - started) * 1000)

        return ProviderResponse(
            text=text,
            provider=self.provider_id,
            model=self.model,
            elapsed_ms=elapsed_ms,
            token_estimate=tokens if tokens is not None else estimate_token_count(text),
        )

    def _expect(self, value: Any, kind: type, what: str) -> Any:
        """
        A missing envelope level reads as empty; a level of the wrong type
        is malformed.
        """
        if value is None:
            return kind()
        if not isinstance(value, kind):
            raise ProviderResponseMalformed(
                f"{what} is not a {kind.__name__}: {str(value)[:100]}", provider=self.provider_id
            )
        return value

    def _token_count(self, value: Any) -> Optional[int]:
        if value is None:
            return None
        if isinstance(value, bool) or not isinstance(value, int):
            raise ProviderResponseMalformed(f"token count is not an int: {value!r}", provider=self.provider_id)
        return value

    def probe(self) -> bool:
        """
        Cheap availability check with a one-token budget. Never raises.
        """
        if not self.is_configured():
            return False
        try:
            self._generate(PROBE_PROMPT, timeout=float(self.config.PROBE_TIMEOUT_SECONDS))
            return True
        except (ProviderUnavailable, ProviderResponseMalformed) as e:
            logger.info(f"Provider probe failed: {e}")
            return False


def _post_json(provider_id: str, url: str, *, headers: dict, payload: dict, timeout: float) -> Any:
    try:
        r = requests.post(url, headers=headers, json=payload, timeout=timeout)
    except requests.Timeout as e:
        raise ProviderUnavailable(f"timed out after {timeout}s", provider=provider_id) from e
    except requests.RequestException as e:
        raise ProviderUnavailable(f"network error: {e.__class__.__name__}", provider=provider_id) from e

    if r.status_code >= 400:
        raise ProviderUnavailable(f"HTTP {r.status_code} - {r.text[:300]}", provider=provider_id)

    try:
        return r.json()
    except ValueError as e:
        raise ProviderResponseMalformed(f"non-JSON body: {r.text[:300]}", provider=provider_id) from e


# ------------------------------------------------------------------
# Gemini (generativelanguage REST)
# ------------------------------------------------------------------

class GeminiProvider(GenerationProvider):
    provider_id = "gemini"

    @property
    def model(self) -> str:
        return self.config.GEMINI_MODEL

    def is_configured(self) -> bool:
        return bool(self.config.GEMINI_API_KEY)

    def build_request(self, prompt: CompiledPrompt) -> dict:
        return {
            "contents": [{"role": "user", "parts": [{"text": prompt.text}]}],
            "generationConfig": {
                "temperature": prompt.temperature,
                "maxOutputTokens": prompt.max_output_tokens,
                "topP": self.config.GEMINI_TOP_P,
                "topK": self.config.GEMINI_TOP_K,
            },
            "safetySettings": [
                {"category": c, "threshold": prompt.safety_threshold}
                for c in GEMINI_SAFETY_CATEGORIES
            ],
        }

    def decode_response(self, data: Any) -> tuple[str, Optional[int]]:
        if not isinstance(data, dict):
            raise ProviderResponseMalformed(f"unexpected payload: {str(data)[:300]}", provider=self.provider_id)
        if "error" in data:
            raise ProviderResponseMalformed(f"error payload: {str(data['error'])[:300]}", provider=self.provider_id)

        candidates = self._expect(data.get("candidates"), list, "candidates")
        usage = self._expect(data.get("usageMetadata"), dict, "usageMetadata")
        tokens = self._token_count(usage.get("candidatesTokenCount"))

        if not candidates:
            feedback = self._expect(data.get("promptFeedback"), dict, "promptFeedback")
            if feedback.get("blockReason"):
                return NEUTRAL_FILTERED_REPLY, tokens
            return NEUTRAL_EMPTY_REPLY, tokens

        first = self._expect(candidates[0], dict, "candidate")
        content = self._expect(first.get("content"), dict, "candidate content")
        chunks = []
        for part in self._expect(content.get("parts"), list, "content parts"):
            part = self._expect(part, dict, "content part")
            chunks.append(self._expect(part.get("text"), str, "part text"))
        text = "".join(chunks).strip()

        if not text:
            if first.get("finishReason") in GEMINI_FILTERED_FINISH_REASONS:
                return NEUTRAL_FILTERED_REPLY, tokens
            return NEUTRAL_EMPTY_REPLY, tokens

        return text, tokens

    def _send(self, prompt: CompiledPrompt, timeout: float) -> tuple[str, Optional[int]]:
        url = f"{self.config.GEMINI_BASE_URL}/models/{self.model}:generateContent"
        headers = {
            "x-goog-api-key": self.config.GEMINI_API_KEY,
            "Content-Type": "application/json",
        }
        data = _post_json(
            self.provider_id, url, headers=headers, payload=self.build_request(prompt), timeout=timeout
        )
        return self.decode_response(data)


# ------------------------------------------------------------------
# Hugging Face (router chat-completions)
# ------------------------------------------------------------------

class HuggingFaceProvider(GenerationProvider):
    provider_id = "huggingface"

    @property
    def model(self) -> str:
        return self.config.HF_MODEL or "mistralai/Mistral-7B-Instruct-v0.2"

    def is_configured(self) -> bool:
        return bool(self.config.HF_API_TOKEN)

    def build_request(self, prompt: CompiledPrompt) -> dict:
        return {
            "model": self.model,
            "messages": [{"role": "user", "content": prompt.text}],
            "temperature": prompt.temperature,
            "max_tokens": prompt.max_output_tokens,
        }

    def decode_response(self, data: Any) -> tuple[str, Optional[int]]:
        if not isinstance(data, dict):
            raise ProviderResponseMalformed(f"unexpected payload: {str(data)[:300]}", provider=self.provider_id)
        if "error" in data:
            raise ProviderResponseMalformed(f"error payload: {str(data['error'])[:300]}", provider=self.provider_id)

        choices = self._expect(data.get("choices"), list, "choices")
        usage = self._expect(data.get("usage"), dict, "usage")
        tokens = self._token_count(usage.get("completion_tokens"))

        if not choices:
            return NEUTRAL_EMPTY_REPLY, tokens

        first = self._expect(choices[0], dict, "choice")
        message = self._expect(first.get("message"), dict, "choice message")
        text = self._expect(message.get("content"), str, "message content").strip()

        if not text:
            if first.get("finish_reason") == "content_filter":
                return NEUTRAL_FILTERED_REPLY, tokens
            return NEUTRAL_EMPTY_REPLY, tokens

        return text, tokens

    def _send(self, prompt: CompiledPrompt, timeout: float) -> tuple[str, Optional[int]]:
        url = f"{self.config.HF_BASE_URL}/chat/completions"
        headers = {
            "Authorization": f"Bearer {self.config.HF_API_TOKEN}",
            "Content-Type": "application/json",
        }
        data = _post_json(
            self.provider_id, url, headers=headers, payload=self.build_request(prompt), timeout=timeout
        )
        return self.decode_response(data)


# ------------------------------------------------------------------
# OpenAI (official SDK)
# ------------------------------------------------------------------

class OpenAIProvider(GenerationProvider):
    provider_id = "openai"

    def __init__(self, config: Settings | None = None, client: OpenAI | None = None):
        super().__init__(config)
        self._client = client

    @property
    def model(self) -> str:
        return self.config.OPENAI_MODEL

    def is_configured(self) -> bool:
        return self._client is not None or bool(self.config.OPENAI_API_KEY)

    def _get_client(self) -> OpenAI:
        if self._client is None:
            self._client = OpenAI(
                api_key=self.config.OPENAI_API_KEY,
                base_url=self.config.OPENAI_BASE_URL,
                max_retries=0,
            )
        return self._client

    def decode_response(self, completion: Any) -> tuple[str, Optional[int]]:
        choices = getattr(completion, "choices", None)
        if choices is None:
            raise ProviderResponseMalformed("completion has no choices", provider=self.provider_id)

        usage = getattr(completion, "usage", None)
        tokens = getattr(usage, "completion_tokens", None)

        if not choices:
            return NEUTRAL_EMPTY_REPLY, tokens

        first = choices[0]
        message = getattr(first, "message", None)
        text = (getattr(message, "content", None) or "").strip()

        if not text:
            if getattr(first, "finish_reason", None) == "content_filter":
                return NEUTRAL_FILTERED_REPLY, tokens
            return NEUTRAL_EMPTY_REPLY, tokens

        return text, tokens

    def _send(self, prompt: CompiledPrompt, timeout: float) -> tuple[str, Optional[int]]:
        try:
            completion = self._get_client().chat.completions.create(
                model=self.model,
                messages=[{"role": "user", "content": prompt.text}],
                temperature=prompt.temperature,
                max_tokens=prompt.max_output_tokens,
                timeout=timeout,
            )
        except openai.APITimeoutError as e:
            raise ProviderUnavailable(f"timed out after {timeout}s", provider=self.provider_id) from e
        except openai.APIConnectionError as e:
            raise ProviderUnavailable("network error", provider=self.provider_id) from e
        except openai.APIStatusError as e:
            raise ProviderUnavailable(f"HTTP {e.status_code}", provider=self.provider_id) from e
        except openai.APIResponseValidationError as e:
            raise ProviderResponseMalformed(str(e)[:300], provider=self.provider_id) from e

        return self.decode_response(completion)


# ------------------------------------------------------------------
# Lookup
# ------------------------------------------------------------------

PROVIDERS: dict[str, type[GenerationProvider]] = {
    GeminiProvider.provider_id: GeminiProvider,
    HuggingFaceProvider.provider_id: HuggingFaceProvider,
    OpenAIProvider.provider_id: OpenAIProvider,
}


def get_provider(provider_id: str, config: Settings | None = None) -> GenerationProvider:
    try:
        provider_cls = PROVIDERS[provider_id]
    except KeyError:
        raise ProviderUnavailable("unknown provider", provider=provider_id) from None
    return provider_cls(config)


def call_provider(prompt: CompiledPrompt, provider_id: str, config: Settings | None = None) -> ProviderResponse:
    return get_provider(provider_id, config).generate(prompt)
