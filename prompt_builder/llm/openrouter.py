from __future__ import annotations
import logging
from dataclasses import dataclass, field
from typing import Literal, Optional
import httpx
from prompt_builder.core.config import settings
from prompt_builder.core.errors import (
    GenerationError,
    PermissionDeniedError,
    QuotaExceededError,
    TransientError,
    ValidationError,
)

log = logging.getLogger(__name__)

UserTier = Literal["free", "pro"]

CREDIT_WORDS = ("credit", "quota", "insufficient", "balance", "exceeded")


@dataclass
class OpenRouterClient:
    """Chat-completions client for OpenRouter with per-tier keys and models."""
    api_key_free: Optional[str] = field(default_factory=lambda: settings.openrouter_api_key_free)
    api_key_pro: Optional[str] = field(default_factory=lambda: settings.openrouter_api_key_pro)
    base_url: str = field(default_factory=lambda: settings.openrouter_base_url)
    timeout: float = field(default_factory=lambda: settings.llm_request_timeout)
    transport: Optional[httpx.AsyncBaseTransport] = None

    def _api_key(self, tier: UserTier) -> str:
        key = self.api_key_pro if tier == "pro" else self.api_key_free
        if not key:
            raise PermissionDeniedError(f"OpenRouter API key for tier '{tier}' is not configured")
        return key

    @staticmethod
    def default_model(tier: UserTier) -> str:
        return settings.openrouter_model_pro if tier == "pro" else settings.openrouter_model_free

    def _headers(self, tier: UserTier) -> dict:
        return {
            "Authorization": f"Bearer {self._api_key(tier)}",
            "Content-Type": "application/json",
            "HTTP-Referer": settings.openrouter_site_url,
            "X-Title": settings.openrouter_app_name,
        }

    async def generate(self, prompt: str, tier: UserTier = "free", model: Optional[str] = None,
                       temperature: float = 0.7, max_tokens: int = 4096) -> str:
        url = f"{self.base_url}/chat/completions"
        payload = {
            "model": model or self.default_model(tier),
            "messages": [{"role": "user", "content": prompt}],
            "temperature": temperature,
            "max_tokens": max_tokens,
        }
        headers = self._headers(tier)
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                r = await client.post(url, headers=headers, json=payload)
        except httpx.TimeoutException as e:
            raise TransientError(f"OpenRouter request timed out: {e}") from e
        except httpx.HTTPError as e:
            raise TransientError(f"OpenRouter request failed: {e}") from e

        if r.status_code >= 400:
            raise self._error_for(r)

        data = r.json()
        choices = data.get("choices") or []
        if not choices:
            raise TransientError("OpenRouter returned no choices")
        content = (choices[0].get("message") or {}).get("content") or ""
        log.info("OpenRouter completion model=%s chars=%d", payload["model"], len(content))
        return content

    @staticmethod
    def _error_for(r: httpx.Response) -> GenerationError:
        message = f"OpenRouter API error: {r.status_code} {r.reason_phrase}"
        try:
            body = r.json()
            err = body.get("error") if isinstance(body, dict) else None
            if isinstance(err, dict) and err.get("message"):
                message = str(err["message"])
        except ValueError:
            pass

        if r.status_code == 429:
            return TransientError("Rate limit exceeded")
        if r.status_code in (401, 402):
            if any(word in message.lower() for word in CREDIT_WORDS):
                return QuotaExceededError(f"Credit exhausted: {message}")
            return PermissionDeniedError("Invalid API key: permission denied")
        if r.status_code == 403:
            return PermissionDeniedError(message)
        if r.status_code >= 500:
            return TransientError(message)
        return ValidationError(message)
