"""LLM clients (Groq chat completions and local Ollama)."""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Protocol

import requests

from .errors import ProviderError

logger = logging.getLogger("search_agent")

RETRIABLE_STATUS = {408, 409, 429, 500, 502, 503, 504}


@dataclass(frozen=True)
class CompletionOptions:
    temperature: float = 0.3
    max_tokens: int = 1024
    max_retries: int = 2


class ModelProvider(Protocol):
    def complete(self, prompt: str, options: CompletionOptions) -> str:
        ...


def post_with_retries(
    provider: str,
    url: str,
    payload: Dict[str, Any],
    *,
    headers: Optional[Dict[str, str]] = None,
    timeout_s: float,
    max_retries: int,
    backoff_s: float = 1.0,
    sleep: Optional[Callable[[float], None]] = None,
) -> Dict[str, Any]:
    """POST JSON and return the decoded body, retrying transient failures.

    Connection errors, timeouts and retriable HTTP statuses are attempted
    ``max_retries + 1`` times in total; anything else fails immediately.
    """
    attempts = max(0, max_retries) + 1
    last_reason = "no attempt made"
    for attempt in range(1, attempts + 1):
        try:
            response = requests.post(url, json=payload, headers=headers, timeout=timeout_s)
        except (requests.ConnectionError, requests.Timeout) as exc:
            last_reason = str(exc)
        except requests.RequestException as exc:
            raise ProviderError(provider, str(exc)) from exc
        else:
            if response.status_code in RETRIABLE_STATUS:
                last_reason = f"HTTP {response.status_code}: {response.text[:200]}"
            else:
                try:
                    response.raise_for_status()
                except requests.RequestException as exc:
                    raise ProviderError(provider, str(exc)) from exc
                try:
                    return response.json()
                except (json.JSONDecodeError, ValueError) as exc:
                    raise ProviderError(provider, f"response was not JSON: {response.text[:200]}") from exc
        if attempt < attempts:
            logger.debug(f"{provider} attempt {attempt}/{attempts} failed ({last_reason}), retrying")
            (sleep or time.sleep)(backoff_s * attempt)
    raise ProviderError(provider, f"gave up after {attempts} attempts: {last_reason}", retriable=True)


class GroqClient:
    """OpenAI-compatible chat completions client; defaults to Groq's endpoint."""

    def __init__(
        self,
        api_key: str,
        model: str,
        base_url: str = "https://api.groq.com/openai/v1",
        timeout_s: int = 60,
    ):
        self.api_key = api_key
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.timeout_s = timeout_s

    def complete(self, prompt: str, options: CompletionOptions) -> str:
        if not self.api_key:
            raise ProviderError("groq", "GROQ_API_KEY is not set")
        url = f"{self.base_url}/chat/completions"
        payload = {
            "model": self.model,
            "messages": [{"role": "user", "content": prompt}],
            "temperature": options.temperature,
            "max_tokens": options.max_tokens,
            "stream": False,
        }
        headers = {"Authorization": f"Bearer {self.api_key}"}
        data = post_with_retries(
            "groq",
            url,
            payload,
            headers=headers,
            timeout_s=self.timeout_s,
            max_retries=options.max_retries,
        )
        choices = data.get("choices") if isinstance(data, dict) else None
        if not isinstance(choices, list) or not choices:
            raise ProviderError("groq", f"response missing content: {data}")
        choice = choices[0]
        message = choice.get("message") if isinstance(choice, dict) else None
        content = message.get("content") if isinstance(message, dict) else None
        if not isinstance(content, str):
            raise ProviderError("groq", f"response missing content: {data}")
        return content.strip()


class OllamaClient:
    def __init__(self, base_url: str, model: str, timeout_s: int = 120):
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.timeout_s = timeout_s

    def complete(self, prompt: str, options: CompletionOptions) -> str:
        return self.chat([{"role": "user", "content": prompt}], options)

    def chat(self, messages: List[Dict[str, str]], options: CompletionOptions) -> str:
        url = f"{self.base_url}/api/chat"
        payload = {
            "model": self.model,
            "messages": messages,
            "stream": False,
            "options": {
                "temperature": options.temperature,
                "num_predict": options.max_tokens,
            },
        }
        data = post_with_retries(
            "ollama",
            url,
            payload,
            timeout_s=self.timeout_s,
            max_retries=options.max_retries,
        )
        message = data.get("message") if isinstance(data, dict) else None
        content = message.get("content") if isinstance(message, dict) else None
        if not isinstance(content, str):
            raise ProviderError("ollama", f"response missing content: {data}")
        return content.strip()
