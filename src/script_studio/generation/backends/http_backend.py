"""Hosted LLM APIs called over HTTP."""

from __future__ import annotations

import logging
import os
from typing import Any

import httpx

from script_studio.errors import BackendError

logger = logging.getLogger(__name__)

_ANTHROPIC_VERSION = "2023-06-01"
_TRANSIENT_STATUS_CODES = frozenset({408, 409, 429, 500, 502, 503, 504, 529})


class HttpChatBackend:
    """Single-turn chat completion against an OpenAI- or Anthropic-style API."""

    def __init__(  # noqa: PLR0913
        self,
        *,
        name: str,
        provider: str,
        model: str,
        base_url: str,
        api_key_env: str,
        timeout_seconds: float = 120.0,
        max_tokens: int = 4096,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        if provider not in ("openai", "anthropic"):
            raise ValueError(f"Unsupported HTTP provider: {provider!r}")
        self.name = name
        self.provider = provider
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.api_key_env = api_key_env
        self.timeout_seconds = timeout_seconds
        self.max_tokens = max_tokens
        self._transport = transport

    def generate(self, prompt: str) -> str:
        api_key = os.getenv(self.api_key_env, "").strip() if self.api_key_env else ""
        if self.api_key_env and not api_key:
            raise BackendError(
                f"Backend {self.name!r} is unavailable: {self.api_key_env} is not set.",
                backend=self.name,
                transient=False,
            )

        url, headers, payload = self._build_request(prompt=prompt, api_key=api_key)
        try:
            with httpx.Client(timeout=self.timeout_seconds, transport=self._transport) as client:
                response = client.post(url, headers=headers, json=payload)
        except httpx.TimeoutException as error:
            raise BackendError(
                f"Backend {self.name!r} timed out: {error}",
                backend=self.name,
                transient=True,
            ) from error
        except httpx.HTTPError as error:
            raise BackendError(
                f"Backend {self.name!r} network error: {error}",
                backend=self.name,
                transient=True,
            ) from error

        if response.status_code >= 400:
            raise BackendError(
                f"Backend {self.name!r} returned HTTP {response.status_code}: "
                f"{response.text[:500]}",
                backend=self.name,
                transient=response.status_code in _TRANSIENT_STATUS_CODES,
            )

        try:
            body = response.json()
        except ValueError as error:
            raise BackendError(
                f"Backend {self.name!r} returned a non-JSON body.",
                backend=self.name,
                transient=False,
            ) from error
        return self._parse_text(body)

    def _build_request(
        self,
        *,
        prompt: str,
        api_key: str,
    ) -> tuple[str, dict[str, str], dict[str, Any]]:
        if self.provider == "anthropic":
            headers = {
                "anthropic-version": _ANTHROPIC_VERSION,
                "content-type": "application/json",
            }
            if api_key:
                headers["x-api-key"] = api_key
            return (
                f"{self.base_url}/messages",
                headers,
                {
                    "model": self.model,
                    "max_tokens": self.max_tokens,
                    "messages": [{"role": "user", "content": prompt}],
                },
            )

        headers = {"content-type": "application/json"}
        if api_key:
            headers["authorization"] = f"Bearer {api_key}"
        return (
            f"{self.base_url}/chat/completions",
            headers,
            {
                "model": self.model,
                "max_tokens": self.max_tokens,
                "messages": [{"role": "user", "content": prompt}],
            },
        )

    def _parse_text(self, body: Any) -> str:
        try:
            if self.provider == "anthropic":
                return "".join(
                    block.get("text", "")
                    for block in body["content"]
                    if isinstance(block, dict) and block.get("type") == "text"
                )
            content = body["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as error:
            raise BackendError(
                f"Backend {self.name!r} returned an unexpected response shape: {error!r}",
                backend=self.name,
                transient=False,
            ) from error
        return content if isinstance(content, str) else ""
