"""LLM client abstraction.

Supports multiple backends:
- Ollama (local)
- Any OpenAI-compatible chat completions endpoint (cloud)

Requests are role-tagged message lists. Callers get back either the whole
completion text or a stream of text deltas.
"""

import json
import logging
import re
from typing import Iterator, Optional

import httpx

from .config import get_settings

logger = logging.getLogger(__name__)

Message = dict[str, str]


class LLMError(Exception):
    """Raised when the model backend cannot produce a completion."""


def _decode(body: str, backend: str) -> dict:
    """Parse a JSON response body, raising LLMError when it is not a JSON object."""
    try:
        data = json.loads(body)
    except ValueError as e:
        raise LLMError(f"{backend} returned a non-JSON body: {body[:200]}") from e
    if not isinstance(data, dict):
        raise LLMError(f"{backend} returned unexpected JSON: {body[:200]}")
    return data


class LLMClient:
    """Unified LLM client supporting multiple providers.

    Usage:
        client = LLMClient()  # Uses config defaults
        text = client.chat([{"role": "user", "content": "Who rules Gondor?"}])

        # Or specify provider
        client = LLMClient(provider="openai")
    """

    def __init__(
        self,
        provider: Optional[str] = None,
        model: Optional[str] = None,
    ):
        """Initialize LLM client.

        Args:
            provider: "ollama" or "openai" (default from config)
            model: Model name (default from config)
        """
        self.settings = get_settings()
        self.provider = provider or self.settings.llm_provider

        if model:
            self.model = model
        elif self.provider == "openai":
            self.model = self.settings.openai_model
        else:
            self.model = self.settings.ollama_model

    def chat(
        self,
        messages: list[Message],
        temperature: float = 0.3,
        max_tokens: int = 2000,
        json_mode: bool = False,
        timeout: Optional[float] = None,
    ) -> str:
        """Return the full completion for a message list.

        Args:
            messages: Role-tagged messages ({"role": ..., "content": ...})
            temperature: Sampling temperature (0-1)
            max_tokens: Maximum tokens to generate
            json_mode: Ask the backend to return a single JSON object
            timeout: Request timeout in seconds (default from config)

        Returns:
            Generated text

        Raises:
            LLMError: If the backend is unreachable or answers with an error
        """
        timeout = timeout or self.settings.llm_timeout
        logger.debug("Chat request to %s (%s), %d messages", self.provider, self.model, len(messages))
        if self.provider == "openai":
            return self._chat_openai(messages, temperature, max_tokens, json_mode, timeout)
        return self._chat_ollama(messages, temperature, max_tokens, json_mode, timeout)

    def stream(
        self,
        messages: list[Message],
        temperature: float = 0.7,
        max_tokens: int = 900,
        timeout: Optional[float] = None,
    ) -> Iterator[str]:
        """Yield completion text as it is generated."""
        timeout = timeout or self.settings.llm_timeout
        if self.provider == "openai":
            yield from self._stream_openai(messages, temperature, max_tokens, timeout)
        else:
            yield from self._stream_ollama(messages, temperature, max_tokens, timeout)

    def _ollama_payload(self, messages, temperature, max_tokens, stream: bool) -> dict:
        return {
            "model": self.model,
            "messages": messages,
            "stream": stream,
            "options": {
                "temperature": temperature,
                "num_predict": max_tokens,
            },
        }

    def _chat_ollama(
        self,
        messages: list[Message],
        temperature: float,
        max_tokens: int,
        json_mode: bool,
        timeout: float,
    ) -> str:
        """Generate using Ollama."""
        payload = self._ollama_payload(messages, temperature, max_tokens, stream=False)
        if json_mode:
            payload["format"] = "json"

        try:
            response = httpx.post(
                f"{self.settings.ollama_base_url}/api/chat",
                json=payload,
                timeout=timeout,
            )
        except httpx.HTTPError as e:
            raise LLMError(f"Ollama error: {e}") from e

        if response.status_code != 200:
            raise LLMError(f"Ollama error {response.status_code}: {response.text[:200]}")
        return (_decode(response.text, "Ollama").get("message") or {}).get("content", "").strip()

    def _stream_ollama(self, messages, temperature, max_tokens, timeout) -> Iterator[str]:
        payload = self._ollama_payload(messages, temperature, max_tokens, stream=True)
        try:
            with httpx.stream(
                "POST",
                f"{self.settings.ollama_base_url}/api/chat",
                json=payload,
                timeout=timeout,
            ) as response:
                if response.status_code != 200:
                    raise LLMError(f"Ollama error {response.status_code}")
                for line in response.iter_lines():
                    if not line:
                        continue
                    delta = (_decode(line, "Ollama").get("message") or {}).get("content", "")
                    if delta:
                        yield delta
        except httpx.HTTPError as e:
            raise LLMError(f"Ollama error: {e}") from e

    def _openai_headers(self) -> dict:
        if not self.settings.openai_api_key:
            raise LLMError("OpenAI-compatible API key not set")
        return {
            "Authorization": f"Bearer {self.settings.openai_api_key}",
            "Content-Type": "application/json",
        }

    def _chat_openai(
        self,
        messages: list[Message],
        temperature: float,
        max_tokens: int,
        json_mode: bool,
        timeout: float,
    ) -> str:
        """Generate using an OpenAI-compatible chat endpoint."""
        payload = {
            "model": self.model,
            "messages": messages,
            "temperature": temperature,
            "max_tokens": max_tokens,
        }
        if json_mode:
            payload["response_format"] = {"type": "json_object"}

        try:
            response = httpx.post(
                f"{self.settings.openai_base_url}/chat/completions",
                headers=self._openai_headers(),
                json=payload,
                timeout=timeout,
            )
        except httpx.HTTPError as e:
            raise LLMError(f"Chat API error: {e}") from e

        if response.status_code != 200:
            raise LLMError(f"Chat API error {response.status_code}: {response.text[:200]}")

        result = _decode(response.text, "Chat API")
        if result.get("choices"):
            return (result["choices"][0].get("message", {}).get("content") or "").strip()
        return ""

    def _stream_openai(self, messages, temperature, max_tokens, timeout) -> Iterator[str]:
        payload = {
            "model": self.model,
            "messages": messages,
            "temperature": temperature,
            "max_tokens": max_tokens,
            "stream": True,
        }
        try:
            with httpx.stream(
                "POST",
                f"{self.settings.openai_base_url}/chat/completions",
                headers=self._openai_headers(),
                json=payload,
                timeout=timeout,
            ) as response:
                if response.status_code != 200:
                    raise LLMError(f"Chat API error {response.status_code}")
                for line in response.iter_lines():
                    if not line.startswith("data:"):
                        continue
                    data = line[len("data:"):].strip()
                    if data == "[DONE]":
                        break
                    choices = _decode(data, "Chat API").get("choices") or [{}]
                    delta = choices[0].get("delta", {}).get("content")
                    if delta:
                        yield delta
        except httpx.HTTPError as e:
            raise LLMError(f"Chat API error: {e}") from e

    def extract_json(self, response: str) -> list | dict | None:
        """Extract JSON from LLM response.

        Handles markdown code blocks and stray text.

        Args:
            response: Raw LLM response

        Returns:
            Parsed JSON or None
        """
        if not response:
            return None

        # Try to extract from code block
        if "```" in response:
            match = re.search(r"```(?:json)?\s*([\s\S]*?)\s*```", response)
            if match:
                response = match.group(1)

        # Try direct parse
        try:
            return json.loads(response)
        except json.JSONDecodeError:
            pass

        obj_match = re.search(r"\{[\s\S]*\}", response)
        if obj_match:
            try:
                return json.loads(obj_match.group(0))
            except json.JSONDecodeError:
                pass

        array_match = re.search(r"\[[\s\S]*\]", response)
        if array_match:
            try:
                return json.loads(array_match.group(0))
            except json.JSONDecodeError:
                pass

        return None

    @property
    def is_available(self) -> bool:
        """Check if the LLM backend is available."""
        if self.provider == "openai":
            return bool(self.settings.openai_api_key)
        # Check Ollama
        try:
            response = httpx.get(
                f"{self.settings.ollama_base_url}/api/tags",
                timeout=5.0,
            )
            return response.status_code == 200
        except httpx.HTTPError:
            return False
