"""
Chat-style language-model transports.

Both pipeline stages talk to the inference backend through ``ChatProvider.chat``:
role-structured messages in, generated text out. Transport problems (connection,
timeout, HTTP status) raise ``LLMTransportError``; a reply that arrives but has
the wrong shape raises ``LLMResponseError``. HTTP 429 is the only status that is
retried.
"""
from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Optional, Sequence, Union

import requests
from tenacity import Retrying, retry_if_exception_type, stop_after_attempt

from schemas import ChatMessage
from settings import settings

log = logging.getLogger("contractguard.llm")

MessageLike = Union[ChatMessage, Dict[str, str]]


class LLMProviderError(Exception):
    """Base class for everything a provider can raise."""


class LLMTransportError(LLMProviderError):
    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class RateLimitError(LLMTransportError):
    def __init__(self, message: str, retry_after: Optional[float] = None):
        super().__init__(message, status_code=429)
        self.retry_after = retry_after


class LLMResponseError(LLMProviderError):
    """The backend answered, but not with something we can read."""


def _parse_retry_after(value: Optional[str]) -> Optional[float]:
    # Only the delta-seconds form is honored; HTTP-date values fall back to the default wait.
    if not value:
        return None
    try:
        return max(0.0, float(value.strip()))
    except ValueError:
        return None


def _as_dicts(messages: Sequence[MessageLike]) -> List[Dict[str, str]]:
    out = []
    for m in messages:
        if isinstance(m, ChatMessage):
            out.append(m.model_dump())
        else:
            out.append({"role": m["role"], "content": m["content"]})
    return out


class ChatProvider(ABC):
    @abstractmethod
    def chat(
        self,
        *,
        model: str,
        messages: Sequence[MessageLike],
        temperature: float,
    ) -> str: ...


class HTTPChatProvider(ChatProvider):
    """
    Shared request/retry plumbing for JSON-over-HTTP chat backends.

    Subclasses supply the endpoint, the payload shape and where the reply text
    lives in the response body.
    """

    def __init__(
        self,
        timeout: Optional[float] = None,
        max_attempts: Optional[int] = None,
        rate_limit_wait: Optional[float] = None,
        rate_limit_buffer: Optional[float] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.timeout = timeout if timeout is not None else settings.LLM_TIMEOUT_SECONDS
        self.max_attempts = max(1, max_attempts if max_attempts is not None else settings.LLM_MAX_ATTEMPTS)
        self.rate_limit_wait = rate_limit_wait if rate_limit_wait is not None else settings.LLM_RATE_LIMIT_DEFAULT_WAIT
        self.rate_limit_buffer = rate_limit_buffer if rate_limit_buffer is not None else settings.LLM_RATE_LIMIT_BUFFER
        self._sleep = sleep

    # ---- subclass hooks ----
    @abstractmethod
    def endpoint(self) -> str: ...

    @abstractmethod
    def build_payload(self, model: str, messages: List[Dict[str, str]], temperature: float) -> Dict[str, Any]: ...

    @abstractmethod
    def extract_content(self, data: Any) -> str: ...

    def headers(self) -> Dict[str, str]:
        return {"Content-Type": "application/json"}

    # ---- public API ----
    def chat(self, *, model, messages, temperature) -> str:
        payload = self.build_payload(model, _as_dicts(messages), temperature)
        url = self.endpoint()

        retryer = Retrying(
            retry=retry_if_exception_type(RateLimitError),
            stop=stop_after_attempt(self.max_attempts),
            wait=self._rate_limit_wait,
            sleep=self._sleep,
            before_sleep=self._log_retry,
            reraise=True,
        )
        data = retryer(self._post, url, payload)
        return self.extract_content(data)

    # ---- internals ----
    def _rate_limit_wait(self, retry_state) -> float:
        exc = retry_state.outcome.exception()
        retry_after = getattr(exc, "retry_after", None)
        base = retry_after if retry_after is not None else self.rate_limit_wait
        return base + self.rate_limit_buffer

    def _log_retry(self, retry_state) -> None:
        log.warning(
            "Rate limited by %s (attempt %d/%d), sleeping %.1fs",
            self.endpoint(),
            retry_state.attempt_number,
            self.max_attempts,
            retry_state.next_action.sleep if retry_state.next_action else 0.0,
        )

    def _post(self, url: str, payload: Dict[str, Any]) -> Any:
        try:
            resp = requests.post(url, json=payload, headers=self.headers(), timeout=self.timeout)
        except requests.exceptions.Timeout as e:
            raise LLMTransportError(f"Timed out after {self.timeout}s calling {url}") from e
        except requests.exceptions.RequestException as e:
            raise LLMTransportError(f"Could not reach {url}: {e}") from e

        if resp.status_code == 429:
            raise RateLimitError(
                f"Rate limited by {url}",
                retry_after=_parse_retry_after(resp.headers.get("Retry-After")),
            )
        try:
            resp.raise_for_status()
        except requests.exceptions.HTTPError as e:
            raise LLMTransportError(f"HTTP {resp.status_code} from {url}", status_code=resp.status_code) from e

        try:
            return resp.json()
        except ValueError as e:
            raise LLMResponseError(f"Non-JSON body from {url}") from e


class OllamaChatProvider(HTTPChatProvider):
    """Local Ollama server, native ``/api/chat`` endpoint."""

    def __init__(self, url: Optional[str] = None, **kw):
        super().__init__(**kw)
        self.url = (url or settings.OLLAMA_API_URL).rstrip("/")

    def endpoint(self) -> str:
        return f"{self.url}/api/chat"

    def build_payload(self, model, messages, temperature):
        return {
            "model": model,
            "messages": messages,
            "stream": False,
            "options": {"temperature": temperature},
        }

    def extract_content(self, data):
        try:
            content = data["message"]["content"]
        except (KeyError, TypeError) as e:
            raise LLMResponseError("Ollama reply has no message.content") from e
        if not isinstance(content, str):
            raise LLMResponseError("Ollama message.content is not a string")
        return content


class OpenAICompatibleProvider(HTTPChatProvider):
    """Any backend exposing ``/chat/completions`` (hosted APIs, vLLM, Ollama's /v1)."""

    def __init__(self, base_url: Optional[str] = None, api_key: Optional[str] = None, **kw):
        super().__init__(**kw)
        self.base_url = (base_url or settings.LLM_BASE_URL).rstrip("/")
        self.api_key = api_key if api_key is not None else settings.LLM_API_KEY

    def endpoint(self) -> str:
        return f"{self.base_url}/chat/completions"

    def headers(self):
        h = super().headers()
        if self.api_key:
            h["Authorization"] = f"Bearer {self.api_key}"
        return h

    def build_payload(self, model, messages, temperature):
        return {
            "model": model,
            "messages": messages,
            "temperature": temperature,
            "stream": False,
        }

    def extract_content(self, data):
        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            raise LLMResponseError("Completion reply has no choices[0].message.content") from e
        if not isinstance(content, str):
            raise LLMResponseError("choices[0].message.content is not a string")
        return content
