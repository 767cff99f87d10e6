"""
Client for interacting with an Ollama LLM server.

This client wraps streaming HTTP requests to the Ollama REST API. It
supports one-shot completions via the ``/api/generate`` endpoint and
conversations via the ``/api/chat`` endpoint. Both stream their answer
as newline-delimited JSON which is accumulated into the returned text.
On error conditions (HTTP errors, connection failures), a
:class:`LLMError` is raised once all retry attempts are exhausted.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional

import requests

from diffscribe.llm.retry import linear_delay, retry_with_backoff


logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())
    logger.propagate = False


MAX_PROMPT_LENGTH = 100_000

_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f-\x9f]")
_LONE_BACKSLASH = re.compile(r'\\(?!["\\/bfnrt])')


class LLMError(Exception):
    """Raised when communication with the LLM server fails."""

    pass


def strip_thinking_tags(text: str) -> str:
    """Remove thinking process tags from LLM responses.

    Reasoning models often wrap their chain of thought in tags such as
    ``<think>`` or ``<reasoning>``. Those blocks are dropped so that only
    the actual answer remains.

    Examples
    --------
    >>> strip_thinking_tags("<think>reasoning...</think>Answer")
    'Answer'
    """
    thinking_patterns = [
        r'<think>.*?</think>',
        r'<thinking>.*?</thinking>',
        r'<thought>.*?</thought>',
        r'<reasoning>.*?</reasoning>',
    ]

    result = text
    for pattern in thinking_patterns:
        result = re.sub(pattern, '', result, flags=re.DOTALL | re.IGNORECASE)
    return result.strip()


def sanitize_prompt(text: Optional[str]) -> str:
    """Prepare prompt text for transmission.

    Control characters are removed, backslashes, double quotes, newlines,
    carriage returns and tabs are escaped, and the result is truncated
    to :data:`MAX_PROMPT_LENGTH` characters.
    """
    if not text:
        return ""
    sanitized = _CONTROL_CHARS.sub("", text)
    sanitized = _LONE_BACKSLASH.sub(r"\\\\", sanitized)
    sanitized = (
        sanitized.replace('"', '\\"')
        .replace("\n", "\\n")
        .replace("\r", "\\r")
        .replace("\t", "\\t")
    )
    return sanitized[:MAX_PROMPT_LENGTH]


def iter_json_lines(chunks: Iterable[bytes]) -> Iterable[Dict[str, Any]]:
    """Parse newline-delimited JSON from a stream of byte chunks.

    Complete lines are parsed independently as soon as their newline
    arrives; lines that fail to parse are skipped. Whatever remains in the
    buffer when the stream ends gets one final parse attempt.
    """
    buffer = b""
    for chunk in chunks:
        if not chunk:
            continue
        buffer += chunk
        newline = buffer.find(b"\n")
        while newline != -1:
            line, buffer = buffer[:newline], buffer[newline + 1:]
            fragment = _parse_fragment(line)
            if fragment is not None:
                yield fragment
            newline = buffer.find(b"\n")
    if buffer.strip():
        fragment = _parse_fragment(buffer)
        if fragment is not None:
            yield fragment


def _parse_fragment(line: bytes) -> Optional[Dict[str, Any]]:
    text = line.decode("utf-8", errors="replace").strip()
    if not text:
        return None
    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        logger.debug("Skipping malformed stream fragment: %r", text[:200])
        return None
    if not isinstance(data, dict):
        return None
    return data


@dataclass
class OllamaClient:
    """Client for interacting with an Ollama server.

    Parameters
    ----------
    base_url : str
        Base URL of the Ollama server, e.g. ``"http://localhost"``.
    port : int
        Port number of the Ollama server, e.g. ``11434``.
    model : str
        Name of the model to use for generation, e.g. ``"llama3.2:3b"``.
    temperature : float, optional
        Sampling temperature sent with every request.
    max_tokens : int, optional
        Default token budget when a call does not pass one.
    request_timeout : float, optional
        Timeout in seconds for HTTP requests. ``None`` waits indefinitely.
    retry_attempts : int, optional
        Number of attempts per call before giving up.
    retry_delay : float, optional
        Base delay in seconds; attempt ``n`` waits ``retry_delay * n``.
    on_token : callable, optional
        Called with each piece of text as it streams in.
    on_retry : callable, optional
        Called before a retry when the failed attempt had already passed
        text to ``on_token``, so the caller can mark the restart.
    """

    base_url: str
    port: int
    model: str
    temperature: float = 0.2
    max_tokens: int = 2048
    request_timeout: Optional[float] = None
    retry_attempts: int = 3
    retry_delay: float = 1.0
    on_token: Optional[Callable[[str], None]] = None
    on_retry: Optional[Callable[[], None]] = None
    _streamed: bool = field(default=False, init=False, repr=False)

    @classmethod
    def from_config(cls, config: Dict[str, Any], **overrides: Any) -> "OllamaClient":
        """Build a client from a dictionary returned by ``load_config``."""
        params = dict(
            base_url=config["base_url"],
            port=config["port"],
            model=config["model"],
            temperature=float(config.get("temperature", 0.2)),
            max_tokens=int(config.get("max_tokens", 2048)),
            request_timeout=config.get("request_timeout"),
            retry_attempts=int(config.get("retry_attempts", 3)),
            retry_delay=float(config.get("retry_delay", 1.0)),
        )
        params.update(overrides)
        return cls(**params)

    def _endpoint(self, path: str) -> str:
        return f"{self.base_url}:{self.port}/api/{path}"

    def _payload(self, max_tokens: Optional[int]) -> Dict[str, Any]:
        budget = max_tokens if max_tokens is not None else self.max_tokens
        return {
            "model": self.model,
            "stream": True,
            "temperature": self.temperature,
            "max_tokens": budget,
            "options": {"temperature": self.temperature, "num_predict": budget},
        }

    def _emit(self, text: str) -> None:
        if self.on_token is not None and text:
            self.on_token(text)
            self._streamed = True

    def _notify_retry(self, attempt: int, exc: BaseException) -> None:
        if self._streamed and self.on_retry is not None:
            self.on_retry()
        self._streamed = False

    def _with_retry(self, fn: Callable[[], str]) -> str:
        self._streamed = False
        return retry_with_backoff(
            fn,
            attempts=self.retry_attempts,
            delay=linear_delay(self.retry_delay),
            retry_on=(LLMError,),
            on_retry=self._notify_retry,
        )

    def _open_stream(self, url: str, payload: Dict[str, Any]) -> requests.Response:
        logger.debug("Sending request to LLM at %s (model %s)", url, self.model)
        try:
            response = requests.post(
                url,
                json=payload,
                stream=True,
                timeout=self.request_timeout,
            )
        except (requests.RequestException, Exception) as exc:
            logger.error("Failed to connect to LLM: %s", exc)
            raise LLMError(str(exc)) from exc
        if response.status_code != 200:
            body = response.text
            response.close()
            logger.error("LLM returned non-200 status %s: %s", response.status_code, body)
            raise LLMError(f"LLM returned status {response.status_code}: {body}")
        return response

    def _fragments(self, response: requests.Response) -> Iterable[Dict[str, Any]]:
        try:
            yield from iter_json_lines(response.iter_content(chunk_size=None))
        except requests.RequestException as exc:
            logger.error("LLM stream interrupted: %s", exc)
            raise LLMError(f"Stream interrupted: {exc}") from exc
        finally:
            response.close()

    def query(self, prompt: str, max_tokens: Optional[int] = None) -> str:
        """Generate a completion for a single prompt.

        Every ``response`` fragment of the stream is concatenated.

        Raises
        ------
        LLMError
            If every attempt failed to reach the server or got an error
            status back.
        """
        payload = self._payload(max_tokens)
        payload["prompt"] = sanitize_prompt(prompt)
        url = self._endpoint("generate")

        def attempt() -> str:
            parts: List[str] = []
            for fragment in self._fragments(self._open_stream(url, payload)):
                token = fragment.get("response")
                if isinstance(token, str) and token:
                    parts.append(token)
                    self._emit(token)
            return "".join(parts)

        return strip_thinking_tags(self._with_retry(attempt))

    def chat(self, messages: List[Dict[str, str]], max_tokens: Optional[int] = None) -> str:
        """Send a conversation and return the assistant's reply.

        The reply is taken from the latest non-final fragment carrying
        content; each such fragment replaces what came before. A final
        fragment only contributes content when nothing else arrived.
        """
        payload = self._payload(max_tokens)
        payload["messages"] = [
            {"role": message["role"], "content": sanitize_prompt(message["content"])}
            for message in messages
        ]
        url = self._endpoint("chat")

        def attempt() -> str:
            latest = ""
            for fragment in self._fragments(self._open_stream(url, payload)):
                message = fragment.get("message")
                if not isinstance(message, dict):
                    continue
                content = message.get("content")
                if not isinstance(content, str) or not content:
                    continue
                if fragment.get("done") and latest:
                    continue
                # Echo only the unseen tail when the server sends cumulative text.
                self._emit(content[len(latest):] if content.startswith(latest) else content)
                latest = content
            return latest

        return strip_thinking_tags(self._with_retry(attempt))
