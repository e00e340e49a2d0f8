from __future__ import annotations  # Question-generation HTTP boundary

import json
import logging
import os
import threading
from typing import Any, Callable, Dict, Optional, Protocol, Sequence

import httpx
from langchain_core.messages import BaseMessage

from config.registry import GENERATOR_KEY, bind_model
from config.routes import LlmRoute


logger = logging.getLogger(__name__)  # Module logger setup


_MODEL_LOCKS: Dict[str, threading.Lock] = {}
_MODEL_LOCKS_GUARD = threading.Lock()


class HttpClient(Protocol):  # Minimal HTTP client protocol
    def post(self, url: str, *, json: Dict[str, Any], headers: Dict[str, str], timeout: float) -> "HttpResponse": ...


class HttpResponse(Protocol):  # Minimal HTTP response protocol
    @property
    def status_code(self) -> int: ...

    def json(self) -> Any: ...

    @property
    def text(self) -> str: ...


class GenerationError(RuntimeError):  # Base error for the generation boundary
    pass


class GenerationUnavailable(GenerationError):  # Timeout, quota, transport or binding failure
    pass


class MalformedGenerationOutput(GenerationError):  # Reply carried no usable question
    pass


Generator = Callable[[Any], str]


def _lock_for(cfg: LlmRoute) -> threading.Lock:
    key = cfg.name or f"{cfg.base_url}{cfg.endpoint}"
    with _MODEL_LOCKS_GUARD:
        lock = _MODEL_LOCKS.get(key)
        if lock is None:
            lock = threading.Lock()
            _MODEL_LOCKS[key] = lock
    return lock


def complete(
    messages: Any,
    *,
    cfg: LlmRoute,
    client: Optional[HttpClient] = None,
    options: Optional[Dict[str, Any]] = None,
) -> str:  # Send chat messages to the route and return the raw reply text
    def _execute() -> str:
        base_messages = _normalize_messages(_coerce_messages(messages))
        attempts = cfg.max_retries + 1
        preview = _preview(base_messages)
        if len(preview) > 120:
            preview = preview[:117] + "..."
        logger.info(
            "LLM request start route=%s model=%s attempts=%d preview=%s",
            cfg.name,
            cfg.model,
            attempts,
            preview,
        )
        payload: Dict[str, Any] = {
            "model": cfg.model,
            "messages": base_messages,
            "temperature": cfg.temperature,
            "max_tokens": cfg.max_tokens,
        }
        if options:
            payload.update(options)
        if cfg.response_format:
            payload["response_format"] = {"type": cfg.response_format}
        headers = {"Content-Type": "application/json"}
        if cfg.api_key_env:
            api_key = os.getenv(cfg.api_key_env)
            if api_key:
                headers["Authorization"] = f"Bearer {api_key}"
        headers.update(cfg.extra_headers)

        last_error: Optional[Exception] = None
        for attempt in range(attempts):
            logger.info(
                "LLM request send route=%s model=%s attempt=%d/%d",
                cfg.name,
                cfg.model,
                attempt + 1,
                attempts,
            )
            try:
                response = _post(f"{cfg.base_url}{cfg.endpoint}", payload, headers, cfg.timeout_s, client)
            except Exception as exc:  # noqa: BLE001
                logger.error("LLM transport failure: %s", exc)
                last_error = exc
                continue
            if response.status_code == 429:
                raise GenerationUnavailable("LLM quota exhausted")
            if response.status_code >= 500:
                logger.error("LLM error status: %s", response.status_code)
                last_error = GenerationUnavailable(f"LLM returned status {response.status_code}")
                continue
            if response.status_code >= 400:
                logger.error("LLM rejected request: %s", response.status_code)
                raise GenerationUnavailable(f"LLM returned status {response.status_code}")
            try:
                data = response.json()
            except Exception as exc:  # noqa: BLE001
                logger.error("Invalid JSON payload from LLM: %s", exc)
                raise MalformedGenerationOutput("LLM payload was not JSON") from exc
            content = _extract_content(data)
            logger.info("LLM request done route=%s model=%s attempt=%d", cfg.name, cfg.model, attempt + 1)
            return content
        raise GenerationUnavailable("LLM transport failed") from last_error

    if getattr(cfg, "sequential", False):
        lock = _lock_for(cfg)
        with lock:
            return _execute()
    return _execute()


def text_generator(route: LlmRoute, *, client: Optional[HttpClient] = None) -> Generator:  # Adapt a route to generate(prompt_spec)
    def _generate(prompt_spec: Any) -> str:
        return complete(prompt_spec, cfg=route, client=client)

    return _generate


def bind_route(route: LlmRoute, *, client: Optional[HttpClient] = None) -> Generator:  # Register the route as the question generator
    generator = text_generator(route, client=client)
    bind_model(GENERATOR_KEY, generator)
    return generator


def _post(url: str, payload: Dict[str, Any], headers: Dict[str, str], timeout: float, client: Optional[HttpClient]) -> HttpResponse:  # Dispatch HTTP request
    if client is not None:
        return client.post(url, json=payload, headers=headers, timeout=timeout)
    with httpx.Client(timeout=timeout) as http_client:
        return http_client.post(url, json=payload, headers=headers)


def _normalize_messages(messages: Sequence[Dict[str, str]]) -> list[Dict[str, str]]:  # Ensure message payload shape
    normalized: list[Dict[str, str]] = []
    for item in messages:
        if not isinstance(item, dict):
            raise GenerationUnavailable("Each chat message must be a dict with role/content")
        role = str(item.get("role", "")).strip()
        content = str(item.get("content", ""))
        if not role:
            raise GenerationUnavailable("Chat message missing role")
        normalized.append({"role": role, "content": content})
    return normalized


def _preview(messages: Sequence[Dict[str, str]]) -> str:  # Build preview string for logging
    for message in messages:
        text = message.get("content", "").strip()
        if text:
            return text.splitlines()[0]
    return ""


def _extract_content(data: Any) -> str:  # Extract message content from LLM response
    if isinstance(data, dict):
        choices = data.get("choices")
        if isinstance(choices, list) and choices:
            message = choices[0].get("message") if isinstance(choices[0], dict) else None
            content = message.get("content") if isinstance(message, dict) else None
            if isinstance(content, str):
                return content
        if isinstance(data.get("content"), str):
            return data["content"]
    raise MalformedGenerationOutput("LLM response missing content")


def _coerce_messages(payload: Any) -> Sequence[Dict[str, str]]:  # Convert prompt specs and LangChain payloads into dict messages
    if hasattr(payload, "messages") and not isinstance(payload, dict):
        payload = payload.messages
    if hasattr(payload, "to_messages"):
        payload = payload.to_messages()
    if isinstance(payload, dict):
        return [payload]
    if isinstance(payload, BaseMessage):
        return [message_dict(payload)]
    if isinstance(payload, (list, tuple)):
        if all(isinstance(item, dict) for item in payload):
            return list(payload)  # type: ignore[return-value]
        if all(isinstance(item, BaseMessage) for item in payload):
            return [message_dict(item) for item in payload]
    raise GenerationUnavailable("Unsupported message payload for generation")


def message_dict(message: BaseMessage) -> Dict[str, str]:  # Map LangChain BaseMessage to role/content dict
    role = message.type
    if role == "human":
        role = "user"
    elif role == "ai":
        role = "assistant"
    content = message.content
    if not isinstance(content, str):
        content = json.dumps(content, ensure_ascii=False)
    return {"role": role, "content": content}
