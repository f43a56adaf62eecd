# src/task_planner/llm/client.py

from __future__ import annotations

import contextlib
import logging
import os
import time
from collections.abc import Iterable
from typing import Any

import httpx
import openai
from openai import OpenAI

from ..core.ports import ChatMessage

logger = logging.getLogger(__name__)

_BAD_MODELS: dict[str, float] = {}  # model -> retry_at (monotonic)


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw.strip())
    except ValueError:
        return default


def _timeouts_from_env() -> dict[str, float]:
    """
    Subtask generation is interactive, so a slow model is abandoned in favour
    of the next one instead of blocking the chat.

    Defaults:
    - connect timeout: 5s
    - read timeout: 25s (no data from server)
    - first token timeout: 20s (no content tokens)
    """
    first_token = _env_float("PLANNER_LLM_FIRST_TOKEN_TIMEOUT_SECONDS", 20.0)
    read_timeout = _env_float("PLANNER_LLM_READ_TIMEOUT_SECONDS", 25.0)
    connect_timeout = _env_float("PLANNER_LLM_CONNECT_TIMEOUT_SECONDS", 5.0)

    return {
        "first_token": first_token,
        "read": max(read_timeout, first_token),
        "connect": connect_timeout,
    }


def _is_auth_error(exc: Exception) -> bool:
    return isinstance(exc, (openai.AuthenticationError, openai.PermissionDeniedError))


def _is_rate_limit_error(exc: Exception) -> bool:
    return isinstance(exc, openai.RateLimitError)


def _is_connection_error(exc: Exception) -> bool:
    return isinstance(exc, (openai.APIConnectionError, httpx.TransportError, TimeoutError))


def _is_not_found_error(exc: Exception) -> bool:
    return isinstance(exc, openai.NotFoundError)


def friendly_llm_error_message(err: Exception) -> str:
    msg = str(err).strip() or "LLM error."
    if "LLM API key is not set" in msg:
        return "AI is not configured (missing API key). Set PLANNER_OPENROUTER_API_KEY in .env."
    if "LLM model list is empty" in msg:
        return "AI is not configured (no models). Set PLANNER_LLM_MODELS in .env."
    return msg


class OpenRouterLLMClient:
    """
    Streaming chat client for an OpenAI-compatible endpoint (OpenRouter by default).

    Tries models in the order of settings.llm_models:
    - no first content token within the first-token timeout -> next model
    - 404 (model not available) -> next model, skipped for an hour
    - rate limit / network issues -> next model
    - auth issues -> fail fast
    All failures surface as RuntimeError.
    """

    def __init__(self, settings: Any) -> None:
        api_key = (getattr(settings, "openrouter_api_key", None) or "").strip()
        base_url = (getattr(settings, "openrouter_base_url", "") or "").strip()
        if not api_key:
            raise RuntimeError("LLM API key is not set. Set PLANNER_OPENROUTER_API_KEY in your .env.")
        if not base_url:
            raise RuntimeError("LLM base URL is not set. Set PLANNER_OPENROUTER_BASE_URL in your .env.")

        self._models: list[str] = [m.strip() for m in (getattr(settings, "llm_models", []) or []) if m.strip()]
        self._headers: dict[str, str] = dict(getattr(settings, "extra_headers", {}) or {})
        self._timeouts = _timeouts_from_env()
        self._timeout = httpx.Timeout(
            connect=self._timeouts["connect"],
            read=self._timeouts["read"],
            write=10.0,
            pool=self._timeouts["connect"],
        )
        # Retries are disabled so fallback across models is quick.
        self._client = OpenAI(base_url=base_url, api_key=api_key, timeout=self._timeout, max_retries=0)

    def stream_chat(self, messages: list[ChatMessage], system_prompt: str) -> Iterable[str]:
        if not self._models:
            raise RuntimeError("LLM model list is empty. Set PLANNER_LLM_MODELS in your .env.")

        first_token_timeout = self._timeouts["first_token"]
        last_error: Exception | None = None
        now = time.monotonic()

        for model in self._models:
            retry_at = _BAD_MODELS.get(model)
            if retry_at is not None and retry_at > now:
                continue

            logger.info("LLM: trying model=%s (first_token_timeout=%.1fs)", model, first_token_timeout)
            t0 = time.monotonic()
            deadline = t0 + first_token_timeout
            stream = None
            used_any = False

            try:
                stream = self._client.chat.completions.create(
                    model=model,
                    stream=True,
                    extra_headers=self._headers or None,
                    messages=[{"role": "system", "content": system_prompt}, *messages],
                    timeout=self._timeout,
                )

                for chunk in stream:
                    if not used_any and time.monotonic() > deadline:
                        last_error = TimeoutError(f"First token timeout on model: {model}")
                        logger.info("LLM: first token timeout on model=%s -> trying next", model)
                        break

                    content = chunk.choices[0].delta.content if chunk.choices else None
                    if content:
                        if not used_any:
                            logger.info("LLM: first token from model=%s (%.2fs)", model, time.monotonic() - t0)
                        used_any = True
                        yield content

                if used_any:
                    return
                if last_error is None:
                    last_error = RuntimeError(f"Model returned no content: {model}")

            except (openai.OpenAIError, httpx.HTTPError) as e:
                last_error = e
                if _is_auth_error(e):
                    raise RuntimeError(
                        "LLM authentication failed. Check your API key (PLANNER_OPENROUTER_API_KEY)."
                    ) from e
                if _is_not_found_error(e):
                    _BAD_MODELS[model] = time.monotonic() + 3600.0
                    logger.info("LLM: model not available (404): %s", model)
                elif _is_rate_limit_error(e):
                    logger.info("LLM: rate-limited on model=%s, trying next", model)
                elif _is_connection_error(e):
                    logger.info("LLM: network/timeout error on model=%s, trying next", model)
                else:
                    logger.info("LLM: error on model=%s (%s), trying next", model, e.__class__.__name__)

            finally:
                if stream is not None:
                    with contextlib.suppress(Exception):
                        stream.close()

        if last_error is not None:
            if _is_rate_limit_error(last_error):
                raise RuntimeError("LLM is rate-limited. Try again later.") from last_error
            if _is_connection_error(last_error):
                raise RuntimeError("LLM network/timeout error. Try again later or change models.") from last_error
            raise RuntimeError("All LLM models failed.") from last_error

        raise RuntimeError("All LLM models failed.")
