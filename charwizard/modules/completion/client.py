from __future__ import annotations

import asyncio
import logging
from typing import Literal, TypedDict

import httpx

logger = logging.getLogger(__name__)


class ChatCompletionMessage(TypedDict):
    role: Literal["system", "user", "assistant"]
    content: str


class CompletionCallError(RuntimeError):
    def __init__(self, message: str, *, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


def _normalize_messages(messages: list[dict]) -> list[ChatCompletionMessage]:
    normalized: list[ChatCompletionMessage] = []
    for item in messages:
        if not isinstance(item, dict):
            continue
        role = str(item.get("role") or "").strip().lower()
        content = str(item.get("content") or "")
        if role not in {"system", "user", "assistant"}:
            continue
        normalized.append({"role": role, "content": content})
    return normalized


def _endpoint_url(*, base_url: str, path: str) -> str:
    return f"{base_url.rstrip('/')}/{path.lstrip('/')}"


async def _post_chat_completions(
    *,
    api_key: str,
    endpoint_url: str,
    model: str,
    messages: list[ChatCompletionMessage],
    max_tokens: int,
    temperature: float,
    timeout_s: float,
) -> dict:
    headers = {
        "Authorization": f"Bearer {api_key}",
        "Content-Type": "application/json",
    }
    payload = {
        "model": model,
        "messages": messages,
        "max_tokens": int(max_tokens),
        "temperature": float(temperature),
    }
    timeout = httpx.Timeout(timeout_s)
    async with httpx.AsyncClient(timeout=timeout) as client:
        response = await client.post(endpoint_url, headers=headers, json=payload)
    if response.status_code != 200:
        raise httpx.HTTPStatusError(
            f"chat/completions non-200: {response.status_code}",
            request=response.request,
            response=response,
        )
    return response.json()


def extract_message_content(data: dict) -> str:
    try:
        content = data["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError) as exc:
        raise CompletionCallError("missing choices[0].message.content") from exc
    if not isinstance(content, str) or not content.strip():
        raise CompletionCallError("empty model content")
    return content


def _status_of(exc: Exception) -> int | None:
    if isinstance(exc, httpx.HTTPStatusError):
        return int(exc.response.status_code)
    if isinstance(exc, CompletionCallError):
        return exc.status_code
    return None


async def call_chat_completions_text(
    *,
    api_key: str,
    base_url: str,
    path: str,
    model: str,
    messages: list[dict],
    max_tokens: int,
    temperature: float,
    timeout_s: float,
    max_attempts: int = 1,
) -> str:
    normalized = _normalize_messages(messages)
    if not normalized:
        normalized = [{"role": "user", "content": ""}]
    endpoint = _endpoint_url(base_url=base_url, path=path)

    attempts = max(1, int(max_attempts))
    delays = (0.2, 0.5)
    last_error: Exception | None = None
    for attempt in range(attempts):
        try:
            data = await _post_chat_completions(
                api_key=api_key,
                endpoint_url=endpoint,
                model=model,
                messages=normalized,
                max_tokens=max_tokens,
                temperature=temperature,
                timeout_s=timeout_s,
            )
            return extract_message_content(data)
        except (httpx.HTTPError, ValueError, CompletionCallError) as exc:
            last_error = exc
            logger.warning("chat completions attempt %s/%s failed: %s", attempt + 1, attempts, exc)
            if attempt >= attempts - 1:
                break
            await asyncio.sleep(delays[min(attempt, len(delays) - 1)])
    raise CompletionCallError(
        f"chat completions failed: {last_error}",
        status_code=_status_of(last_error) if last_error is not None else None,
    )
