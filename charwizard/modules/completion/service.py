from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import dataclass

from charwizard.config import settings
from charwizard.modules.completion.base import CompletionOptions, CompletionService
from charwizard.modules.completion.client import CompletionCallError, call_chat_completions_text
from charwizard.modules.completion.errors import CompletionServiceError

logger = logging.getLogger(__name__)

CHAT_COMPLETIONS_PATH = "/chat/completions"

_TARGET_LABEL_RE = re.compile(r"【今回決める項目】\s*(?P<label>[^（(\n]+)")

_FAKE_ARCHETYPES = ("王道の", "もうひとつの王道の", "意外性のある", "あなたらしい")


@dataclass(frozen=True)
class _CompletionChannelConfig:
    api_key: str
    base_url: str
    path: str
    model: str
    timeout_s: float
    max_attempts: int


class CompletionBoundary(CompletionService):
    """Chat-completions backed text generation with a deterministic offline mode."""

    def provider_trace_label(self) -> str:
        return "real" if self._is_real_mode() else "fake"

    def complete(
        self,
        prompt: str,
        options: CompletionOptions,
        *,
        system_prompt: str | None = None,
    ) -> str:
        if not self._is_real_mode():
            return self._fake_text(prompt=prompt, options=options)

        channel = self._resolve_channel()
        messages: list[dict] = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})
        try:
            text = asyncio.run(
                call_chat_completions_text(
                    api_key=channel.api_key,
                    base_url=channel.base_url,
                    path=channel.path,
                    model=channel.model,
                    messages=messages,
                    max_tokens=options.max_output_tokens,
                    temperature=options.temperature,
                    timeout_s=channel.timeout_s,
                    max_attempts=channel.max_attempts,
                )
            )
        except CompletionCallError as exc:
            logger.warning("completion failed purpose=%s status=%s", options.purpose, exc.status_code)
            raise CompletionServiceError(str(exc), upstream_status=exc.status_code) from exc
        return text.strip()

    @staticmethod
    def _clean(value: str | None) -> str:
        return str(value or "").strip()

    def _resolve_channel(self) -> _CompletionChannelConfig:
        return _CompletionChannelConfig(
            api_key=self._clean(settings.llm_api_key),
            base_url=self._clean(settings.llm_base_url),
            path=CHAT_COMPLETIONS_PATH,
            model=self._clean(settings.llm_model),
            timeout_s=float(settings.llm_timeout_s),
            max_attempts=max(1, int(settings.llm_max_attempts)),
        )

    @staticmethod
    def _is_real_mode() -> bool:
        return bool(str(settings.llm_api_key or "").strip())

    @staticmethod
    def _fake_text(*, prompt: str, options: CompletionOptions) -> str:
        if options.purpose == "choices":
            match = _TARGET_LABEL_RE.search(prompt or "")
            label = match.group("label").strip() if match else "設定"
            lines = [f"選択肢{index}: {prefix}{label}案" for index, prefix in enumerate(_FAKE_ARCHETYPES, start=1)]
            lines.append(f"コメント: {label}の候補を4つ用意しました！気になるものを選んでね✨")
            return "\n".join(lines)
        if options.purpose == "celebration":
            return "🎉 キャラクターが完成しました！それぞれの設定が響き合う素敵な子になりましたね✨"
        return "いい選択ですね✨ 次の項目も一緒に決めていきましょう！"


_completion_boundary: CompletionBoundary | None = None


def get_completion_boundary() -> CompletionBoundary:
    global _completion_boundary
    if _completion_boundary is None:
        _completion_boundary = CompletionBoundary()
    return _completion_boundary
