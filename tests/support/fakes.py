from __future__ import annotations

from charwizard.modules.completion.base import CompletionOptions, CompletionService
from charwizard.modules.completion.errors import CompletionServiceError


class ScriptedCompletion(CompletionService):
    """Returns queued outputs per purpose; an exception instance in the queue is raised."""

    def __init__(self, scripts: dict[str, list[object]] | None = None, *, default: str = "ok") -> None:
        self.scripts = {key: list(value) for key, value in (scripts or {}).items()}
        self.default = default
        self.calls: list[dict] = []

    def complete(self, prompt: str, options: CompletionOptions, *, system_prompt: str | None = None) -> str:
        self.calls.append({"prompt": prompt, "options": options, "system_prompt": system_prompt})
        queue = self.scripts.get(options.purpose) or []
        if not queue:
            return self.default
        outcome = queue.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return str(outcome)

    def purposes(self) -> list[str]:
        return [call["options"].purpose for call in self.calls]


class BrokenCompletion(CompletionService):
    def __init__(self, *, upstream_status: int | None = None) -> None:
        self.upstream_status = upstream_status
        self.calls = 0

    def complete(self, prompt: str, options: CompletionOptions, *, system_prompt: str | None = None) -> str:
        self.calls += 1
        raise CompletionServiceError("upstream down", upstream_status=self.upstream_status)


FOUR_OPTIONS = "選択肢1: A\n選択肢2: B\n選択肢3: C\n選択肢4: D\nコメント: ok"
