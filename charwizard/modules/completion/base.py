from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Literal

CompletionPurpose = Literal["choices", "reaction", "celebration"]


@dataclass(frozen=True, slots=True)
class CompletionOptions:
    max_output_tokens: int
    temperature: float
    purpose: CompletionPurpose = "choices"


class CompletionService(ABC):
    @abstractmethod
    def complete(
        self,
        prompt: str,
        options: CompletionOptions,
        *,
        system_prompt: str | None = None,
    ) -> str:
        """Return the generated text or raise CompletionServiceError."""
