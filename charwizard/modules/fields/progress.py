from __future__ import annotations

import math
from collections.abc import Mapping
from dataclasses import dataclass

from charwizard.modules.fields.registry import FieldRegistry


@dataclass(frozen=True, slots=True)
class ProgressReport:
    completed_count: int
    total_count: int
    progress_percent: int
    remaining_field_keys: tuple[str, ...]

    @property
    def completed(self) -> bool:
        return not self.remaining_field_keys

    def to_dict(self) -> dict:
        return {
            "completed": self.completed,
            "remaining": list(self.remaining_field_keys),
            "progress": self.progress_percent,
            "completed_count": self.completed_count,
            "total_count": self.total_count,
        }


def is_answered(value: object) -> bool:
    return isinstance(value, str) and bool(value.strip())


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def evaluate_progress(registry: FieldRegistry, draft: Mapping[str, object] | None) -> ProgressReport:
    values = draft if isinstance(draft, Mapping) else {}
    remaining = tuple(key for key in registry.keys() if not is_answered(values.get(key)))
    total = len(registry)
    completed = total - len(remaining)
    return ProgressReport(
        completed_count=completed,
        total_count=total,
        progress_percent=_round_half_up(100 * completed / total),
        remaining_field_keys=remaining,
    )
