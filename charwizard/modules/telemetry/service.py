from __future__ import annotations

from collections import Counter
from threading import Lock


class _CreationTelemetryStore:
    def __init__(self) -> None:
        self._lock = Lock()
        self.completion_calls: Counter[str] = Counter()
        self.completion_failures: Counter[str] = Counter()
        self.fallback_messages: Counter[str] = Counter()
        self.quota_rejections: int = 0
        self.sessions_started: int = 0
        self.choices_accepted: int = 0
        self.characters_finished: int = 0

    def reset(self) -> None:
        with self._lock:
            self.completion_calls = Counter()
            self.completion_failures = Counter()
            self.fallback_messages = Counter()
            self.quota_rejections = 0
            self.sessions_started = 0
            self.choices_accepted = 0
            self.characters_finished = 0

    def record_completion(self, *, purpose: str, ok: bool) -> None:
        with self._lock:
            self.completion_calls[str(purpose)] += 1
            if not ok:
                self.completion_failures[str(purpose)] += 1

    def record_fallback(self, *, purpose: str) -> None:
        with self._lock:
            self.fallback_messages[str(purpose)] += 1

    def record_quota_rejection(self) -> None:
        with self._lock:
            self.quota_rejections += 1

    def record_session_started(self) -> None:
        with self._lock:
            self.sessions_started += 1

    def record_choice_accepted(self, *, finished: bool) -> None:
        with self._lock:
            self.choices_accepted += 1
            if finished:
                self.characters_finished += 1

    def summary(self) -> dict:
        with self._lock:
            total_calls = sum(self.completion_calls.values())
            total_failures = sum(self.completion_failures.values())
            failure_ratio = 0.0 if total_calls <= 0 else float(total_failures) / float(total_calls)
            return {
                "sessions_started": int(self.sessions_started),
                "choices_accepted": int(self.choices_accepted),
                "characters_finished": int(self.characters_finished),
                "completion_calls": dict(self.completion_calls),
                "completion_failures": dict(self.completion_failures),
                "completion_failure_ratio": round(failure_ratio, 4),
                "fallback_messages": dict(self.fallback_messages),
                "quota_rejections": int(self.quota_rejections),
            }


_creation_telemetry = _CreationTelemetryStore()


def reset_creation_telemetry() -> None:
    _creation_telemetry.reset()


def record_completion_call(*, purpose: str, ok: bool) -> None:
    _creation_telemetry.record_completion(purpose=purpose, ok=ok)


def record_fallback_message(*, purpose: str) -> None:
    _creation_telemetry.record_fallback(purpose=purpose)


def record_quota_rejection() -> None:
    _creation_telemetry.record_quota_rejection()


def record_session_started() -> None:
    _creation_telemetry.record_session_started()


def record_choice_accepted(*, finished: bool) -> None:
    _creation_telemetry.record_choice_accepted(finished=finished)


def get_creation_telemetry_summary() -> dict:
    return _creation_telemetry.summary()
