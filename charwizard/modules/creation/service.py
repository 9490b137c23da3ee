from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from datetime import datetime
from typing import Literal

from sqlalchemy import delete
from sqlalchemy.orm import Session

from charwizard.config import settings
from charwizard.db.models import Character, CreationSession
from charwizard.modules.completion.base import CompletionOptions, CompletionPurpose, CompletionService
from charwizard.modules.completion.errors import CompletionServiceError
from charwizard.modules.completion.service import get_completion_boundary
from charwizard.modules.creation.errors import MissingFieldError
from charwizard.modules.creation.fallback import (
    NO_SESSION_MESSAGE,
    RESET_MESSAGE,
    UNNAMED_CHARACTER,
    WELCOME_MESSAGE,
    celebration_fallback,
    reaction_fallback,
    static_acknowledgement,
)
from charwizard.modules.creation.parser import parse_choice_response
from charwizard.modules.creation.prompts import (
    CHOICE_SYSTEM_PROMPT,
    build_celebration_prompt,
    build_choice_prompt,
    build_reaction_prompt,
)
from charwizard.modules.creation.schemas import (
    ChoicesResponse,
    CreationSessionOut,
    FieldOut,
    ProgressOut,
    ResetSessionResponse,
    SelectChoiceResponse,
    SessionResponse,
    StartCreationResponse,
    UsageOut,
)
from charwizard.modules.fields.progress import ProgressReport, evaluate_progress
from charwizard.modules.fields.registry import FieldDefinition, FieldRegistry, build_default_registry
from charwizard.modules.quota.service import QuotaEnforcer, QuotaExceededError, QuotaPolicy, UsageInfo
from charwizard.modules.telemetry.service import (
    record_choice_accepted,
    record_completion_call,
    record_fallback_message,
    record_session_started,
)
from charwizard.utils.time import isoformat_utc, utc_now_naive

logger = logging.getLogger(__name__)

MessageSource = Literal["completion", "fallback", "static"]


def _field_out(field: FieldDefinition | None) -> FieldOut | None:
    if field is None:
        return None
    return FieldOut.model_validate(field.to_dict())


def _progress_out(report: ProgressReport) -> ProgressOut:
    return ProgressOut.model_validate(report.to_dict())


def _usage_out(usage: UsageInfo) -> UsageOut:
    return UsageOut.model_validate(usage.to_dict())


def _clean_draft(draft: Mapping[str, object] | None) -> dict[str, str]:
    if not isinstance(draft, Mapping):
        return {}
    return {str(key): str(value) for key, value in draft.items() if value is not None}


def _session_draft(row: CreationSession | None) -> dict[str, str]:
    if row is None or not isinstance(row.session_data, dict):
        return {}
    return _clean_draft(row.session_data.get("character_data"))


class CreationController:
    """Drives the per-user character creation wizard over the field registry.

    Every completion call is gated by the quota enforcer and recorded only when it
    succeeds. Choice proposals surface completion failures; the messages produced
    while accepting a choice degrade to fixed fallback text instead.
    """

    def __init__(
        self,
        registry: FieldRegistry,
        quota: QuotaEnforcer,
        completion: CompletionService,
        *,
        clock: Callable[[], datetime] = utc_now_naive,
    ):
        self.registry = registry
        self.quota = quota
        self.completion = completion
        self._clock = clock

    def start(self, db: Session, user_id: str) -> StartCreationResponse:
        usage = self.quota.ensure_allowed(db, user_id)
        first = self.registry.first_field()
        row = self._write_session(db, user_id, draft={}, current_field_key=first.key, step_index=0)
        db.commit()
        db.refresh(row)
        record_session_started()
        logger.info("creation session started user=%s", user_id)
        return StartCreationResponse(
            message=WELCOME_MESSAGE,
            session=self._session_out(row),
            current_field=_field_out(first),
            progress=_progress_out(evaluate_progress(self.registry, {})),
            usage=_usage_out(usage),
        )

    def propose_choices(
        self,
        db: Session,
        user_id: str,
        field_key: str,
        draft: Mapping[str, object] | None,
    ) -> ChoicesResponse:
        field = self.registry.field_by_key(field_key)
        values = _clean_draft(draft)
        self.quota.ensure_allowed(db, user_id)

        prompt = build_choice_prompt(self.registry, field.key, values)
        raw = self._complete(
            prompt,
            CompletionOptions(
                max_output_tokens=settings.choice_max_tokens,
                temperature=settings.choice_temperature,
                purpose="choices",
            ),
            system_prompt=CHOICE_SYSTEM_PROMPT,
        )
        self.quota.record_usage(db, user_id)

        proposal = parse_choice_response(raw)
        limit = max(1, int(settings.choice_option_count))
        if len(proposal.options) < limit:
            logger.info("choice proposal short field=%s options=%s", field.key, len(proposal.options))
        return ChoicesResponse(
            current_field=field.key,
            field=_field_out(field),
            choices=proposal.options[:limit],
            comment=proposal.comment,
            progress=_progress_out(evaluate_progress(self.registry, values)),
            usage=_usage_out(self.quota.check_limit(db, user_id)),
        )

    def accept_choice(
        self,
        db: Session,
        user_id: str,
        field_key: str | None,
        chosen_value: str | None,
        draft: Mapping[str, object] | None,
    ) -> SelectChoiceResponse:
        if not str(field_key or "").strip() or not str(chosen_value or "").strip():
            raise MissingFieldError("選択項目と選択肢が必要です")
        field = self.registry.field_by_key(str(field_key))
        chosen = str(chosen_value)

        row = db.get(CreationSession, user_id)
        base = _clean_draft(draft) if draft is not None else _session_draft(row)
        updated = {**base, field.key: chosen}
        next_field = self.registry.next_field_after(field.key)
        progress = evaluate_progress(self.registry, updated)

        row = self._write_session(
            db,
            user_id,
            draft=updated,
            current_field_key=next_field.key if next_field else None,
            step_index=self.registry.position(field.key) + 1,
            row=row,
        )
        character: Character | None = None
        if progress.completed:
            character = Character(
                user_id=user_id,
                name=str(updated.get("name") or "").strip() or UNNAMED_CHARACTER,
                character_data=dict(updated),
                created_at=self._clock(),
            )
            db.add(character)
        db.commit()
        record_choice_accepted(finished=character is not None)

        if progress.completed:
            message, source = self._generate_message(
                db,
                user_id,
                purpose="celebration",
                prompt=build_celebration_prompt(self.registry, updated, max_chars=settings.reaction_max_chars),
                options=CompletionOptions(
                    max_output_tokens=settings.celebration_max_tokens,
                    temperature=settings.celebration_temperature,
                    purpose="celebration",
                ),
                fallback=celebration_fallback(),
            )
            logger.info("character finished user=%s character_id=%s", user_id, character.id if character else None)
        elif next_field is not None:
            message, source = self._generate_message(
                db,
                user_id,
                purpose="reaction",
                prompt=build_reaction_prompt(
                    self.registry,
                    field.label,
                    chosen,
                    next_field.label,
                    updated,
                    max_chars=settings.reaction_max_chars,
                ),
                options=CompletionOptions(
                    max_output_tokens=settings.reaction_max_tokens,
                    temperature=settings.reaction_temperature,
                    purpose="reaction",
                ),
                fallback=reaction_fallback(chosen, next_field.label),
            )
        else:
            # Last field accepted while earlier ones are still blank.
            message, source = static_acknowledgement(chosen), "static"

        return SelectChoiceResponse(
            message=message,
            message_source=source,
            character_data=updated,
            next_field=next_field.key if next_field else None,
            next_field_info=_field_out(next_field),
            progress=_progress_out(progress),
            completed=progress.completed,
            character_id=character.id if character is not None else None,
        )

    def get_session(self, db: Session, user_id: str) -> SessionResponse:
        row = db.get(CreationSession, user_id)
        if row is None:
            return SessionResponse(has_session=False, message=NO_SESSION_MESSAGE)
        return SessionResponse(
            has_session=True,
            session=self._session_out(row),
            progress=_progress_out(evaluate_progress(self.registry, _session_draft(row))),
        )

    def reset_session(self, db: Session, user_id: str) -> ResetSessionResponse:
        result = db.execute(delete(CreationSession).where(CreationSession.user_id == user_id))
        db.commit()
        logger.info("creation session reset user=%s deleted=%s", user_id, result.rowcount)
        return ResetSessionResponse(message=RESET_MESSAGE)

    def _write_session(
        self,
        db: Session,
        user_id: str,
        *,
        draft: dict[str, str],
        current_field_key: str | None,
        step_index: int,
        row: CreationSession | None = None,
    ) -> CreationSession:
        now = self._clock()
        session_data = {
            "character_data": dict(draft),
            "current_field": current_field_key,
            "current_step": int(step_index),
            "last_updated": isoformat_utc(now),
        }
        if row is None:
            row = db.get(CreationSession, user_id)
        if row is None:
            row = CreationSession(user_id=user_id, session_data=session_data, created_at=now, updated_at=now)
            db.add(row)
        else:
            if step_index == 0:
                row.created_at = now
            row.session_data = session_data
            row.updated_at = now
        db.flush()
        return row

    @staticmethod
    def _session_out(row: CreationSession) -> CreationSessionOut:
        data = row.session_data if isinstance(row.session_data, dict) else {}
        return CreationSessionOut(
            user_id=row.user_id,
            character_data=_clean_draft(data.get("character_data")),
            current_field=data.get("current_field"),
            current_step=int(data.get("current_step") or 0),
            created_at=row.created_at,
            updated_at=row.updated_at,
        )

    def _complete(self, prompt: str, options: CompletionOptions, *, system_prompt: str | None = None) -> str:
        try:
            text = self.completion.complete(prompt, options, system_prompt=system_prompt)
        except CompletionServiceError:
            record_completion_call(purpose=options.purpose, ok=False)
            raise
        record_completion_call(purpose=options.purpose, ok=True)
        return text

    def _generate_message(
        self,
        db: Session,
        user_id: str,
        *,
        purpose: CompletionPurpose,
        prompt: str,
        options: CompletionOptions,
        fallback: str,
    ) -> tuple[str, MessageSource]:
        try:
            self.quota.ensure_allowed(db, user_id)
        except QuotaExceededError:
            record_fallback_message(purpose=purpose)
            return fallback, "fallback"

        try:
            text = self._complete(prompt, options)
        except CompletionServiceError as exc:
            logger.warning("%s message fell back user=%s: %s", purpose, user_id, exc)
            record_fallback_message(purpose=purpose)
            return fallback, "fallback"

        self.quota.record_usage(db, user_id)
        cleaned = str(text or "").strip()
        if not cleaned:
            record_fallback_message(purpose=purpose)
            return fallback, "fallback"
        return cleaned, "completion"


_creation_controller: CreationController | None = None


def build_creation_controller(completion: CompletionService | None = None) -> CreationController:
    return CreationController(
        registry=build_default_registry(),
        quota=QuotaEnforcer(
            QuotaPolicy(
                daily_limit=int(settings.daily_completion_limit),
                timezone=settings.quota_timezone,
            )
        ),
        completion=completion or get_completion_boundary(),
    )


def get_creation_controller() -> CreationController:
    global _creation_controller
    if _creation_controller is None:
        _creation_controller = build_creation_controller()
    return _creation_controller
