from __future__ import annotations

from datetime import date

import pytest
from sqlalchemy import select

from charwizard.db import session as db_session
from charwizard.db.models import Character, CreationSession
from charwizard.modules.creation.errors import MissingFieldError
from charwizard.modules.creation.fallback import celebration_fallback, reaction_fallback
from charwizard.modules.creation.service import CreationController
from charwizard.modules.completion.errors import CompletionServiceError
from charwizard.modules.fields.registry import UnknownFieldError, build_default_registry
from charwizard.modules.quota.service import QuotaEnforcer, QuotaExceededError, QuotaPolicy
from charwizard.modules.telemetry.service import get_creation_telemetry_summary
from tests.support.fakes import FOUR_OPTIONS, BrokenCompletion, ScriptedCompletion


def _controller(completion, *, limit: int = 200) -> CreationController:
    return CreationController(
        registry=build_default_registry(),
        quota=QuotaEnforcer(QuotaPolicy(daily_limit=limit), clock=lambda: date(2026, 3, 1)),
        completion=completion,
    )


def test_start_propose_accept_scenario() -> None:
    completion = ScriptedCompletion({"choices": [FOUR_OPTIONS], "reaction": ["ナイス！次は年齢だね"]})
    controller = _controller(completion)
    with db_session.SessionLocal() as db:
        started = controller.start(db, "1")
        assert started.current_field.key == "name"
        assert started.session.current_step == 0
        assert started.progress.completed_count == 0
        assert started.message

        proposal = controller.propose_choices(db, "1", "name", {})
        assert proposal.choices == ["A", "B", "C", "D"]
        assert proposal.comment == "ok"
        assert proposal.usage.used == 1

        accepted = controller.accept_choice(db, "1", "name", "Aria", {})
        assert accepted.next_field == "age"
        assert accepted.progress.completed_count == 1
        assert accepted.completed is False
        assert accepted.message == "ナイス！次は年齢だね"
        assert accepted.message_source == "completion"

        row = db.get(CreationSession, "1")
        assert row.session_data["current_field"] == "age"
        assert row.session_data["current_step"] == 1
        assert row.session_data["character_data"] == {"name": "Aria"}
        assert controller.quota.check_limit(db, "1").used == 2
    assert completion.purposes() == ["choices", "reaction"]


def test_propose_does_not_touch_session_and_slices_to_four() -> None:
    many = "\n".join(f"選択肢{i}: opt{i}" for i in range(1, 7))
    controller = _controller(ScriptedCompletion({"choices": [many]}))
    with db_session.SessionLocal() as db:
        proposal = controller.propose_choices(db, "1", "age", {"name": "Aria"})
        assert proposal.choices == ["opt1", "opt2", "opt3", "opt4"]
        assert proposal.progress.completed_count == 1
        assert db.get(CreationSession, "1") is None


def test_propose_unknown_field_makes_no_call() -> None:
    completion = ScriptedCompletion()
    controller = _controller(completion)
    with db_session.SessionLocal() as db:
        with pytest.raises(UnknownFieldError):
            controller.propose_choices(db, "1", "weapon", {})
    assert completion.calls == []


def test_propose_failure_records_no_usage() -> None:
    controller = _controller(BrokenCompletion())
    with db_session.SessionLocal() as db:
        with pytest.raises(CompletionServiceError):
            controller.propose_choices(db, "1", "name", {})
        assert controller.quota.check_limit(db, "1").used == 0
    assert get_creation_telemetry_summary()["completion_failures"] == {"choices": 1}


def test_quota_exhausted_blocks_start_and_propose() -> None:
    completion = ScriptedCompletion()
    controller = _controller(completion, limit=1)
    with db_session.SessionLocal() as db:
        controller.quota.record_usage(db, "1")
        with pytest.raises(QuotaExceededError):
            controller.start(db, "1")
        with pytest.raises(QuotaExceededError):
            controller.propose_choices(db, "1", "name", {})
    assert completion.calls == []


def test_accept_validates_inputs() -> None:
    controller = _controller(ScriptedCompletion())
    with db_session.SessionLocal() as db:
        with pytest.raises(MissingFieldError):
            controller.accept_choice(db, "1", None, "Aria", {})
        with pytest.raises(MissingFieldError):
            controller.accept_choice(db, "1", "name", "   ", {})
        with pytest.raises(UnknownFieldError):
            controller.accept_choice(db, "1", "weapon", "sword", {})
        assert db.get(CreationSession, "1") is None


def test_reaction_failure_falls_back_and_still_persists() -> None:
    completion = BrokenCompletion()
    controller = _controller(completion)
    with db_session.SessionLocal() as db:
        accepted = controller.accept_choice(db, "1", "name", "Aria", {})
        assert accepted.message == reaction_fallback("Aria", "年齢")
        assert accepted.message_source == "fallback"
        assert db.get(CreationSession, "1").session_data["character_data"] == {"name": "Aria"}
        assert controller.quota.check_limit(db, "1").used == 0
    assert completion.calls == 1


def test_exhausted_quota_during_accept_uses_fallback_without_calling() -> None:
    completion = ScriptedCompletion()
    controller = _controller(completion, limit=1)
    with db_session.SessionLocal() as db:
        controller.quota.record_usage(db, "1")
        accepted = controller.accept_choice(db, "1", "name", "Aria", {})
    assert accepted.message_source == "fallback"
    assert completion.calls == []
    assert get_creation_telemetry_summary()["fallback_messages"] == {"reaction": 1}


def test_accepting_all_fields_completes_on_the_last_one() -> None:
    completion = ScriptedCompletion({"celebration": ["おめでとう！"]}, default="いいね")
    controller = _controller(completion)
    registry = controller.registry
    draft: dict[str, str] = {}
    with db_session.SessionLocal() as db:
        controller.start(db, "1")
        for index, key in enumerate(registry.keys()):
            result = controller.accept_choice(db, "1", key, f"value-{key}", draft)
            draft = result.character_data
            if index < len(registry) - 1:
                assert result.completed is False
                assert result.character_id is None
            else:
                assert result.completed is True
                assert result.next_field is None
                assert result.message == "おめでとう！"
                assert result.character_id is not None

        characters = db.execute(select(Character)).scalars().all()
        assert len(characters) == 1
        assert characters[0].name == "value-name"
        assert characters[0].character_data == draft

        session = controller.get_session(db, "1")
        assert session.has_session is True
        assert session.progress.completed is True
        assert session.session.current_field is None
        assert session.session.current_step == 20
    assert completion.purposes().count("reaction") == 19
    assert completion.purposes()[-1] == "celebration"
    assert get_creation_telemetry_summary()["characters_finished"] == 1


def test_last_field_with_gaps_is_acknowledged_statically() -> None:
    completion = ScriptedCompletion({"celebration": [CompletionServiceError("down")]})
    controller = _controller(completion)
    registry = controller.registry
    draft = {key: "x" for key in registry.keys() if key not in {"name", "favorites"}}
    draft["name"] = " "
    with db_session.SessionLocal() as db:
        # name is blank, so finishing favorites leaves the draft incomplete
        partial = controller.accept_choice(db, "1", "favorites", "cats", draft)
        assert partial.completed is False
        assert partial.next_field is None
        assert partial.message_source == "static"
        assert "cats" in partial.message

        draft = dict(partial.character_data)
        draft.pop("name")
        done = controller.accept_choice(db, "1", "favorites", "dogs", {**draft, "name": ""})
        assert done.completed is False

        done = controller.accept_choice(db, "1", "name", "名無しさん候補", draft)
        assert done.completed is True
        assert done.message == celebration_fallback()
        assert done.message_source == "fallback"


def test_finished_character_name_is_trimmed() -> None:
    controller = _controller(ScriptedCompletion())
    registry = controller.registry
    draft = {key: "x" for key in registry.keys()}
    draft["name"] = ""
    with db_session.SessionLocal() as db:
        # re-accepting a non-name field while name is blank never completes
        result = controller.accept_choice(db, "1", "age", "17", draft)
        assert result.completed is False
        draft["name"] = "  x  "
        result = controller.accept_choice(db, "1", "age", "18", draft)
        assert result.completed is True
        assert db.get(Character, result.character_id).name == "x"


def test_accept_without_draft_uses_persisted_session() -> None:
    controller = _controller(ScriptedCompletion())
    with db_session.SessionLocal() as db:
        controller.accept_choice(db, "1", "name", "Aria", {})
        result = controller.accept_choice(db, "1", "age", "17", None)
        assert result.character_data == {"name": "Aria", "age": "17"}
        assert result.progress.completed_count == 2


def test_start_overwrites_existing_session() -> None:
    controller = _controller(ScriptedCompletion())
    with db_session.SessionLocal() as db:
        controller.accept_choice(db, "1", "name", "Aria", {})
        started = controller.start(db, "1")
        assert started.session.character_data == {}
        assert started.session.current_field == "name"
        assert db.execute(select(CreationSession)).scalars().all()[0].session_data["current_step"] == 0


def test_reset_is_idempotent() -> None:
    controller = _controller(ScriptedCompletion())
    with db_session.SessionLocal() as db:
        controller.start(db, "1")
        first = controller.reset_session(db, "1")
        second = controller.reset_session(db, "1")
        assert first.success and second.success
        session = controller.get_session(db, "1")
    assert session.has_session is False
    assert session.message
