from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from charwizard.db.session import get_db
from charwizard.modules.auth.deps import get_current_user_id
from charwizard.modules.completion.errors import CompletionServiceError
from charwizard.modules.creation.errors import MissingFieldError
from charwizard.modules.creation.schemas import (
    ChoicesRequest,
    ChoicesResponse,
    FieldCatalogResponse,
    ResetSessionResponse,
    SelectChoiceRequest,
    SelectChoiceResponse,
    SessionResponse,
    StartCreationResponse,
    UsageOut,
    UsageResponse,
)
from charwizard.modules.creation.service import get_creation_controller
from charwizard.modules.fields.registry import UnknownFieldError
from charwizard.modules.quota.service import QuotaExceededError

router = APIRouter(prefix="/api/v1/chat", tags=["creation"])

_UPSTREAM_RATE_LIMIT_MESSAGE = "AIサービスの使用制限に達しました。しばらく時間をおいてからお試しください。"
_COMPLETION_UNAVAILABLE_MESSAGE = "選択肢の生成中にエラーが発生しました。"


def _quota_exceeded(exc: QuotaExceededError) -> HTTPException:
    return HTTPException(
        status_code=429,
        detail={"code": "QUOTA_EXCEEDED", "message": str(exc), "usage": exc.usage.to_dict()},
    )


def _completion_failed(exc: CompletionServiceError) -> HTTPException:
    if exc.rate_limited:
        return HTTPException(
            status_code=429,
            detail={"code": "UPSTREAM_RATE_LIMITED", "message": _UPSTREAM_RATE_LIMIT_MESSAGE},
        )
    return HTTPException(
        status_code=503,
        detail={"code": "COMPLETION_UNAVAILABLE", "message": _COMPLETION_UNAVAILABLE_MESSAGE, "details": str(exc)},
    )


def _unknown_field(exc: UnknownFieldError) -> HTTPException:
    return HTTPException(status_code=422, detail={"code": "UNKNOWN_FIELD", "message": str(exc), "field": exc.key})


@router.post("/start-character-creation", response_model=StartCreationResponse)
def start_character_creation(
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
) -> StartCreationResponse:
    try:
        return get_creation_controller().start(db, user_id)
    except QuotaExceededError as exc:
        raise _quota_exceeded(exc) from exc


@router.post("/get-choices", response_model=ChoicesResponse)
def get_choices(
    payload: ChoicesRequest,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
) -> ChoicesResponse:
    try:
        return get_creation_controller().propose_choices(db, user_id, payload.current_field, payload.character_data)
    except UnknownFieldError as exc:
        raise _unknown_field(exc) from exc
    except QuotaExceededError as exc:
        raise _quota_exceeded(exc) from exc
    except CompletionServiceError as exc:
        raise _completion_failed(exc) from exc


@router.post("/select-choice", response_model=SelectChoiceResponse)
def select_choice(
    payload: SelectChoiceRequest,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
) -> SelectChoiceResponse:
    try:
        return get_creation_controller().accept_choice(
            db,
            user_id,
            payload.current_field,
            payload.selected_choice,
            payload.character_data,
        )
    except MissingFieldError as exc:
        raise HTTPException(status_code=400, detail={"code": "MISSING_FIELD", "message": str(exc)}) from exc
    except UnknownFieldError as exc:
        raise _unknown_field(exc) from exc


@router.get("/session", response_model=SessionResponse)
def get_session(
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
) -> SessionResponse:
    return get_creation_controller().get_session(db, user_id)


@router.delete("/session", response_model=ResetSessionResponse)
def reset_session(
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
) -> ResetSessionResponse:
    return get_creation_controller().reset_session(db, user_id)


@router.get("/fields", response_model=FieldCatalogResponse)
def list_fields() -> FieldCatalogResponse:
    registry = get_creation_controller().registry
    return FieldCatalogResponse.model_validate({"total": len(registry), "categories": registry.catalog()})


@router.get("/usage", response_model=UsageResponse)
def get_usage(
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
) -> UsageResponse:
    quota = get_creation_controller().quota
    usage = quota.check_limit(db, user_id)
    return UsageResponse(usage_date=quota.today().isoformat(), usage=UsageOut.model_validate(usage.to_dict()))
