from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from charwizard.db.session import get_db
from charwizard.modules.auth.deps import get_current_user_id
from charwizard.modules.characters.schemas import CharacterListResponse, CharacterOut
from charwizard.modules.characters.service import get_character, list_characters
from charwizard.modules.creation.errors import CreationNotFoundError

router = APIRouter(prefix="/api/v1", tags=["characters"])


@router.get("/characters", response_model=CharacterListResponse)
def list_characters_api(
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
) -> CharacterListResponse:
    return list_characters(db, user_id, limit=limit, offset=offset)


@router.get("/characters/{character_id}", response_model=CharacterOut)
def get_character_api(
    character_id: int,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
) -> CharacterOut:
    try:
        return get_character(db, user_id, character_id)
    except CreationNotFoundError as exc:
        raise HTTPException(status_code=404, detail={"code": "NOT_FOUND", "message": str(exc)}) from exc
