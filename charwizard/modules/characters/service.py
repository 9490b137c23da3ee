from __future__ import annotations

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from charwizard.db.models import Character
from charwizard.modules.characters.schemas import CharacterListResponse, CharacterOut
from charwizard.modules.creation.errors import CreationNotFoundError


def _character_out(row: Character) -> CharacterOut:
    return CharacterOut(
        id=row.id,
        name=row.name,
        character_data=dict(row.character_data or {}),
        created_at=row.created_at,
    )


def list_characters(db: Session, user_id: str, *, limit: int = 50, offset: int = 0) -> CharacterListResponse:
    total = db.execute(select(func.count()).select_from(Character).where(Character.user_id == user_id)).scalar_one()
    rows = (
        db.execute(
            select(Character)
            .where(Character.user_id == user_id)
            .order_by(Character.created_at.desc(), Character.id.desc())
            .limit(limit)
            .offset(offset)
        )
        .scalars()
        .all()
    )
    return CharacterListResponse(total=int(total), characters=[_character_out(row) for row in rows])


def get_character(db: Session, user_id: str, character_id: int) -> CharacterOut:
    row = db.get(Character, character_id)
    # Other users' characters are reported as missing.
    if row is None or row.user_id != user_id:
        raise CreationNotFoundError(f"character {character_id} not found")
    return _character_out(row)
