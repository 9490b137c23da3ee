from datetime import datetime

from pydantic import BaseModel, Field


class CharacterOut(BaseModel):
    id: int
    name: str
    character_data: dict[str, str] = Field(default_factory=dict)
    created_at: datetime


class CharacterListResponse(BaseModel):
    total: int
    characters: list[CharacterOut]
