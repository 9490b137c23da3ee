from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class FieldOut(BaseModel):
    key: str
    label: str
    category: str
    order: int
    type: str = "text"
    options: list[str] = Field(default_factory=list)


class FieldCategoryOut(BaseModel):
    category: str
    label: str
    fields: list[FieldOut]


class FieldCatalogResponse(BaseModel):
    total: int
    categories: list[FieldCategoryOut]


class ProgressOut(BaseModel):
    completed: bool
    remaining: list[str]
    progress: int
    completed_count: int
    total_count: int


class UsageOut(BaseModel):
    allowed: bool
    used: int
    limit: int
    remaining: int


class CreationSessionOut(BaseModel):
    user_id: str
    character_data: dict[str, str] = Field(default_factory=dict)
    current_field: str | None = None
    current_step: int = 0
    created_at: datetime
    updated_at: datetime


class StartCreationResponse(BaseModel):
    success: bool = True
    message: str
    session: CreationSessionOut
    current_field: FieldOut
    progress: ProgressOut
    usage: UsageOut


class ChoicesRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    current_field: str = ""
    character_data: dict[str, str] = Field(default_factory=dict)


class ChoicesResponse(BaseModel):
    success: bool = True
    current_field: str
    field: FieldOut
    choices: list[str]
    comment: str = ""
    progress: ProgressOut
    usage: UsageOut


class SelectChoiceRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    current_field: str | None = None
    selected_choice: str | None = None
    character_data: dict[str, str] | None = None


class SelectChoiceResponse(BaseModel):
    success: bool = True
    message: str
    message_source: Literal["completion", "fallback", "static"]
    character_data: dict[str, str]
    next_field: str | None = None
    next_field_info: FieldOut | None = None
    progress: ProgressOut
    completed: bool
    character_id: int | None = None


class SessionResponse(BaseModel):
    success: bool = True
    has_session: bool
    message: str | None = None
    session: CreationSessionOut | None = None
    progress: ProgressOut | None = None


class ResetSessionResponse(BaseModel):
    success: bool = True
    message: str


class UsageResponse(BaseModel):
    success: bool = True
    usage_date: str
    usage: UsageOut
