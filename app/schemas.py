from datetime import datetime

from pydantic import BaseModel, Field


class CreateRequestBody(BaseModel):
    request_number: str = ''
    class_level: str = ''
    textbook_types: list[str] = Field(default_factory=list)
    email: str | None = None
    full_name: str | None = None
    created_at: datetime | None = None


class UpdateRequestBody(BaseModel):
    id: int
    request_number: str | None = None
    class_level: str = ''
    textbook_types: list[str] = Field(default_factory=list)
    email: str | None = None
    full_name: str | None = None
    created_at: datetime | None = None


class DeleteRequestBody(BaseModel):
    id: int


class SetProcessedBody(BaseModel):
    ids: list[int] = Field(default_factory=list)
    is_processed: bool


class UserAccessBody(BaseModel):
    user_id: int
    textbook_ids: list[int] = Field(default_factory=list)
    crossword_ids: list[int] = Field(default_factory=list)
