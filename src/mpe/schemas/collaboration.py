from __future__ import annotations

import datetime
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field, StrictStr, model_validator

VoteType = Literal["up", "down"]
AnnotationType = Literal["suggestion", "highlight", "concern"]

Position = Annotated[int, Field(ge=0, strict=True)]


class VoteCreate(BaseModel):
    prompt_id: str = Field(..., min_length=1)
    user_id: str = Field(..., min_length=1)
    vote_type: VoteType


class VoteOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    prompt_id: str
    user_id: str
    vote_type: VoteType
    created_at: datetime.datetime


class VoteSummary(BaseModel):
    up_votes: int = 0
    down_votes: int = 0
    score: int = 0


class CommentCreate(BaseModel):
    prompt_id: str = Field(..., min_length=1)
    user_id: StrictStr = Field(..., min_length=1)
    content: StrictStr = Field(..., min_length=1)
    parent_comment_id: str | None = None


class AnnotationCreate(BaseModel):
    comment_id: str = Field(..., min_length=1)
    start_position: Position
    end_position: Position
    annotation_type: AnnotationType
    content: str = ""

    @model_validator(mode="after")
    def _span_is_ordered(self) -> AnnotationCreate:
        if self.start_position > self.end_position:
            raise ValueError("start_position must not exceed end_position")
        return self


class AnnotationOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    comment_id: str
    start_position: int
    end_position: int
    annotation_type: AnnotationType
    content: str


class CommentOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    prompt_id: str
    user_id: str
    content: str
    created_at: datetime.datetime
    parent_comment_id: str | None = None
    annotations: list[AnnotationOut] = Field(default_factory=list)


class LibraryCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: str = ""
    owner_id: str = Field(..., min_length=1)
    is_public: bool = False


class LibraryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    description: str
    owner_id: str
    collaborators: list[str]
    prompts: list[str]
    is_public: bool
    created_at: datetime.datetime
    updated_at: datetime.datetime


class CollaborationSummary(BaseModel):
    vote_summary: VoteSummary
    comment_count: int
    annotation_count: int
    shared_libraries: list[str] = Field(default_factory=list)
