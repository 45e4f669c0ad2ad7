"""Votes, comments, annotations and shared libraries.

These rows reference prompts by id only; deleting a prompt leaves them in place.
"""

from __future__ import annotations

import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from mpe.models.base import Base, new_id, utcnow


class PromptVote(Base):
    __tablename__ = "prompt_votes"
    __table_args__ = (UniqueConstraint("prompt_id", "user_id", name="uq_vote_prompt_user"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    prompt_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    user_id: Mapped[str] = mapped_column(String(255), nullable=False)
    vote_type: Mapped[str] = mapped_column(String(8), nullable=False)
    created_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    def __repr__(self) -> str:
        return f"<PromptVote(prompt_id={self.prompt_id!r}, user={self.user_id!r}, {self.vote_type})>"


class PromptComment(Base):
    __tablename__ = "prompt_comments"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    prompt_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    user_id: Mapped[str] = mapped_column(String(255), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    parent_comment_id: Mapped[str | None] = mapped_column(String(36), nullable=True, index=True)
    created_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    annotations: Mapped[list[PromptAnnotation]] = relationship(
        "PromptAnnotation",
        primaryjoin="foreign(PromptAnnotation.comment_id) == PromptComment.id",
        order_by="PromptAnnotation.created_at",
        viewonly=True,
    )

    def __repr__(self) -> str:
        return f"<PromptComment(id={self.id!r}, prompt_id={self.prompt_id!r})>"


class PromptAnnotation(Base):
    __tablename__ = "prompt_annotations"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    comment_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    start_position: Mapped[int] = mapped_column(Integer, nullable=False)
    end_position: Mapped[int] = mapped_column(Integer, nullable=False)
    annotation_type: Mapped[str] = mapped_column(String(16), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False, default="")
    created_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )


class SharedPromptLibrary(Base):
    __tablename__ = "shared_libraries"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    owner_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    is_public: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
    updated_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    collaborator_links: Mapped[list[LibraryCollaborator]] = relationship(
        "LibraryCollaborator",
        cascade="all, delete-orphan",
        order_by="LibraryCollaborator.added_at",
    )
    prompt_links: Mapped[list[LibraryPrompt]] = relationship(
        "LibraryPrompt",
        cascade="all, delete-orphan",
        order_by="LibraryPrompt.added_at",
    )

    @property
    def collaborators(self) -> list[str]:
        return [c.user_id for c in self.collaborator_links]

    @property
    def prompts(self) -> list[str]:
        return [p.prompt_id for p in self.prompt_links]

    def can_read(self, user_id: str | None) -> bool:
        return self.is_public or self.can_write(user_id)

    def can_write(self, user_id: str | None) -> bool:
        return user_id is not None and (
            user_id == self.owner_id or user_id in self.collaborators
        )

    def __repr__(self) -> str:
        return f"<SharedPromptLibrary(id={self.id!r}, name={self.name!r})>"


class LibraryCollaborator(Base):
    __tablename__ = "library_collaborators"

    library_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("shared_libraries.id", ondelete="CASCADE"), primary_key=True
    )
    user_id: Mapped[str] = mapped_column(String(255), primary_key=True)
    added_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )


class LibraryPrompt(Base):
    __tablename__ = "library_prompts"

    library_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("shared_libraries.id", ondelete="CASCADE"), primary_key=True
    )
    prompt_id: Mapped[str] = mapped_column(String(36), primary_key=True)
    added_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
