from __future__ import annotations

import datetime
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Table,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship, validates

from mpe.models.base import Base, new_id, utcnow

prompt_tags = Table(
    "prompt_tags",
    Base.metadata,
    Column(
        "prompt_id",
        String(36),
        ForeignKey("prompts.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    Column("tag_id", Integer, ForeignKey("tags.id", ondelete="CASCADE"), primary_key=True),
)


class Prompt(Base):
    __tablename__ = "prompts"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    category: Mapped[str] = mapped_column(String(64), nullable=False, default="general")
    domain: Mapped[str] = mapped_column(String(128), nullable=False, default="general")
    current_version: Mapped[str] = mapped_column(String(32), nullable=False)
    ethical_tags: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    bias_detection_result: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    created_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
    updated_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    versions: Mapped[list[PromptVersion]] = relationship(
        "PromptVersion",
        back_populates="prompt",
        cascade="all, delete-orphan",
        order_by="PromptVersion.position",
    )
    tags: Mapped[list[Tag]] = relationship(
        "Tag",
        secondary=prompt_tags,
        back_populates="prompts",
        order_by="Tag.name",
    )

    @property
    def tag_names(self) -> list[str]:
        return [t.name for t in self.tags]

    def find_version(self, version: str) -> PromptVersion | None:
        for v in self.versions:
            if v.version == version:
                return v
        return None

    @property
    def current(self) -> PromptVersion:
        found = self.find_version(self.current_version)
        if found is None:
            raise LookupError(
                f"Prompt {self.id!r} points at missing version {self.current_version!r}."
            )
        return found

    def __repr__(self) -> str:
        return f"<Prompt(id={self.id!r}, name={self.name!r}, v={self.current_version})>"


class PromptVersion(Base):
    __tablename__ = "prompt_versions"
    __table_args__ = (
        UniqueConstraint("prompt_id", "version", name="uq_prompt_version"),
        UniqueConstraint("prompt_id", "position", name="uq_prompt_version_position"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    prompt_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("prompts.id", ondelete="CASCADE"), nullable=False
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    version: Mapped[str] = mapped_column(String(32), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    content_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    expected_outcome: Mapped[str] = mapped_column(Text, nullable=False, default="")
    rationale: Mapped[str] = mapped_column(Text, nullable=False, default="")
    author: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    created_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
    last_modified: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    prompt: Mapped[Prompt] = relationship("Prompt", back_populates="versions")
    llm_call_logs: Mapped[list[LLMCallLog]] = relationship(
        "LLMCallLog",
        back_populates="prompt_version",
        cascade="all, delete-orphan",
        order_by="LLMCallLog.timestamp",
    )

    @validates("version", "content")
    def _append_only(self, key: str, value: str) -> str:
        # Snapshots are immutable once written.
        if getattr(self, key, None) is not None:
            raise AttributeError(f"PromptVersion.{key} cannot be changed once set.")
        return value

    def __repr__(self) -> str:
        return f"<PromptVersion(prompt_id={self.prompt_id!r}, v={self.version})>"


class LLMCallLog(Base):
    __tablename__ = "llm_call_logs"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    version_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("prompt_versions.id", ondelete="CASCADE"), nullable=False
    )
    timestamp: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
    input: Mapped[str] = mapped_column(Text, nullable=False)
    output: Mapped[str] = mapped_column(Text, nullable=False, default="")
    cost: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    token_usage: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    success: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    error: Mapped[str | None] = mapped_column(Text, nullable=True)

    prompt_version: Mapped[PromptVersion] = relationship(
        "PromptVersion", back_populates="llm_call_logs"
    )


class Tag(Base):
    __tablename__ = "tags"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)

    prompts: Mapped[list[Prompt]] = relationship(
        "Prompt",
        secondary=prompt_tags,
        back_populates="tags",
    )

    def __repr__(self) -> str:
        return f"<Tag(name={self.name!r})>"
