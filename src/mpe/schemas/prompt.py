from __future__ import annotations

import datetime
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict, Field, StrictStr, field_validator

from mpe.schemas.responsible_ai import BiasDetectionResult

if TYPE_CHECKING:
    from mpe.models.prompt import Prompt, PromptVersion


class VersionMetadata(BaseModel):
    expected_outcome: str = Field(default="", description="What the prompt should produce")
    rationale: str = Field(default="", description="Why this version exists")
    author: str = Field(default="", description="Who wrote this version")


class PromptCreate(BaseModel):
    name: str = Field(default="Untitled Prompt", max_length=255)
    description: str = ""
    content: StrictStr = Field(default="", description="Prompt content text")
    tags: list[str] = Field(default_factory=list, description="Optional tags")
    category: str = Field(default="general", min_length=1, max_length=64)
    domain: str = Field(default="general", min_length=1, max_length=128)
    metadata: VersionMetadata = Field(default_factory=VersionMetadata)


class PromptVersionCreate(BaseModel):
    prompt_id: str = Field(..., min_length=1)
    content: StrictStr = Field(..., description="Prompt content text")
    metadata: VersionMetadata = Field(default_factory=VersionMetadata)


class PromptMetadataUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = None
    category: str | None = Field(default=None, min_length=1, max_length=64)
    domain: str | None = Field(default=None, min_length=1, max_length=128)


class LLMCallLogCreate(BaseModel):
    input: StrictStr
    output: str = ""
    cost: float = Field(default=0.0, ge=0)
    token_usage: int = Field(default=0, ge=0)
    success: bool = True
    error: str | None = None


class LLMCallLogOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    timestamp: datetime.datetime
    prompt_version_id: str = Field(validation_alias="version_id")
    input: str
    output: str
    cost: float
    token_usage: int
    success: bool
    error: str | None


class VersionMetadataOut(VersionMetadata):
    created_at: datetime.datetime
    last_modified: datetime.datetime
    llm_call_logs: list[LLMCallLogOut] = Field(default_factory=list)


class PromptVersionOut(BaseModel):
    version: str
    content: str
    content_hash: str
    metadata: VersionMetadataOut

    @classmethod
    def from_model(cls, version: PromptVersion) -> PromptVersionOut:
        return cls(
            version=version.version,
            content=version.content,
            content_hash=version.content_hash,
            metadata=VersionMetadataOut(
                expected_outcome=version.expected_outcome,
                rationale=version.rationale,
                author=version.author,
                created_at=version.created_at,
                last_modified=version.last_modified,
                llm_call_logs=[
                    LLMCallLogOut.model_validate(log) for log in version.llm_call_logs
                ],
            ),
        )


class PromptOut(BaseModel):
    id: str
    name: str
    description: str
    category: str
    domain: str
    tags: list[str] = Field(default_factory=list)
    current_version: str
    content: str
    versions: list[PromptVersionOut]
    ethical_tags: list[str] = Field(default_factory=list)
    bias_detection_result: BiasDetectionResult | None = None
    created_at: datetime.datetime
    updated_at: datetime.datetime

    @classmethod
    def from_model(cls, prompt: Prompt) -> PromptOut:
        bias: dict[str, Any] | None = prompt.bias_detection_result
        return cls(
            id=prompt.id,
            name=prompt.name,
            description=prompt.description,
            category=prompt.category,
            domain=prompt.domain,
            tags=prompt.tag_names,
            current_version=prompt.current_version,
            content=prompt.current.content,
            versions=[PromptVersionOut.from_model(v) for v in prompt.versions],
            ethical_tags=list(prompt.ethical_tags or []),
            bias_detection_result=BiasDetectionResult.model_validate(bias) if bias else None,
            created_at=prompt.created_at,
            updated_at=prompt.updated_at,
        )


MAX_IMPORT_PROMPTS = 1000
MAX_IMPORT_NAME = 200
MAX_IMPORT_CONTENT = 50_000


class ImportedVersion(BaseModel):
    version: StrictStr = Field(..., pattern=r"^\d+\.\d+\.\d+$")
    content: StrictStr
    metadata: VersionMetadata = Field(default_factory=VersionMetadata)


class PromptImport(BaseModel):
    """One entry of an export bundle. ``versions`` wins over ``content`` when present."""

    id: StrictStr = Field(..., min_length=1, max_length=36)
    name: StrictStr = Field(..., min_length=1, max_length=MAX_IMPORT_NAME)
    content: StrictStr = Field(..., min_length=1, max_length=MAX_IMPORT_CONTENT)
    description: str = ""
    category: str = Field(default="general", min_length=1, max_length=64)
    domain: str = Field(default="general", min_length=1, max_length=128)
    tags: list[str] = Field(default_factory=list)
    current_version: str | None = None
    versions: list[ImportedVersion] = Field(default_factory=list)

    @field_validator("versions")
    @classmethod
    def _unique_versions(cls, versions: list[ImportedVersion]) -> list[ImportedVersion]:
        seen: set[str] = set()
        for v in versions:
            if v.version in seen:
                raise ValueError(f"duplicate version {v.version}")
            seen.add(v.version)
        return versions


class PromptBundle(BaseModel):
    prompts: list[PromptImport] = Field(..., max_length=MAX_IMPORT_PROMPTS)
