"""Core business-logic service for prompts and their versions."""

from __future__ import annotations

import difflib
import hashlib
import json
import logging
from pathlib import Path
from typing import Any, Callable

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from mpe.bias import detect_bias, ethical_tags_for
from mpe.exceptions import InvalidInputError, NotFoundError, VersionConflictError
from mpe.models.base import utcnow
from mpe.models.prompt import LLMCallLog, Prompt, PromptVersion, Tag
from mpe.schemas import validate_input
from mpe.schemas.prompt import (
    LLMCallLogCreate,
    PromptCreate,
    PromptMetadataUpdate,
    PromptBundle,
    PromptImport,
    PromptOut,
    PromptVersionCreate,
    VersionMetadata,
)
from mpe.schemas.responsible_ai import BiasDetectionResult
from mpe.versioning import INITIAL_VERSION, latest_version, propose_next_version

logger = logging.getLogger(__name__)

BiasDetector = Callable[[str], BiasDetectionResult]

EXPORT_FORMAT_VERSION = "1.0.0"
MAX_IMPORT_BYTES = 10 * 1024 * 1024


class PromptService:
    """Service layer wrapping all prompt operations."""

    def __init__(self, session: Session, bias_detector: BiasDetector | None = detect_bias) -> None:
        self._session = session
        self._bias_detector = bias_detector

    # ------------------------------------------------------------------
    # Prompt CRUD
    # ------------------------------------------------------------------

    def create_prompt(
        self,
        name: str = "Untitled Prompt",
        description: str = "",
        content: str = "",
        tags: list[str] | None = None,
        category: str = "general",
        domain: str = "general",
        metadata: dict[str, Any] | None = None,
    ) -> Prompt:
        """Create a prompt holding a single ``1.0.0`` version."""
        data = validate_input(
            PromptCreate,
            name=name,
            description=description,
            content=content,
            tags=tags or [],
            category=category,
            domain=domain,
            metadata=metadata or {},
        )
        prompt = Prompt(
            name=data.name,
            description=data.description,
            category=data.category,
            domain=data.domain,
            current_version=INITIAL_VERSION,
            ethical_tags=[],
        )
        prompt.versions.append(self._new_version(0, INITIAL_VERSION, data.content, data.metadata))
        self._session.add(prompt)
        for tag_name in dict.fromkeys(data.tags):
            prompt.tags.append(self._get_or_create_tag(tag_name))
        self._session.flush()
        logger.info("Created prompt %s (%r)", prompt.id, prompt.name)

        # Separate step: a failure here leaves the prompt untagged.
        self._tag_with_bias(prompt, data.content)
        return prompt

    def get_prompt(self, prompt_id: str) -> Prompt:
        """Fetch a prompt by id. Raises NotFoundError if missing."""
        prompt = self._session.execute(
            select(Prompt)
            .options(selectinload(Prompt.versions), selectinload(Prompt.tags))
            .where(Prompt.id == prompt_id)
        ).scalar_one_or_none()
        if prompt is None:
            raise NotFoundError(f"Prompt '{prompt_id}' not found.")
        return prompt

    def list_prompts(self, category: str | None = None, tag: str | None = None) -> list[Prompt]:
        """Return prompts ordered by name, optionally filtered."""
        stmt = (
            select(Prompt)
            .options(selectinload(Prompt.tags))
            .order_by(Prompt.name, Prompt.created_at)
        )
        if category is not None:
            stmt = stmt.where(Prompt.category == category)
        if tag is not None:
            stmt = stmt.where(Prompt.tags.any(Tag.name == tag))
        return list(self._session.execute(stmt).scalars().all())

    def update_metadata(self, prompt_id: str, **changes: Any) -> Prompt:
        """Update descriptive fields. Versions are never touched."""
        data = validate_input(PromptMetadataUpdate, **changes)
        prompt = self.get_prompt(prompt_id)
        for field, value in data.model_dump(exclude_none=True).items():
            setattr(prompt, field, value)
        prompt.updated_at = utcnow()
        self._session.flush()
        return prompt

    def delete_prompt(self, prompt_id: str) -> bool:
        """Hard-delete a prompt and its versions. Returns False if it did not exist."""
        prompt = self._session.get(Prompt, prompt_id)
        if prompt is None:
            return False
        self._session.delete(prompt)
        self._session.flush()
        logger.info("Deleted prompt %s", prompt_id)
        return True

    # ------------------------------------------------------------------
    # Versions
    # ------------------------------------------------------------------

    @staticmethod
    def _content_hash(content: str) -> str:
        return hashlib.sha256(content.encode("utf-8")).hexdigest()

    def _new_version(
        self, position: int, version: str, content: str, metadata: VersionMetadata
    ) -> PromptVersion:
        now = utcnow()
        return PromptVersion(
            position=position,
            version=version,
            content=content,
            content_hash=self._content_hash(content),
            expected_outcome=metadata.expected_outcome,
            rationale=metadata.rationale,
            author=metadata.author,
            created_at=now,
            last_modified=now,
        )

    def add_version(
        self,
        prompt_id: str,
        content: str,
        metadata: dict[str, Any] | None = None,
    ) -> Prompt:
        """Append *content* as a new version, unless it matches the current one."""
        data = validate_input(
            PromptVersionCreate, prompt_id=prompt_id, content=content, metadata=metadata or {}
        )
        prompt = self._session.execute(
            select(Prompt)
            .options(selectinload(Prompt.versions))
            .where(Prompt.id == data.prompt_id)
            .with_for_update()
        ).scalar_one_or_none()
        if prompt is None:
            raise NotFoundError(f"Prompt '{prompt_id}' not found.")

        current = prompt.current
        if current.content.strip() == data.content.strip():
            logger.debug("Prompt %s unchanged; staying on %s", prompt.id, current.version)
            return prompt

        # Bump from the newest version so a post-rollback edit cannot reuse one.
        newest = latest_version([v.version for v in prompt.versions])
        next_version = propose_next_version(newest, current.content, data.content)

        prompt.versions.append(
            self._new_version(len(prompt.versions), next_version, data.content, data.metadata)
        )
        prompt.current_version = next_version
        prompt.updated_at = utcnow()
        try:
            self._session.flush()
        except IntegrityError as exc:
            raise VersionConflictError(
                f"Version {next_version} of prompt '{prompt_id}' was written concurrently."
            ) from exc
        logger.info("Prompt %s: %s -> %s", prompt.id, current.version, next_version)

        self._tag_with_bias(prompt, data.content)
        return prompt

    def get_version(self, prompt_id: str, version: str) -> PromptVersion:
        """Fetch a specific version of a prompt."""
        prompt = self.get_prompt(prompt_id)
        found = prompt.find_version(version)
        if found is None:
            raise NotFoundError(f"Version {version} not found for prompt '{prompt_id}'.")
        return found

    def get_current_version(self, prompt_id: str) -> PromptVersion:
        return self.get_prompt(prompt_id).current

    def list_versions(self, prompt_id: str) -> list[PromptVersion]:
        """List all versions of a prompt in the order they were written."""
        return list(self.get_prompt(prompt_id).versions)

    def log_llm_call(
        self,
        prompt_id: str,
        version: str,
        input: str,
        output: str = "",
        cost: float = 0.0,
        token_usage: int = 0,
        success: bool = True,
        error: str | None = None,
    ) -> LLMCallLog:
        """Record an LLM call made with a specific version."""
        data = validate_input(
            LLMCallLogCreate,
            input=input,
            output=output,
            cost=cost,
            token_usage=token_usage,
            success=success,
            error=error,
        )
        target = self.get_version(prompt_id, version)
        log = LLMCallLog(**data.model_dump())
        target.llm_call_logs.append(log)
        target.last_modified = utcnow()
        self._session.flush()
        return log

    # ------------------------------------------------------------------
    # Diff
    # ------------------------------------------------------------------

    def diff_versions(self, prompt_id: str, v1: str, v2: str) -> str:
        """Return a unified diff between two versions of a prompt."""
        ver1 = self.get_version(prompt_id, v1)
        ver2 = self.get_version(prompt_id, v2)
        lines1 = ver1.content.splitlines(keepends=True)
        lines2 = ver2.content.splitlines(keepends=True)
        diff = difflib.unified_diff(
            lines1,
            lines2,
            fromfile=f"{prompt_id} v{v1}",
            tofile=f"{prompt_id} v{v2}",
        )
        return "".join(diff)

    # ------------------------------------------------------------------
    # Rollback
    # ------------------------------------------------------------------

    def rollback(self, prompt_id: str, to_version: str) -> Prompt:
        """Point the prompt back at an existing version. No version is created."""
        prompt = self.get_prompt(prompt_id)
        if prompt.find_version(to_version) is None:
            raise NotFoundError(f"Version {to_version} not found for prompt '{prompt_id}'.")
        previous = prompt.current_version
        prompt.current_version = to_version
        prompt.updated_at = utcnow()
        self._session.flush()
        logger.info("Prompt %s rolled back: %s -> %s", prompt_id, previous, to_version)
        return prompt

    # ------------------------------------------------------------------
    # Bias tagging
    # ------------------------------------------------------------------

    def _tag_with_bias(self, prompt: Prompt, content: str) -> None:
        if self._bias_detector is None:
            return
        result = self._bias_detector(content)
        prompt.bias_detection_result = result.model_dump(mode="json")
        prompt.ethical_tags = ethical_tags_for(result)
        self._session.flush()
        logger.debug("Prompt %s bias score %.3f", prompt.id, result.overall_score)

    # ------------------------------------------------------------------
    # Export
    # ------------------------------------------------------------------

    def export_prompt(self, prompt_id: str) -> str:
        """Export a prompt with its full version history as JSON."""
        prompt = self.get_prompt(prompt_id)
        return PromptOut.from_model(prompt).model_dump_json(indent=2)

    def export_to_file(self, prompt_id: str, path: Path) -> Path:
        """Export prompt JSON to a file."""
        data = self.export_prompt(prompt_id)
        path.write_text(data, encoding="utf-8")
        return path

    def export_all(self) -> str:
        """Export every prompt as a ``{prompts, export_date, version}`` bundle."""
        prompts = self._session.execute(
            select(Prompt)
            .options(selectinload(Prompt.versions), selectinload(Prompt.tags))
            .order_by(Prompt.name, Prompt.created_at)
        ).scalars()
        bundle = {
            "prompts": [PromptOut.from_model(p).model_dump(mode="json") for p in prompts],
            "export_date": utcnow().isoformat(),
            "version": EXPORT_FORMAT_VERSION,
        }
        return json.dumps(bundle, indent=2)

    def export_all_to_file(self, path: Path) -> Path:
        path.write_text(self.export_all(), encoding="utf-8")
        return path

    # ------------------------------------------------------------------
    # Import
    # ------------------------------------------------------------------

    def import_prompts(self, path: Path) -> list[Prompt]:
        """Load an export bundle. Prompts whose id already exists are skipped.

        The whole bundle is validated before anything is written.
        """
        if path.stat().st_size > MAX_IMPORT_BYTES:
            raise InvalidInputError(f"{path} is larger than {MAX_IMPORT_BYTES} bytes.")
        try:
            raw = json.loads(path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise InvalidInputError(f"{path} is not valid JSON: {exc}") from exc
        if not isinstance(raw, dict) or not isinstance(raw.get("prompts"), list):
            raise InvalidInputError(f"{path} has no prompts array.")
        bundle = validate_input(PromptBundle, prompts=raw["prompts"])

        imported = []
        for entry in bundle.prompts:
            if self._session.get(Prompt, entry.id) is not None:
                logger.warning("Prompt %s already exists; skipping import", entry.id)
                continue
            imported.append(self._restore_prompt(entry))
        logger.info("Imported %d of %d prompt(s) from %s", len(imported), len(bundle.prompts), path)
        return imported

    def _restore_prompt(self, entry: PromptImport) -> Prompt:
        if entry.versions:
            history = [(v.version, v.content, v.metadata) for v in entry.versions]
        else:
            history = [(INITIAL_VERSION, entry.content, VersionMetadata())]
        known = [version for version, _, _ in history]
        current = entry.current_version if entry.current_version in known else known[-1]

        prompt = Prompt(
            id=entry.id,
            name=entry.name,
            description=entry.description,
            category=entry.category,
            domain=entry.domain,
            current_version=current,
            ethical_tags=[],
        )
        for position, (version, content, metadata) in enumerate(history):
            prompt.versions.append(self._new_version(position, version, content, metadata))
        self._session.add(prompt)
        for tag_name in dict.fromkeys(entry.tags):
            prompt.tags.append(self._get_or_create_tag(tag_name))
        self._session.flush()
        self._tag_with_bias(prompt, prompt.current.content)
        return prompt

    # ------------------------------------------------------------------
    # Tag management
    # ------------------------------------------------------------------

    def _get_or_create_tag(self, tag_name: str) -> Tag:
        with self._session.no_autoflush:
            tag = self._session.execute(
                select(Tag).where(Tag.name == tag_name)
            ).scalar_one_or_none()
        if tag is None:
            tag = Tag(name=tag_name)
            self._session.add(tag)
            self._session.flush()
        return tag

    def add_tag(self, prompt_id: str, tag_name: str) -> None:
        """Add a tag to a prompt."""
        prompt = self.get_prompt(prompt_id)
        tag = self._get_or_create_tag(tag_name)
        if tag not in prompt.tags:
            prompt.tags.append(tag)
            self._session.flush()

    def remove_tag(self, prompt_id: str, tag_name: str) -> None:
        """Remove a tag from a prompt."""
        prompt = self.get_prompt(prompt_id)
        tag = self._session.execute(select(Tag).where(Tag.name == tag_name)).scalar_one_or_none()
        if tag is None:
            raise NotFoundError(f"Tag '{tag_name}' not found.")
        if tag in prompt.tags:
            prompt.tags.remove(tag)
            self._session.flush()
