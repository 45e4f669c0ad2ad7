"""Votes, threaded comments, annotations and shared prompt libraries."""

from __future__ import annotations

import logging

from sqlalchemy import func, literal_column, select
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import Session, selectinload

from mpe.models.base import new_id, utcnow
from mpe.models.collaboration import (
    LibraryCollaborator,
    LibraryPrompt,
    PromptAnnotation,
    PromptComment,
    PromptVote,
    SharedPromptLibrary,
)
from mpe.schemas import validate_input
from mpe.schemas.collaboration import (
    AnnotationCreate,
    CollaborationSummary,
    CommentCreate,
    LibraryCreate,
    VoteCreate,
    VoteSummary,
)

logger = logging.getLogger(__name__)

# Breaks created_at ties in insertion order.
_COMMENT_ROWID = literal_column("prompt_comments.rowid")


class CollaborationService:
    """Collaboration features keyed by prompt id.

    Prompts are referenced by id only: nothing here checks that a prompt
    exists, and deleting a prompt leaves its votes and comments behind.
    """

    def __init__(self, session: Session) -> None:
        self._session = session

    # ------------------------------------------------------------------
    # Votes
    # ------------------------------------------------------------------

    def vote(self, prompt_id: str, user_id: str, vote_type: str) -> PromptVote:
        """Record a user's vote, replacing any earlier vote on the same prompt."""
        data = validate_input(VoteCreate, prompt_id=prompt_id, user_id=user_id, vote_type=vote_type)
        # Single-statement upsert against uq_vote_prompt_user.
        stmt = sqlite_insert(PromptVote).values(
            id=new_id(),
            prompt_id=data.prompt_id,
            user_id=data.user_id,
            vote_type=data.vote_type,
            created_at=utcnow(),
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["prompt_id", "user_id"],
            set_={"vote_type": stmt.excluded.vote_type},
        )
        self._session.execute(stmt)
        vote = self._session.execute(
            select(PromptVote)
            .where(PromptVote.prompt_id == data.prompt_id, PromptVote.user_id == data.user_id)
            .execution_options(populate_existing=True)
        ).scalar_one()
        logger.debug("Vote %s on %s by %s", vote.vote_type, prompt_id, user_id)
        return vote

    def list_votes(self, prompt_id: str) -> list[PromptVote]:
        return list(
            self._session.execute(
                select(PromptVote)
                .where(PromptVote.prompt_id == prompt_id)
                .order_by(PromptVote.created_at)
            )
            .scalars()
            .all()
        )

    def vote_summary(self, prompt_id: str) -> VoteSummary:
        rows = self._session.execute(
            select(PromptVote.vote_type, func.count())
            .where(PromptVote.prompt_id == prompt_id)
            .group_by(PromptVote.vote_type)
        ).all()
        counts = {vote_type: count for vote_type, count in rows}
        up_votes = counts.get("up", 0)
        down_votes = counts.get("down", 0)
        return VoteSummary(up_votes=up_votes, down_votes=down_votes, score=up_votes - down_votes)

    # ------------------------------------------------------------------
    # Comments and annotations
    # ------------------------------------------------------------------

    def add_comment(
        self,
        prompt_id: str,
        user_id: str,
        content: str,
        parent_comment_id: str | None = None,
    ) -> PromptComment:
        """Add a comment. A dangling ``parent_comment_id`` is stored as given."""
        data = validate_input(
            CommentCreate,
            prompt_id=prompt_id,
            user_id=user_id,
            content=content,
            parent_comment_id=parent_comment_id,
        )
        parent_id = data.parent_comment_id
        if parent_id and self._session.get(PromptComment, parent_id) is None:
            logger.warning(
                "Comment on %s replies to unknown comment %s", prompt_id, parent_id
            )
        comment = PromptComment(**data.model_dump())
        self._session.add(comment)
        self._session.flush()
        return comment

    def get_comment(self, comment_id: str) -> PromptComment | None:
        return self._session.get(PromptComment, comment_id)

    def list_comments(self, prompt_id: str) -> list[PromptComment]:
        """All comments on a prompt, oldest first."""
        return list(
            self._session.execute(
                select(PromptComment)
                .options(selectinload(PromptComment.annotations))
                .where(PromptComment.prompt_id == prompt_id)
                .order_by(PromptComment.created_at, _COMMENT_ROWID)
            )
            .scalars()
            .all()
        )

    def list_replies(self, comment_id: str) -> list[PromptComment]:
        """Direct replies to a comment, oldest first."""
        return list(
            self._session.execute(
                select(PromptComment)
                .options(selectinload(PromptComment.annotations))
                .where(PromptComment.parent_comment_id == comment_id)
                .order_by(PromptComment.created_at, _COMMENT_ROWID)
            )
            .scalars()
            .all()
        )

    def add_annotation(
        self,
        comment_id: str,
        start_position: int,
        end_position: int,
        annotation_type: str,
        content: str = "",
    ) -> PromptAnnotation:
        """Annotate a span of a comment.

        The annotation is created even when *comment_id* matches no comment;
        it is then attached to nothing.
        """
        data = validate_input(
            AnnotationCreate,
            comment_id=comment_id,
            start_position=start_position,
            end_position=end_position,
            annotation_type=annotation_type,
            content=content,
        )
        annotation = PromptAnnotation(**data.model_dump())
        self._session.add(annotation)
        self._session.flush()

        comment = self._session.get(PromptComment, data.comment_id)
        if comment is None:
            logger.warning("Annotation %s targets unknown comment %s", annotation.id, comment_id)
        else:
            self._session.expire(comment, ["annotations"])
        return annotation

    # ------------------------------------------------------------------
    # Shared libraries
    # ------------------------------------------------------------------

    def create_library(
        self,
        name: str,
        description: str,
        owner_id: str,
        is_public: bool = False,
    ) -> SharedPromptLibrary:
        data = validate_input(
            LibraryCreate, name=name, description=description, owner_id=owner_id, is_public=is_public
        )
        library = SharedPromptLibrary(**data.model_dump())
        self._session.add(library)
        self._session.flush()
        logger.info("Created library %s owned by %s", library.id, owner_id)
        return library

    def get_library(self, library_id: str) -> SharedPromptLibrary | None:
        return self._session.get(SharedPromptLibrary, library_id)

    def get_shared_libraries(self, user_id: str | None = None) -> list[SharedPromptLibrary]:
        """Libraries visible to *user_id*: public, owned, or collaborating."""
        libraries = self._session.execute(
            select(SharedPromptLibrary).order_by(SharedPromptLibrary.created_at)
        ).scalars()
        return [lib for lib in libraries if lib.can_read(user_id)]

    def add_prompt_to_library(self, library_id: str, prompt_id: str, user_id: str) -> bool:
        """Add a prompt if *user_id* is the owner or a collaborator."""
        library = self.get_library(library_id)
        if library is None or not library.can_write(user_id):
            logger.info("User %s may not add prompts to library %s", user_id, library_id)
            return False
        if prompt_id not in library.prompts:
            library.prompt_links.append(LibraryPrompt(prompt_id=prompt_id))
            library.updated_at = utcnow()
            self._session.flush()
        return True

    def add_collaborator(self, library_id: str, collaborator_id: str, owner_id: str) -> bool:
        """Grant write access. Only the library owner may do this."""
        library = self.get_library(library_id)
        if library is None or library.owner_id != owner_id:
            logger.info("User %s may not add collaborators to library %s", owner_id, library_id)
            return False
        if collaborator_id not in library.collaborators:
            library.collaborator_links.append(LibraryCollaborator(user_id=collaborator_id))
            library.updated_at = utcnow()
            self._session.flush()
        return True

    def get_library_prompts(self, library_id: str, user_id: str | None = None) -> list[str]:
        """Prompt ids in a library, or an empty list when *user_id* cannot read it."""
        library = self.get_library(library_id)
        if library is None or not library.can_read(user_id):
            return []
        return library.prompts

    # ------------------------------------------------------------------
    # Summary
    # ------------------------------------------------------------------

    def collaboration_summary(self, prompt_id: str) -> CollaborationSummary:
        comments = self.list_comments(prompt_id)
        library_ids = self._session.execute(
            select(LibraryPrompt.library_id)
            .where(LibraryPrompt.prompt_id == prompt_id)
            .order_by(LibraryPrompt.added_at)
        ).scalars()
        return CollaborationSummary(
            vote_summary=self.vote_summary(prompt_id),
            comment_count=len(comments),
            annotation_count=sum(len(c.annotations) for c in comments),
            shared_libraries=list(library_ids),
        )
