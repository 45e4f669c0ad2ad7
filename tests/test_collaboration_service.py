"""Tests for votes, comments, annotations and shared libraries."""

from __future__ import annotations

import logging

import pytest
from sqlalchemy.orm import Session

from mpe.exceptions import InvalidInputError
from mpe.services.collaboration_service import CollaborationService
from mpe.services.prompt_service import PromptService


class TestVotes:
    def test_revote_replaces_previous(self, collab: CollaborationService) -> None:
        collab.vote("P", "U", "up")
        vote = collab.vote("P", "U", "down")
        assert vote.vote_type == "down"
        votes = collab.list_votes("P")
        assert len(votes) == 1
        assert votes[0].vote_type == "down"
        summary = collab.vote_summary("P")
        assert (summary.up_votes, summary.down_votes, summary.score) == (0, 1, -1)

    def test_revote_keeps_record_id(self, collab: CollaborationService) -> None:
        first = collab.vote("P", "U", "up")
        first_id = first.id
        assert collab.vote("P", "U", "down").id == first_id

    def test_summary_without_votes(self, collab: CollaborationService) -> None:
        summary = collab.vote_summary("P")
        assert (summary.up_votes, summary.down_votes, summary.score) == (0, 0, 0)

    def test_summary_counts_users(self, collab: CollaborationService) -> None:
        collab.vote("P", "u1", "up")
        collab.vote("P", "u2", "up")
        collab.vote("P", "u3", "down")
        collab.vote("other", "u1", "down")
        summary = collab.vote_summary("P")
        assert (summary.up_votes, summary.down_votes, summary.score) == (2, 1, 1)

    def test_invalid_vote_type(self, collab: CollaborationService) -> None:
        with pytest.raises(InvalidInputError, match="vote_type"):
            collab.vote("P", "U", "sideways")
        assert collab.list_votes("P") == []


class TestComments:
    def test_comment_and_reply(self, collab: CollaborationService) -> None:
        root = collab.add_comment("P", "ana", "Looks good")
        reply = collab.add_comment("P", "bo", "Agreed", parent_comment_id=root.id)
        assert {c.id for c in collab.list_comments("P")} == {root.id, reply.id}
        assert [c.id for c in collab.list_replies(root.id)] == [reply.id]
        assert collab.list_replies(reply.id) == []

    def test_same_timestamp_keeps_insertion_order(
        self, collab: CollaborationService, session: Session
    ) -> None:
        root = collab.add_comment("P", "ana", "root")
        comments = [
            collab.add_comment("P", "bo", f"reply {i}", parent_comment_id=root.id) for i in range(5)
        ]
        for comment in [root, *comments]:
            comment.created_at = root.created_at
        session.flush()
        assert collab.list_comments("P") == [root, *comments]
        assert collab.list_replies(root.id) == comments

    def test_comments_scoped_to_prompt(self, collab: CollaborationService) -> None:
        collab.add_comment("P", "ana", "one")
        collab.add_comment("Q", "ana", "two")
        assert [c.content for c in collab.list_comments("Q")] == ["two"]

    def test_dangling_parent_is_stored(
        self, collab: CollaborationService, caplog: pytest.LogCaptureFixture
    ) -> None:
        with caplog.at_level(logging.WARNING, logger="mpe"):
            comment = collab.add_comment("P", "ana", "orphan", parent_comment_id="missing")
        assert comment.parent_comment_id == "missing"
        assert "unknown comment" in caplog.text

    def test_empty_content_rejected(self, collab: CollaborationService) -> None:
        with pytest.raises(InvalidInputError):
            collab.add_comment("P", "ana", "")

    def test_comment_on_unknown_prompt_allowed(self, collab: CollaborationService) -> None:
        comment = collab.add_comment("no-such-prompt", "ana", "hello")
        assert collab.get_comment(comment.id) is comment


class TestAnnotations:
    def test_annotation_attaches_to_comment(self, collab: CollaborationService) -> None:
        comment = collab.add_comment("P", "ana", "Rewrite the opening line")
        annotation = collab.add_annotation(comment.id, 0, 7, "suggestion", "Try 'Revise'")
        assert collab.get_comment(comment.id).annotations == [annotation]

    def test_annotation_on_missing_comment(
        self, collab: CollaborationService, caplog: pytest.LogCaptureFixture
    ) -> None:
        with caplog.at_level(logging.WARNING, logger="mpe"):
            annotation = collab.add_annotation("missing", 1, 2, "concern")
        assert annotation.comment_id == "missing"
        assert "unknown comment" in caplog.text

    def test_zero_width_span(self, collab: CollaborationService) -> None:
        annotation = collab.add_annotation("c", 3, 3, "highlight")
        assert annotation.start_position == annotation.end_position == 3

    @pytest.mark.parametrize(
        ("start", "end", "kind"),
        [(5, 2, "highlight"), (-1, 2, "highlight"), (0, 2, "praise")],
    )
    def test_invalid_annotation(
        self, collab: CollaborationService, start: int, end: int, kind: str
    ) -> None:
        with pytest.raises(InvalidInputError):
            collab.add_annotation("c", start, end, kind)


class TestLibraries:
    def test_create_library(self, collab: CollaborationService) -> None:
        library = collab.create_library("Team prompts", "shared", "owner")
        assert library.owner_id == "owner"
        assert library.is_public is False
        assert library.collaborators == []
        assert library.prompts == []

    def test_visibility(self, collab: CollaborationService) -> None:
        private = collab.create_library("private", "", "owner")
        public = collab.create_library("public", "", "someone", is_public=True)
        assert [lib.id for lib in collab.get_shared_libraries()] == [public.id]
        assert {lib.id for lib in collab.get_shared_libraries("owner")} == {private.id, public.id}

    def test_only_members_add_prompts(self, collab: CollaborationService) -> None:
        library = collab.create_library("lib", "", "owner")
        assert collab.add_prompt_to_library(library.id, "P1", "stranger") is False
        assert collab.add_prompt_to_library(library.id, "P1", "owner") is True
        assert collab.add_prompt_to_library(library.id, "P1", "owner") is True
        assert library.prompts == ["P1"]

    def test_only_owner_adds_collaborators(self, collab: CollaborationService) -> None:
        library = collab.create_library("lib", "", "owner")
        assert collab.add_collaborator(library.id, "friend", "friend") is False
        assert collab.add_collaborator(library.id, "friend", "owner") is True
        assert collab.add_prompt_to_library(library.id, "P2", "friend") is True
        assert library.collaborators == ["friend"]
        assert [lib.id for lib in collab.get_shared_libraries("friend")] == [library.id]

    def test_unknown_library(self, collab: CollaborationService) -> None:
        assert collab.add_prompt_to_library("missing", "P", "owner") is False
        assert collab.add_collaborator("missing", "friend", "owner") is False
        assert collab.get_library_prompts("missing", "owner") == []

    def test_private_library_prompts_hidden(self, collab: CollaborationService) -> None:
        library = collab.create_library("lib", "", "owner")
        collab.add_prompt_to_library(library.id, "P", "owner")
        assert collab.get_library_prompts(library.id, "stranger") == []
        assert collab.get_library_prompts(library.id, "owner") == ["P"]

    def test_missing_owner_rejected(self, collab: CollaborationService) -> None:
        with pytest.raises(InvalidInputError):
            collab.create_library("lib", "", "")


class TestSummary:
    def test_collaboration_summary(self, collab: CollaborationService) -> None:
        collab.vote("P", "u1", "up")
        first = collab.add_comment("P", "u1", "nice")
        collab.add_comment("P", "u2", "why?", parent_comment_id=first.id)
        collab.add_annotation(first.id, 0, 4, "highlight")
        library = collab.create_library("lib", "", "u1")
        collab.add_prompt_to_library(library.id, "P", "u1")

        summary = collab.collaboration_summary("P")
        assert summary.vote_summary.score == 1
        assert summary.comment_count == 2
        assert summary.annotation_count == 1
        assert summary.shared_libraries == [library.id]

    def test_records_survive_prompt_deletion(
        self, collab: CollaborationService, service: PromptService
    ) -> None:
        prompt = service.create_prompt("p", content="x")
        collab.vote(prompt.id, "u1", "up")
        collab.add_comment(prompt.id, "u1", "hi")
        service.delete_prompt(prompt.id)
        summary = collab.collaboration_summary(prompt.id)
        assert summary.vote_summary.up_votes == 1
        assert summary.comment_count == 1
