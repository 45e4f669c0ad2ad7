"""Shared test fixtures."""

from __future__ import annotations

import random
from pathlib import Path

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from mpe.models import Base
from mpe.schemas.evaluation import EvaluationConfig
from mpe.services import (
    CollaborationService,
    EvaluationService,
    PromptService,
    ResponsibleAIService,
)


@pytest.fixture()
def tmp_db(tmp_path: Path) -> Path:
    """Return a temporary database file path."""
    return tmp_path / "test.db"


@pytest.fixture()
def session(tmp_db: Path) -> Session:
    """Create a SQLite session with all tables."""
    engine = create_engine(f"sqlite:///{tmp_db}", echo=False)
    Base.metadata.create_all(engine)
    factory = sessionmaker(bind=engine)
    sess = factory()
    yield sess  # type: ignore[misc]
    sess.close()
    engine.dispose()


@pytest.fixture()
def service(session: Session) -> PromptService:
    """Return a PromptService bound to the test session."""
    return PromptService(session)


@pytest.fixture()
def collab(session: Session) -> CollaborationService:
    return CollaborationService(session)


class FixedScorer:
    """Returns queued scores in order, then repeats the last one."""

    def __init__(self, *scores: float) -> None:
        self.scores = list(scores)
        self.seen: list[tuple[str, str]] = []

    def __call__(self, content: str, config: EvaluationConfig) -> float:
        self.seen.append((content, config.evaluation_type))
        if len(self.scores) > 1:
            return self.scores.pop(0)
        return self.scores[0]


@pytest.fixture()
def scorer() -> FixedScorer:
    return FixedScorer(0.9)


@pytest.fixture()
def evaluations(session: Session, scorer: FixedScorer) -> EvaluationService:
    return EvaluationService(session, score_fn=scorer, confidence_fn=lambda: 0.85)


@pytest.fixture()
def responsible_ai(session: Session) -> ResponsibleAIService:
    """ResponsibleAIService with seeded templates and a guideline check that never fires."""
    svc = ResponsibleAIService(session, guideline_check=lambda content, guideline: False)
    svc.ensure_default_templates()
    session.commit()
    return svc


@pytest.fixture()
def rng() -> random.Random:
    return random.Random(1234)


@pytest.fixture()
def fixed_scorer() -> type[FixedScorer]:
    return FixedScorer
