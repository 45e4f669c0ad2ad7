from mpe.models.base import Base
from mpe.models.collaboration import (
    LibraryCollaborator,
    LibraryPrompt,
    PromptAnnotation,
    PromptComment,
    PromptVote,
    SharedPromptLibrary,
)
from mpe.models.ethics import EthicalTemplate
from mpe.models.evaluation import CostAnalyticsRecord, PromptEvaluation
from mpe.models.prompt import LLMCallLog, Prompt, PromptVersion, Tag

__all__ = [
    "Base",
    "CostAnalyticsRecord",
    "EthicalTemplate",
    "LLMCallLog",
    "LibraryCollaborator",
    "LibraryPrompt",
    "Prompt",
    "PromptAnnotation",
    "PromptComment",
    "PromptEvaluation",
    "PromptVersion",
    "PromptVote",
    "SharedPromptLibrary",
    "Tag",
]
