from mpe.services.collaboration_service import CollaborationService
from mpe.services.evaluation_service import EvaluationService
from mpe.services.prompt_service import PromptService
from mpe.services.responsible_ai_service import ResponsibleAIService

__all__ = [
    "CollaborationService",
    "EvaluationService",
    "PromptService",
    "ResponsibleAIService",
]
