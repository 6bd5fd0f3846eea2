"""Judging system implementations."""

from .base import BaseJudge, GroupJudgeDecision, JudgeDecision, ParticipantScore
from .ai_judge import AIJudge
from .factory import JudgeFactory, ai_judge_factory, create_judge
from .consensus import ConsensusResult, VerdictConsensusEngine, aggregate_votes
from .appeals import AppealService
from .personas import JUDGE_PERSONAS, seed_judges

__all__ = [
    "BaseJudge",
    "JudgeDecision",
    "GroupJudgeDecision",
    "ParticipantScore",
    "AIJudge",
    "JudgeFactory",
    "ai_judge_factory",
    "create_judge",
    "ConsensusResult",
    "VerdictConsensusEngine",
    "aggregate_votes",
    "AppealService",
    "JUDGE_PERSONAS",
    "seed_judges",
]
