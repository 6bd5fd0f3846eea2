"""Automated opponents: challenge assignment and argument generation."""

from .load_balancer import Assignment, ParticipantLoad, build_loads, distribute_challenges
from .opponent_assignment import OpponentAssignmentService, TurnResponseResult
from .responder import AIResponder, DebateResponder, PERSONALITY_PROMPTS

__all__ = [
    "Assignment",
    "ParticipantLoad",
    "build_loads",
    "distribute_challenges",
    "OpponentAssignmentService",
    "TurnResponseResult",
    "AIResponder",
    "DebateResponder",
    "PERSONALITY_PROMPTS",
]
