"""Factory for creating judges from stored judge personas."""

import logging
from collections.abc import Callable

from config.settings import JudgingConfig
from debate_engine.models import Judge
from models.manager import ModelManager
from .base import BaseJudge
from .ai_judge import AIJudge

logger = logging.getLogger(__name__)

JudgeFactory = Callable[[Judge], BaseJudge]


def create_judge(judge: Judge, model_manager: ModelManager, config: JudgingConfig) -> BaseJudge:
    """Create the AI judge speaking for ``judge``."""
    logger.debug(f"Creating AI judge {judge.name} with model {config.judge_model.name}")
    return AIJudge(
        judge=judge,
        model_manager=model_manager,
        model_config=config.judge_model,
        neutral_score=config.neutral_score,
    )


def ai_judge_factory(model_manager: ModelManager, config: JudgingConfig) -> JudgeFactory:
    """Bind the model manager and judging config into a ``Judge -> BaseJudge`` factory."""

    def factory(judge: Judge) -> BaseJudge:
        return create_judge(judge, model_manager, config)

    return factory
