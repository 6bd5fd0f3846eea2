"""Argument generation for automated participants."""

import logging
import re
from typing import Protocol

from config.settings import ModelConfig
from debate_engine.exceptions import GenerationError
from debate_engine.models import Debate, Statement, User
from debate_engine.types import AIPersonality, ChallengeType
from models.manager import ModelManager

logger = logging.getLogger(__name__)

PERSONALITY_PROMPTS: dict[AIPersonality, tuple[str, str]] = {
    AIPersonality.BALANCED: (
        "You are a balanced debater who weighs several perspectives before committing to a position.",
        "Present measured, well-rounded arguments and acknowledge the strongest opposing points fairly.",
    ),
    AIPersonality.SMART: (
        "You are an intelligent debater who builds every argument on facts, logic and evidence.",
        "Be precise. Use statistics and logical reasoning, and cite evidence where you can.",
    ),
    AIPersonality.AGGRESSIVE: (
        "You are an assertive debater who takes strong positions and confronts opponents directly.",
        "Be forceful and direct. Attack the weakest parts of your opponent's case.",
    ),
    AIPersonality.CALM: (
        "You are a composed debater who keeps an even tone under pressure.",
        "Stay calm and measured. Avoid emotional language and let the reasoning carry the argument.",
    ),
    AIPersonality.WITTY: (
        "You are a clever debater who makes points through humor and wordplay.",
        "Be entertaining while staying on point. Use wit to expose flaws in your opponent's case.",
    ),
    AIPersonality.ANALYTICAL: (
        "You are an analytical debater who breaks complex issues into their parts.",
        "Be thorough. Decompose the issue, weigh the data and walk through your analysis step by step.",
    ),
}


class DebateResponder(Protocol):
    """Writes the next argument for an automated participant."""

    async def respond(
        self, debate: Debate, author: User, statements: list[Statement], users: dict[str, User]
    ) -> str:
        ...


class AIResponder:
    """Generates arguments with the configured debater model."""

    def __init__(self, model_manager: ModelManager, model_config: ModelConfig):
        self.model_manager = model_manager
        self.model_config = model_config
        self.model_id = f"debater:{model_config.name}"
        if not self.model_manager.is_registered(self.model_id):
            self.model_manager.register_model(self.model_id, model_config)

    async def respond(
        self, debate: Debate, author: User, statements: list[Statement], users: dict[str, User]
    ) -> str:
        messages = self._build_messages(debate, author, statements, users)
        try:
            response = await self.model_manager.generate_response(
                self.model_id,
                messages,
                max_tokens=self.model_config.max_tokens,
                temperature=self.model_config.temperature,
            )
        except Exception as e:
            logger.error(f"Generation failed for {author.username} in debate {debate.id}: {e}")
            raise GenerationError(f"Generation failed: {e}") from e

        cleaned = self._clean_response(response)
        if not cleaned:
            raise GenerationError(f"Empty response for {author.username} in debate {debate.id}")
        return cleaned

    def _build_messages(
        self, debate: Debate, author: User, statements: list[Statement], users: dict[str, User]
    ) -> list[dict[str, str]]:
        personality = author.ai_personality or AIPersonality.BALANCED
        identity, style = PERSONALITY_PROMPTS[personality]

        if debate.challenge_type == ChallengeType.GROUP:
            position_line = "This is a multi-party round: argue your own view of the topic."
        else:
            position = debate.challenger_position if author.id == debate.challenger_id else debate.opponent_position
            opponent = users.get(debate.other_side(author.id) or "")
            opponent_name = opponent.username if opponent else "your opponent"
            position_line = f"YOUR POSITION: {position.value}\nYOUR OPPONENT: {opponent_name} ({position.opposite.value})"

        system_prompt = f"""{identity}

You are participating in a debate about: "{debate.topic}"
{f"DESCRIPTION: {debate.description}" if debate.description else ""}
{position_line}

YOUR SPEAKING STYLE: {style}

RULES:
1. Keep your response between 200 and 500 words
2. Stay on topic and respond to your opponent's previous arguments
3. Write in the first person, in plain text without markdown formatting
4. Do not open with pleasantries or thanks; start with your argument
5. Do not add labels like "ROUND 2:" or "REBUTTAL:" - just speak your argument"""

        messages = [{"role": "system", "content": system_prompt}]

        previous = [s for s in statements if s.round < debate.current_round and not s.is_placeholder]
        for statement in previous:
            if statement.author_id == author.id:
                messages.append({"role": "assistant", "content": statement.content})
            else:
                speaker = users.get(statement.author_id)
                name = speaker.username if speaker else "Opponent"
                messages.append({"role": "user", "content": f"Round {statement.round} - {name}: {statement.content}"})

        # Arguments already made this round
        for statement in statements:
            if statement.round == debate.current_round and statement.author_id != author.id and not statement.is_placeholder:
                speaker = users.get(statement.author_id)
                name = speaker.username if speaker else "Opponent"
                messages.append({"role": "user", "content": f"Round {statement.round} - {name}: {statement.content}"})

        if len(messages) == 1:
            turn_prompt = f"This is round {debate.current_round}. Present a strong opening argument for your position."
        else:
            turn_prompt = f"Now write your argument for round {debate.current_round}. Respond to your opponent and strengthen your position."
        messages.append({"role": "user", "content": turn_prompt})
        return messages

    def _clean_response(self, response: str) -> str:
        """Strip echoed labels and markdown from a model reply."""
        cleaned = response.strip()

        cleaned = re.sub(r"^(?:round\s+\d+\s*[-:]\s*)?(?:opening|rebuttal|closing)?\s*(?:statement|argument)\s*[:\-]\s*", "", cleaned, flags=re.IGNORECASE)
        cleaned = re.sub(r"^#{1,6}\s+", "", cleaned, flags=re.MULTILINE)
        cleaned = re.sub(r"\*\*([^*]+)\*\*", r"\1", cleaned)
        cleaned = re.sub(r"\*([^*]+)\*", r"\1", cleaned)

        if response.strip() and not cleaned.strip():
            logger.warning(f"Response was cleaned to empty. Original: {response!r}")
        return cleaned.strip()
