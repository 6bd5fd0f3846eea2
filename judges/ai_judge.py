"""AI-powered debate judge using language models."""

import json
import logging
import re
import time
from typing import Any

from config.settings import ModelConfig
from debate_engine.exceptions import JudgeEvaluationError
from debate_engine.models import Judge
from debate_engine.transcript import DebateTranscript
from debate_engine.types import Decision
from models.manager import ModelManager
from .base import BaseJudge, GroupJudgeDecision, JudgeDecision, ParticipantScore

logger = logging.getLogger(__name__)

WINNER_LABELS = {
    "CHALLENGER": Decision.CHALLENGER_WINS,
    "OPPONENT": Decision.OPPONENT_WINS,
    "TIE": Decision.TIE,
}


class AIJudge(BaseJudge):
    """AI judge evaluating transcripts through one of the stored judge personas."""

    def __init__(
        self,
        judge: Judge,
        model_manager: ModelManager,
        model_config: ModelConfig,
        neutral_score: float = 50,
    ):
        self.judge = judge
        self.model_manager = model_manager
        self.model_config = model_config
        self.neutral_score = neutral_score

        # One registration per judge model; personas share the provider
        self.model_id = f"judge:{model_config.name}"
        if not self.model_manager.is_registered(self.model_id):
            self.model_manager.register_model(self.model_id, model_config)

    @property
    def name(self) -> str:
        return self.judge.name

    @property
    def judge_id(self) -> str:
        return self.judge.id

    async def evaluate_debate(self, transcript: DebateTranscript) -> JudgeDecision:
        """Evaluate a head-to-head debate."""
        logger.info(f"{self.name} evaluating debate {transcript.debate_id}: {transcript.topic}")

        evaluation = await self._generate(self._create_evaluation_prompt(transcript))
        data = self._load_json(evaluation)

        try:
            label = str(data["winner"]).strip().upper()
            decision = WINNER_LABELS[label]
        except KeyError as e:
            raise JudgeEvaluationError(f"{self.name} returned no usable winner: {data.get('winner')!r}") from e

        reasoning = self._as_text(data.get("reasoning"))
        if not reasoning:
            raise JudgeEvaluationError(f"{self.name} returned no reasoning")

        challenger_score = self._clamp_score(data.get("challengerScore"))
        opponent_score = self._clamp_score(data.get("opponentScore"))

        score_leader = self._leader(challenger_score, opponent_score)
        if score_leader != decision:
            logger.warning(
                f"{self.name} declared {decision.value} but scored {challenger_score}-{opponent_score}"
            )

        logger.info(f"{self.name} decision for {transcript.debate_id}: {decision.value}")
        return JudgeDecision(
            decision=decision,
            challenger_score=challenger_score,
            opponent_score=opponent_score,
            reasoning=reasoning,
        )

    async def evaluate_group(self, transcript: DebateTranscript) -> GroupJudgeDecision:
        """Score every participant who submitted in a group round."""
        logger.info(f"{self.name} scoring group round {transcript.debate_id}")

        evaluation = await self._generate(self._create_group_prompt(transcript))
        data = self._load_json(evaluation)

        labels = {side.label: side.user_id for side in transcript.sides}
        scores: dict[str, ParticipantScore] = {}
        for entry in data.get("scores", []):
            if not isinstance(entry, dict):
                continue
            user_id = labels.get(str(entry.get("participant", "")).strip())
            if user_id is None:
                logger.warning(f"{self.name} scored unknown participant {entry.get('participant')!r}")
                continue
            scores[user_id] = ParticipantScore(
                user_id=user_id,
                score=self._clamp_score(entry.get("score")),
                reasoning=self._as_text(entry.get("reasoning")),
            )

        missing = transcript.submitted_user_ids() - set(scores)
        if missing:
            raise JudgeEvaluationError(f"{self.name} did not score participants {sorted(missing)}")

        return GroupJudgeDecision(scores=scores, reasoning=self._as_text(data.get("reasoning")))

    async def _generate(self, prompt: str) -> str:
        messages = [
            {"role": "system", "content": self.judge.system_prompt},
            {"role": "user", "content": prompt},
        ]
        start_time = time.time()
        try:
            response = await self.model_manager.generate_response(
                self.model_id,
                messages,
                max_tokens=self.model_config.max_tokens,
                temperature=self.model_config.temperature,
            )
        except JudgeEvaluationError:
            raise
        except Exception as e:
            logger.error(f"{self.name} evaluation call failed: {e}")
            raise JudgeEvaluationError(f"Judge evaluation failed: {e}") from e

        logger.debug(f"{self.name} answered in {int((time.time() - start_time) * 1000)} ms")
        return response

    def _create_evaluation_prompt(self, transcript: DebateTranscript) -> str:
        return f"""Judge the following debate. A side marked as having missed a deadline made no argument in that round.

{transcript.to_text()}

Provide your verdict in the following JSON format:

{{
  "winner": "CHALLENGER" | "OPPONENT" | "TIE",
  "reasoning": "Natural language explanation of your decision in complete sentences",
  "challengerScore": 0-100,
  "opponentScore": 0-100
}}

Respond ONLY with valid JSON. Do not include any text outside the JSON object."""

    def _create_group_prompt(self, transcript: DebateTranscript) -> str:
        participants = "\n".join(f"- {side.label}" for side in transcript.sides)
        return f"""Score every participant of this multi-party debate round from 0 to 100 on the strength of their argument.

PARTICIPANTS:
{participants}

{transcript.to_text()}

Provide your scores in the following JSON format:

{{
  "scores": [
    {{"participant": "<name exactly as listed>", "score": 0-100, "reasoning": "one or two sentences"}}
  ],
  "reasoning": "Overall summary of the round"
}}

Respond ONLY with valid JSON. Do not include any text outside the JSON object."""

    def _load_json(self, evaluation: str) -> dict[str, Any]:
        """Extract the JSON object from a model reply."""
        logger.debug(f"Raw judge evaluation: {evaluation}")

        markdown_match = re.search(r"```(?:json)?\s*(\{.*?\})\s*```", evaluation, re.DOTALL)
        if markdown_match:
            json_text = markdown_match.group(1)
        else:
            json_match = re.search(r"\{.*\}", evaluation, re.DOTALL)
            json_text = json_match.group() if json_match else evaluation.strip()

        try:
            data = json.loads(self._repair_json(json_text))
        except json.JSONDecodeError as e:
            logger.error(f"Failed to parse {self.name} evaluation: {e}")
            raise JudgeEvaluationError(f"Failed to parse judge evaluation: {e}") from e

        if not isinstance(data, dict):
            raise JudgeEvaluationError("Judge evaluation is not a JSON object")
        return data

    def _repair_json(self, json_text: str) -> str:
        """Attempt to repair common JSON issues from small models."""
        repair_json = json_text.strip()

        # Remove any trailing comma before closing braces/brackets
        repair_json = re.sub(r",(\s*[}\]])", r"\1", repair_json)

        # Quote bare keys
        repair_json = re.sub(
            r"([{,]\s*)([a-zA-Z_][a-zA-Z0-9_]*)\s*:", r'\1"\2":', repair_json
        )

        if not repair_json.endswith("}"):
            logger.warning("JSON appears truncated, attempting to complete it")

            open_quotes = repair_json.count('"') - repair_json.count('\\"')
            if open_quotes % 2 == 1:
                repair_json += '"'

            repair_json = repair_json.rstrip().rstrip(",")

            open_braces = repair_json.count("{") - repair_json.count("}")
            open_brackets = repair_json.count("[") - repair_json.count("]")
            repair_json += "]" * open_brackets
            repair_json += "}" * open_braces

        last_brace = repair_json.rfind("}")
        if last_brace != -1:
            repair_json = repair_json[: last_brace + 1]

        return repair_json

    def _clamp_score(self, value: Any) -> float:
        """Coerce a reported score into 0..100, using the neutral score when absent."""
        try:
            score = float(value)
        except (TypeError, ValueError):
            return float(self.neutral_score)
        if score != score:  # NaN
            return float(self.neutral_score)
        return max(0.0, min(100.0, score))

    @staticmethod
    def _leader(challenger_score: float, opponent_score: float) -> Decision:
        if challenger_score > opponent_score:
            return Decision.CHALLENGER_WINS
        if opponent_score > challenger_score:
            return Decision.OPPONENT_WINS
        return Decision.TIE

    @staticmethod
    def _as_text(value: Any) -> str:
        if value is None:
            return ""
        if not isinstance(value, str):
            logger.warning(f"Converting non-string judge field: {type(value)}")
            return str(value)
        return value.strip()
