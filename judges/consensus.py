"""Multi-judge verdict consensus.

A panel of judges evaluates a finished debate in parallel. Each vote is
persisted, the votes are aggregated into a single outcome and the debate,
verdict rows and ratings are written in one transaction. A judge that keeps
failing contributes a neutral TIE vote instead of blocking the verdict.
"""

import asyncio
import logging
import random
import sqlite3
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import datetime, timedelta

from config.settings import JudgingConfig
from debate_engine.database import DatabaseManager
from debate_engine.exceptions import ArenaError, DebateNotFoundError, InvalidStateError, UpstreamFailure
from debate_engine.models import Debate, Judge, SweepSummary, Verdict, VerdictScore
from debate_engine.notifications import NotificationEmitter
from debate_engine.ratings import RatingOutcome, RatingUpdater
from debate_engine.tasks import TaskDispatcher
from debate_engine.transcript import DebateTranscript, build_group_transcript, build_transcript
from debate_engine.types import ChallengeType, DebateStatus, Decision, ParticipantStatus, VerdictKind
from debate_engine.utils import new_id, utc_now
from .base import GroupJudgeDecision, JudgeDecision, ParticipantScore
from .factory import JudgeFactory

logger = logging.getLogger(__name__)

FALLBACK_REASONING = "Unable to generate verdict due to technical error: {error}"
MAX_JUDGE_SCORE = 100


@dataclass
class PanelVote:
    """A panel member's decision, fallback votes included."""

    judge: Judge
    decision: JudgeDecision


@dataclass
class GroupPanelVote:
    judge: Judge
    decision: GroupJudgeDecision


@dataclass
class ConsensusResult:
    """Aggregated panel outcome."""

    decision: Decision
    challenger_votes: int = 0
    opponent_votes: int = 0
    tie_votes: int = 0

    def winner_id(self, debate: Debate) -> str | None:
        if self.decision == Decision.CHALLENGER_WINS:
            return debate.challenger_id
        if self.decision == Decision.OPPONENT_WINS:
            return debate.opponent_id
        return None


def aggregate_votes(decisions: Iterable[Decision]) -> ConsensusResult:
    """Combine individual decisions into the panel decision.

    Equal challenger and opponent counts are a TIE. Otherwise the side with
    more votes wins only if it also outnumbers the TIE votes.
    """
    decisions = list(decisions)
    challenger = decisions.count(Decision.CHALLENGER_WINS)
    opponent = decisions.count(Decision.OPPONENT_WINS)
    ties = decisions.count(Decision.TIE)

    if challenger == opponent:
        decision = Decision.TIE
    else:
        leader, votes = (
            (Decision.CHALLENGER_WINS, challenger) if challenger > opponent else (Decision.OPPONENT_WINS, opponent)
        )
        decision = leader if votes > ties else Decision.TIE

    return ConsensusResult(decision, challenger, opponent, ties)


class VerdictConsensusEngine:
    """Selects judge panels, collects votes and finalizes verdicts."""

    def __init__(
        self,
        db: DatabaseManager,
        notifier: NotificationEmitter,
        dispatcher: TaskDispatcher,
        judge_factory: JudgeFactory,
        rating_updater: RatingUpdater,
        config: JudgingConfig,
        rng: random.Random | None = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.db = db
        self.notifier = notifier
        self.dispatcher = dispatcher
        self.judge_factory = judge_factory
        self.rating_updater = rating_updater
        self.config = config
        self.rng = rng or random.Random()
        self.clock = clock

    # ------------------------------------------------------------------
    # Panel
    # ------------------------------------------------------------------

    def select_panel(self, exclude: Iterable[str] = ()) -> list[Judge]:
        """Draw ``min(panel_size, pool)`` judges, preferring ids not in ``exclude``."""
        pool = self.db.list_judges()
        if not pool:
            raise InvalidStateError("judges", "at least one judge", "none")

        size = min(self.config.panel_size, len(pool))
        excluded = set(exclude)
        fresh = [j for j in pool if j.id not in excluded]
        if len(fresh) >= size:
            return self.rng.sample(fresh, size)

        # Not enough unused judges: take them all and top up from the rest
        rest = [j for j in pool if j.id in excluded]
        return fresh + self.rng.sample(rest, size - len(fresh))

    async def evaluate_panel(self, panel: list[Judge], transcript: DebateTranscript) -> list[PanelVote]:
        decisions = await asyncio.gather(*(self._evaluate_with_retry(judge, transcript) for judge in panel))
        return [PanelVote(judge, decision) for judge, decision in zip(panel, decisions)]

    async def _evaluate_with_retry(self, judge_record: Judge, transcript: DebateTranscript) -> JudgeDecision:
        judge = self.judge_factory(judge_record)
        last_error: Exception | None = None
        for attempt in range(1 + self.config.judge_max_retries):
            try:
                return await asyncio.wait_for(
                    judge.evaluate_debate(transcript), timeout=self.config.judge_timeout_seconds
                )
            except (UpstreamFailure, asyncio.TimeoutError) as e:
                last_error = e
                logger.warning(
                    f"Judge {judge_record.name} failed on debate {transcript.debate_id} "
                    f"(attempt {attempt + 1}): {_describe(e)}"
                )

        logger.error(f"Judge {judge_record.name} gave up on debate {transcript.debate_id}; recording a TIE")
        neutral = float(self.config.neutral_score)
        return JudgeDecision(
            decision=Decision.TIE,
            challenger_score=neutral,
            opponent_score=neutral,
            reasoning=FALLBACK_REASONING.format(error=_describe(last_error)),
            is_fallback=True,
        )

    async def _score_with_retry(self, judge_record: Judge, transcript: DebateTranscript) -> GroupJudgeDecision:
        judge = self.judge_factory(judge_record)
        last_error: Exception | None = None
        for attempt in range(1 + self.config.judge_max_retries):
            try:
                return await asyncio.wait_for(
                    judge.evaluate_group(transcript), timeout=self.config.judge_timeout_seconds
                )
            except (UpstreamFailure, asyncio.TimeoutError) as e:
                last_error = e
                logger.warning(
                    f"Judge {judge_record.name} failed to score group round {transcript.debate_id} "
                    f"(attempt {attempt + 1}): {_describe(e)}"
                )

        reasoning = FALLBACK_REASONING.format(error=_describe(last_error))
        neutral = float(self.config.neutral_score)
        return GroupJudgeDecision(
            scores={
                uid: ParticipantScore(uid, neutral, reasoning) for uid in transcript.submitted_user_ids()
            },
            reasoning=reasoning,
            is_fallback=True,
        )

    # ------------------------------------------------------------------
    # Head-to-head verdicts
    # ------------------------------------------------------------------

    async def finalize_debate(self, debate_id: str) -> Debate | None:
        """Adjudicate a COMPLETED debate; returns the updated debate, or None if nothing was done."""
        debate = self.db.get_debate(debate_id)
        if debate is None:
            raise DebateNotFoundError(debate_id)
        if debate.status != DebateStatus.COMPLETED:
            logger.debug(f"Debate {debate_id} is {debate.status.value}; no verdict needed")
            return None
        if debate.challenge_type == ChallengeType.GROUP:
            return await self.score_group_debate(debate_id)

        now = self.clock()
        stale_before = now - timedelta(seconds=self.config.verdict_claim_ttl_seconds)
        if not self.db.claim_verdict(debate_id, now, stale_before):
            logger.info(f"Verdict for debate {debate_id} is already being generated")
            return None

        try:
            transcript = self.transcript_for(debate)
            votes = await self.evaluate_panel(self.select_panel(), transcript)
            result = aggregate_votes(v.decision.decision for v in votes)
            winner_id = result.winner_id(debate)

            with self.db.transaction() as conn:
                if not self.db.transition_debate(
                    debate_id,
                    DebateStatus.COMPLETED,
                    DebateStatus.VERDICT_READY,
                    conn=conn,
                    winner_id=winner_id,
                    verdict_date=self.clock(),
                ):
                    logger.info(f"Debate {debate_id} was finalized by another worker")
                    return None

                self.store_votes(conn, debate, votes, appeal_round=0)
                self.rating_updater.apply_outcome(
                    conn, debate, self.rating_outcome(debate, winner_id, votes), first_time=True
                )
                for user_id in debate.side_ids:
                    self.notifier.outcome(user_id, winner_id, debate_id, debate.topic, conn=conn)
        except Exception:
            self.db.release_verdict_claim(debate_id)
            raise

        logger.info(
            f"Verdict for debate {debate_id}: {result.decision.value} "
            f"({result.challenger_votes}-{result.opponent_votes}-{result.tie_votes})"
        )
        return self.db.get_debate(debate_id)

    def store_votes(
        self, conn: sqlite3.Connection, debate: Debate, votes: list[PanelVote], appeal_round: int
    ) -> list[Verdict]:
        now = self.clock()
        verdicts = [
            Verdict(
                id=new_id(),
                debate_id=debate.id,
                judge_id=vote.judge.id,
                kind=VerdictKind.HEAD_TO_HEAD,
                decision=vote.decision.decision,
                winner_id=aggregate_votes([vote.decision.decision]).winner_id(debate),
                challenger_score=vote.decision.challenger_score,
                opponent_score=vote.decision.opponent_score,
                reasoning=vote.decision.reasoning,
                is_fallback=vote.decision.is_fallback,
                appeal_round=appeal_round,
                created_at=now,
            )
            for vote in votes
        ]
        self.db.insert_verdicts(conn, verdicts)
        return verdicts

    @staticmethod
    def rating_outcome(
        debate: Debate, winner_id: str | None, votes: list[PanelVote], appeal_round: int = 0
    ) -> RatingOutcome:
        return RatingOutcome(
            challenger_id=debate.challenger_id,
            opponent_id=debate.opponent_id,
            winner_id=winner_id,
            challenger_score=sum(v.decision.challenger_score for v in votes),
            opponent_score=sum(v.decision.opponent_score for v in votes),
            max_score=float(MAX_JUDGE_SCORE * len(votes)),
            appeal_round=appeal_round,
        )

    @staticmethod
    def rating_outcome_from_verdicts(debate: Debate, winner_id: str | None, verdicts: list[Verdict]) -> RatingOutcome:
        """Rebuild the outcome that produced an earlier rating application."""
        return RatingOutcome(
            challenger_id=debate.challenger_id,
            opponent_id=debate.opponent_id,
            winner_id=winner_id,
            challenger_score=sum(v.challenger_score or 0 for v in verdicts),
            opponent_score=sum(v.opponent_score or 0 for v in verdicts),
            max_score=float(MAX_JUDGE_SCORE * len(verdicts)),
            appeal_round=verdicts[0].appeal_round if verdicts else 0,
        )

    def transcript_for(self, debate: Debate) -> DebateTranscript:
        statements = self.db.get_statements(debate.id)
        users = self.db.get_users(debate.side_ids)
        return build_transcript(debate, statements, users)

    # ------------------------------------------------------------------
    # Group (King of the Hill) rounds
    # ------------------------------------------------------------------

    async def score_group_debate(self, debate_id: str) -> Debate | None:
        """Score a COMPLETED group round and eliminate participants who did not submit."""
        debate = self.db.get_debate(debate_id)
        if debate is None:
            raise DebateNotFoundError(debate_id)
        if debate.status != DebateStatus.COMPLETED or debate.challenge_type != ChallengeType.GROUP:
            return None

        now = self.clock()
        stale_before = now - timedelta(seconds=self.config.verdict_claim_ttl_seconds)
        if not self.db.claim_verdict(debate_id, now, stale_before):
            logger.info(f"Group round {debate_id} is already being scored")
            return None

        try:
            participants = [p.user_id for p in self.db.get_participants(debate_id, ParticipantStatus.ACTIVE)]
            statements = [s for s in self.db.get_statements(debate_id) if not s.is_placeholder]
            submission_order: dict[str, int] = {}
            for statement in statements:
                submission_order.setdefault(statement.author_id, len(submission_order))

            submitters = [uid for uid in participants if uid in submission_order]
            non_submitters = [uid for uid in participants if uid not in submission_order]

            users = self.db.get_users(participants)
            transcript = build_group_transcript(debate, statements, users, submitters)

            votes: list[GroupPanelVote] = []
            if submitters:
                panel = self.select_panel()
                decisions = await asyncio.gather(*(self._score_with_retry(j, transcript) for j in panel))
                votes = [GroupPanelVote(j, d) for j, d in zip(panel, decisions)]

            totals = {
                uid: sum(v.decision.scores[uid].score for v in votes if uid in v.decision.scores)
                for uid in submitters
            }
            standings = sorted(submitters, key=lambda uid: (-totals[uid], submission_order[uid]))
            winner_id = standings[0] if standings else None

            with self.db.transaction() as conn:
                if not self.db.transition_debate(
                    debate_id,
                    DebateStatus.COMPLETED,
                    DebateStatus.VERDICT_READY,
                    conn=conn,
                    winner_id=winner_id,
                    verdict_date=self.clock(),
                ):
                    return None

                if non_submitters:
                    self.db.eliminate_participants(conn, debate_id, non_submitters)
                self.db.add_participant_scores(conn, debate_id, totals)

                verdicts: list[Verdict] = []
                scores: list[VerdictScore] = []
                for vote in votes:
                    verdict = Verdict(
                        id=new_id(),
                        debate_id=debate_id,
                        judge_id=vote.judge.id,
                        kind=VerdictKind.GROUP,
                        winner_id=winner_id,
                        reasoning=vote.decision.reasoning,
                        is_fallback=vote.decision.is_fallback,
                        created_at=self.clock(),
                    )
                    verdicts.append(verdict)
                    for uid in submitters:
                        entry = vote.decision.scores.get(uid)
                        scores.append(
                            VerdictScore(
                                verdict_id=verdict.id,
                                user_id=uid,
                                score=entry.score if entry else 0.0,
                                reasoning=entry.reasoning if entry else "",
                            )
                        )
                    for uid in non_submitters:
                        scores.append(VerdictScore(verdict_id=verdict.id, user_id=uid, score=0.0, reasoning="No submission"))

                self.db.insert_verdicts(conn, verdicts)
                self.db.insert_verdict_scores(conn, scores)
        except Exception:
            self.db.release_verdict_claim(debate_id)
            raise

        logger.info(
            f"Group round {debate_id} scored: leader {winner_id}, "
            f"{len(non_submitters)} eliminated for not submitting"
        )
        return self.db.get_debate(debate_id)

    def group_standings(self, debate_id: str) -> list[tuple[str, float]]:
        """Submitting participants ranked by total judge score, ties by earlier submission."""
        order: dict[str, int] = {}
        for statement in self.db.get_statements(debate_id):
            if not statement.is_placeholder:
                order.setdefault(statement.author_id, len(order))

        totals: dict[str, float] = {uid: 0.0 for uid in order}
        for score in self.db.get_verdict_scores(debate_id):
            if score.user_id in totals:
                totals[score.user_id] += score.score

        ranked = sorted(totals, key=lambda uid: (-totals[uid], order[uid]))
        return [(uid, totals[uid]) for uid in ranked]

    # ------------------------------------------------------------------
    # Scheduler
    # ------------------------------------------------------------------

    def sweep_pending_verdicts(self, now: datetime | None = None) -> SweepSummary:
        """Re-dispatch verdict jobs for COMPLETED debates with no live claim."""
        now = now or self.clock()
        summary = SweepSummary()
        stale_before = now - timedelta(seconds=self.config.verdict_claim_ttl_seconds)

        for debate in self.db.list_unadjudicated_debates(stale_before):
            summary.processed += 1
            try:
                self.dispatcher.dispatch(
                    f"verdict:{debate.id}", lambda debate_id=debate.id: self.finalize_debate(debate_id)
                )
            except (ArenaError, sqlite3.Error) as e:
                logger.error(f"Failed to dispatch verdict for debate {debate.id}: {e}")
                summary.record_error(debate.id, e)
                continue
            logger.info(f"Re-dispatched verdict generation for debate {debate.id}")

        logger.info(f"Verdict sweep: {summary.processed} debates dispatched, errors={len(summary.errors)}")
        return summary


def _describe(error: Exception | None) -> str:
    if error is None:
        return "unknown error"
    if isinstance(error, asyncio.TimeoutError):
        return "judge timed out"
    return str(error) or type(error).__name__
