"""Least-loaded assignment of open challenges to automated participants."""

import heapq
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta

from debate_engine.models import Debate, User

logger = logging.getLogger(__name__)


@dataclass
class ParticipantLoad:
    """Current load of one automated participant during a sweep."""

    user: User
    active_debates: int
    lifetime_debates: int
    preference_rank: int
    assigned: int = 0

    def sort_key(self) -> tuple[int, int, int, str]:
        return (self.active_debates, self.lifetime_debates, self.preference_rank, self.user.id)


@dataclass
class Assignment:
    debate: Debate
    participant: User


def build_loads(
    users: list[User], active_counts: dict[str, int], preference: list[str]
) -> list[ParticipantLoad]:
    """Snapshot the load of every participant; unknown personalities rank last."""
    ranks = {name: index for index, name in enumerate(preference)}
    return [
        ParticipantLoad(
            user=user,
            active_debates=active_counts.get(user.id, 0),
            lifetime_debates=user.total_debates,
            preference_rank=ranks.get(user.ai_personality.value if user.ai_personality else "", len(ranks)),
        )
        for user in users
    ]


def is_eligible(load: ParticipantLoad, challenge: Debate, now: datetime, default_delay_seconds: int) -> bool:
    """A participant may take a challenge it did not create once the challenge is old enough."""
    if challenge.challenger_id == load.user.id:
        return False
    delay = load.user.ai_response_delay_seconds
    if delay is None:
        delay = default_delay_seconds
    if challenge.created_at is None:
        return True
    return challenge.created_at + timedelta(seconds=delay) <= now


def distribute_challenges(
    loads: list[ParticipantLoad],
    challenges: list[Debate],
    per_sweep_cap: int,
    now: datetime,
    default_delay_seconds: int,
) -> list[Assignment]:
    """Plan which participant takes each challenge, oldest challenge first.

    Every challenge goes to the least-loaded eligible participant. The chosen
    participant's load grows by one and it stays in the pool until it reaches
    ``per_sweep_cap`` assignments in this sweep.
    """
    heap = [(load.sort_key(), index) for index, load in enumerate(loads)]
    heapq.heapify(heap)

    assignments: list[Assignment] = []
    for challenge in challenges:
        skipped = []
        chosen_index = None
        while heap:
            key, index = heapq.heappop(heap)
            if is_eligible(loads[index], challenge, now, default_delay_seconds):
                chosen_index = index
                break
            skipped.append((key, index))
        for item in skipped:
            heapq.heappush(heap, item)

        if chosen_index is None:
            logger.debug(f"No eligible participant for challenge {challenge.id}")
            continue

        chosen = loads[chosen_index]
        assignments.append(Assignment(challenge, chosen.user))
        chosen.active_debates += 1
        chosen.lifetime_debates += 1
        chosen.assigned += 1
        if chosen.assigned < per_sweep_cap:
            heapq.heappush(heap, (chosen.sort_key(), chosen_index))

    return assignments
