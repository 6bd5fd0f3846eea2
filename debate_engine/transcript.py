"""Structured debate transcripts handed to judges and automated debaters."""

from dataclasses import dataclass, field

from .models import Debate, Statement, User

MISSED_DEADLINE_MARKER = "[MISSED DEADLINE - NO SUBMISSION]"


@dataclass
class TranscriptSide:
    """One participant as presented to a judge."""

    user_id: str
    name: str
    label: str  # "CHALLENGER", "OPPONENT" or the participant's name in group rounds
    position: str | None = None


@dataclass
class TranscriptEntry:
    author_id: str
    round: int
    content: str
    missed_deadline: bool = False


@dataclass
class DebateTranscript:
    """Topic, sides and statements grouped by round."""

    debate_id: str
    topic: str
    category: str
    description: str | None
    total_rounds: int
    sides: list[TranscriptSide]
    entries: list[TranscriptEntry] = field(default_factory=list)
    metadata: dict[str, str] = field(default_factory=dict)

    def side(self, user_id: str) -> TranscriptSide | None:
        return next((s for s in self.sides if s.user_id == user_id), None)

    def rounds(self) -> dict[int, list[TranscriptEntry]]:
        grouped: dict[int, list[TranscriptEntry]] = {}
        for entry in self.entries:
            grouped.setdefault(entry.round, []).append(entry)
        return dict(sorted(grouped.items()))

    def submitted_user_ids(self) -> set[str]:
        return {e.author_id for e in self.entries if not e.missed_deadline}

    def to_text(self) -> str:
        """Render the transcript the way judges read it."""
        lines = [f"DEBATE TOPIC: {self.topic}", f"CATEGORY: {self.category}"]
        if self.description:
            lines.append(f"DESCRIPTION: {self.description}")
        lines.append("")
        for side in self.sides:
            position = f" arguing {side.position}" if side.position else ""
            lines.append(f"{side.label}: {side.name}{position}")

        for round_number, entries in self.rounds().items():
            lines.append(f"\n=== ROUND {round_number} ===")
            for entry in entries:
                side = self.side(entry.author_id)
                label = side.label if side else entry.author_id
                lines.append(f"\n{label}:")
                lines.append(MISSED_DEADLINE_MARKER if entry.missed_deadline else entry.content)

        return "\n".join(lines)


def build_transcript(debate: Debate, statements: list[Statement], users: dict[str, User]) -> DebateTranscript:
    """Transcript of a 1v1 debate, statements ordered by round then submission time."""
    sides = [
        TranscriptSide(
            user_id=debate.challenger_id,
            name=_name(users, debate.challenger_id),
            label="CHALLENGER",
            position=debate.challenger_position.value,
        )
    ]
    if debate.opponent_id:
        sides.append(
            TranscriptSide(
                user_id=debate.opponent_id,
                name=_name(users, debate.opponent_id),
                label="OPPONENT",
                position=debate.opponent_position.value,
            )
        )
    return DebateTranscript(
        debate_id=debate.id,
        topic=debate.topic,
        category=debate.category,
        description=debate.description,
        total_rounds=debate.total_rounds,
        sides=sides,
        entries=_entries(statements),
    )


def build_group_transcript(
    debate: Debate, statements: list[Statement], users: dict[str, User], participant_ids: list[str]
) -> DebateTranscript:
    """Transcript of a multi-party round; sides are labelled by username."""
    sides = [
        TranscriptSide(user_id=uid, name=_name(users, uid), label=_name(users, uid))
        for uid in participant_ids
    ]
    allowed = set(participant_ids)
    return DebateTranscript(
        debate_id=debate.id,
        topic=debate.topic,
        category=debate.category,
        description=debate.description,
        total_rounds=debate.total_rounds,
        sides=sides,
        entries=_entries([s for s in statements if s.author_id in allowed]),
        metadata={"format": "king_of_the_hill"},
    )


def _entries(statements: list[Statement]) -> list[TranscriptEntry]:
    ordered = sorted(statements, key=lambda s: s.round)
    return [
        TranscriptEntry(
            author_id=s.author_id,
            round=s.round,
            content=s.content,
            missed_deadline=s.is_placeholder,
        )
        for s in ordered
    ]


def _name(users: dict[str, User], user_id: str) -> str:
    user = users.get(user_id)
    return user.username if user else user_id
