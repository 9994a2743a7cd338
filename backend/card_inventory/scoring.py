"""Weighted similarity between two records that share an identity key."""

from dataclasses import dataclass
from typing import List, Sequence, Tuple

from .fields import normalize_text
from .keys import identity_fields
from .models import CandidateScore, CardRecord


@dataclass(frozen=True)
class ScoreWeights:
    """Additive weights; identity fields dominate the secondary ones."""
    player: float = 5.0
    card_number: float = 4.0
    set: float = 3.0
    year: float = 2.0
    team: float = 1.0
    league: float = 1.0
    title_player: float = 1.0
    partial_set: float = 1.5
    partial_team: float = 0.5


@dataclass(frozen=True)
class MatchThresholds:
    """Acceptance rule for the best candidate.

    The top score must reach ``floor`` and beat the runner-up by more than
    ``gap``.
    """
    floor: float = 8.0
    gap: float = 1.0


def _exact_or_partial(a: str, b: str, exact: float, partial: float) -> float:
    if not a or not b:
        return 0.0
    if a == b:
        return exact
    if a in b or b in a:
        return partial
    return 0.0


def score_match(old: CardRecord, new: CardRecord, weights: ScoreWeights = ScoreWeights()) -> float:
    """Score how well ``new`` matches ``old``. Higher is better, never negative."""
    old_player, old_set, old_number, old_year = identity_fields(old)
    new_player, new_set, new_number, new_year = identity_fields(new)

    score = 0.0
    if old_player and old_player == new_player:
        score += weights.player
    score += _exact_or_partial(old_set, new_set, weights.set, weights.partial_set)
    if old_number and old_number == new_number:
        score += weights.card_number
    if old_year and old_year == new_year:
        score += weights.year
    score += _exact_or_partial(
        normalize_text(old.team), normalize_text(new.team), weights.team, weights.partial_team
    )
    old_league = normalize_text(old.league)
    if old_league and old_league == normalize_text(new.league):
        score += weights.league

    title = normalize_text(old.title)
    if title and new_player and new_player in title:
        score += weights.title_player
    return score


def rank_candidates(
    old: CardRecord,
    candidates: Sequence[Tuple[int, CardRecord]],
    weights: ScoreWeights = ScoreWeights(),
) -> List[CandidateScore]:
    """Score every candidate and sort best first.

    The sort is stable, so equal scores keep input order and the first
    candidate wins ties.
    """
    scored = [CandidateScore(position, score_match(old, record, weights)) for position, record in candidates]
    return sorted(scored, key=lambda c: -c.score)


def accept(ranked: Sequence[CandidateScore], thresholds: MatchThresholds = MatchThresholds()) -> bool:
    """Whether the top-ranked candidate is a confident match."""
    if not ranked:
        return False
    top = ranked[0].score
    if top < thresholds.floor:
        return False
    if len(ranked) > 1 and top - ranked[1].score <= thresholds.gap:
        return False
    return True
