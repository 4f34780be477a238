"""
app/services/fuzzy_matcher.py

Approximate name matching between spreadsheet names and existing records.

Scoring, per existing candidate (names lowercased and trimmed):
    exact equality                 -> 1.0, returned immediately
    substring either direction     -> 0.9 (markets and stores)
    person-name token subset       -> 0.95 (advisors only)
    normalized Levenshtein ratio   -> accepted when >= threshold
The best-scoring candidate wins; ties keep the earlier candidate.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from app.domain.reconciliation import EntityKind, ExistingEntity

EXACT_SCORE = 1.0
TOKEN_SUBSET_SCORE = 0.95
SUBSTRING_SCORE = 0.9
DEFAULT_THRESHOLD = 0.7


def levenshtein_distance(left: str, right: str) -> int:
    """
    Classic edit distance with unit insert/delete/substitute costs.
    """

    if len(left) < len(right):
        left, right = right, left
    previous = list(range(len(right) + 1))
    for i, left_char in enumerate(left, start=1):
        current = [i]
        for j, right_char in enumerate(right, start=1):
            cost = 0 if left_char == right_char else 1
            current.append(
                min(
                    previous[j] + 1,
                    current[j - 1] + 1,
                    previous[j - 1] + cost,
                )
            )
        previous = current
    return previous[-1]


def similarity(left: str, right: str) -> float:
    max_len = max(len(left), len(right))
    if max_len == 0:
        return 1.0
    return (max_len - levenshtein_distance(left, right)) / max_len


def _normalize(name: str) -> str:
    return name.lower().strip()


def tokens_cover(candidate: str, existing: str) -> bool:
    """
    True when every token of ``candidate`` is a substring of, or contains,
    some token of ``existing`` (and there is at least one token).
    """

    candidate_tokens = candidate.split()
    existing_tokens = existing.split()
    if not candidate_tokens:
        return False
    return all(
        any(token in other or other in token for other in existing_tokens)
        for token in candidate_tokens
    )


@dataclass(frozen=True)
class MatchResult:
    entity: ExistingEntity
    score: float


class FuzzyMatcher:
    def __init__(self, *, threshold: float = DEFAULT_THRESHOLD) -> None:
        self._threshold = threshold

    @property
    def threshold(self) -> float:
        return self._threshold

    def match(
        self,
        name: str,
        candidates: Sequence[ExistingEntity],
        kind: str = EntityKind.STORE,
    ) -> MatchResult | None:
        wanted = _normalize(name)
        best: ExistingEntity | None = None
        best_score = 0.0

        for candidate in candidates:
            existing = _normalize(candidate.name)
            if wanted == existing:
                return MatchResult(entity=candidate, score=EXACT_SCORE)

            if kind == EntityKind.ADVISOR:
                if tokens_cover(wanted, existing) and TOKEN_SUBSET_SCORE > best_score:
                    best, best_score = candidate, TOKEN_SUBSET_SCORE
            elif wanted in existing or existing in wanted:
                if SUBSTRING_SCORE > best_score:
                    best, best_score = candidate, SUBSTRING_SCORE

            score = similarity(wanted, existing)
            if score >= self._threshold and score > best_score:
                best, best_score = candidate, score

        if best is None:
            return None
        return MatchResult(entity=best, score=best_score)
