"""Confidence-gated choice among ranked product search candidates."""

from collections.abc import Sequence
from dataclasses import dataclass, field

from cookbook_matcher.domain.errors import SelectionValidationError
from cookbook_matcher.domain.jobs import MatchStatus, ProductCandidate
from cookbook_matcher.services.similarity import similarity
from cookbook_matcher.services.text import normalize_product_title

DEFAULT_CONFIDENCE_THRESHOLD = 70
SUGGESTION_LIMIT = 3


@dataclass(frozen=True)
class ProductSelection:
    """Outcome of gating candidates on confidence."""

    match_status: MatchStatus
    selection: ProductCandidate | None = None
    suggestions: list[ProductCandidate] = field(default_factory=list)

    @property
    def confidence(self) -> int | None:
        if self.selection is not None:
            return self.selection.confidence
        if self.suggestions:
            return self.suggestions[0].confidence
        return None


def calculate_title_confidence(subject_title: str, candidate_title: str) -> int:
    """Score how likely ``candidate_title`` names the same book, 0-100."""
    subject = normalize_product_title(subject_title)
    candidate = normalize_product_title(candidate_title)
    if subject == candidate:
        return 100
    score = similarity(subject, candidate)
    if subject and candidate and (subject in candidate or candidate in subject):
        return round(max(score, 95.0))
    return round(score)


def select_candidate(
    candidates: Sequence[ProductCandidate],
    threshold: int = DEFAULT_CONFIDENCE_THRESHOLD,
    suggestion_limit: int = SUGGESTION_LIMIT,
) -> ProductSelection:
    """Auto-accept a confident top candidate or ask for review.

    Candidates are re-sorted by confidence, highest first, keeping the search
    order for ties.
    """
    ranked = sorted(candidates, key=lambda candidate: candidate.confidence, reverse=True)
    if not ranked:
        return ProductSelection(match_status=MatchStatus.NO_MATCH)
    top = ranked[0]
    if top.confidence >= threshold:
        return ProductSelection(match_status=MatchStatus.AUTO_MATCHED, selection=top)
    return ProductSelection(
        match_status=MatchStatus.PENDING_REVIEW,
        suggestions=ranked[:suggestion_limit],
    )


def resolve_selection(
    suggestions: Sequence[ProductCandidate], selected_id: str
) -> ProductCandidate:
    """Return the suggestion the user picked."""
    for candidate in suggestions:
        if candidate.id == selected_id:
            return candidate
    raise SelectionValidationError(f"Product {selected_id} is not in suggestions")
