"""Pick the destination section for a set of note tags."""

from dataclasses import dataclass
from typing import AbstractSet

from thinkery_import.mapping.models import Destination, ImportMapping, Section

# How much of the score comes from each ratio
MATCH_WEIGHT = 0.4
SPECIFICITY_WEIGHT = 0.6


class ResolutionError(Exception):
    """Raised when no section matches and the mapping has no default destination."""


@dataclass(frozen=True)
class SectionScore:
    match_count: int
    match_ratio: float
    specificity_ratio: float

    @property
    def score(self) -> float:
        return MATCH_WEIGHT * self.match_ratio + SPECIFICITY_WEIGHT * self.specificity_ratio


def score_section(tags: AbstractSet[str], section: Section) -> SectionScore | None:
    """Score how well ``tags`` fit ``section``; None if it cannot be a candidate."""
    if section.is_catch_all:
        return None

    match_count = len(section.affinity_tags & tags)
    if match_count == 0:
        return None

    return SectionScore(
        match_count=match_count,
        # Share of the note's own tags explained by the section
        match_ratio=min(1.0, match_count / max(1, len(tags))),
        # Share of the section's defining tags present on the note
        specificity_ratio=min(1.0, match_count / max(1, len(section.affinity_tags))),
    )


def resolve(tags: AbstractSet[str], mapping: ImportMapping) -> Destination:
    """Return the best matching destination for ``tags``.

    Candidates are compared by match count, then by score. On a full tie the
    section that comes first in the mapping wins, so only strictly better
    candidates replace the current best. Notes matching nothing go to the
    mapping's default destination.
    """
    tags = frozenset(tags)
    best: Destination | None = None
    best_score: SectionScore | None = None

    for group in mapping.scored_groups():
        for section in group.sections:
            candidate = score_section(tags, section)
            if candidate is None:
                continue
            if best_score is None or _beats(candidate, best_score):
                best = Destination(group, section)
                best_score = candidate

    if best is not None:
        return best
    if mapping.default is None:
        raise ResolutionError(
            f"No section matches tags {sorted(tags)} and no default destination exists"
        )
    return mapping.default


def _beats(candidate: SectionScore, current: SectionScore) -> bool:
    if candidate.match_count != current.match_count:
        return candidate.match_count > current.match_count
    return candidate.score > current.score
