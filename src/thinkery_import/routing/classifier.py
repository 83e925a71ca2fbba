"""Route notes to destinations and collect tiny notes into aggregation buckets."""

import logging
from dataclasses import dataclass, field
from typing import Iterable, NamedTuple

from thinkery_import.mapping.models import Destination, ImportMapping
from thinkery_import.routing.resolver import ResolutionError, resolve
from thinkery_import.thinkery.models import Note

logger = logging.getLogger(__name__)

DEFAULT_TINY_THRESHOLD = 140


class BucketKey(NamedTuple):
    section_id: str
    tag_signature: str


@dataclass
class AggregationBucket:
    page_title: str
    destination: Destination
    members: list[Note] = field(default_factory=list)


class AggregationContext:
    """Buckets of tiny notes, filled in one pass and finalized once."""

    def __init__(self) -> None:
        self._buckets: dict[BucketKey, AggregationBucket] = {}
        self._closed = False

    def add(self, key: BucketKey, note: Note, destination: Destination) -> AggregationBucket:
        if self._closed:
            raise RuntimeError("Aggregation context is already finalized")

        bucket = self._buckets.get(key)
        if bucket is None:
            bucket = AggregationBucket(
                page_title=f"Small notes - {destination.section.name} - {key.tag_signature}",
                destination=destination,
            )
            self._buckets[key] = bucket
        bucket.members.append(note)
        return bucket

    def buckets(self) -> list[tuple[BucketKey, AggregationBucket]]:
        """Buckets in creation order."""
        return list(self._buckets.items())

    def close(self) -> None:
        self._closed = True

    @property
    def closed(self) -> bool:
        return self._closed

    def __len__(self) -> int:
        return len(self._buckets)


@dataclass(frozen=True)
class Standalone:
    note: Note
    destination: Destination


@dataclass(frozen=True)
class AggregationCandidate:
    note: Note
    destination: Destination
    bucket_key: BucketKey


RoutingDecision = Standalone | AggregationCandidate


def classify(
    note: Note,
    destination: Destination,
    tiny_threshold: int,
    context: AggregationContext,
) -> RoutingDecision:
    """Decide whether ``note`` gets its own page or joins a bucket.

    Notes shorter than ``tiny_threshold`` characters are appended to the
    bucket for their section and tag signature.
    """
    if note.length >= tiny_threshold:
        return Standalone(note, destination)

    section_id = destination.section.assigned_id
    if section_id is None:
        raise ValueError(
            f"Section '{destination.section.name}' has no id; create containers first"
        )
    key = BucketKey(section_id, note.tag_signature)
    context.add(key, note, destination)
    return AggregationCandidate(note, destination, key)


@dataclass
class RoutingResult:
    standalone: list[Standalone] = field(default_factory=list)
    context: AggregationContext = field(default_factory=AggregationContext)
    unresolved: list[Note] = field(default_factory=list)

    @property
    def routed_count(self) -> int:
        return len(self.standalone) + sum(
            len(bucket.members) for _, bucket in self.context.buckets()
        )


def route_notes(
    notes: Iterable[Note],
    mapping: ImportMapping,
    tiny_threshold: int = DEFAULT_TINY_THRESHOLD,
) -> RoutingResult:
    """Resolve and classify every note, in input order."""
    result = RoutingResult()

    for note in notes:
        try:
            destination = resolve(note.tags, mapping)
        except ResolutionError as e:
            logger.warning("Skipping note '%s': %s", note.title, e)
            result.unresolved.append(note)
            continue

        decision = classify(note, destination, tiny_threshold, result.context)
        if isinstance(decision, Standalone):
            result.standalone.append(decision)
            logger.info(
                "Note '%s' [%s] -> %s (standalone, %d chars)",
                note.title, note.tag_signature, destination.describe(), note.length,
            )
        else:
            logger.info(
                "Note '%s' [%s] -> %s (aggregated, %d chars)",
                note.title, note.tag_signature, destination.describe(), note.length,
            )

    return result
