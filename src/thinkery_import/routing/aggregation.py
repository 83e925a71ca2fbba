"""Turn routing results into the final set of pages to publish."""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone

from thinkery_import.mapping.models import Destination
from thinkery_import.onenote.page_builder import render_aggregate_page, render_note_page
from thinkery_import.routing.classifier import RoutingResult
from thinkery_import.thinkery.models import Note

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PendingPage:
    title: str
    destination: Destination
    notes: tuple[Note, ...]
    aggregated: bool
    content: str
    promoted: bool = False


def _single_page(note: Note, destination: Destination, *, promoted: bool = False) -> PendingPage:
    return PendingPage(
        title=note.title,
        destination=destination,
        notes=(note,),
        aggregated=False,
        content=render_note_page(note),
        promoted=promoted,
    )


def finalize(routing: RoutingResult, created_at: datetime | None = None) -> list[PendingPage]:
    """Build every page: standalone notes first, then one page per bucket.

    A bucket that ended up with a single note is published as that note's
    own page. ``created_at`` stamps the combined pages (defaults to now).
    """
    created_at = created_at or datetime.now(timezone.utc)
    pages = [_single_page(d.note, d.destination) for d in routing.standalone]

    for key, bucket in routing.context.buckets():
        if len(bucket.members) == 1:
            note = bucket.members[0]
            logger.info(
                "Promoting '%s' to its own page: only small note in %s [%s]",
                note.title, bucket.destination.describe(), key.tag_signature,
            )
            pages.append(_single_page(note, bucket.destination, promoted=True))
            continue

        logger.info(
            "Combining %d small notes into '%s' (%s)",
            len(bucket.members), bucket.page_title, bucket.destination.describe(),
        )
        pages.append(
            PendingPage(
                title=bucket.page_title,
                destination=bucket.destination,
                notes=tuple(bucket.members),
                aggregated=True,
                content=render_aggregate_page(bucket.page_title, bucket.members, created_at),
            )
        )

    routing.context.close()
    return pages
