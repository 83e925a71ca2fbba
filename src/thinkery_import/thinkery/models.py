"""Thinkery export records and the immutable notes built from them."""

from dataclasses import dataclass
from datetime import datetime

from pydantic import BaseModel, StrictBool, StrictStr

UNTAGGED = "untagged"


@dataclass(frozen=True)
class TextBody:
    html: str


@dataclass(frozen=True)
class ChecklistBody:
    """A Thinkery todo item: the export stores its check state instead of HTML."""

    checked: bool


Body = TextBody | ChecklistBody


def tag_signature(tags: frozenset[str]) -> str:
    """Sorted, comma-joined tags, or "untagged"."""
    if not tags:
        return UNTAGGED
    return ", ".join(sorted(tags))


@dataclass(frozen=True)
class Note:
    title: str
    body: Body
    tags: frozenset[str]
    created_at: datetime
    url: str | None = None

    @property
    def length(self) -> int:
        if isinstance(self.body, TextBody):
            return len(self.body.html)
        return 0

    @property
    def tag_signature(self) -> str:
        return tag_signature(self.tags)


class NoteRecord(BaseModel):
    """One entry of a Thinkery JSON export."""

    title: StrictStr
    date: datetime
    tags: StrictStr = ""
    html: StrictStr | StrictBool
    url: StrictStr | StrictBool | None = None

    def to_note(self) -> Note:
        if isinstance(self.html, bool):
            body: Body = ChecklistBody(checked=self.html)
        else:
            body = TextBody(html=self.html)

        # Thinkery writes `false` for notes without a link
        url = self.url if isinstance(self.url, str) and self.url.strip() else None

        return Note(
            title=self.title,
            body=body,
            tags=frozenset(self.tags.split()),
            created_at=self.date,
            url=url,
        )
