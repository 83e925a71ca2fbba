"""Render notes as OneNote page documents (HTML accepted by the Graph pages API)."""

from datetime import datetime
from html import escape
from typing import Sequence

from thinkery_import.thinkery.models import ChecklistBody, Note, TextBody

HUMAN_TIME_FORMAT = "%Y-%m-%d %H:%M"


def _document(title: str, created_at: datetime, body_parts: list[str]) -> str:
    head = [
        "<!DOCTYPE html>",
        "<html>",
        "<head>",
        f"<title>{escape(title)}</title>",
        f'<meta name="created" content="{machine_timestamp(created_at)}" />',
        "</head>",
        "<body>",
    ]
    return "\n".join(head + body_parts + ["</body>", "</html>"])


def machine_timestamp(value: datetime) -> str:
    """ISO 8601 with offset; naive values are taken as local time."""
    return value.astimezone().isoformat()


def created_line(value: datetime) -> str:
    return f"<p>Created: {value.astimezone().strftime(HUMAN_TIME_FORMAT)}</p>"


def link_fragment(url: str | None) -> str | None:
    if not url:
        return None
    href = escape(url)
    return f'<p><a href="{href}">{href}</a></p>'


def body_fragment(note: Note) -> str:
    """Note content; todo items become OneNote checkboxes labelled by the title."""
    if isinstance(note.body, ChecklistBody):
        tag = "to-do:completed" if note.body.checked else "to-do"
        return f'<p data-tag="{tag}">{escape(note.title)}</p>'
    if isinstance(note.body, TextBody):
        return f"<div>{note.body.html}</div>"
    raise TypeError(f"Unsupported note body: {note.body!r}")


def render_note_page(note: Note) -> str:
    """Render a page holding a single note.

    Fragments, in order: title, created timestamp (meta), created line,
    link (if any), tag list, body.
    """
    parts = [created_line(note.created_at)]
    link = link_fragment(note.url)
    if link:
        parts.append(link)
    parts.append(f"<p>Tags: {escape(note.tag_signature)}</p>")
    parts.append(body_fragment(note))
    return _document(note.title, note.created_at, parts)


def render_aggregate_page(
    title: str, notes: Sequence[Note], created_at: datetime
) -> str:
    """Render several small notes on one page, in the given order."""
    parts = []
    for note in notes:
        parts.append(f"<h2>{escape(note.title)}</h2>")
        parts.append(created_line(note.created_at))
        link = link_fragment(note.url)
        if link:
            parts.append(link)
        parts.append(body_fragment(note))
    return _document(title, created_at, parts)
