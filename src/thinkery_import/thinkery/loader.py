"""Read a Thinkery JSON export into Note objects."""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path

from pydantic import ValidationError

from thinkery_import.thinkery.models import Note, NoteRecord

logger = logging.getLogger(__name__)


class InputParseError(Exception):
    """Raised when the notes file is missing or not a JSON array."""


@dataclass
class LoadedNotes:
    notes: list[Note] = field(default_factory=list)
    rejected: list[str] = field(default_factory=list)


def parse_notes(data: object) -> LoadedNotes:
    """Convert decoded export data into notes.

    Entries that fail validation are skipped with a warning and listed in
    ``rejected``; the rest keep their export order.
    """
    if not isinstance(data, list):
        raise InputParseError(
            f"Notes export must be a JSON array, got {type(data).__name__}"
        )

    loaded = LoadedNotes()
    for index, entry in enumerate(data):
        try:
            record = NoteRecord.model_validate(entry)
        except ValidationError as e:
            title = entry.get("title") if isinstance(entry, dict) else None
            label = f"#{index} ({title!r})" if isinstance(title, str) else f"#{index}"
            logger.warning(
                "Skipping note %s: %d validation error(s): %s",
                label, e.error_count(), e.errors()[0]["msg"],
            )
            loaded.rejected.append(label)
            continue
        loaded.notes.append(record.to_note())

    return loaded


def load_notes(path: str | Path) -> LoadedNotes:
    path = Path(path)
    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise InputParseError(f"Cannot read notes file {path}: {e}") from e

    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise InputParseError(f"Notes file {path} is not valid JSON: {e}") from e

    loaded = parse_notes(data)
    logger.info(
        "Loaded %d notes from %s (%d rejected)",
        len(loaded.notes), path, len(loaded.rejected),
    )
    return loaded
