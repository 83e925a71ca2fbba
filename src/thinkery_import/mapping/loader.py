"""Load and validate the tag -> section mapping file."""

import json
import logging
from pathlib import Path

from pydantic import TypeAdapter, ValidationError

from thinkery_import.mapping.models import (
    DEFAULT_GROUP_NAME,
    ImportMapping,
    Section,
    SectionGroup,
    SectionGroupRecord,
    build_default_destination,
)

logger = logging.getLogger(__name__)

_GROUPS_ADAPTER = TypeAdapter(list[SectionGroupRecord])


class ConfigurationError(Exception):
    """Raised when the mapping file is missing, malformed or schema-invalid."""


def _format_validation_error(exc: ValidationError) -> str:
    problems = []
    for err in exc.errors():
        location = ".".join(str(part) for part in err["loc"]) or "<root>"
        problems.append(f"{location}: {err['msg']}")
    return "; ".join(problems)


def parse_mapping(data: object) -> ImportMapping:
    """Validate a decoded mapping document and build an ImportMapping.

    The default "Uncategorized" destination is appended as the final group.
    """
    if not isinstance(data, list):
        raise ConfigurationError(
            f"Mapping must be a JSON array of section groups, got {type(data).__name__}"
        )

    try:
        records = _GROUPS_ADAPTER.validate_python(data)
    except ValidationError as e:
        raise ConfigurationError(
            f"Invalid mapping: {_format_validation_error(e)}"
        ) from e

    groups: list[SectionGroup] = []
    seen: set[str] = set()
    for record in records:
        if record.name == DEFAULT_GROUP_NAME:
            raise ConfigurationError(
                f"Section group name '{DEFAULT_GROUP_NAME}' is reserved for unmatched notes"
            )
        if record.name in seen:
            raise ConfigurationError(f"Duplicate section group name '{record.name}'")
        seen.add(record.name)

        sections = [
            Section(name=s.name, affinity_tags=frozenset(s.tags))
            for s in record.sections
        ]
        groups.append(SectionGroup(name=record.name, sections=sections))

    if not groups:
        logger.warning("Mapping defines no section groups; every note will be uncategorized")

    default = build_default_destination()
    groups.append(default.group)
    return ImportMapping(groups=groups, default=default)


def load_mapping(path: str | Path) -> ImportMapping:
    """Read the mapping JSON file at ``path``."""
    path = Path(path)
    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigurationError(f"Cannot read mapping file {path}: {e}") from e

    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Mapping file {path} is not valid JSON: {e}") from e

    mapping = parse_mapping(data)
    logger.info(
        "Loaded mapping from %s: %d section groups, %d sections",
        path,
        len(mapping.groups),
        sum(len(g.sections) for g in mapping.groups),
    )
    return mapping
