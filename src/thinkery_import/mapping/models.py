"""Section mapping: how Thinkery tags map onto OneNote section groups/sections."""

from dataclasses import dataclass, field
from typing import Annotated, Iterator

from pydantic import BaseModel, Field, StrictStr

DEFAULT_GROUP_NAME = "Uncategorized"
DEFAULT_SECTION_NAME = "Uncategorized imported items"

NonEmptyStr = Annotated[StrictStr, Field(min_length=1)]


# -- Mapping file records --


class SectionRecord(BaseModel):
    """One section entry of the mapping file."""

    name: NonEmptyStr = Field(alias="OneNoteSectionName")
    tags: list[StrictStr] = Field(alias="ThinkeryTags")


class SectionGroupRecord(BaseModel):
    """One section group entry of the mapping file."""

    name: NonEmptyStr = Field(alias="OneNoteSectionGroupName")
    sections: list[SectionRecord] = Field(alias="OneNoteSections")


# -- Validated mapping --


@dataclass(eq=False)
class Section:
    name: str
    affinity_tags: frozenset[str] = frozenset()
    assigned_id: str | None = None

    @property
    def is_catch_all(self) -> bool:
        return not self.affinity_tags

    def assign(self, section_id: str) -> None:
        """Attach the OneNote id once the section exists remotely."""
        if self.assigned_id is not None and self.assigned_id != section_id:
            raise ValueError(
                f"Section '{self.name}' already has id {self.assigned_id}"
            )
        self.assigned_id = section_id


@dataclass(eq=False)
class SectionGroup:
    name: str
    sections: list[Section] = field(default_factory=list)
    assigned_id: str | None = None

    def assign(self, group_id: str) -> None:
        if self.assigned_id is not None and self.assigned_id != group_id:
            raise ValueError(
                f"Section group '{self.name}' already has id {self.assigned_id}"
            )
        self.assigned_id = group_id


@dataclass(frozen=True)
class Destination:
    """The (group, section) pair a note is routed to."""

    group: SectionGroup
    section: Section

    def describe(self) -> str:
        return f"{self.group.name} / {self.section.name}"


@dataclass
class ImportMapping:
    """Ordered section groups plus the fallback destination.

    When built by the loader, the default destination's group is the last
    entry of ``groups``.
    """

    groups: list[SectionGroup]
    default: Destination | None = None

    def scored_groups(self) -> Iterator[SectionGroup]:
        """Groups that take part in scoring (everything but the default group)."""
        default_group = self.default.group if self.default else None
        for group in self.groups:
            if group is not default_group:
                yield group

    def sections(self) -> Iterator[tuple[SectionGroup, Section]]:
        for group in self.groups:
            for section in group.sections:
                yield group, section


def build_default_destination() -> Destination:
    section = Section(DEFAULT_SECTION_NAME)
    group = SectionGroup(DEFAULT_GROUP_NAME, [section])
    return Destination(group, section)
