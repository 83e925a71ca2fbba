"""Tests for page finalization: promotion, combining and note accounting."""

from collections import Counter
from datetime import datetime, timezone

import pytest

from thinkery_import.mapping.loader import parse_mapping
from thinkery_import.onenote.page_builder import render_note_page
from thinkery_import.routing.aggregation import finalize
from thinkery_import.routing.classifier import route_notes
from thinkery_import.thinkery.models import Note, TextBody

NOW = datetime(2024, 5, 1, 10, 0, tzinfo=timezone.utc)


def _mapping(*groups):
    mapping = parse_mapping([
        {
            "OneNoteSectionGroupName": name,
            "OneNoteSections": [
                {"OneNoteSectionName": s, "ThinkeryTags": tags} for s, tags in sections
            ],
        }
        for name, sections in groups
    ])
    for gi, group in enumerate(mapping.groups):
        group.assign(f"group-{gi}")
        for si, section in enumerate(group.sections):
            section.assign(f"section-{gi}-{si}")
    return mapping


def _note(title: str, tags=(), length: int = 10) -> Note:
    return Note(
        title=title,
        body=TextBody("y" * length),
        tags=frozenset(tags),
        created_at=datetime(2013, 7, 4, 18, 0, tzinfo=timezone.utc),
    )


def _pages(notes, mapping, threshold=140):
    return finalize(route_notes(notes, mapping, threshold), created_at=NOW)


def test_recipes_end_to_end():
    mapping = _mapping(("Home", [("Recipes", ["food", "cook"])]))
    notes = [
        _note("Toast", ["food"], 50),
        _note("Soup", ["food"], 60),
        _note("Lasagne", ["food", "cook"], 500),
    ]
    standalone, combined = _pages(notes, mapping)

    assert standalone.title == "Lasagne"
    assert standalone.destination.section.name == "Recipes"
    assert not standalone.aggregated

    assert combined.title == "Small notes - Recipes - food"
    assert combined.aggregated
    assert [n.title for n in combined.notes] == ["Toast", "Soup"]
    assert combined.content.index("<h2>Toast</h2>") < combined.content.index("<h2>Soup</h2>")


def test_singleton_bucket_promoted():
    mapping = _mapping(("Home", [("Recipes", ["food"])]))
    note = _note("Lonely", ["food"], 20)
    [page] = _pages([note], mapping)

    assert page.promoted
    assert not page.aggregated
    assert page.title == "Lonely"
    assert page.notes == (note,)
    assert page.content == render_note_page(note)


def test_promoted_page_matches_standalone_structure():
    mapping = _mapping(("Home", [("Recipes", ["food"])]))
    note = _note("Same", ["food"], 20)
    [promoted] = _pages([note], mapping, threshold=140)
    [standalone] = _pages([note], _mapping(("Home", [("Recipes", ["food"])])), threshold=1)
    assert promoted.content == standalone.content


def test_combined_page_stamped_with_creation_time():
    mapping = _mapping(("Home", [("Recipes", ["food"])]))
    [page] = _pages([_note("a", ["food"]), _note("b", ["food"])], mapping)
    assert NOW.astimezone().isoformat() in page.content


def test_untagged_notes_combined():
    mapping = _mapping(("Home", [("Recipes", ["food"])]))
    [page] = _pages([_note("a"), _note("b"), _note("c")], mapping)
    assert page.title == "Small notes - Uncategorized imported items - untagged"
    assert len(page.notes) == 3


def test_standalone_pages_come_first():
    mapping = _mapping(("Home", [("Recipes", ["food"])]))
    notes = [_note("tiny1", ["food"]), _note("big", ["food"], 400), _note("tiny2", ["food"])]
    pages = _pages(notes, mapping)
    assert [p.title for p in pages] == ["big", "Small notes - Recipes - food"]


def test_no_note_lost_or_duplicated():
    mapping = _mapping(
        ("Home", [("Recipes", ["food", "cook"]), ("Garden", ["plants"])]),
        ("Work", [("Meetings", ["meeting"]), ("Catch-all", [])]),
    )
    specs = [
        (["food"], 10), (["food"], 500), (["plants"], 5), (["meeting"], 139),
        (["meeting"], 140), ([], 1), ([], 2), (["other"], 3), (["food", "cook"], 4),
        (["cook", "food"], 5), (["plants", "food"], 6), (["meeting"], 1000),
    ]
    notes = [_note(f"note-{i}", tags, length) for i, (tags, length) in enumerate(specs)]
    pages = _pages(notes, mapping)

    published = Counter(n.title for page in pages for n in page.notes)
    assert sorted(published) == sorted(n.title for n in notes)
    assert set(published.values()) == {1}


def test_context_closed_after_finalize():
    mapping = _mapping(("Home", [("Recipes", ["food"])]))
    routing = route_notes([_note("a", ["food"])], mapping, 140)
    finalize(routing, created_at=NOW)
    assert routing.context.closed
    key, _ = routing.context.buckets()[0]
    with pytest.raises(RuntimeError):
        routing.context.add(key, _note("b"), mapping.default)
