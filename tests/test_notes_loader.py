import json
from datetime import datetime, timezone

import pytest

from thinkery_import.thinkery.loader import InputParseError, load_notes, parse_notes
from thinkery_import.thinkery.models import ChecklistBody, TextBody, tag_signature


def _entry(**overrides):
    entry = {
        "title": "Pancakes",
        "date": "2014-03-01T09:30:00Z",
        "tags": "food cook",
        "html": "<p>Flour, eggs, milk</p>",
        "url": "http://example.com/pancakes",
    }
    entry.update(overrides)
    return entry


class TestParseNotes:
    def test_text_note(self):
        [note] = parse_notes([_entry()]).notes
        assert note.title == "Pancakes"
        assert note.body == TextBody("<p>Flour, eggs, milk</p>")
        assert note.tags == frozenset({"food", "cook"})
        assert note.created_at == datetime(2014, 3, 1, 9, 30, tzinfo=timezone.utc)
        assert note.url == "http://example.com/pancakes"
        assert note.length == len("<p>Flour, eggs, milk</p>")

    def test_checklist_note(self):
        [note] = parse_notes([_entry(html=True)]).notes
        assert note.body == ChecklistBody(checked=True)
        assert note.length == 0

    def test_boolean_url_is_no_link(self):
        [note] = parse_notes([_entry(url=False)]).notes
        assert note.url is None

    def test_empty_url_is_no_link(self):
        [note] = parse_notes([_entry(url="  ")]).notes
        assert note.url is None

    def test_missing_url(self):
        entry = _entry()
        del entry["url"]
        [note] = parse_notes([entry]).notes
        assert note.url is None

    def test_tags_split_on_any_whitespace(self):
        [note] = parse_notes([_entry(tags="  b\ta  b ")]).notes
        assert note.tags == frozenset({"a", "b"})
        assert note.tag_signature == "a, b"

    def test_tags_are_case_sensitive(self):
        [note] = parse_notes([_entry(tags="Food food")]).notes
        assert note.tags == frozenset({"Food", "food"})

    def test_untagged(self):
        [note] = parse_notes([_entry(tags="")]).notes
        assert note.tags == frozenset()
        assert note.tag_signature == "untagged"

    def test_invalid_entry_skipped(self):
        loaded = parse_notes([_entry(title="ok"), {"title": "broken", "html": "x"}, 5])
        assert [n.title for n in loaded.notes] == ["ok"]
        assert loaded.rejected == ["#1 ('broken')", "#2"]

    def test_input_order_kept(self):
        loaded = parse_notes([_entry(title=t) for t in ("c", "a", "b")])
        assert [n.title for n in loaded.notes] == ["c", "a", "b"]

    def test_not_a_list(self):
        with pytest.raises(InputParseError):
            parse_notes({"notes": []})


class TestLoadNotes:
    def test_load_from_file(self, tmp_path):
        path = tmp_path / "notes.json"
        path.write_text(json.dumps([_entry(), _entry(title="Second")]), encoding="utf-8")
        loaded = load_notes(path)
        assert len(loaded.notes) == 2

    def test_missing_file(self, tmp_path):
        with pytest.raises(InputParseError):
            load_notes(tmp_path / "missing.json")

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "notes.json"
        path.write_text("not json", encoding="utf-8")
        with pytest.raises(InputParseError):
            load_notes(path)


def test_tag_signature_sorted():
    assert tag_signature(frozenset({"b", "a"})) == "a, b"
    assert tag_signature(frozenset()) == "untagged"
