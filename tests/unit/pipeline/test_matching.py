from types import SimpleNamespace
from uuid import uuid4

from tender_ai.services.pipeline.matching import match_item, match_section


def _section(title):
    return SimpleNamespace(id=uuid4(), title=title)


def _item(reference=None, text=""):
    return SimpleNamespace(id=uuid4(), section_reference=reference, original_text=text)


class TestMatchSection:

    def test_reference_contained_in_title(self):
        sections = [_section("Overview"), _section("Technical Approach")]
        assert match_section("technical", sections) == sections[1].id

    def test_title_contained_in_reference(self):
        sections = [_section("Overview"), _section("Pricing")]
        assert match_section("Section 4 - Pricing details", sections) == sections[1].id

    def test_falls_back_to_first_section(self):
        sections = [_section("Overview"), _section("Pricing")]
        assert match_section("Staffing", sections) == sections[0].id
        assert match_section(None, sections) == sections[0].id

    def test_no_sections(self):
        assert match_section("anything", []) is None


class TestMatchItem:

    def test_exact_reference(self):
        items = [_item("2.1"), _item("3.4")]
        assert match_item("3.4", items) == items[1].id

    def test_reference_mentioned_in_text(self):
        items = [_item(text="As required by Annex B, provide CVs")]
        assert match_item("annex b", items) == items[0].id

    def test_no_match_stays_unlinked(self):
        assert match_item("9.9", [_item("1.1", "text")]) is None
        assert match_item(None, [_item("1.1")]) is None
