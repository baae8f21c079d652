"""Best-effort text matching used to link extracted records together."""

from typing import Optional, Sequence
from uuid import UUID

from tender_ai.database.models import ExtractedItem, OutlineSection


def match_section(reference: Optional[str], sections: Sequence[OutlineSection]) -> Optional[UUID]:
    """Section whose title contains the reference (or vice versa), else the first section.

    Comparison is case-insensitive. Returns None only when there are no sections.
    """
    if not sections:
        return None
    if reference:
        ref = reference.strip().lower()
        for section in sections:
            title = (section.title or "").strip().lower()
            if ref and title and (ref in title or title in ref):
                return section.id
    return sections[0].id


def match_item(reference: Optional[str], items: Sequence[ExtractedItem]) -> Optional[UUID]:
    """Item with the same section reference, or whose text mentions the reference.

    Returns None (feedback stays unlinked) when nothing matches.
    """
    if not reference:
        return None
    ref = reference.strip()
    needle = ref.lower()
    for item in items:
        if item.section_reference and item.section_reference.strip() == ref:
            return item.id
        if needle and needle in (item.original_text or "").lower():
            return item.id
    return None
