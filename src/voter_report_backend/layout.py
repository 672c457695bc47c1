"""
Page layout for grouped roster records.

Groups (e.g. the members of one election district) are packed onto
fixed-capacity pages, one section (city/town or legislative district) at a
time. Each group costs its member count plus one header row on every page it
appears on. A group is only split when it cannot fit on a page by itself.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import Any, Iterable, List, Mapping, Optional, Sequence

from .errors import LayoutInvariantError

logger = logging.getLogger(__name__)

DEFAULT_PAGE_CAPACITY = 30


@dataclass(frozen=True)
class Group:
    key: str
    members: Sequence[Any]


@dataclass(frozen=True)
class Section:
    """Input to the layout engine: one section's groups in iteration order."""

    section_key: str
    groups_by_identifier: Mapping[str, Sequence[Any]]
    label: Optional[str] = None

    @property
    def total_members(self) -> int:
        return sum(len(members) for members in self.groups_by_identifier.values())


@dataclass(frozen=True)
class Page:
    section_key: str
    groups: List[Group] = field(default_factory=list)
    is_final_page_of_section: bool = False
    section_total_members: Optional[int] = None
    label: Optional[str] = None

    @property
    def member_count(self) -> int:
        return sum(len(group.members) for group in self.groups)


def group_cost(members: Sequence[Any]) -> int:
    """Rows a group consumes on a page: its members plus a header row."""
    return len(members) + 1


def _chunk(members: Sequence[Any], size: int) -> Iterable[Sequence[Any]]:
    for start in range(0, len(members), size):
        yield members[start : start + size]


def _paginate_section(section: Section, page_capacity: int) -> List[Page]:
    pages: List[Page] = []
    current_groups: List[Group] = []
    current_cost = 0
    member_total = 0

    def new_page(groups: List[Group]) -> Page:
        return Page(section_key=section.section_key, groups=groups, label=section.label)

    for identifier, members in section.groups_by_identifier.items():
        if not members:
            continue
        cost = group_cost(members)
        member_total += len(members)

        if current_cost + cost > page_capacity and current_groups:
            pages.append(new_page(current_groups))
            current_groups = []
            current_cost = 0

        if cost > page_capacity:
            # Only reachable with an empty buffer: the flush above already ran.
            for chunk in _chunk(members, page_capacity - 1):
                pages.append(new_page([Group(key=identifier, members=list(chunk))]))
        else:
            current_groups.append(Group(key=identifier, members=list(members)))
            current_cost += cost

    if current_groups:
        final = new_page(current_groups)
        pages.append(replace(final, is_final_page_of_section=True, section_total_members=member_total))
    elif pages and member_total > 0:
        pages[-1] = replace(pages[-1], is_final_page_of_section=True, section_total_members=member_total)

    return pages


def paginate(sections: Iterable[Section], page_capacity: int = DEFAULT_PAGE_CAPACITY) -> List[Page]:
    """
    Distribute every section's groups across pages.

    Args:
        sections: Sections in output order; groups keep their mapping order
        page_capacity: Rows available on a page, header rows included

    Returns:
        Pages in output order. The last page of each non-empty section is
        flagged final and carries the section's member total; a section with
        no members produces no pages.

    Raises:
        ValueError: If ``page_capacity`` leaves no room for a member row
    """
    if page_capacity < 2:
        raise ValueError(f"page_capacity must be at least 2, got {page_capacity}")

    pages: List[Page] = []
    for section in sections:
        pages.extend(_paginate_section(section, page_capacity))
    return pages


def check_page_invariants(sections: Sequence[Section], pages: Sequence[Page]) -> None:
    """
    Verify that pagination accounted for every member of every section.

    Pages are matched to sections in input order, so a section key that
    appears twice is checked as two sections. Checks, per section: its run of
    pages ends at its only final page, the members on that run add up to its
    input members and the final page carries the section total. No page may
    be left over once every section is matched.

    Raises:
        LayoutInvariantError: On the first violated check
    """
    position = 0
    for section in sections:
        total = section.total_members
        if total == 0:
            continue

        section_pages: List[Page] = []
        while position < len(pages):
            page = pages[position]
            position += 1
            if page.section_key != section.section_key:
                raise LayoutInvariantError(
                    f"Section {section.section_key!r}: found a page of {page.section_key!r} before its final page"
                )
            section_pages.append(page)
            if page.is_final_page_of_section:
                break

        if not section_pages or not section_pages[-1].is_final_page_of_section:
            raise LayoutInvariantError(f"Section {section.section_key!r}: no final page")
        placed = sum(page.member_count for page in section_pages)
        if placed != total:
            raise LayoutInvariantError(f"Section {section.section_key!r}: {placed} members placed, expected {total}")
        final = section_pages[-1]
        if final.section_total_members != total:
            raise LayoutInvariantError(
                f"Section {section.section_key!r}: final page total {final.section_total_members}, expected {total}"
            )

    if position != len(pages):
        raise LayoutInvariantError(f"{len(pages) - position} pages left over after the last section")

    logger.debug(f"Layout check passed for {len(sections)} sections over {len(pages)} pages")
