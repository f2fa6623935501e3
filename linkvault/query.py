"""Link query engine.

Turns a ``LinkStore`` plus ``QueryCriteria`` into the grouped view shown
to the user. ``compute_view`` is a pure function: no I/O, no mutation, the
same inputs always give an equal result, so it can be re-run on every
store or criteria change.

Pipeline:
1. Flatten the store
2. Filter (privacy, category, free-text search), excluding a link on the
   first failing check
3. Stable sort by the selected mode
4. Re-group by date; buckets are listed most recent first whatever the
   sort mode, each keeping the sorted relative order of its links

Example:
    >>> from linkvault.query import QueryCriteria, compute_view
    >>> view = compute_view(store, QueryCriteria(sort=SortMode.ACCESS_DESC))
    >>> view.dates
    [datetime.date(2024, 1, 2), datetime.date(2024, 1, 1)]
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, field
from datetime import date
from typing import Any

from pydantic import BaseModel, ConfigDict, field_validator

from linkvault.config import PrivacyFilter, SortMode
from linkvault.models import Link
from linkvault.store import LinkStore

#: Category filter value meaning "no category filter".
ALL_CATEGORIES = "all"


class QueryCriteria(BaseModel):
    """Search, filter and sort selection for one view session.

    Attributes:
        search: Free text matched against URL, description and tags
        privacy: Privacy/favorite filter
        category: ``"all"`` or an exact, case-sensitive effective category
        sort: Ordering applied before re-grouping
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    search: str = ""
    privacy: PrivacyFilter = PrivacyFilter.ALL
    category: str = ALL_CATEGORIES
    sort: SortMode = SortMode.DATE_DESC

    @field_validator("search", mode="before")
    @classmethod
    def _none_to_empty(cls, v: Any) -> str:
        return v or ""

    @field_validator("category", mode="before")
    @classmethod
    def _default_category(cls, v: Any) -> str:
        return v or ALL_CATEGORIES

    @property
    def needle(self) -> str:
        """Search text as matched: trimmed and case-folded."""
        return self.search.strip().casefold()

    @property
    def is_unfiltered(self) -> bool:
        return (
            not self.needle
            and self.privacy == PrivacyFilter.ALL
            and self.category == ALL_CATEGORIES
        )


@dataclass(frozen=True)
class GroupedView:
    """Result of a query.

    Attributes:
        groups: Date to links, iterated most recent date first
        links: Filtered links in sorted order (before grouping)
        categories: Filter choices, from the unfiltered store
        total: Number of links in the unfiltered store
    """

    groups: dict[date, tuple[Link, ...]] = field(default_factory=dict)
    links: tuple[Link, ...] = ()
    categories: tuple[str, ...] = ()
    total: int = 0

    @property
    def dates(self) -> list[date]:
        return list(self.groups)

    @property
    def count(self) -> int:
        return len(self.links)

    def __bool__(self) -> bool:
        return bool(self.links)


# =============================================================================
# Filters
# =============================================================================


def matches_privacy(link: Link, privacy: PrivacyFilter) -> bool:
    if privacy == PrivacyFilter.PUBLIC:
        return not link.is_private
    if privacy == PrivacyFilter.PRIVATE:
        return link.is_private
    if privacy == PrivacyFilter.FAVORITES:
        return link.is_favorite
    return True


def matches_category(link: Link, category: str) -> bool:
    return category == ALL_CATEGORIES or link.effective_category == category


def matches_search(link: Link, needle: str) -> bool:
    """Case-folded substring match; an empty needle matches everything."""
    if not needle:
        return True
    return any(
        needle in (value or "").casefold()
        for value in (link.url, link.description, link.tags)
    )


def filter_links(links: Iterable[Link], criteria: QueryCriteria) -> list[Link]:
    needle = criteria.needle
    return [
        link
        for link in links
        if matches_privacy(link, criteria.privacy)
        and matches_category(link, criteria.category)
        and matches_search(link, needle)
    ]


# =============================================================================
# Sorting
# =============================================================================

# Sort mode -> (key, descending)
_SORT_KEYS: dict[SortMode, tuple[Callable[[Link], Any], bool]] = {
    SortMode.DATE_DESC: (lambda link: link.created_at, True),
    SortMode.DATE_ASC: (lambda link: link.created_at, False),
    SortMode.ALPHABETICAL: (lambda link: link.title.casefold(), False),
    SortMode.ACCESS_DESC: (lambda link: link.access_count or 0, True),
    SortMode.CATEGORY: (lambda link: link.effective_category.casefold(), False),
}


def sort_links(links: Iterable[Link], mode: SortMode = SortMode.DATE_DESC) -> list[Link]:
    """Stable sort; ties keep their input order in both directions."""
    key, descending = _SORT_KEYS[SortMode(mode)]
    return sorted(links, key=key, reverse=descending)


# =============================================================================
# Grouping
# =============================================================================


def group_by_date(links: Sequence[Link]) -> dict[date, tuple[Link, ...]]:
    """Bucket sorted links by date; dates descending, order kept within."""
    buckets: dict[date, list[Link]] = {}
    for link in links:
        buckets.setdefault(link.date_key, []).append(link)
    return {day: tuple(buckets[day]) for day in sorted(buckets, reverse=True)}


def available_categories(store: LinkStore | Iterable[Link]) -> list[str]:
    """Distinct effective categories of the whole store, case-folded order."""
    return sorted(
        {link.effective_category for link in store},
        key=lambda category: (category.casefold(), category),
    )


def compute_view(store: LinkStore, criteria: QueryCriteria | None = None) -> GroupedView:
    """Filter, sort and re-group the store for display.

    Args:
        store: Links to query
        criteria: Selection to apply (defaults to everything, newest first)

    Returns:
        A ``GroupedView``; an empty store gives an empty view
    """
    criteria = criteria or QueryCriteria()
    everything = store.flatten()

    ordered = sort_links(filter_links(everything, criteria), criteria.sort)

    return GroupedView(
        groups=group_by_date(ordered),
        links=tuple(ordered),
        categories=tuple(available_categories(everything)),
        total=len(everything),
    )


class LinkView:
    """Memoized ``compute_view`` over a live store.

    The view is recomputed only when the store generation or the criteria
    changed since the last read.

    Example:
        >>> view = LinkView(store)
        >>> view.criteria = view.criteria.model_copy(update={"search": "python"})
        >>> view.current.count
        3
    """

    def __init__(self, store: LinkStore, criteria: QueryCriteria | None = None) -> None:
        self.store = store
        self.criteria = criteria or QueryCriteria()
        self._cache_key: tuple[int, int, QueryCriteria] | None = None
        self._cached: GroupedView | None = None

    def update(self, **changes: Any) -> GroupedView:
        """Replace criteria fields and return the refreshed view."""
        self.criteria = QueryCriteria.model_validate({**self.criteria.model_dump(), **changes})
        return self.current

    def reset(self) -> None:
        self.criteria = QueryCriteria()

    @property
    def current(self) -> GroupedView:
        key = (id(self.store), self.store.generation, self.criteria)
        if self._cached is None or key != self._cache_key:
            self._cached = compute_view(self.store, self.criteria)
            self._cache_key = key
        return self._cached
