"""Client-side cache of links grouped by creation date.

The store is the local view of the server after each round-trip. Buckets
are always re-derived from each link's own ``created_at``; the date keys
sent by the server are ignored, so rebuilding a store from any ordering of
the same links yields the same buckets.

Mutation rules:
- ``replace`` swaps the whole content (last completed response wins)
- ``patch_favorite`` and ``patch_access`` are the only local edits, applied
  after the server has acknowledged the change
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from datetime import date
from typing import Any

from pydantic import ValidationError

from linkvault.errors import MalformedPayload
from linkvault.logging import logger
from linkvault.models import Link


def bucket_links(links: Iterable[Link]) -> dict[date, list[Link]]:
    """Group links by calendar date, keeping arrival order within a bucket."""
    buckets: dict[date, list[Link]] = {}
    for link in links:
        buckets.setdefault(link.date_key, []).append(link)
    return buckets


def parse_links(payload: Mapping[str, Any] | Iterable[Any] | None) -> list[Link]:
    """Validate a server payload into ``Link`` models.

    Accepts the grouped ``{date: [link, ...]}`` shape and the flat list used
    by admin listings. ``None`` (an empty JSON body) means no links.

    Raises:
        MalformedPayload: If any record fails validation
    """
    if payload is None:
        return []

    if isinstance(payload, Mapping):
        records: list[Any] = []
        for value in payload.values():
            if value is None:
                continue
            if not isinstance(value, list):
                raise MalformedPayload("Links payload must map dates to lists")
            records.extend(value)
    else:
        records = list(payload)

    try:
        return [Link.model_validate(record) for record in records]
    except ValidationError as exc:
        logger.error(f"❌ Server sent invalid link records: {exc.error_count()} error(s)")
        raise MalformedPayload(f"Invalid link record: {exc.errors()[0]['msg']}") from exc


class LinkStore:
    """Mapping of date to the links created that day.

    Example:
        >>> store = LinkStore.from_payload({"2024-01-01": [record]})
        >>> store.dates()
        [datetime.date(2024, 1, 1)]
    """

    def __init__(self, links: Iterable[Link] = ()) -> None:
        self._buckets: dict[date, list[Link]] = bucket_links(links)
        self._generation = 0

    @classmethod
    def from_links(cls, links: Iterable[Link]) -> "LinkStore":
        return cls(links)

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any] | Iterable[Any] | None) -> "LinkStore":
        return cls(parse_links(payload))

    # -------------------------------------------------------------------------
    # Read access
    # -------------------------------------------------------------------------

    @property
    def generation(self) -> int:
        """Incremented on every mutation; lets views detect staleness."""
        return self._generation

    @property
    def buckets(self) -> dict[date, list[Link]]:
        """Copy of the bucket mapping."""
        return {day: list(links) for day, links in self._buckets.items()}

    def dates(self) -> list[date]:
        """Bucket keys, most recent first."""
        return sorted(self._buckets, reverse=True)

    def flatten(self) -> list[Link]:
        """All links, bucket by bucket in insertion order."""
        return [link for links in self._buckets.values() for link in links]

    def get(self, link_id: int) -> Link | None:
        for links in self._buckets.values():
            for link in links:
                if link.id == link_id:
                    return link
        return None

    def __len__(self) -> int:
        return sum(len(links) for links in self._buckets.values())

    def __iter__(self) -> Iterator[Link]:
        return iter(self.flatten())

    def __contains__(self, link_id: object) -> bool:
        return isinstance(link_id, int) and self.get(link_id) is not None

    def __bool__(self) -> bool:
        return bool(self._buckets)

    def to_payload(self) -> dict[str, list[dict[str, Any]]]:
        """Wire representation, keyed by ``YYYY-MM-DD``, most recent first."""
        return {
            day.isoformat(): [link.model_dump(mode="json", by_alias=True) for link in self._buckets[day]]
            for day in self.dates()
        }

    # -------------------------------------------------------------------------
    # Mutation
    # -------------------------------------------------------------------------

    def replace(self, links: Iterable[Link] | "LinkStore") -> None:
        """Swap in new content wholesale."""
        if isinstance(links, LinkStore):
            links = links.flatten()
        self._buckets = bucket_links(links)
        self._generation += 1
        logger.debug(f"Link store replaced ({len(self)} links, generation {self._generation})")

    def clear(self) -> None:
        self._buckets = {}
        self._generation += 1

    def _patch(self, link_id: int, **changes: Any) -> Link | None:
        for links in self._buckets.values():
            for index, link in enumerate(links):
                if link.id == link_id:
                    patched = link.model_copy(update=changes)
                    links[index] = patched
                    self._generation += 1
                    return patched
        return None

    def patch_favorite(self, link_id: int, is_favorite: bool) -> Link | None:
        """Set the favorite flag locally; returns the patched link, if present."""
        return self._patch(link_id, is_favorite=bool(is_favorite))

    def patch_access(self, link_id: int) -> Link | None:
        """Increment the access count locally; returns the patched link, if present."""
        link = self.get(link_id)
        if link is None:
            return None
        return self._patch(link_id, access_count=link.access_count + 1)
