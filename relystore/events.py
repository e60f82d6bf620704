"""Nostr events, subscription filters and kind classification."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping

# Full-length hex identifiers are 64 characters; anything shorter is a prefix.
_FULL_ID_LENGTH = 64


def _as_tags(tags: Iterable[Iterable[str]]) -> tuple[tuple[str, ...], ...]:
    return tuple(tuple(tag) for tag in tags)


@dataclass(frozen=True)
class Event:
    """An immutable Nostr event."""

    id: str = ""
    pubkey: str = ""
    created_at: int = 0
    kind: int = 0
    tags: tuple[tuple[str, ...], ...] = ()
    content: str = ""
    sig: str = ""

    def __post_init__(self) -> None:
        object.__setattr__(self, "tags", _as_tags(self.tags))

    def to_dict(self) -> dict[str, Any]:
        """Return the event as a JSON-ready dictionary."""
        return {
            "id": self.id,
            "pubkey": self.pubkey,
            "created_at": self.created_at,
            "kind": self.kind,
            "tags": [list(tag) for tag in self.tags],
            "content": self.content,
            "sig": self.sig,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Event":
        """Build an event from its JSON dictionary form."""
        return cls(
            id=str(data.get("id", "")),
            pubkey=str(data.get("pubkey", "")),
            created_at=int(data.get("created_at", 0)),
            kind=int(data.get("kind", 0)),
            tags=_as_tags(data.get("tags", ())),
            content=str(data.get("content", "")),
            sig=str(data.get("sig", "")),
        )


@dataclass
class Filter:
    """A subscription filter; empty fields impose no constraint."""

    ids: tuple[str, ...] = ()
    authors: tuple[str, ...] = ()
    kinds: tuple[int, ...] = ()
    tags: dict[str, tuple[str, ...]] = field(default_factory=dict)
    since: int | None = None
    until: int | None = None
    limit: int = 0

    def __post_init__(self) -> None:
        self.ids = tuple(self.ids)
        self.authors = tuple(self.authors)
        self.kinds = tuple(self.kinds)
        self.tags = {name: tuple(values) for name, values in self.tags.items()}

    def matches(self, event: Event) -> bool:
        """Return True if the event satisfies this filter."""
        return event_matches_filter(event, self)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Filter":
        """Build a filter from its JSON dictionary form (tag keys start with '#')."""
        tags = {
            key[1:]: tuple(str(v) for v in values)
            for key, values in data.items()
            if key.startswith("#") and len(key) > 1
        }
        since = data.get("since")
        until = data.get("until")
        return cls(
            ids=tuple(str(v) for v in data.get("ids") or ()),
            authors=tuple(str(v) for v in data.get("authors") or ()),
            kinds=tuple(int(v) for v in data.get("kinds") or ()),
            tags=tags,
            since=None if since is None else int(since),
            until=None if until is None else int(until),
            limit=int(data.get("limit") or 0),
        )


def _matches_any_prefix(candidates: Iterable[str], target: str) -> bool:
    return any(
        value == target or (len(value) < _FULL_ID_LENGTH and target.startswith(value))
        for value in candidates
    )


def event_matches_filter(event: Event, filter: Filter) -> bool:
    """Check ids, authors (both by prefix), kinds, tags and the time window."""
    if filter.ids and not _matches_any_prefix(filter.ids, event.id):
        return False
    if filter.authors and not _matches_any_prefix(filter.authors, event.pubkey):
        return False
    if filter.kinds and event.kind not in filter.kinds:
        return False
    for name, values in filter.tags.items():
        if not values:
            continue
        if not any(
            len(tag) > 1 and tag[0] == name and tag[1] in values for tag in event.tags
        ):
            return False
    if filter.since is not None and event.created_at < filter.since:
        return False
    if filter.until is not None and event.created_at > filter.until:
        return False
    return True


def is_ephemeral_kind(kind: int) -> bool:
    """Kinds 20000-29999 are not meant to be stored permanently."""
    return 20000 <= kind < 30000


def is_replaceable_kind(kind: int) -> bool:
    """Kinds 0, 3 and 10000-19999 keep only the latest event per author."""
    return kind in (0, 3) or 10000 <= kind < 20000


def is_addressable_kind(kind: int) -> bool:
    """Kinds 30000-39999 keep the latest event per author and 'd' tag."""
    return 30000 <= kind < 40000