"""
Catalog entities and structural validation.

Artists, albums, genres and items are immutable reference data. A Catalog is
built once per run and read-only afterwards; every search starts from a
validated catalog.
"""
from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Tuple

from src.logging_utils import truncate_list
from src.sequencing.errors import MalformedCatalogError

logger = logging.getLogger(__name__)

NOT_RECENT = -1
RECENT = 1
VALID_RECENCY = (NOT_RECENT, RECENT)


@dataclass(frozen=True)
class Artist:
    id: str


@dataclass(frozen=True)
class Album:
    id: str
    artist: Artist


@dataclass(frozen=True)
class Genre:
    id: str


@dataclass(frozen=True)
class Item:
    """A single song in the catalog."""

    id: str
    artist: Artist
    album: Album
    genre: Genre
    energy: int
    """Only relative deltas between neighbours are meaningful."""

    play_count: int = 0
    recency: int = NOT_RECENT
    """Signed rank: -1 not recently consumed, +1 recently consumed."""


@dataclass(frozen=True)
class CatalogIssue:
    item_id: str
    reason: str


@dataclass(frozen=True)
class WellformedResult:
    """
    Outcome of catalog validation.

    Attributes:
        ok: True when no issue was found
        issues: Every issue found, in catalog order
    """
    ok: bool
    issues: Tuple[CatalogIssue, ...] = field(default_factory=tuple)

    @property
    def offending_item_ids(self) -> List[str]:
        seen: Dict[str, None] = {}
        for issue in self.issues:
            seen.setdefault(issue.item_id, None)
        return list(seen)

    def raise_for_issues(self) -> None:
        if not self.ok:
            raise MalformedCatalogError(self.issues)


def validate_catalog(items: Iterable[Item]) -> WellformedResult:
    """
    Check every item for structural consistency.

    Checks artist/album ownership, non-negative play counts, recency rank in
    {-1, +1} and unique item ids. All offending items are reported, not just
    the first. Energy is unrestricted.

    Args:
        items: Catalog items

    Returns:
        WellformedResult listing every issue
    """
    items = list(items)
    issues: List[CatalogIssue] = []

    id_counts = Counter(item.id for item in items)
    reported_duplicates = set()

    for item in items:
        if item.album.artist != item.artist:
            issues.append(CatalogIssue(
                item.id,
                f"artist {item.artist.id!r} does not own album {item.album.id!r} "
                f"(owner {item.album.artist.id!r})",
            ))
        if item.play_count < 0:
            issues.append(CatalogIssue(item.id, f"negative play_count {item.play_count}"))
        if (
            isinstance(item.recency, bool)
            or not isinstance(item.recency, int)
            or item.recency not in VALID_RECENCY
        ):
            issues.append(CatalogIssue(item.id, f"invalid recency {item.recency!r} (expected -1 or +1)"))
        if id_counts[item.id] > 1 and item.id not in reported_duplicates:
            reported_duplicates.add(item.id)
            issues.append(CatalogIssue(item.id, f"duplicate item id ({id_counts[item.id]} occurrences)"))

    result = WellformedResult(ok=not issues, issues=tuple(issues))
    if issues:
        offenders = result.offending_item_ids
        logger.warning(
            f"Catalog validation found {len(issues)} issue(s) across "
            f"{len(offenders)} item(s): {truncate_list(offenders, max_items=5)}"
        )
    return result


class Catalog:
    """Immutable, ordered collection of validated items."""

    def __init__(self, items: Iterable[Item]):
        self._items: Tuple[Item, ...] = tuple(items)
        self._by_id: Dict[str, Item] = {item.id: item for item in self._items}

    @classmethod
    def build(cls, items: Iterable[Item]) -> "Catalog":
        """Validate items and build a catalog, raising MalformedCatalogError on any issue."""
        items = tuple(items)
        validate_catalog(items).raise_for_issues()
        catalog = cls(items)
        logger.debug(f"Built catalog with {len(catalog)} items")
        return catalog

    @property
    def items(self) -> Tuple[Item, ...]:
        return self._items

    def get(self, item_id: str) -> Optional[Item]:
        return self._by_id.get(item_id)

    def validate(self) -> WellformedResult:
        return validate_catalog(self._items)

    def artists(self) -> List[Artist]:
        return list(dict.fromkeys(item.artist for item in self._items))

    def albums(self) -> List[Album]:
        return list(dict.fromkeys(item.album for item in self._items))

    def genres(self) -> List[Genre]:
        return list(dict.fromkeys(item.genre for item in self._items))

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[Item]:
        return iter(self._items)

    def __contains__(self, item: object) -> bool:
        return isinstance(item, Item) and self._by_id.get(item.id) == item

    def __repr__(self) -> str:
        return (
            f"Catalog(items={len(self._items)}, artists={len(self.artists())}, "
            f"albums={len(self.albums())}, genres={len(self.genres())})"
        )


def catalog_from_records(records: Iterable[Mapping[str, Any]], *, validate: bool = True) -> Catalog:
    """
    Build a catalog from plain dict records.

    Each record needs 'id', 'artist', 'album', 'genre' and 'energy'; 'play_count'
    defaults to 0 and 'recency' to -1. An album record may carry 'album_artist'
    when its owner differs from the item's artist (useful for reproducing
    malformed input). Entities with the same id are shared.

    Args:
        records: Iterable of mappings
        validate: Raise MalformedCatalogError on invalid records

    Returns:
        Catalog in record order
    """
    artists: Dict[str, Artist] = {}
    albums: Dict[Tuple[str, str], Album] = {}
    genres: Dict[str, Genre] = {}
    items: List[Item] = []

    for record in records:
        artist_id = str(record["artist"])
        artist = artists.setdefault(artist_id, Artist(artist_id))
        owner_id = str(record.get("album_artist") or artist_id)
        owner = artists.setdefault(owner_id, Artist(owner_id))
        album_id = str(record["album"])
        album = albums.setdefault((album_id, owner_id), Album(album_id, owner))
        genre_id = str(record["genre"])
        genre = genres.setdefault(genre_id, Genre(genre_id))
        items.append(Item(
            id=str(record["id"]),
            artist=artist,
            album=album,
            genre=genre,
            energy=int(record["energy"]),
            play_count=int(record.get("play_count", 0)),
            recency=int(record.get("recency", NOT_RECENT)),
        ))

    if validate:
        return Catalog.build(items)
    return Catalog(items)
