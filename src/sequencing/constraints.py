"""
Constraint library for item sequences.

This module provides pure predicates over a candidate sequence:
- Structural: uniqueness, no adjacent same artist / album, artist streaks
- Perceptual: genre run bound, energy smoothness
- Global: recency ordering, exposure balance, high-play spacing

Every predicate returns a bool. The Constraint value object wraps a predicate
with its parameters (and optional negation) so bundles can be validated and
searched uniformly.

Incremental predicates are violation-monotone: once a prefix violates them,
every extension does too. Their placement checks only look at the pairs or
windows that involve the newly placed item. Deferred predicates depend on the
whole sequence and are only meaningful at full length.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Optional, Sequence, Tuple

from src.sequencing.catalog import Item


class ConstraintId(str, Enum):
    UNIQUENESS = "uniqueness"
    NO_ADJACENT_SAME_ARTIST = "no_adjacent_same_artist"
    NO_ADJACENT_SAME_ALBUM = "no_adjacent_same_album"
    GENRE_RUN_BOUND = "genre_run_bound"
    ENERGY_SMOOTHNESS = "energy_smoothness"
    RECENCY_ORDER = "recency_order"
    EXPOSURE_BALANCE = "exposure_balance"
    NO_ARTIST_STREAK = "no_artist_streak"
    HIGH_PLAY_SPACING = "high_play_spacing"

    def __str__(self) -> str:
        return self.value


# ============================================================================
# PREDICATES
# ============================================================================

def uniqueness(seq: Sequence[Item]) -> bool:
    """True iff all occupied positions hold pairwise-distinct items."""
    return len({item.id for item in seq}) == len(seq)


def no_adjacent_same_artist(seq: Sequence[Item]) -> bool:
    return all(seq[i].artist != seq[i + 1].artist for i in range(len(seq) - 1))


def no_adjacent_same_album(seq: Sequence[Item]) -> bool:
    return all(seq[i].album != seq[i + 1].album for i in range(len(seq) - 1))


def genre_run_bound(seq: Sequence[Item], max_run: int) -> bool:
    """
    Endpoint check for genre runs.

    For every i with i + max_run <= last_index, the items at i and i + max_run
    must differ in genre. Only the two window endpoints are compared, so this
    only approximates a run-length limit: interior pairs are never inspected,
    and equal genres exactly max_run apart fail even when no run exists
    between them.
    """
    last_index = len(seq) - 1
    return all(
        seq[i].genre != seq[i + max_run].genre
        for i in range(0, last_index - max_run + 1)
    )


def energy_smoothness(seq: Sequence[Item], max_jump: int) -> bool:
    return all(abs(seq[i].energy - seq[i + 1].energy) <= max_jump for i in range(len(seq) - 1))


def recency_order(seq: Sequence[Item]) -> bool:
    """
    Global recency ordering.

    For every pair of positions (i, j): recency(i) < recency(j) implies i < j,
    so a lower-ranked item never follows a higher-ranked one anywhere.
    """
    highest = None
    for item in seq:
        if highest is not None and item.recency < highest:
            return False
        if highest is None or item.recency > highest:
            highest = item.recency
    return True


def exposure_balance(seq: Sequence[Item], popular_threshold: int, less_played_threshold: int) -> bool:
    """
    Both popularity tiers present and placed on opposite halves.

    Requires a less-played item (play_count <= less_played_threshold) strictly
    before the midpoint and a popular item (play_count >= popular_threshold)
    at or after it. Midpoint is last_index // 2.
    """
    if not seq:
        return False
    midpoint = (len(seq) - 1) // 2
    less_played = [i for i, item in enumerate(seq) if item.play_count <= less_played_threshold]
    popular = [i for i, item in enumerate(seq) if item.play_count >= popular_threshold]
    if not less_played or not popular:
        return False
    return any(i < midpoint for i in less_played) and any(i >= midpoint for i in popular)


def no_artist_streak(seq: Sequence[Item], window: int) -> bool:
    """True iff no contiguous run of `window` positions shares one artist."""
    for end in range(window - 1, len(seq)):
        if _window_shares_artist(seq, end, window):
            return False
    return True


def high_play_spacing(seq: Sequence[Item], high_threshold: int) -> bool:
    """
    Repeats of heavily played items must be far apart.

    Any two occurrences of the same item with play_count > high_threshold must
    be separated by more than half the sequence length. With uniqueness in the
    same bundle this can never fail.
    """
    half = len(seq) / 2
    last_seen: Dict[str, int] = {}
    for position, item in enumerate(seq):
        if item.play_count <= high_threshold:
            continue
        previous = last_seen.get(item.id)
        if previous is not None and position - previous <= half:
            return False
        last_seen[item.id] = position
    return True


# ============================================================================
# PLACEMENT CHECKS
# ============================================================================
# Each check answers: does placing items[index] after items[:index] keep the
# positive predicate unviolated? Only pairs involving `index` are examined.

def _window_shares_artist(seq: Sequence[Item], end: int, window: int) -> bool:
    start = end - window + 1
    if start < 0:
        return False
    artist = seq[end].artist
    return all(seq[k].artist == artist for k in range(start, end))


def _uniqueness_at(items: Sequence[Item], index: int) -> bool:
    item_id = items[index].id
    return all(items[k].id != item_id for k in range(index))


def _artist_at(items: Sequence[Item], index: int) -> bool:
    return index == 0 or items[index - 1].artist != items[index].artist


def _album_at(items: Sequence[Item], index: int) -> bool:
    return index == 0 or items[index - 1].album != items[index].album


def _genre_run_at(items: Sequence[Item], index: int, max_run: int) -> bool:
    return index < max_run or items[index - max_run].genre != items[index].genre


def _energy_at(items: Sequence[Item], index: int, max_jump: int) -> bool:
    return index == 0 or abs(items[index - 1].energy - items[index].energy) <= max_jump


def _recency_at(items: Sequence[Item], index: int) -> bool:
    recency = items[index].recency
    return all(items[k].recency <= recency for k in range(index))


def _streak_at(items: Sequence[Item], index: int, window: int) -> bool:
    return not _window_shares_artist(items, index, window)


@dataclass(frozen=True)
class _ConstraintSpec:
    predicate: Callable[..., bool]
    placement: Optional[Callable[..., bool]] = None
    params: Tuple[str, ...] = ()
    description: str = ""

    @property
    def deferred(self) -> bool:
        return self.placement is None


_SPECS: Dict[ConstraintId, _ConstraintSpec] = {
    ConstraintId.UNIQUENESS: _ConstraintSpec(
        uniqueness, _uniqueness_at, (), "no item occupies two positions"),
    ConstraintId.NO_ADJACENT_SAME_ARTIST: _ConstraintSpec(
        no_adjacent_same_artist, _artist_at, (), "neighbours differ in artist"),
    ConstraintId.NO_ADJACENT_SAME_ALBUM: _ConstraintSpec(
        no_adjacent_same_album, _album_at, (), "neighbours differ in album"),
    ConstraintId.GENRE_RUN_BOUND: _ConstraintSpec(
        genre_run_bound, _genre_run_at, ("max_run",), "items max_run apart differ in genre"),
    ConstraintId.ENERGY_SMOOTHNESS: _ConstraintSpec(
        energy_smoothness, _energy_at, ("max_jump",), "neighbour energy delta <= max_jump"),
    ConstraintId.RECENCY_ORDER: _ConstraintSpec(
        recency_order, _recency_at, (), "recency rank never decreases"),
    ConstraintId.EXPOSURE_BALANCE: _ConstraintSpec(
        exposure_balance, None, ("popular_threshold", "less_played_threshold"),
        "less-played before midpoint, popular at or after"),
    ConstraintId.NO_ARTIST_STREAK: _ConstraintSpec(
        no_artist_streak, _streak_at, ("window",), "no artist holds `window` consecutive positions"),
    ConstraintId.HIGH_PLAY_SPACING: _ConstraintSpec(
        high_play_spacing, None, ("high_threshold",),
        "repeats of heavily played items more than half the length apart"),
}

_PARAM_MINIMUMS = {
    "max_run": 1,
    "max_jump": 0,
    "window": 1,
    "popular_threshold": 0,
    "less_played_threshold": 0,
    "high_threshold": 0,
}


@dataclass(frozen=True)
class Constraint:
    """
    A library predicate bound to its parameters.

    Attributes:
        id: Which predicate
        params: Sorted (name, value) pairs
        negated: When True the constraint holds iff the predicate does not
    """
    id: ConstraintId
    params: Tuple[Tuple[str, int], ...] = field(default_factory=tuple)
    negated: bool = False

    def __post_init__(self):
        spec = _SPECS[self.id]
        given = {name for name, _ in self.params}
        expected = set(spec.params)
        if given != expected:
            raise ValueError(
                f"{self.id.value} expects params {sorted(expected)}, got {sorted(given)}"
            )
        for name, value in self.params:
            if not isinstance(value, int) or isinstance(value, bool):
                raise ValueError(f"{self.id.value}.{name} must be an int, got {value!r}")
            if value < _PARAM_MINIMUMS[name]:
                raise ValueError(f"{self.id.value}.{name} must be >= {_PARAM_MINIMUMS[name]}, got {value}")

    @classmethod
    def of(cls, constraint_id: ConstraintId, *, negated: bool = False, **params: int) -> "Constraint":
        return cls(ConstraintId(constraint_id), tuple(sorted(params.items())), negated)

    @property
    def kwargs(self) -> Dict[str, Any]:
        return dict(self.params)

    @property
    def deferred(self) -> bool:
        """Truth only known once the full sequence is placed."""
        return _SPECS[self.id].deferred

    @property
    def description(self) -> str:
        text = _SPECS[self.id].description
        return f"NOT ({text})" if self.negated else text

    @property
    def key(self) -> str:
        args = ",".join(f"{name}={value}" for name, value in self.params)
        base = f"{self.id.value}({args})" if args else self.id.value
        return f"not:{base}" if self.negated else base

    def negate(self) -> "Constraint":
        return Constraint(self.id, self.params, not self.negated)

    def positive_holds(self, seq: Sequence[Item]) -> bool:
        return _SPECS[self.id].predicate(seq, **self.kwargs)

    def holds(self, seq: Sequence[Item]) -> bool:
        result = self.positive_holds(seq)
        return not result if self.negated else result

    def placement_ok(self, items: Sequence[Item], index: int) -> bool:
        """
        Incremental check of the positive predicate at one position.

        Raises:
            TypeError: For deferred constraints, which have no placement check
        """
        placement = _SPECS[self.id].placement
        if placement is None:
            raise TypeError(f"{self.id.value} is a whole-sequence constraint")
        return placement(items, index, **self.kwargs)

    def __str__(self) -> str:
        return self.key
