"""
Backtracking search for constrained item sequences.

The search builds a sequence position by position. At each position the
unused catalog items are tried in order (catalog order, or a seeded
permutation). Incremental constraints are checked against the prefix as each
item is placed, and a candidate that violates one is pruned immediately.
Whole-sequence (deferred) constraints and negated constraints are settled once
the full length is reached. When no candidate survives at a position the
search backtracks; exhausting position 0 proves the bundle unsatisfiable.

Node and time budgets are checked at every node expansion. Running out of
budget yields TIMEOUT, which is never reported as unsatisfiable.

Large searches can fan out: valid prefixes of a fixed depth are enumerated
and each is searched in its own worker process. The first worker to find a
sequence wins and the rest are cancelled cooperatively.
"""
from __future__ import annotations

import logging
import multiprocessing
import time
from collections import Counter
from concurrent.futures import ProcessPoolExecutor, as_completed
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple, Union

import numpy as np

from src.logging_utils import ProgressLogger, format_count
from src.sequencing.catalog import Catalog, Item, validate_catalog
from src.sequencing.config import SearchOptions
from src.sequencing.constraints import Constraint
from src.sequencing.errors import SearchTimeoutError, UnsatisfiableError
from src.sequencing.sequence import ItemSequence
from src.sequencing.validator import ConstraintBundle

logger = logging.getLogger(__name__)

# Cancellation is polled through a manager proxy, so only every N nodes.
_CANCEL_POLL_INTERVAL = 1024

_EMPTY_STATS: Dict[str, Any] = {"nodes": 0, "backtracks": 0, "leaf_rejections": 0, "max_depth": 0, "pruned": {}}


class SearchStatus(str, Enum):
    FOUND = "found"
    UNSATISFIABLE = "unsatisfiable"
    TIMEOUT = "timeout"

    def __str__(self) -> str:
        return self.value


class _BranchStatus(Enum):
    """Fan-out branch outcomes that never leave this module."""
    CANCELLED = "cancelled"


_CANCELLED = _BranchStatus.CANCELLED


@dataclass(frozen=True)
class GenerationResult:
    """
    Outcome of a generate() call.

    Attributes:
        status: FOUND, UNSATISFIABLE or TIMEOUT
        sequence: The satisfying sequence when FOUND, else None
        bundle_name: Name of the bundle searched
        length: Requested length
        stats: Diagnostics (nodes, backtracks, pruned per constraint, elapsed_s, ...)
    """
    status: SearchStatus
    sequence: Optional[ItemSequence]
    bundle_name: str
    length: int
    stats: Dict[str, Any] = field(default_factory=dict)

    @property
    def found(self) -> bool:
        return self.status is SearchStatus.FOUND

    @property
    def item_ids(self) -> List[str]:
        return self.sequence.item_ids() if self.sequence is not None else []

    def require_sequence(self) -> ItemSequence:
        """
        Return the sequence or raise for the non-success outcome.

        Raises:
            UnsatisfiableError: Search space exhausted
            SearchTimeoutError: Budget exhausted first
        """
        if self.status is SearchStatus.FOUND and self.sequence is not None:
            return self.sequence
        if self.status is SearchStatus.TIMEOUT:
            raise SearchTimeoutError(
                f"{self.bundle_name}: budget exhausted after {self.stats.get('nodes', 0):,} nodes "
                f"(length={self.length})"
            )
        raise UnsatisfiableError(f"{self.bundle_name}: no sequence of length {self.length} exists")


class _BacktrackingSearch:
    """
    Explicit-stack depth-first search over item indices.

    State is the placed prefix, one candidate frame (list + cursor) per open
    position, the used-item mask and, for negated incremental constraints,
    a per-depth flag recording whether the positive form was already violated.
    """

    def __init__(
        self,
        items: Sequence[Item],
        length: int,
        bundle: ConstraintBundle,
        options: SearchOptions,
        *,
        deadline: Optional[float] = None,
        cancel_event: Any = None,
        collect_prefixes: bool = False,
    ):
        self.items = tuple(items)
        self.length = length
        self.options = options
        self.deadline = deadline
        self.cancel_event = cancel_event
        self.collect_prefixes = collect_prefixes

        self.positive: Tuple[Constraint, ...] = tuple(c for c in bundle.incremental if not c.negated)
        self.negated: Tuple[Constraint, ...] = tuple(c for c in bundle.incremental if c.negated)
        self.deferred: Tuple[Constraint, ...] = bundle.deferred

        self.rng = np.random.default_rng(options.seed) if options.seed is not None else None

        self.placed: List[Item] = []
        self.placed_idx: List[int] = []
        self.used = [False] * len(self.items)
        self.witness: List[Tuple[bool, ...]] = [tuple(False for _ in self.negated)]

        self.nodes = 0
        self.backtracks = 0
        self.leaf_rejections = 0
        self.max_depth = 0
        self.pruned: Counter = Counter()
        self.prefixes: List[Tuple[int, ...]] = []

        self._progress: Optional[ProgressLogger] = None
        if options.progress:
            self._progress = ProgressLogger(
                logger,
                total=options.node_budget,
                label="search",
                unit="nodes",
                every_n=options.progress_every,
            )

    # ------------------------------------------------------------------
    # Stack helpers
    # ------------------------------------------------------------------

    def _candidates(self) -> List[int]:
        remaining = [i for i, used in enumerate(self.used) if not used]
        if self.rng is None or len(remaining) < 2:
            return remaining
        return [remaining[j] for j in self.rng.permutation(len(remaining))]

    def _place(self, idx: int, witness: Tuple[bool, ...]) -> None:
        self.placed_idx.append(idx)
        self.used[idx] = True
        self.witness.append(witness)
        self.max_depth = max(self.max_depth, len(self.placed))

    def _unplace(self) -> None:
        idx = self.placed_idx.pop()
        self.placed.pop()
        self.used[idx] = False
        self.witness.pop()

    def _budget_exhausted(self) -> Optional[Union[SearchStatus, _BranchStatus]]:
        budget = self.options.node_budget
        if budget is not None and self.nodes >= budget:
            return SearchStatus.TIMEOUT
        if self.deadline is not None and time.monotonic() >= self.deadline:
            return SearchStatus.TIMEOUT
        if (
            self.cancel_event is not None
            and self.nodes % _CANCEL_POLL_INTERVAL == 0
            and self.cancel_event.is_set()
        ):
            return _CANCELLED
        return None

    def _check_placement(self, depth: int) -> Optional[Tuple[bool, ...]]:
        """Return the updated witness flags, or None if a positive constraint fails."""
        for constraint in self.positive:
            if not constraint.placement_ok(self.placed, depth):
                self.pruned[constraint.key] += 1
                return None
        previous = self.witness[-1]
        return tuple(
            previous[k] or not constraint.placement_ok(self.placed, depth)
            for k, constraint in enumerate(self.negated)
        )

    def _leaf_ok(self, witness: Tuple[bool, ...]) -> bool:
        if not all(witness):
            return False
        return all(constraint.holds(self.placed) for constraint in self.deferred)

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------

    def run(
        self, prefix: Sequence[int] = ()
    ) -> Tuple[Union[SearchStatus, _BranchStatus], Optional[Tuple[int, ...]]]:
        """
        Search for a completion of `prefix` (item indices assumed valid).

        Returns:
            (status, item indices) where indices are set only when FOUND
        """
        for depth, idx in enumerate(prefix):
            self.placed.append(self.items[idx])
            witness = self._check_placement(depth)
            if witness is None:
                return SearchStatus.UNSATISFIABLE, None
            self._place(idx, witness)

        base = len(prefix)
        if base == self.length:
            if self.collect_prefixes:
                self.prefixes.append(tuple(self.placed_idx))
                return SearchStatus.UNSATISFIABLE, None
            if self._leaf_ok(self.witness[-1]):
                return SearchStatus.FOUND, tuple(self.placed_idx)
            self.leaf_rejections += 1
            return SearchStatus.UNSATISFIABLE, None

        frames: List[List[int]] = [self._candidates()]
        cursors: List[int] = [0]

        while frames:
            depth = base + len(frames) - 1
            if cursors[-1] >= len(frames[-1]):
                frames.pop()
                cursors.pop()
                if frames:
                    self._unplace()
                    self.backtracks += 1
                continue

            idx = frames[-1][cursors[-1]]
            cursors[-1] += 1

            stop = self._budget_exhausted()
            if stop is not None:
                return stop, None
            self.nodes += 1
            if self._progress is not None:
                self._progress.update()

            self.placed.append(self.items[idx])
            witness = self._check_placement(depth)
            if witness is None:
                self.placed.pop()
                continue

            if depth + 1 == self.length:
                if self.collect_prefixes:
                    self.prefixes.append(tuple(self.placed_idx) + (idx,))
                    self.placed.pop()
                    continue
                if self._leaf_ok(witness):
                    self.max_depth = max(self.max_depth, len(self.placed))
                    return SearchStatus.FOUND, tuple(self.placed_idx) + (idx,)
                self.leaf_rejections += 1
                self.placed.pop()
                continue

            self._place(idx, witness)
            frames.append(self._candidates())
            cursors.append(0)

        return SearchStatus.UNSATISFIABLE, None

    def stats(self) -> Dict[str, Any]:
        if self._progress is not None:
            self._progress.finish()
        return {
            "nodes": self.nodes,
            "backtracks": self.backtracks,
            "leaf_rejections": self.leaf_rejections,
            "max_depth": self.max_depth,
            "pruned": dict(self.pruned),
        }


def _merge_stats(target: Dict[str, Any], source: Dict[str, Any]) -> None:
    for key in ("nodes", "backtracks", "leaf_rejections"):
        target[key] = target.get(key, 0) + source.get(key, 0)
    target["max_depth"] = max(target.get("max_depth", 0), source.get("max_depth", 0))
    pruned = Counter(target.get("pruned", {}))
    pruned.update(source.get("pruned", {}))
    target["pruned"] = dict(pruned)


def _search_branch(
    items: Tuple[Item, ...],
    length: int,
    bundle: ConstraintBundle,
    options: SearchOptions,
    prefix: Tuple[int, ...],
    wall_deadline: Optional[float],
    cancel_event: Any,
) -> Tuple[Union[SearchStatus, _BranchStatus], Optional[Tuple[int, ...]], Dict[str, Any]]:
    """
    Worker entry point: search one fixed prefix.

    wall_deadline is a time.time() instant shared by every branch, so a branch
    that starts after it has passed stops without expanding a node.
    """
    deadline = None
    if wall_deadline is not None:
        remaining = wall_deadline - time.time()
        if remaining <= 0:
            return SearchStatus.TIMEOUT, None, dict(_EMPTY_STATS, pruned={})
        deadline = time.monotonic() + remaining
    search = _BacktrackingSearch(
        items, length, bundle, options, deadline=deadline, cancel_event=cancel_event,
    )
    status, indices = search.run(prefix)
    if status is SearchStatus.FOUND and cancel_event is not None:
        cancel_event.set()
    return status, indices, search.stats()


def _combine_status(statuses: Iterable[Union[SearchStatus, _BranchStatus]]) -> SearchStatus:
    """A branch cut short by the deadline or by cancellation makes the whole run a TIMEOUT."""
    statuses = set(statuses)
    if SearchStatus.FOUND in statuses:
        return SearchStatus.FOUND
    if SearchStatus.TIMEOUT in statuses or _CANCELLED in statuses:
        return SearchStatus.TIMEOUT
    return SearchStatus.UNSATISFIABLE


def _generate_parallel(
    items: Tuple[Item, ...],
    length: int,
    bundle: ConstraintBundle,
    options: SearchOptions,
    deadline: Optional[float],
) -> Tuple[SearchStatus, Optional[Tuple[int, ...]], Dict[str, Any]]:
    depth = min(options.fan_out_depth, length)
    enumerator = _BacktrackingSearch(
        items, depth, bundle, options, deadline=deadline, collect_prefixes=True,
    )
    status, _ = enumerator.run()
    stats = enumerator.stats()
    stats["branches"] = len(enumerator.prefixes)
    if status is SearchStatus.TIMEOUT:
        return status, None, stats
    if not enumerator.prefixes:
        return SearchStatus.UNSATISFIABLE, None, stats

    logger.debug(
        f"Fanning out {format_count(len(enumerator.prefixes), 'branch', 'branches')} "
        f"at depth {depth} across {options.workers} workers"
    )

    statuses: List[Union[SearchStatus, _BranchStatus]] = []
    # Worker processes do not share the parent's monotonic clock.
    wall_deadline = time.time() + max(0.0, deadline - time.monotonic()) if deadline is not None else None
    winner: Optional[Tuple[int, ...]] = None
    with multiprocessing.Manager() as manager:
        cancel_event = manager.Event()
        with ProcessPoolExecutor(max_workers=options.workers) as executor:
            futures = [
                executor.submit(
                    _search_branch, items, length, bundle, options, prefix, wall_deadline, cancel_event,
                )
                for prefix in enumerator.prefixes
            ]
            for future in as_completed(futures):
                if future.cancelled():
                    continue
                branch_status, indices, branch_stats = future.result()
                statuses.append(branch_status)
                _merge_stats(stats, branch_stats)
                if branch_status is SearchStatus.FOUND:
                    winner = indices
                    cancel_event.set()
                    for pending in futures:
                        pending.cancel()
                    break

    if winner is not None:
        return SearchStatus.FOUND, winner, stats
    return _combine_status(statuses), None, stats


def generate(
    catalog: Union[Catalog, Iterable[Item]],
    length: int,
    bundle: ConstraintBundle,
    options: Optional[SearchOptions] = None,
) -> GenerationResult:
    """
    Find a sequence of `length` distinct catalog items satisfying `bundle`.

    Args:
        catalog: Catalog or iterable of items (validated before searching)
        length: Number of positions to fill, 0 <= length <= len(catalog)
        bundle: Constraints to satisfy; negated constraints are supported
        options: Budgets, seed and fan-out settings

    Returns:
        GenerationResult with status FOUND, UNSATISFIABLE or TIMEOUT

    Raises:
        MalformedCatalogError: If the catalog fails validation
        ValueError: If length is out of range
    """
    options = options or SearchOptions()
    items = tuple(catalog.items if isinstance(catalog, Catalog) else catalog)
    validate_catalog(items).raise_for_issues()
    if not 0 <= length <= len(items):
        raise ValueError(f"length must be in [0, {len(items)}], got {length}")

    start = time.monotonic()
    deadline = start + options.time_budget_s if options.time_budget_s is not None else None

    if options.workers > 1 and length > options.fan_out_depth:
        status, indices, stats = _generate_parallel(items, length, bundle, options, deadline)
    else:
        search = _BacktrackingSearch(items, length, bundle, options, deadline=deadline)
        status, indices = search.run()
        stats = search.stats()
        stats["branches"] = 1

    stats["elapsed_s"] = time.monotonic() - start
    stats["workers"] = options.workers
    sequence = ItemSequence(items[i] for i in indices) if indices is not None else None

    message = (
        f"{bundle.name}: {status.value} for length {length} from {format_count(len(items), 'item')} "
        f"after {format_count(stats['nodes'], 'node')}, {format_count(stats['backtracks'], 'backtrack')}"
    )
    if status is SearchStatus.TIMEOUT:
        logger.warning(message)
    else:
        logger.info(message)

    return GenerationResult(
        status=status,
        sequence=sequence,
        bundle_name=bundle.name,
        length=length,
        stats=stats,
    )
