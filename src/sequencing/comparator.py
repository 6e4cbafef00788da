"""
Contrast between truly random and perceptually random sequences.

Builds on generate() and validate():
- truly_random: only uniqueness
- perceptually_random: the full perceptual bundle
- user_satisfied: perceptual bundle plus high-play spacing
- streak_counter_example: uniqueness AND an artist streak (negated predicate)
- detect_streak / sequence_metrics: evaluation helpers
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, Optional, Sequence, Union

from src.logging_utils import RunSummary, stage_timer
from src.sequencing.catalog import Catalog, Item
from src.sequencing.config import PerceptualParams, SearchOptions
from src.sequencing.generator import GenerationResult, generate
from src.sequencing.presets import perceptual_bundle, streaky_bundle, truly_random_bundle, user_satisfied_bundle
from src.sequencing.validator import validate

logger = logging.getLogger(__name__)

CatalogLike = Union[Catalog, Iterable[Item]]

_STREAK_KEYS: Dict[str, Callable[[Item], Any]] = {
    "artist": lambda item: item.artist,
    "album": lambda item: item.album,
    "genre": lambda item: item.genre,
}


def truly_random(catalog: CatalogLike, length: int, options: Optional[SearchOptions] = None) -> GenerationResult:
    return generate(catalog, length, truly_random_bundle(), options)


def perceptually_random(
    catalog: CatalogLike,
    length: int,
    params: Optional[PerceptualParams] = None,
    options: Optional[SearchOptions] = None,
) -> GenerationResult:
    return generate(catalog, length, perceptual_bundle(params), options)


def user_satisfied(
    catalog: CatalogLike,
    length: int,
    params: Optional[PerceptualParams] = None,
    options: Optional[SearchOptions] = None,
) -> GenerationResult:
    """
    Perceptual sequence that also spaces out repeats of heavily played items.

    Uniqueness already rules out repeats, so the spacing rule never prunes
    anything here and the result matches perceptually_random.
    """
    return generate(catalog, length, user_satisfied_bundle(params), options)


def streak_counter_example(
    catalog: CatalogLike,
    length: int,
    window_length: int = 2,
    options: Optional[SearchOptions] = None,
) -> GenerationResult:
    """Find a unique sequence that does contain an artist streak of `window_length`."""
    return generate(catalog, length, streaky_bundle(window_length), options)


def _longest_run(seq: Sequence[Item], key: Callable[[Item], Any]) -> int:
    longest = 0
    current = 0
    previous = None
    for position, item in enumerate(seq):
        value = key(item)
        current = current + 1 if position > 0 and value == previous else 1
        previous = value
        longest = max(longest, current)
    return longest


def detect_streak(seq: Sequence[Item], window_length: int, key: str = "artist") -> bool:
    """
    True iff some contiguous run of `window_length` positions shares one attribute.

    Args:
        seq: Sequence to inspect
        window_length: Run length to look for (>= 1)
        key: "artist" (default), "album" or "genre"

    Raises:
        ValueError: For window_length < 1 or an unknown key
    """
    if window_length < 1:
        raise ValueError(f"window_length must be >= 1, got {window_length}")
    if key not in _STREAK_KEYS:
        raise ValueError(f"Unknown streak key {key!r}; expected one of {sorted(_STREAK_KEYS)}")
    return _longest_run(seq, _STREAK_KEYS[key]) >= window_length


def sequence_metrics(seq: Sequence[Item], params: Optional[PerceptualParams] = None) -> Dict[str, Any]:
    """Streak and exposure metrics for one sequence."""
    params = params or PerceptualParams()
    midpoint = (len(seq) - 1) // 2
    validation = validate(seq, perceptual_bundle(params))
    energy_jumps = [abs(seq[i].energy - seq[i + 1].energy) for i in range(len(seq) - 1)]
    return {
        "length": len(seq),
        "longest_artist_run": _longest_run(seq, _STREAK_KEYS["artist"]),
        "longest_album_run": _longest_run(seq, _STREAK_KEYS["album"]),
        "longest_genre_run": _longest_run(seq, _STREAK_KEYS["genre"]),
        "adjacent_artist_repeats": sum(1 for i in range(len(seq) - 1) if seq[i].artist == seq[i + 1].artist),
        "max_energy_jump": max(energy_jumps) if energy_jumps else 0,
        "has_artist_streak": detect_streak(seq, 2) if seq else False,
        "less_played_first_half": any(
            item.play_count <= params.less_played_threshold for item in seq[:max(midpoint, 0)]
        ),
        "popular_second_half": any(
            item.play_count >= params.popular_threshold for item in seq[max(midpoint, 0):]
        ),
        "perceptual_violations": sorted(c.key for c in validation.failed),
    }


@dataclass(frozen=True)
class ComparisonReport:
    truly_random: GenerationResult
    perceptually_random: GenerationResult
    metrics: Dict[str, Dict[str, Any]] = field(default_factory=dict)


def compare(
    catalog: CatalogLike,
    length: int,
    params: Optional[PerceptualParams] = None,
    options: Optional[SearchOptions] = None,
) -> ComparisonReport:
    """
    Generate both sequences at the same length and attach metrics.

    Returns:
        ComparisonReport; metrics are keyed by "truly_random" / "perceptually_random"
        and only present for sequences that were found
    """
    params = params or PerceptualParams()
    summary = RunSummary("Sequence comparison", logger)

    with stage_timer("Truly random generation", logger):
        baseline = truly_random(catalog, length, options)
    with stage_timer("Perceptually random generation", logger):
        perceptual = perceptually_random(catalog, length, params, options)

    metrics: Dict[str, Dict[str, Any]] = {}
    for label, result in (("truly_random", baseline), ("perceptually_random", perceptual)):
        summary.add(f"{label}_status", result.status.value)
        if result.sequence is None:
            continue
        metrics[label] = sequence_metrics(result.sequence, params)
        summary.add(f"{label}_longest_artist_run", metrics[label]["longest_artist_run"])
        summary.add(f"{label}_violations", len(metrics[label]["perceptual_violations"]))
    summary.log()

    return ComparisonReport(truly_random=baseline, perceptually_random=perceptual, metrics=metrics)
