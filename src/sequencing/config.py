"""
Typed settings for the perceptual bundle and the search.

PerceptualParams and SearchOptions mirror the constraints and search sections
of config.yaml. default_sequencing_config() layers those sections over the
defaults.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class PerceptualParams:
    """Numeric parameters of the perceptual randomness bundle."""

    genre_run_bound: int = 4
    """Items this many positions apart must differ in genre."""

    energy_max_jump: int = 5
    """Maximum energy delta between neighbours."""

    popular_threshold: int = 3
    """play_count at or above this marks a popular item."""

    less_played_threshold: int = 1
    """play_count at or below this marks a less-played item."""

    high_play_threshold: int = 5
    """play_count above this is subject to repeat spacing (user_satisfied)."""

    def __post_init__(self):
        if self.genre_run_bound < 1:
            raise ValueError(f"genre_run_bound must be >= 1, got {self.genre_run_bound}")
        if self.energy_max_jump < 0:
            raise ValueError(f"energy_max_jump must be >= 0, got {self.energy_max_jump}")
        if self.popular_threshold < 0 or self.less_played_threshold < 0:
            raise ValueError("popularity thresholds must be >= 0")
        if self.high_play_threshold < 0:
            raise ValueError(f"high_play_threshold must be >= 0, got {self.high_play_threshold}")


@dataclass(frozen=True)
class SearchOptions:
    """Budget and ordering options for the backtracking search."""

    node_budget: Optional[int] = 200_000
    """Maximum candidate placements (None = unbounded). Applies per branch when fanned out."""

    time_budget_s: Optional[float] = 10.0
    """Wall-clock deadline in seconds (None = unbounded)."""

    seed: Optional[int] = None
    """Seed for per-position candidate shuffling; None keeps catalog order."""

    workers: int = 1
    """Worker processes; > 1 fans out independent prefixes."""

    fan_out_depth: int = 1
    """Prefix length enumerated before handing branches to workers."""

    progress: bool = False
    """Emit periodic node-expansion progress logs."""

    progress_every: int = 50_000

    def __post_init__(self):
        if self.node_budget is not None and self.node_budget < 1:
            raise ValueError(f"node_budget must be >= 1, got {self.node_budget}")
        if self.time_budget_s is not None and self.time_budget_s <= 0:
            raise ValueError(f"time_budget_s must be > 0, got {self.time_budget_s}")
        if self.workers < 1:
            raise ValueError(f"workers must be >= 1, got {self.workers}")
        if self.fan_out_depth < 1:
            raise ValueError(f"fan_out_depth must be >= 1, got {self.fan_out_depth}")
        if self.progress_every < 1:
            raise ValueError(f"progress_every must be >= 1, got {self.progress_every}")


@dataclass(frozen=True)
class SequencingConfig:
    params: PerceptualParams
    search: SearchOptions


def default_sequencing_config(overrides: Optional[dict] = None) -> SequencingConfig:
    """
    Build sequencing config from defaults plus config.yaml overrides.

    Args:
        overrides: Optional dict with 'constraints' and 'search' sections,
            typically Config.config

    Returns:
        SequencingConfig
    """
    if overrides is None:
        overrides = {}
    constraints = overrides.get("constraints") or {}
    search = overrides.get("search") or {}

    defaults = PerceptualParams()
    params = PerceptualParams(
        genre_run_bound=constraints.get("genre_run_bound", defaults.genre_run_bound),
        energy_max_jump=constraints.get("energy_max_jump", defaults.energy_max_jump),
        popular_threshold=constraints.get("popular_threshold", defaults.popular_threshold),
        less_played_threshold=constraints.get("less_played_threshold", defaults.less_played_threshold),
        high_play_threshold=constraints.get("high_play_threshold", defaults.high_play_threshold),
    )

    search_defaults = SearchOptions()
    options = SearchOptions(
        node_budget=search.get("node_budget", search_defaults.node_budget),
        time_budget_s=search.get("time_budget_seconds", search_defaults.time_budget_s),
        seed=search.get("random_seed", search_defaults.seed),
        workers=search.get("workers", search_defaults.workers),
        fan_out_depth=search.get("fan_out_depth", search_defaults.fan_out_depth),
        progress=search.get("progress", search_defaults.progress),
        progress_every=search.get("progress_every", search_defaults.progress_every),
    )

    return SequencingConfig(params=params, search=options)
