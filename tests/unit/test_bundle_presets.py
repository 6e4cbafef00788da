"""Unit tests for bundle presets and sequencing config dataclasses."""

import sys
from pathlib import Path

import pytest

# Add repo root to path
sys.path.insert(0, str(Path(__file__).resolve().parents[2]))

from src.sequencing.config import PerceptualParams, SearchOptions, default_sequencing_config
from src.sequencing.constraints import Constraint, ConstraintId
from src.sequencing.presets import BUNDLE_PRESETS, build_bundle, list_bundles


class TestBundlePresets:

    def test_all_presets_listed(self):
        assert list_bundles() == ["truly_random", "perceptual", "user_satisfied", "streaky"]
        for preset in BUNDLE_PRESETS.values():
            assert preset["description"]

    def test_truly_random_only_uniqueness(self):
        bundle = build_bundle("truly_random")

        assert bundle.constraints == (Constraint.of(ConstraintId.UNIQUENESS),)

    def test_perceptual_defaults(self):
        bundle = build_bundle("perceptual")

        assert Constraint.of(ConstraintId.GENRE_RUN_BOUND, max_run=4) in bundle.constraints
        assert Constraint.of(ConstraintId.ENERGY_SMOOTHNESS, max_jump=5) in bundle.constraints
        assert Constraint.of(
            ConstraintId.EXPOSURE_BALANCE, popular_threshold=3, less_played_threshold=1
        ) in bundle.constraints
        assert bundle.ids == frozenset({
            ConstraintId.UNIQUENESS,
            ConstraintId.NO_ADJACENT_SAME_ARTIST,
            ConstraintId.NO_ADJACENT_SAME_ALBUM,
            ConstraintId.GENRE_RUN_BOUND,
            ConstraintId.ENERGY_SMOOTHNESS,
            ConstraintId.RECENCY_ORDER,
            ConstraintId.EXPOSURE_BALANCE,
        })

    def test_perceptual_custom_params(self):
        bundle = build_bundle("perceptual", PerceptualParams(genre_run_bound=2, energy_max_jump=9))

        assert Constraint.of(ConstraintId.GENRE_RUN_BOUND, max_run=2) in bundle.constraints
        assert Constraint.of(ConstraintId.ENERGY_SMOOTHNESS, max_jump=9) in bundle.constraints

    def test_user_satisfied_adds_spacing(self):
        bundle = build_bundle("user_satisfied", PerceptualParams(high_play_threshold=8))

        assert bundle.name == "user_satisfied"
        assert Constraint.of(ConstraintId.HIGH_PLAY_SPACING, high_threshold=8) in bundle.constraints
        assert len(bundle) == 8

    def test_streaky_has_negated_streak(self):
        bundle = build_bundle("streaky", window=3)

        negated = [c for c in bundle.constraints if c.negated]
        assert negated == [Constraint.of(ConstraintId.NO_ARTIST_STREAK, window=3, negated=True)]

    def test_name_is_normalized(self):
        assert build_bundle("  Perceptual ").name == "perceptual"

    def test_unknown_preset(self):
        with pytest.raises(ValueError, match="known: truly_random"):
            build_bundle("chaotic")


class TestSequencingConfig:

    def test_defaults(self):
        cfg = default_sequencing_config()

        assert cfg.params == PerceptualParams(4, 5, 3, 1, 5)
        assert cfg.search.node_budget == 200_000
        assert cfg.search.seed is None
        assert cfg.search.workers == 1

    def test_overrides(self):
        cfg = default_sequencing_config({
            "constraints": {"genre_run_bound": 3, "popular_threshold": 10},
            "search": {"node_budget": 50, "time_budget_seconds": 2.5, "random_seed": 9, "workers": 4},
        })

        assert cfg.params.genre_run_bound == 3
        assert cfg.params.popular_threshold == 10
        assert cfg.params.energy_max_jump == 5
        assert cfg.search.node_budget == 50
        assert cfg.search.time_budget_s == 2.5
        assert cfg.search.seed == 9
        assert cfg.search.workers == 4

    def test_null_sections_tolerated(self):
        cfg = default_sequencing_config({"constraints": None, "search": None})

        assert cfg.params == PerceptualParams()

    @pytest.mark.parametrize("kwargs", [
        {"genre_run_bound": 0},
        {"energy_max_jump": -1},
        {"popular_threshold": -2},
        {"high_play_threshold": -1},
    ])
    def test_invalid_params(self, kwargs):
        with pytest.raises(ValueError):
            PerceptualParams(**kwargs)

    @pytest.mark.parametrize("kwargs", [
        {"node_budget": 0},
        {"time_budget_s": 0},
        {"workers": 0},
        {"fan_out_depth": 0},
        {"progress_every": 0},
    ])
    def test_invalid_search_options(self, kwargs):
        with pytest.raises(ValueError):
            SearchOptions(**kwargs)

    def test_unbounded_budgets_allowed(self):
        options = SearchOptions(node_budget=None, time_budget_s=None)

        assert options.node_budget is None
        assert options.time_budget_s is None
