"""Found sequences honour every perceptual rule; unsatisfiable really means none exists."""
from itertools import permutations

import pytest

from src.sequencing.comparator import perceptually_random
from src.sequencing.config import PerceptualParams, SearchOptions
from src.sequencing.generator import SearchStatus
from src.sequencing.presets import perceptual_bundle
from src.sequencing.sequence import ItemSequence
from src.sequencing.validator import validate
from tests.fixtures.catalogs import build_random_catalog

UNBOUNDED = SearchOptions(node_budget=None, time_budget_s=None)


def _check_rules(seq, params):
    ids = seq.item_ids()
    assert len(set(ids)) == len(ids)
    for prev, cur in zip(seq, list(seq)[1:]):
        assert prev.artist != cur.artist
        assert prev.album != cur.album
        assert abs(prev.energy - cur.energy) <= params.energy_max_jump
    for i in range(len(seq) - params.genre_run_bound):
        assert seq[i].genre != seq[i + params.genre_run_bound].genre
    ranks = [item.recency for item in seq]
    assert ranks == sorted(ranks)
    midpoint = (len(seq) - 1) // 2
    assert any(item.play_count <= params.less_played_threshold for item in list(seq)[:midpoint])
    assert any(item.play_count >= params.popular_threshold for item in list(seq)[midpoint:])


@pytest.mark.parametrize("seed", range(5))
def test_found_sequences_follow_rules(scenario_catalog, seed):
    params = PerceptualParams()
    options = SearchOptions(node_budget=None, time_budget_s=None, seed=seed)

    result = perceptually_random(scenario_catalog, 8, params, options)

    assert result.status is SearchStatus.FOUND
    _check_rules(result.sequence, params)


@pytest.mark.parametrize("catalog_seed", range(8))
def test_generator_agrees_with_exhaustive_check(catalog_seed):
    """Small catalogs: FOUND iff some ordering passes validation."""
    params = PerceptualParams(genre_run_bound=2, energy_max_jump=4)
    bundle = perceptual_bundle(params)
    catalog = build_random_catalog(seed=catalog_seed, n_items=7, n_artists=3, n_genres=3)

    exists = any(
        validate(ItemSequence(order), bundle).passed
        for order in permutations(catalog.items, 4)
    )
    result = perceptually_random(catalog, 4, params, UNBOUNDED)

    assert result.found == exists
    assert result.status in (SearchStatus.FOUND, SearchStatus.UNSATISFIABLE)
    if result.found:
        _check_rules(result.sequence, params)
