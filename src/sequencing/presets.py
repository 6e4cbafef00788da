"""
Preset constraint bundles.

Provides named bundles instead of requiring callers to assemble constraints
by hand. Each preset maps PerceptualParams onto a ConstraintBundle.

Usage:
    bundle = build_bundle("perceptual")
    bundle = build_bundle("streaky", window=3)
"""
from typing import Any, Callable, Dict, List, Optional
import logging

from src.sequencing.config import PerceptualParams
from src.sequencing.constraints import Constraint, ConstraintId
from src.sequencing.validator import ConstraintBundle

logger = logging.getLogger(__name__)


def truly_random_bundle() -> ConstraintBundle:
    return ConstraintBundle.of("truly_random", Constraint.of(ConstraintId.UNIQUENESS))


def perceptual_bundle(params: Optional[PerceptualParams] = None) -> ConstraintBundle:
    """The PerceptualRandomness bundle."""
    params = params or PerceptualParams()
    return ConstraintBundle.of(
        "perceptual",
        Constraint.of(ConstraintId.UNIQUENESS),
        Constraint.of(ConstraintId.NO_ADJACENT_SAME_ARTIST),
        Constraint.of(ConstraintId.NO_ADJACENT_SAME_ALBUM),
        Constraint.of(ConstraintId.GENRE_RUN_BOUND, max_run=params.genre_run_bound),
        Constraint.of(ConstraintId.ENERGY_SMOOTHNESS, max_jump=params.energy_max_jump),
        Constraint.of(ConstraintId.RECENCY_ORDER),
        Constraint.of(
            ConstraintId.EXPOSURE_BALANCE,
            popular_threshold=params.popular_threshold,
            less_played_threshold=params.less_played_threshold,
        ),
    )


def user_satisfied_bundle(params: Optional[PerceptualParams] = None) -> ConstraintBundle:
    """
    Perceptual bundle plus high-play spacing.

    Uniqueness already forbids repeats, so the spacing rule can never fail
    here. It is kept so that models with repeated occurrences can reuse it.
    """
    params = params or PerceptualParams()
    return perceptual_bundle(params).with_constraints(
        Constraint.of(ConstraintId.HIGH_PLAY_SPACING, high_threshold=params.high_play_threshold),
        name="user_satisfied",
    )


def streaky_bundle(window: int = 2) -> ConstraintBundle:
    """Uniqueness AND an artist streak of `window` somewhere (counter-example query)."""
    return ConstraintBundle.of(
        "streaky",
        Constraint.of(ConstraintId.UNIQUENESS),
        Constraint.of(ConstraintId.NO_ARTIST_STREAK, window=window).negate(),
    )


# ============================================================================
# BUNDLE PRESETS
# ============================================================================

BUNDLE_PRESETS: Dict[str, Dict[str, Any]] = {
    "truly_random": {
        "builder": lambda params, **_: truly_random_bundle(),
        "description": "Only forbids placing an item twice",
    },
    "perceptual": {
        "builder": lambda params, **_: perceptual_bundle(params),
        "description": "Avoids repeats, clustering and jarring transitions",
    },
    "user_satisfied": {
        "builder": lambda params, **_: user_satisfied_bundle(params),
        "description": "Perceptual plus spacing of heavily played repeats",
    },
    "streaky": {
        "builder": lambda params, window=2, **_: streaky_bundle(window),
        "description": "Unique items with at least one artist streak",
    },
}


def list_bundles() -> List[str]:
    return list(BUNDLE_PRESETS)


def build_bundle(name: str, params: Optional[PerceptualParams] = None, **kwargs: Any) -> ConstraintBundle:
    """
    Resolve a preset name into a bundle.

    Args:
        name: One of list_bundles()
        params: Perceptual parameters (defaults when None)
        **kwargs: Preset-specific options (e.g. window for "streaky")

    Raises:
        ValueError: If the preset name is unknown
    """
    key = name.lower().strip()
    if key not in BUNDLE_PRESETS:
        raise ValueError(f"Unknown bundle preset {name!r}; known: {', '.join(list_bundles())}")
    builder: Callable[..., ConstraintBundle] = BUNDLE_PRESETS[key]["builder"]
    bundle = builder(params or PerceptualParams(), **kwargs)
    logger.debug(f"Resolved bundle preset {key}: {bundle}")
    return bundle
