from .catalog import (
    NOT_RECENT,
    RECENT,
    Album,
    Artist,
    Catalog,
    CatalogIssue,
    Genre,
    Item,
    WellformedResult,
    catalog_from_records,
    validate_catalog,
)
from .comparator import (
    ComparisonReport,
    compare,
    detect_streak,
    perceptually_random,
    sequence_metrics,
    streak_counter_example,
    truly_random,
    user_satisfied,
)
from .config import PerceptualParams, SearchOptions, SequencingConfig, default_sequencing_config
from .constraints import Constraint, ConstraintId
from .errors import (
    MalformedCatalogError,
    SearchTimeoutError,
    SequenceGapError,
    SequencingError,
    UnsatisfiableError,
)
from .generator import GenerationResult, SearchStatus, generate
from .presets import build_bundle, list_bundles, perceptual_bundle, truly_random_bundle
from .sequence import ItemSequence
from .validator import ConstraintBundle, ValidationResult, validate

from . import constraints

__all__ = [
    # Catalog
    "NOT_RECENT",
    "RECENT",
    "Album",
    "Artist",
    "Catalog",
    "CatalogIssue",
    "Genre",
    "Item",
    "WellformedResult",
    "catalog_from_records",
    "validate_catalog",
    "ItemSequence",
    # Constraints and validation
    "constraints",
    "Constraint",
    "ConstraintId",
    "ConstraintBundle",
    "ValidationResult",
    "validate",
    "build_bundle",
    "list_bundles",
    "perceptual_bundle",
    "truly_random_bundle",
    # Search
    "PerceptualParams",
    "SearchOptions",
    "SequencingConfig",
    "default_sequencing_config",
    "GenerationResult",
    "SearchStatus",
    "generate",
    # Comparison
    "ComparisonReport",
    "compare",
    "detect_streak",
    "perceptually_random",
    "sequence_metrics",
    "streak_counter_example",
    "truly_random",
    "user_satisfied",
    # Errors
    "MalformedCatalogError",
    "SearchTimeoutError",
    "SequenceGapError",
    "SequencingError",
    "UnsatisfiableError",
]
