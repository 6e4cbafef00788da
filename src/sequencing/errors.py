"""
Error taxonomy for sequence generation.

The search engine reports Unsatisfiable/Timeout as result statuses; the
exceptions below are raised at the edges (catalog construction, sequence
construction, and GenerationResult.require_sequence()).
"""
from __future__ import annotations

from typing import Any, Sequence, Tuple


class SequencingError(Exception):
    """Base class for all sequencing errors."""


class MalformedCatalogError(SequencingError, ValueError):
    """Catalog failed structural validation before any search began."""

    def __init__(self, issues: Sequence[Any]):
        self.issues: Tuple[Any, ...] = tuple(issues)
        offenders = sorted({str(getattr(issue, "item_id", issue)) for issue in self.issues})
        super().__init__(
            f"Malformed catalog: {len(self.issues)} issue(s) across "
            f"{len(offenders)} item(s): {', '.join(offenders)}"
        )


class SequenceGapError(SequencingError, ValueError):
    """Positions of a sequence are not contiguous from 0."""


class UnsatisfiableError(SequencingError):
    """Search space exhausted without a satisfying sequence."""


class SearchTimeoutError(SequencingError):
    """Search budget exhausted before success or exhaustion."""
