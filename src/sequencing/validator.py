"""
Bundle validation for item sequences.

A bundle is a named, immutable set of constraints. Validation evaluates every
constraint independently so that all violations are reported, not only the
first.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import FrozenSet, Iterable, Optional, Sequence, Tuple, Union

from src.sequencing.catalog import Item
from src.sequencing.constraints import Constraint, ConstraintId

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ConstraintBundle:
    """Named collection of constraints, possibly including negated ones."""

    name: str
    constraints: Tuple[Constraint, ...] = field(default_factory=tuple)

    def __post_init__(self):
        # Drop exact duplicates while keeping order
        object.__setattr__(self, "constraints", tuple(dict.fromkeys(self.constraints)))

    @classmethod
    def of(cls, name: str, *constraints: Constraint) -> "ConstraintBundle":
        return cls(name, tuple(constraints))

    @property
    def incremental(self) -> Tuple[Constraint, ...]:
        return tuple(c for c in self.constraints if not c.deferred)

    @property
    def deferred(self) -> Tuple[Constraint, ...]:
        return tuple(c for c in self.constraints if c.deferred)

    @property
    def ids(self) -> FrozenSet[ConstraintId]:
        return frozenset(c.id for c in self.constraints)

    def with_constraints(self, *constraints: Constraint, name: Optional[str] = None) -> "ConstraintBundle":
        return ConstraintBundle(name or self.name, self.constraints + tuple(constraints))

    def __iter__(self):
        return iter(self.constraints)

    def __len__(self) -> int:
        return len(self.constraints)

    def __str__(self) -> str:
        return f"{self.name}[{', '.join(c.key for c in self.constraints)}]"


@dataclass(frozen=True)
class ValidationResult:
    """
    Result of validating one sequence against a bundle.

    Attributes:
        passed: True iff every constraint holds
        violations: Ids of failing constraints
        failed: Failing constraints (distinguishes negated ones and parameters)
    """
    passed: bool
    violations: FrozenSet[ConstraintId] = field(default_factory=frozenset)
    failed: Tuple[Constraint, ...] = field(default_factory=tuple)

    def __bool__(self) -> bool:
        return self.passed


def validate(
    seq: Sequence[Item],
    bundle: Union[ConstraintBundle, Iterable[Constraint]],
) -> ValidationResult:
    """
    Evaluate every constraint of a bundle against a concrete sequence.

    Args:
        seq: ItemSequence (or any sequence of items)
        bundle: ConstraintBundle or iterable of constraints

    Returns:
        ValidationResult listing every failing constraint
    """
    constraints = bundle.constraints if isinstance(bundle, ConstraintBundle) else tuple(bundle)
    failed = tuple(c for c in constraints if not c.holds(seq))

    if failed:
        logger.debug(
            f"Sequence of {len(seq)} items failed {len(failed)}/{len(constraints)} constraints: "
            f"{', '.join(c.key for c in failed)}"
        )

    return ValidationResult(
        passed=not failed,
        violations=frozenset(c.id for c in failed),
        failed=failed,
    )
