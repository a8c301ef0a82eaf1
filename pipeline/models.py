"""
Canonical data model for homestead phase data and budget results.

Raw phase records come in two shapes (numeric-cost section files and
string-cost phase mappings).  ``pipeline.normalize`` converts both into the
types below exactly once, so nothing downstream has to guess whether a
material is called ``item`` or ``name``, or whether its cost is a number.

Hierarchy::

    Project -> Phase -> Step -> Material

A "step" is one construction section (Water System, Shelter, ...).  Its
numbered how-to instructions are kept separately as ``Step.instructions``.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Iterator


# ── Input model ───────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class Material:
    """One purchasable line item.

    ``display_cost`` holds the raw string when the source gave a formatted
    cost like ``"R8,500"``; such materials are the ``display`` kind and
    contribute nothing to totals.
    """

    name: str
    unit_cost: float = 0.0
    quantity: int | float = 1
    display_cost: str | None = None

    @property
    def kind(self) -> str:
        return "display" if self.display_cost is not None else "numeric"

    @property
    def line_total(self) -> float:
        try:
            total = float(self.unit_cost) * self.quantity
        except OverflowError:
            return 0.0
        return total if math.isfinite(total) else 0.0


@dataclass(frozen=True)
class Instruction:
    description: str
    title: str | None = None


@dataclass(frozen=True)
class Image:
    src: str
    description: str | None = None


@dataclass(frozen=True)
class Troubleshooting:
    problem: str
    cause: str | None = None
    solution: str | None = None


@dataclass
class Step:
    """A construction section with its materials and display content."""

    title: str
    materials: list[Material] = field(default_factory=list)
    days: str | None = None
    goal: str | None = None
    instructions: list[Instruction] = field(default_factory=list)
    tools: list[str] = field(default_factory=list)
    tips: list[str] = field(default_factory=list)
    safety: list[str] = field(default_factory=list)
    images: list[Image] = field(default_factory=list)
    troubleshooting: list[Troubleshooting] = field(default_factory=list)
    estimated_time_hours: float | None = None
    declared_total: Any = None          # raw "total_cost", display only


@dataclass
class Phase:
    name: str
    steps: list[Step] = field(default_factory=list)

    def step(self, index: int) -> Step | None:
        """Return the step at 1-based *index*, or None."""
        if 1 <= index <= len(self.steps):
            return self.steps[index - 1]
        return None


@dataclass
class Project:
    phases: list[Phase] = field(default_factory=list)

    def __iter__(self) -> Iterator[Phase]:
        return iter(self.phases)

    def __len__(self) -> int:
        return len(self.phases)

    def phase(self, name: str) -> Phase | None:
        for p in self.phases:
            if p.name == name:
                return p
        return None


# ── Budget results ────────────────────────────────────────────────────────────


@dataclass
class StepBudget:
    index: int                          # 1-based position within the phase
    title: str
    total: float
    materials: list[Material] = field(default_factory=list)


@dataclass
class PhaseBudget:
    total: float
    steps: list[StepBudget] = field(default_factory=list)
    name: str = ""

    @property
    def material_count(self) -> int:
        return sum(len(s.materials) for s in self.steps)


@dataclass
class PhaseShare:
    """One row of the project summary table."""

    name: str
    total: float
    percentage: float


@dataclass
class ProjectBudget:
    total: float
    phases: list[PhaseBudget] = field(default_factory=list)

    @property
    def material_count(self) -> int:
        return sum(p.material_count for p in self.phases)

    def phase(self, name: str) -> PhaseBudget | None:
        for p in self.phases:
            if p.name == name:
                return p
        return None
