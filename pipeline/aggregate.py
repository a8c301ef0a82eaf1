"""
Hierarchical cost aggregation: material -> step -> phase -> project.

All functions are pure, synchronous and total.  They accept either the
canonical types from ``pipeline.models`` or the raw dict/list shapes straight
out of a JSON file, and coerce anything malformed toward zero:

    - missing, non-numeric, negative or non-finite unit cost -> 0
    - missing, non-numeric or non-positive quantity          -> 1
    - missing materials / steps                              -> empty
    - a line total or sum that overflows the float range     -> 0

Formatted cost strings such as ``"R8,500"`` are display-only and count as 0.

Example::

    >>> step_total({"materials": [{"item": "Pump", "cost": 8500},
    ...                           {"item": "Panel", "cost": 1600, "quantity": 2}]})
    11700.0
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Mapping, Sequence
from typing import Any

from pipeline.models import (
    Material,
    Phase,
    PhaseBudget,
    PhaseShare,
    Project,
    ProjectBudget,
    Step,
    StepBudget,
)
from pipeline.normalize import normalize_material, normalize_materials, normalize_step
from utils.strings import coerce_cost, coerce_quantity


def _is_list(val: Any) -> bool:
    return isinstance(val, Sequence) and not isinstance(val, (str, bytes))


def _finite(val: float) -> float:
    return val if math.isfinite(val) else 0.0


def _total(values: Iterable[float]) -> float:
    """Sum of *values*; 0 when the sum overflows the float range."""
    return _finite(float(sum(values)))


def line_total(material: Any) -> float:
    """Return ``unit_cost * quantity`` for one material; never raises."""
    if not isinstance(material, (Material, Mapping)):
        return 0.0
    m = normalize_material(material)
    # Re-coerce: a hand-built Material may carry values normalization never saw
    return _finite(coerce_cost(m.unit_cost) * coerce_quantity(m.quantity))


def _materials_of(step: Any) -> list[Material]:
    if isinstance(step, Step):
        return step.materials
    if isinstance(step, Mapping):
        return normalize_materials(step.get("materials"))
    return []


def step_total(step: Any) -> float:
    """Sum of line totals over the step's materials; 0 when there are none."""
    return _total(line_total(m) for m in _materials_of(step))


def phase_budget(steps: Any) -> PhaseBudget:
    """Total each step, preserving input order.

    Returns a ``PhaseBudget`` whose ``steps`` are 1-indexed ``StepBudget``
    entries and whose ``total`` is the sum of the step totals.
    """
    if not _is_list(steps):
        return PhaseBudget(total=0.0, steps=[])

    breakdown: list[StepBudget] = []
    for index, step in enumerate(steps, start=1):
        if isinstance(step, Step):
            title, materials = step.title, step.materials
        elif isinstance(step, Mapping):
            normalized = normalize_step(step)
            title, materials = normalized.title, normalized.materials
        else:
            title, materials = "", []
        breakdown.append(StepBudget(
            index=index,
            title=title or f"Step {index}",
            total=_total(line_total(m) for m in materials),
            materials=list(materials),
        ))

    return PhaseBudget(total=_total(s.total for s in breakdown), steps=breakdown)


def _steps_of(phase_data: Any) -> Any:
    if isinstance(phase_data, Phase):
        return phase_data.steps
    if _is_list(phase_data):
        return phase_data
    if isinstance(phase_data, Mapping):
        return phase_data.get("steps") or []
    return []


def project_budget(phases: Any) -> ProjectBudget:
    """Aggregate every phase and the project total.

    Args:
        phases: Ordered mapping ``name -> steps`` or ``name -> {"steps": [...]}``,
            a ``Project``, or a list of ``Phase`` objects.  Output order
            follows the input order.
    """
    if isinstance(phases, Project):
        items = [(p.name, p.steps) for p in phases.phases]
    elif isinstance(phases, Mapping):
        items = list(phases.items())
    elif _is_list(phases):
        items = [(p.name, p.steps) for p in phases if isinstance(p, Phase)]
    else:
        items = []

    budgets: list[PhaseBudget] = []
    for name, phase_data in items:
        budget = phase_budget(_steps_of(phase_data))
        budget.name = str(name)
        budgets.append(budget)

    return ProjectBudget(total=_total(p.total for p in budgets), phases=budgets)


def percentage_of_total(phase_total: Any, project_total: Any) -> float:
    """Share of the project total, in percent, rounded to one decimal.

    0 when the project total is 0 (or unusable).
    """
    project_total = coerce_cost(project_total)
    if not project_total:
        return 0.0
    return round(coerce_cost(phase_total) / project_total * 100, 1)


def phase_shares(budget: ProjectBudget) -> list[PhaseShare]:
    """Summary-table rows: each phase's total and percentage of the project."""
    return [
        PhaseShare(name=p.name, total=p.total,
                   percentage=percentage_of_total(p.total, budget.total))
        for p in budget.phases
    ]
