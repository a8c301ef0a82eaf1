"""
Pipeline package -- homestead budget data pipeline.

Re-exports key entry points so callers can do::

    from pipeline import load_project, project_budget, write_csv
"""

from pipeline.aggregate import (
    line_total,
    step_total,
    phase_budget,
    project_budget,
    percentage_of_total,
    phase_shares,
)
from pipeline.export import budget_rows, to_csv_string, write_csv, write_xlsx
from pipeline.loader import LoadTracker, PhaseSource, load_phase, load_project
from pipeline.models import Material, Phase, Project, ProjectBudget, Step

__all__ = [
    "line_total",
    "step_total",
    "phase_budget",
    "project_budget",
    "percentage_of_total",
    "phase_shares",
    "budget_rows",
    "to_csv_string",
    "write_csv",
    "write_xlsx",
    "LoadTracker",
    "PhaseSource",
    "load_phase",
    "load_project",
    "Material",
    "Phase",
    "Project",
    "ProjectBudget",
    "Step",
]
