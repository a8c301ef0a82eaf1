"""
Budget export: CSV and Excel.

Row layout (identical for both formats)::

    Phase,Step,Material,Quantity,Unit Cost,Total Cost
    Phase 1,Water System,Solar pump kit,1,8500,8500
    ...
    Phase 1,PHASE TOTAL,,,,17130
    ...
    PROJECT TOTAL,,,,,152300

The second column header is ``Step`` for the per-phase export and
``Section`` for the project-wide export.  Display-cost materials are
exported with a unit cost of 0, matching how they are totalled.
"""

from __future__ import annotations

import csv
import io
import logging
from pathlib import Path
from typing import Any, Iterator

from pipeline.aggregate import line_total
from pipeline.models import ProjectBudget
from utils.formatting import format_number

logger = logging.getLogger(__name__)

STEP_LABELS = ("Step", "Section")
PHASE_TOTAL = "PHASE TOTAL"
PROJECT_TOTAL = "PROJECT TOTAL"


def header(step_label: str = "Step") -> list[str]:
    return ["Phase", step_label, "Material", "Quantity", "Unit Cost", "Total Cost"]


def _value_rows(budget: ProjectBudget) -> Iterator[list[Any]]:
    """Data rows with numeric cells left as numbers."""
    for phase in budget.phases:
        for step in phase.steps:
            for m in step.materials:
                yield [phase.name, step.title, m.name, m.quantity, m.unit_cost, line_total(m)]
        yield [phase.name, PHASE_TOTAL, "", "", "", phase.total]
    yield [PROJECT_TOTAL, "", "", "", "", budget.total]


def budget_rows(budget: ProjectBudget, step_label: str = "Step") -> Iterator[list[str]]:
    """Yield the header and every export row as strings.

    Row count is ``materials + phases + 1`` plus the header.
    """
    yield header(step_label)
    for row in _value_rows(budget):
        yield [format_number(v) if isinstance(v, (int, float)) else v for v in row]


def to_csv_string(budget: ProjectBudget, step_label: str = "Step") -> str:
    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator="\n")
    writer.writerows(budget_rows(budget, step_label))
    return buf.getvalue()


def write_csv(budget: ProjectBudget, dest: Path | str, step_label: str = "Step") -> Path:
    """Write the budget CSV to *dest* (parent directories are created)."""
    dest = Path(dest)
    dest.parent.mkdir(parents=True, exist_ok=True)
    with open(dest, "w", encoding="utf-8", newline="") as f:
        writer = csv.writer(f, lineterminator="\n")
        writer.writerows(budget_rows(budget, step_label))
    logger.info("Wrote %s", dest)
    return dest


def xlsx_bytes(budget: ProjectBudget, step_label: str = "Step",
               sheet_title: str = "Budget") -> bytes:
    """Render the export rows as an Excel workbook (openpyxl write-only mode)."""
    import openpyxl

    wb = openpyxl.Workbook(write_only=True)
    ws = wb.create_sheet(sheet_title)
    ws.append(header(step_label))
    for row in _value_rows(budget):
        ws.append(row)
    buf = io.BytesIO()
    wb.save(buf)
    return buf.getvalue()


def write_xlsx(budget: ProjectBudget, dest: Path | str, step_label: str = "Step") -> Path:
    dest = Path(dest)
    dest.parent.mkdir(parents=True, exist_ok=True)
    dest.write_bytes(xlsx_bytes(budget, step_label))
    logger.info("Wrote %s", dest)
    return dest
