"""
GET /api/v1/budget endpoints.

Routes:
    GET  /api/v1/budget                                   project budget + percentages
    GET  /api/v1/budget/phases/{phase}                    one phase budget
    GET  /api/v1/budget/phases/{phase}/sections/{index}   one section's content and total
    POST /api/v1/budget/refresh                           reload every phase source

Budget responses are cached per load sequence in the context's TTL cache.
"""

from fastapi import APIRouter, Depends, HTTPException
from fastapi import Path as FPath

from api.context import AppContext, get_context
from api.models import (
    ImageOut,
    InstructionOut,
    MaterialOut,
    PhaseBudgetOut,
    ProjectBudgetOut,
    RefreshResponse,
    SectionBudgetOut,
    SectionOut,
    TroubleshootingOut,
)
from pipeline.aggregate import line_total, percentage_of_total, step_total
from pipeline.models import Material, PhaseBudget, StepBudget
from utils.formatting import is_high_cost

router = APIRouter(prefix="/budget", tags=["budget"])


def _material_out(m: Material, threshold: float) -> MaterialOut:
    return MaterialOut(
        name=m.name,
        kind=m.kind,
        unit_cost=m.unit_cost,
        quantity=m.quantity,
        line_total=line_total(m),
        display_cost=m.display_cost,
        high_cost=is_high_cost(line_total(m), threshold),
    )


def _section_budget_out(s: StepBudget, threshold: float) -> SectionBudgetOut:
    return SectionBudgetOut(
        index=s.index,
        title=s.title,
        total=s.total,
        materials=[_material_out(m, threshold) for m in s.materials],
    )


def _phase_out(p: PhaseBudget, project_total: float, threshold: float) -> PhaseBudgetOut:
    return PhaseBudgetOut(
        name=p.name,
        total=p.total,
        percentage=percentage_of_total(p.total, project_total),
        high_cost=is_high_cost(p.total, threshold),
        sections=[_section_budget_out(s, threshold) for s in p.steps],
    )


def _project_out(ctx: AppContext) -> ProjectBudgetOut:
    budget = ctx.budget
    threshold = ctx.budget_config.high_cost_threshold
    return ProjectBudgetOut(
        title=ctx.title,
        total=budget.total,
        material_count=budget.material_count,
        load_seq=ctx.load_seq,
        phases=[_phase_out(p, budget.total, threshold) for p in budget.phases],
    )


@router.get("", response_model=ProjectBudgetOut, summary="Project budget")
def get_budget(ctx: AppContext = Depends(get_context)) -> ProjectBudgetOut:
    """Project total, per-phase totals and percentage of the project total."""
    return ctx.cached(("api", "project"), lambda: _project_out(ctx))


@router.get(
    "/phases/{phase}",
    response_model=PhaseBudgetOut,
    summary="Phase budget",
    responses={404: {"description": "Unknown phase"}},
)
def get_phase_budget(
    phase: str = FPath(..., description="Phase name", examples=["Phase 1"]),
    ctx: AppContext = Depends(get_context),
) -> PhaseBudgetOut:
    budget = ctx.budget.phase(phase)
    if budget is None:
        raise HTTPException(status_code=404, detail=f"Phase {phase!r} not found")
    threshold = ctx.budget_config.high_cost_threshold
    return ctx.cached(("api", "phase", phase),
                      lambda: _phase_out(budget, ctx.budget.total, threshold))


@router.get(
    "/phases/{phase}/sections/{index}",
    response_model=SectionOut,
    summary="Section content and total",
    responses={404: {"description": "Unknown phase or section"}},
)
def get_section(
    phase: str = FPath(..., description="Phase name", examples=["Phase 1"]),
    index: int = FPath(..., ge=1, description="1-based section position", examples=[1]),
    ctx: AppContext = Depends(get_context),
) -> SectionOut:
    found = ctx.phase(phase)
    step = found.step(index) if found is not None else None
    if step is None:
        raise HTTPException(status_code=404,
                            detail=f"Section {index} of phase {phase!r} not found")
    threshold = ctx.budget_config.high_cost_threshold
    declared = step.declared_total
    if not isinstance(declared, (str, int, float)) or isinstance(declared, bool):
        declared = None
    return SectionOut(
        phase=phase,
        index=index,
        title=step.title,
        days=step.days,
        goal=step.goal,
        estimated_time_hours=step.estimated_time_hours,
        total=step_total(step),
        declared_total=declared,
        materials=[_material_out(m, threshold) for m in step.materials],
        instructions=[InstructionOut(title=i.title, description=i.description)
                      for i in step.instructions],
        tools=step.tools,
        tips=step.tips,
        safety=step.safety,
        images=[ImageOut(src=i.src, description=i.description) for i in step.images],
        troubleshooting=[TroubleshootingOut(problem=t.problem, cause=t.cause, solution=t.solution)
                         for t in step.troubleshooting],
    )


@router.post("/refresh", response_model=RefreshResponse, summary="Reload phase data")
def refresh(ctx: AppContext = Depends(get_context)) -> RefreshResponse:
    """Reload every configured phase source and recompute the budget.

    ``skipped`` and ``errors`` describe this reload, even when it was
    discarded; the counts describe the project now in effect.
    """
    committed, report = ctx.reload()
    return RefreshResponse(
        committed=committed,
        load_seq=ctx.load_seq,
        phases=len(ctx.project),
        sections=sum(len(p.steps) for p in ctx.project),
        skipped=report.items_skipped,
        errors=list(report.errors),
    )
