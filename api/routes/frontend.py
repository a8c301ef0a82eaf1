"""
Frontend HTML routes.

Serves the Jinja2 templates for the project summary, the per-phase budget
pages and the section content fragment.

Routes:
    GET /                                  → index.html (project summary table)
    GET /phases/{phase}                    → phase.html (sections + materials)
    GET /partials/section/{phase}/{index}  → partials/section.html (HTMX swap target)

Templates autoescape, so titles and instructions from phase data are
rendered as text, never as markup.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import HTMLResponse
from fastapi.templating import Jinja2Templates

from api.context import AppContext, get_context
from pipeline.aggregate import phase_shares, step_total
from utils.formatting import is_high_cost

logger = logging.getLogger(__name__)

router = APIRouter(tags=["frontend"])

# Templates instance is set by create_app() after mounting.
_templates: Jinja2Templates | None = None


def set_templates(t: Jinja2Templates) -> None:
    global _templates
    _templates = t


def _tmpl() -> Jinja2Templates:
    if _templates is None:
        raise RuntimeError("Templates not initialised; call set_templates() first")
    return _templates


def _summary_rows(ctx: AppContext) -> list[dict]:
    threshold = ctx.budget_config.high_cost_threshold
    return [
        {"name": s.name, "total": s.total, "percentage": s.percentage,
         "high_cost": is_high_cost(s.total, threshold)}
        for s in phase_shares(ctx.budget)
    ]


# ── Routes ────────────────────────────────────────────────────────────────────

@router.get("/", response_class=HTMLResponse, include_in_schema=False)
def index(request: Request, ctx: AppContext = Depends(get_context)) -> HTMLResponse:
    """Project summary: one row per phase with its share of the total."""
    rows = ctx.cached(("html", "summary"), lambda: _summary_rows(ctx))
    return _tmpl().TemplateResponse(
        request,
        "index.html",
        {
            "title":          ctx.title,
            "rows":           rows,
            "total":          ctx.budget.total,
            "material_count": ctx.budget.material_count,
            "report":         ctx.last_report,
        },
    )


@router.get("/phases/{phase}", response_class=HTMLResponse, include_in_schema=False)
def phase_page(
    phase: str,
    request: Request,
    ctx: AppContext = Depends(get_context),
) -> HTMLResponse:
    """Phase budget: every section with its materials and totals."""
    budget = ctx.budget.phase(phase)
    if budget is None:
        raise HTTPException(status_code=404, detail=f"Phase {phase!r} not found")

    return _tmpl().TemplateResponse(
        request,
        "phase.html",
        {
            "title":     ctx.title,
            "phase":     budget,
            "threshold": ctx.budget_config.high_cost_threshold,
            "current":   ctx.current_section,
        },
    )


@router.get("/partials/section/{phase}/{index}", response_class=HTMLResponse,
            include_in_schema=False)
def section_partial(
    phase: str,
    index: int,
    request: Request,
    ctx: AppContext = Depends(get_context),
) -> HTMLResponse:
    """HTMX partial: one section's content.  Also becomes the current section."""
    step = ctx.select_section(phase, index)
    if step is None:
        logger.info("Unknown section requested: %s #%d", phase, index)
        raise HTTPException(status_code=404,
                            detail=f"Section {index} of phase {phase!r} not found")

    return _tmpl().TemplateResponse(
        request,
        "partials/section.html",
        {
            "phase":     phase,
            "index":     index,
            "step":      step,
            "total":     step_total(step),
            "threshold": ctx.budget_config.high_cost_threshold,
        },
    )
