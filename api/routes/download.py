"""
GET /api/v1/download endpoint.

Returns the project budget as CSV or Excel.  Both formats carry the same rows
as the CLI export: one row per material, a PHASE TOTAL row per phase and a
trailing PROJECT TOTAL row.  ``step_label`` picks the second column header
(``Step`` or ``Section``).
"""

from fastapi import APIRouter, Depends, Query
from fastapi.responses import StreamingResponse

from api.context import AppContext, get_context
from pipeline.export import to_csv_string, xlsx_bytes
from utils.patterns import UNSAFE_FILENAME_CHARS

router = APIRouter(prefix="/download", tags=["download"])

_XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def _safe_filename(name: str) -> str:
    return UNSAFE_FILENAME_CHARS.sub("_", name)


@router.get("", summary="Download the project budget as CSV or Excel")
def download(
    fmt: str = Query("csv", pattern="^(csv|xlsx)$", description="Output format"),
    step_label: str = Query("Section", pattern="^(Step|Section)$",
                            description="Header of the second column"),
    ctx: AppContext = Depends(get_context),
) -> StreamingResponse:
    """Export every phase, section and material with phase and project totals."""
    cfg = ctx.budget_config
    headers = {"X-Total-Count": str(ctx.budget.material_count)}

    if fmt == "xlsx":
        content = ctx.cached(("xlsx", step_label),
                             lambda: xlsx_bytes(ctx.budget, step_label))
        filename = _safe_filename(cfg.xlsx_filename)
        return StreamingResponse(
            iter([content]),
            media_type=_XLSX_MEDIA_TYPE,
            headers={
                "Content-Disposition": f"attachment; filename={filename}",
                "Content-Length": str(len(content)),
                **headers,
            },
        )

    text = ctx.cached(("csv", step_label),
                      lambda: to_csv_string(ctx.budget, step_label))
    filename = _safe_filename(
        cfg.project_export_filename if step_label == "Section" else cfg.export_filename
    )
    return StreamingResponse(
        iter([text]),
        media_type="text/csv",
        headers={"Content-Disposition": f"attachment; filename={filename}", **headers},
    )
