"""
FastAPI application factory.

Usage:
    python -m api.app                    # Dev server on port 8000
    APP_DATA_DIR=/srv/homestead python -m api.app

OpenAPI docs available at http://localhost:8000/docs after starting.

The app owns one ``AppContext`` (``app.state.ctx``) holding the loaded
project.  Phase data is loaded once when the app is created and again on
``POST /api/v1/budget/refresh``.

Logging: one stream handler, plain text by default or newline-delimited JSON
when APP_LOG_FORMAT=json.  Every request is logged with a short request ID,
also returned in the X-Request-ID header.
"""

import json
import logging
import time
import uuid
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from fastapi.templating import Jinja2Templates
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.context import AppContext
from api.routes import budget, download
from api.routes import frontend as frontend_routes
from utils.config import AppConfig, BudgetConfig
from utils.formatting import format_currency, format_number, format_percent

# ── Configuration ─────────────────────────────────────────────────────────────
_cfg = AppConfig.from_env()

# ── Structured JSON logging ───────────────────────────────────────────────────


class _JsonFormatter(logging.Formatter):
    """Emit log records as newline-delimited JSON."""

    def format(self, record: logging.LogRecord) -> str:
        data: dict = {
            "timestamp": self.formatTime(record, "%Y-%m-%dT%H:%M:%S"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        # Merge extra fields added via logger.info("...", extra={...})
        for key in ("method", "path", "status", "duration_ms", "request_id"):
            if hasattr(record, key):
                data[key] = getattr(record, key)
        if record.exc_info:
            data["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(data)


_logger = logging.getLogger("homestead_budget_api")
_handler = logging.StreamHandler()
if _cfg.log_format == "json":
    _handler.setFormatter(_JsonFormatter())
else:
    _handler.setFormatter(
        logging.Formatter("%(asctime)s %(levelname)s %(name)s %(message)s")
    )
logging.basicConfig(handlers=[_handler], level=logging.INFO, force=True)


def _error_body(error: str, detail, status_code: int) -> dict:
    return {"error": error, "detail": detail, "status_code": status_code}


def create_app(config: AppConfig | None = None, data_dir: Path | None = None,
               budget_config: BudgetConfig | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        config: App settings (default: read from the environment).
        data_dir: Override the phase data directory (useful for testing);
            the project file defaults to ``<data_dir>/project.json``.
        budget_config: Currency and high-cost display settings.

    Returns:
        Configured FastAPI application instance with phase data loaded.
    """
    cfg = config or AppConfig.from_env()
    if data_dir is not None:
        cfg.data_dir = Path(data_dir)
        cfg.project_config = cfg.data_dir / "project.json"

    app = FastAPI(
        title="Homestead Budget API",
        summary="Phased homestead build plan with itemized cost estimates.",
        description=(
            "## Homestead Budget Explorer API\n\n"
            "Totals material costs per section, per phase and for the whole "
            "project, with each phase's percentage of the project total.\n\n"
            "### Key concepts\n"
            "- **Amounts** are in Rand.\n"
            "- A **section** (step) is one build area such as the water system "
            "or shelter; a **phase** is an ordered group of sections.\n"
            "- Materials whose cost is a display string (e.g. `\"R8,500\"`) are "
            "shown verbatim and count as 0 in every total."
        ),
        version="1.0.0",
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_tags=[
            {"name": "budget", "description": "Project, phase and section budgets."},
            {"name": "download", "description": "Budget export as CSV or Excel."},
            {"name": "meta", "description": "Health check."},
        ],
    )

    ctx = AppContext(cfg, budget_config)
    app.state.ctx = ctx

    # ── CORS middleware ───────────────────────────────────────────────────────
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cfg.cors_origins,
        allow_credentials=False,
        allow_methods=["GET", "POST", "HEAD", "OPTIONS"],
        allow_headers=["*"],
    )

    # ── Request logging middleware ────────────────────────────────────────────

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        """Log each request with its status, duration and request ID."""
        request_id = str(uuid.uuid4())[:8]
        start = time.monotonic()
        path = request.url.path

        response = await call_next(request)
        duration_ms = (time.monotonic() - start) * 1000
        response.headers["X-Request-ID"] = request_id

        if cfg.log_format == "json":
            _logger.info(
                "request",
                extra={
                    "method": request.method,
                    "path": path,
                    "status": response.status_code,
                    "duration_ms": round(duration_ms, 1),
                    "request_id": request_id,
                },
            )
        else:
            _logger.info(
                "method=%s path=%s status=%d duration_ms=%.1f rid=%s",
                request.method, path, response.status_code, duration_ms, request_id,
            )
        return response

    # ── Error handling ────────────────────────────────────────────────────────

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        if exc.status_code >= 500:
            _logger.error("HTTP %d on %s: %s", exc.status_code, request.url.path, exc.detail)
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_body("Not found" if exc.status_code == 404 else "Request failed",
                                exc.detail, exc.status_code),
        )

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception):
        """Catch unhandled exceptions and return JSON instead of HTML traceback."""
        _logger.exception("Unhandled error on %s", request.url.path)
        return JSONResponse(
            status_code=500,
            content=_error_body("Internal server error", str(exc), 500),
        )

    @app.exception_handler(ValueError)
    async def value_error_handler(request: Request, exc: ValueError):
        return JSONResponse(
            status_code=400,
            content=_error_body("Bad request", str(exc), 400),
        )

    # ── Health check ──────────────────────────────────────────────────────────

    @app.get("/health", tags=["meta"], summary="Health check")
    def health():
        """Return 200 OK with the load status and cache counters."""
        return {
            "status": "ok",
            "phases": len(ctx.project),
            "load_seq": ctx.load_seq,
            "data_dir": str(cfg.data_dir),
            "cache": ctx.cache.stats(),
        }

    # ── Register routers ──────────────────────────────────────────────────────

    prefix = "/api/v1"
    app.include_router(budget.router,   prefix=prefix)
    app.include_router(download.router, prefix=prefix)

    # ── Static files + Jinja2 templates ───────────────────────────────────────
    _here = Path(__file__).parent.parent  # project root

    static_dir = _here / "static"
    templates_dir = _here / "templates"

    if static_dir.exists():
        app.mount("/static", StaticFiles(directory=str(static_dir)), name="static")

    if templates_dir.exists():
        templates = Jinja2Templates(directory=str(templates_dir))

        bc = ctx.budget_config

        def fmt_currency(value) -> str:
            """Jinja filter: Rand amount with thousands separators."""
            return format_currency(value, symbol=bc.currency, thousands_sep=bc.thousands_sep)

        templates.env.filters["currency"] = fmt_currency
        templates.env.filters["percent"] = format_percent
        templates.env.filters["number"] = format_number

        # Wire templates into the frontend router
        frontend_routes.set_templates(templates)
        app.include_router(frontend_routes.router)

    ctx.refresh()
    return app


# Singleton instance for uvicorn
app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "api.app:app",
        host=_cfg.api_host,
        port=_cfg.api_port,
        reload=True,
        log_level="info",
    )
