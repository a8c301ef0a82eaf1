"""
Application context for the web app.

One ``AppContext`` is created by ``create_app()`` and stored on
``app.state.ctx``.  It owns the loaded project, its budget, the TTL cache of
rendered results and the current-section pointer.  Routes reach it through
the ``get_context`` dependency, so tests can build an app around any data
directory.

Refreshes run under a ``LoadTracker`` token: when two refreshes overlap, only
the one started last may commit.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable

from fastapi import Request

from pipeline.aggregate import project_budget
from pipeline.loader import LoadTracker, load_project, sources_from_config
from pipeline.logging import StepReport
from pipeline.models import Phase, Project, ProjectBudget, Step
from utils.cache import TTLCache
from utils.config import AppConfig, BudgetConfig, ProjectConfig

logger = logging.getLogger(__name__)

PROJECT_KEY = "project"


class AppContext:
    def __init__(self, config: AppConfig | None = None,
                 budget_config: BudgetConfig | None = None) -> None:
        self.config = config or AppConfig.from_env()
        self.budget_config = budget_config or BudgetConfig()
        self.title = ProjectConfig().title
        self.project = Project()
        self.budget: ProjectBudget = project_budget(self.project)
        self.tracker = LoadTracker()
        self.load_seq = 0
        self.last_report: StepReport | None = None
        self.current_section: tuple[str, int] | None = None
        self.cache = TTLCache(maxsize=64, ttl_seconds=self.config.cache_ttl)
        self._lock = threading.Lock()

    # ── Loading ───────────────────────────────────────────────────────────────

    def _read_project_config(self, report: StepReport) -> ProjectConfig | None:
        try:
            return ProjectConfig.load(self.config.project_config,
                                      data_dir=self.config.data_dir)
        except (OSError, ValueError) as exc:
            logger.error("Cannot read project file %s: %s", self.config.project_config, exc)
            report.add_skip("invalid_config", str(exc), str(self.config.project_config))
            report.add_error(str(exc))
            return None

    def refresh(self) -> bool:
        """Reload every phase source and recompute the budget.

        Returns False when a newer refresh started while this one was
        loading; its result is discarded.
        """
        return self.reload()[0]

    def reload(self) -> tuple[bool, StepReport]:
        """Like ``refresh()``, but also return this load's own report.

        The report of a discarded load is never stored on the context.
        """
        token = self.tracker.begin(PROJECT_KEY)
        report = StepReport(step_name="load", status="started")

        project_config = self._read_project_config(report)
        if project_config is None:
            sources, data_dir = [], self.config.data_dir
        else:
            sources = sources_from_config(project_config.phases, report)
            data_dir = project_config.data_dir

        project = load_project(
            sources,
            data_dir,
            workers=self.config.load_workers,
            timeout=self.config.http_timeout,
            report=report,
        )
        budget = project_budget(project)

        with self._lock:
            if not self.tracker.is_current(PROJECT_KEY, token):
                logger.info("Discarding superseded load #%d", token)
                report.add_skip("stale_load", f"load #{token} superseded")
                report.status = "discarded"
                return False, report
            if project_config is not None:
                self.title = project_config.title
            self.project = project
            self.budget = budget
            self.load_seq = token
            self.current_section = None
            report.status = "failed" if project_config is None else "completed"
            self.last_report = report
        self.cache.clear()
        logger.info("Loaded %d phase(s), total %.2f: %s",
                    len(project), budget.total, report.console_summary())
        return True, report

    # ── Lookups ───────────────────────────────────────────────────────────────

    def phase(self, name: str) -> Phase | None:
        return self.project.phase(name)

    def select_section(self, phase_name: str, index: int) -> Step | None:
        """Return the section and make it the current one, or None if unknown."""
        phase = self.project.phase(phase_name)
        step = phase.step(index) if phase is not None else None
        if step is not None:
            with self._lock:
                self.current_section = (phase_name, index)
        return step

    def cached(self, key: tuple, factory: Callable[[], Any]) -> Any:
        """Cache *factory()* under *key* for the currently loaded project."""
        return self.cache.get_or_set((self.load_seq, *key), factory)


def get_context(request: Request) -> AppContext:
    """FastAPI dependency returning the app's context."""
    return request.app.state.ctx
