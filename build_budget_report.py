"""
Homestead budget report -- loads every configured phase, prints the project
summary table and writes the CSV (and optionally Excel) export.

Steps (in order):
  1. load    -- read phase sources from project.json (concurrently)
  2. export  -- write the CSV / Excel budget

Features:
  - Missing or broken phase sources degrade to empty phases instead of failing
  - Per-step log files under logs/runs/<run-id>/ plus a summary.json

Usage:
    python build_budget_report.py                          # summary + homestead-project-budget.csv
    python build_budget_report.py --detail                 # also list every section total
    python build_budget_report.py --csv out/budget.csv --xlsx out/budget.xlsx
    python build_budget_report.py --data-dir /srv/homestead --workers 8
    python build_budget_report.py --step-label Step        # per-step column header
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from pipeline.aggregate import phase_shares, project_budget
from pipeline.export import STEP_LABELS, write_csv, write_xlsx
from pipeline.loader import load_project, sources_from_config
from pipeline.logging import RunLogger
from pipeline.models import ProjectBudget
from utils.config import BudgetConfig, ProjectConfig
from utils.formatting import TableFormatter, format_currency, format_percent, is_high_cost

logger = logging.getLogger(__name__)


def _banner(text: str) -> None:
    bar = "=" * 60
    print(f"\n{bar}")
    print(f"  {text}")
    print(f"{bar}\n", flush=True)


def summary_table(budget: ProjectBudget, cfg: BudgetConfig,
                  detail: bool = False) -> str:
    """Render the project summary as aligned plain text.

    Phases at or above the high-cost threshold are marked with ``*``.
    """
    def money(v: float) -> str:
        return format_currency(v, symbol=cfg.currency, thousands_sep=cfg.thousands_sep)

    table = TableFormatter(["Phase", "Total", "% of Project"])
    for phase, share in zip(budget.phases, phase_shares(budget)):
        flag = " *" if is_high_cost(share.total, cfg.high_cost_threshold) else ""
        table.add_row([f"{share.name}{flag}", money(share.total),
                       format_percent(share.percentage)])
        if detail:
            for step in phase.steps:
                table.add_row([f"  {step.index}. {step.title}", money(step.total), ""])
    table.add_row(["PROJECT TOTAL", money(budget.total),
                   format_percent(100.0 if budget.total else 0.0)])
    return table.to_string()


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(
        description="Load the homestead phase data, print the budget summary and export it.",
    )
    p.add_argument(
        "--config", default=None,
        help="Project file (default: <data-dir>/project.json)",
    )
    p.add_argument(
        "--data-dir", default=None,
        help="Root for relative phase paths (default: the project file's directory)",
    )
    p.add_argument(
        "--csv", default=None, metavar="PATH",
        help="CSV output path (default: the configured project export filename)",
    )
    p.add_argument(
        "--no-csv", action="store_true",
        help="Skip the CSV export",
    )
    p.add_argument(
        "--xlsx", default=None, metavar="PATH",
        help="Also write an Excel workbook to PATH",
    )
    p.add_argument(
        "--step-label", default="Section", choices=STEP_LABELS,
        help="Header of the second export column (default: Section)",
    )
    p.add_argument(
        "--workers", type=int, default=4,
        help="Threads used to load phases concurrently (default: 4)",
    )
    p.add_argument(
        "--timeout", type=float, default=15,
        help="Seconds per remote phase request (default: 15)",
    )
    p.add_argument(
        "--detail", action="store_true",
        help="List every section total under its phase",
    )
    p.add_argument(
        "--logs-dir", default="logs/runs",
        help="Directory for per-run log files (default: logs/runs)",
    )
    return p.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)

    logging.basicConfig(
        level=logging.INFO,
        format="%(message)s",
        force=True,
    )

    rl = RunLogger(logs_dir=args.logs_dir)
    rl.args_dict = {
        k: v for k, v in vars(args).items()
        if v is not None and v is not False
    }
    budget_cfg = BudgetConfig()

    # ── Step 1: Load ──────────────────────────────────────────────────────
    _banner("Step 1 / 2 -- Load phase data")
    report = rl.start_step("load")
    try:
        project_cfg = ProjectConfig.load(args.config, data_dir=args.data_dir)
    except (OSError, ValueError) as exc:
        logger.error("Cannot read project file: %s", exc)
        report.add_error(str(exc))
        rl.finish_step("load", report, failed=True)
        rl.write_summary()
        return 1

    sources = sources_from_config(project_cfg.phases, report)
    project = load_project(
        sources,
        project_cfg.data_dir,
        workers=args.workers,
        timeout=args.timeout,
        report=report,
    )
    rl.finish_step("load", report)
    print(f"  {report.console_summary()}", flush=True)

    budget = project_budget(project)
    print(f"\n{project_cfg.title}\n")
    print(summary_table(budget, budget_cfg, detail=args.detail), flush=True)

    # ── Step 2: Export ────────────────────────────────────────────────────
    _banner("Step 2 / 2 -- Export")
    export_report = rl.start_step("export")
    try:
        if not args.no_csv:
            csv_path = Path(args.csv or budget_cfg.project_export_filename)
            write_csv(budget, csv_path, step_label=args.step_label)
            export_report.add_processed()
            print(f"  CSV  : {csv_path}", flush=True)
        if args.xlsx:
            write_xlsx(budget, args.xlsx, step_label=args.step_label)
            export_report.add_processed()
            print(f"  Excel: {args.xlsx}", flush=True)
    except OSError as exc:
        logger.error("Export failed: %s", exc)
        export_report.add_error(str(exc))
        rl.finish_step("export", export_report, failed=True)
        rl.write_summary()
        return 1
    export_report.metrics["rows"] = budget.material_count + len(budget.phases) + 1
    rl.finish_step("export", export_report)

    summary_path = rl.write_summary()
    print(f"\n  Run logs : {rl.run_dir}", flush=True)
    print(f"  Summary  : {summary_path}", flush=True)
    return 0


if __name__ == "__main__":
    sys.exit(main())
