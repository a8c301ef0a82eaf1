"""
Run logging: per-step log files and structured skip/error accounting.

Provides:
  - RunLogger: manages a ``logs/runs/<run_id>/`` directory with one log file
    per step (``load``, ``export``) plus a ``summary.json``.
  - StepReport: what a step processed, skipped and failed on, and why.
  - SkipRecord: one skip event with a category and detail string.

Usage inside build_budget_report.py::

    rl = RunLogger(logs_dir)
    report = rl.start_step("load")
    project = load_project(sources, report=report)
    rl.finish_step("load", report)
    rl.write_summary()

Skip categories (for SkipRecord.category):
    missing_source  a section file or phase document does not exist
    fetch_error     an HTTP source failed after retries
    parse_error     the document is not valid JSON
    invalid_config  a phase source entry is malformed
    stale_load      a newer load superseded this one; result discarded
"""

from __future__ import annotations

import json
import logging
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any


@dataclass
class SkipRecord:
    """One thing that was skipped, with a machine-readable category."""

    category: str
    detail: str
    item: str = ""         # optional: file path, URL or phase name

    def to_dict(self) -> dict[str, str]:
        d: dict[str, str] = {"category": self.category, "detail": self.detail}
        if self.item:
            d["item"] = self.item
        return d


@dataclass
class StepReport:
    """Structured summary of what one step accomplished.

    Loader threads record into the same report, so the mutators take a lock.
    """

    step_name: str
    status: str = "not_started"               # started | completed | failed
    elapsed_seconds: float = 0.0
    items_processed: int = 0
    items_skipped: int = 0
    items_errored: int = 0
    skips: list[SkipRecord] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    metrics: dict[str, Any] = field(default_factory=dict)
    detail: str = ""
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def add_processed(self, count: int = 1) -> None:
        with self._lock:
            self.items_processed += count

    def add_skip(self, category: str, detail: str, item: str = "") -> None:
        with self._lock:
            self.skips.append(SkipRecord(category=category, detail=detail, item=item))
            self.items_skipped += 1

    def add_error(self, message: str) -> None:
        with self._lock:
            self.errors.append(message)
            self.items_errored += 1

    def skip_counts_by_category(self) -> dict[str, int]:
        counts: dict[str, int] = {}
        for s in self.skips:
            counts[s.category] = counts.get(s.category, 0) + 1
        return counts

    def console_summary(self) -> str:
        """One-line summary suitable for the terminal."""
        parts: list[str] = []
        if self.items_processed:
            parts.append(f"{self.items_processed:,} processed")
        if self.items_skipped:
            cats = self.skip_counts_by_category()
            skip_parts = [f"{v} {k.replace('_', ' ')}" for k, v in sorted(cats.items())]
            parts.append(f"{self.items_skipped:,} skipped ({', '.join(skip_parts)})")
        if self.items_errored:
            parts.append(f"{self.items_errored:,} errors")
        if self.detail:
            parts.append(self.detail)
        for key, val in self.metrics.items():
            if isinstance(val, int):
                parts.append(f"{key}: {val:,}")
            elif isinstance(val, float):
                parts.append(f"{key}: {val:,.1f}")
        return " | ".join(parts) if parts else "no activity"

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "step_name": self.step_name,
            "status": self.status,
            "elapsed_seconds": round(self.elapsed_seconds, 2),
            "items_processed": self.items_processed,
            "items_skipped": self.items_skipped,
            "items_errored": self.items_errored,
            "metrics": self.metrics,
        }
        if self.detail:
            d["detail"] = self.detail
        if self.skips:
            d["skips"] = [s.to_dict() for s in self.skips]
        if self.errors:
            d["errors"] = self.errors
        return d


class RunLogger:
    """Manages per-run, per-step log files under ``logs/runs/``.

    Creates a directory like::

        logs/runs/2026-10-19T14-30-00/
            load.log
            export.log
            summary.json
    """

    def __init__(self, logs_dir: Path | str = "logs/runs") -> None:
        self.logs_root = Path(logs_dir)
        self.run_id = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H-%M-%S")
        self.run_dir = self.logs_root / self.run_id
        self.run_dir.mkdir(parents=True, exist_ok=True)

        self._step_handlers: dict[str, logging.FileHandler] = {}
        self._step_start_times: dict[str, float] = {}
        self._reports: dict[str, StepReport] = {}

        self.run_start = time.monotonic()
        self.args_dict: dict[str, Any] = {}

    def start_step(self, step_name: str) -> StepReport:
        """Open a log file for *step_name* and attach it to the root logger."""
        handler = logging.FileHandler(self.run_dir / f"{step_name}.log", encoding="utf-8")
        handler.setLevel(logging.DEBUG)
        handler.setFormatter(logging.Formatter(
            "%(asctime)s  %(levelname)-7s  %(name)s  %(message)s",
            datefmt="%H:%M:%S",
        ))
        logging.getLogger().addHandler(handler)
        self._step_handlers[step_name] = handler
        self._step_start_times[step_name] = time.monotonic()

        report = StepReport(step_name=step_name, status="started")
        self._reports[step_name] = report
        return report

    def finish_step(self, step_name: str, report: StepReport | None = None,
                    failed: bool = False) -> None:
        """Detach the log handler for *step_name* and finalise the report."""
        t0 = self._step_start_times.pop(step_name, self.run_start)
        elapsed = time.monotonic() - t0

        if report is None:
            report = self._reports.get(step_name, StepReport(step_name=step_name))
        report.elapsed_seconds = elapsed
        if failed:
            report.status = "failed"
        elif report.status == "started":
            report.status = "completed"
        self._reports[step_name] = report

        handler = self._step_handlers.pop(step_name, None)
        if handler:
            handler.stream.write(f"\n{'=' * 60}\n")
            handler.stream.write(f"STEP SUMMARY: {step_name}\n")
            handler.stream.write(f"  Status:    {report.status}\n")
            handler.stream.write(f"  Elapsed:   {elapsed:.2f}s\n")
            handler.stream.write(f"  Processed: {report.items_processed}\n")
            handler.stream.write(f"  Skipped:   {report.items_skipped}\n")
            handler.stream.write(f"  Errors:    {report.items_errored}\n")
            for cat, count in sorted(report.skip_counts_by_category().items()):
                handler.stream.write(f"    {cat}: {count}\n")
            for err in report.errors[:20]:
                handler.stream.write(f"    - {err}\n")
            handler.stream.write(f"{'=' * 60}\n")
            handler.close()
            logging.getLogger().removeHandler(handler)

    def write_summary(self) -> Path:
        """Write a JSON summary of the entire run to the run directory."""
        summary = {
            "run_id": self.run_id,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "total_elapsed_seconds": round(time.monotonic() - self.run_start, 2),
            "args": self.args_dict,
            "steps": {name: rpt.to_dict() for name, rpt in self._reports.items()},
        }
        path = self.summary_path
        with open(path, "w", encoding="utf-8") as f:
            json.dump(summary, f, indent=2, default=str)
        return path

    def get_reports(self) -> dict[str, StepReport]:
        return dict(self._reports)

    @property
    def summary_path(self) -> Path:
        return self.run_dir / "summary.json"
