"""
Phase data loading: read every configured phase source, concurrently, and
hand back a fully normalized ``Project``.

Sources are declared in ``data/project.json``::

    {"phases": [
        {"name": "Phase 1", "kind": "sections", "path": "phase1",
         "files": ["water", "shelter", "sanitation"]},
        {"name": "Phase 2", "kind": "mapping", "path": "phase2_data.json"}
    ]}

``sections`` phases read one JSON document per file (``<path>/<file>.json``);
``mapping`` phases read a single ``section name -> record`` document.  A
``path`` starting with ``http://`` or ``https://`` is fetched with the shared
retrying session instead of read from disk.

Failure policy: a missing or broken section file is skipped; a missing or
broken phase document yields a phase with no steps.  Nothing here raises for
retrieval problems, so one bad file never blanks the whole summary.  Every
skip is logged and, when a ``StepReport`` is supplied, recorded on it.

Loads run one thread per phase and are joined before anything is returned.
``LoadTracker`` lets callers discard the result of a load that a newer load
has superseded.
"""

from __future__ import annotations

import json
import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable

import requests

from pipeline.logging import StepReport
from pipeline.models import Phase, Project
from pipeline.normalize import normalize_mapping_phase, normalize_section_phase
from utils.http import SessionManager, fetch_json
from utils.patterns import REMOTE_SOURCE, SECTION_FILE_STEM

logger = logging.getLogger(__name__)

SOURCE_KINDS = ("sections", "mapping")


@dataclass(frozen=True)
class PhaseSource:
    """Where one phase's data lives."""

    name: str
    kind: str
    path: str
    files: tuple[str, ...] = ()

    @property
    def remote(self) -> bool:
        return bool(REMOTE_SOURCE.match(self.path))

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PhaseSource":
        """Build a source from one ``project.json`` entry.

        Raises:
            ValueError: If the entry is missing a name or path, or has an
                unknown kind.
        """
        if not isinstance(data, dict):
            raise ValueError(f"phase source must be an object, got {type(data).__name__}")
        name = str(data.get("name") or "").strip()
        path = str(data.get("path") or "").strip()
        kind = data.get("kind", "sections")
        if not name or not path:
            raise ValueError(f"phase source needs 'name' and 'path': {data!r}")
        if kind not in SOURCE_KINDS:
            raise ValueError(f"phase {name!r}: kind must be one of {SOURCE_KINDS}, got {kind!r}")
        files = data.get("files") or []
        if not isinstance(files, list):
            raise ValueError(f"phase {name!r}: 'files' must be a list")
        return cls(name=name, kind=kind, path=path, files=tuple(str(f) for f in files))


def sources_from_config(phases: Iterable[Any], report: StepReport | None = None) -> list[PhaseSource]:
    """Parse ``project.json`` phase entries, skipping (and recording) bad ones."""
    sources = []
    for entry in phases:
        try:
            sources.append(PhaseSource.from_dict(entry))
        except ValueError as exc:
            logger.warning("Ignoring phase source: %s", exc)
            if report is not None:
                report.add_skip("invalid_config", str(exc))
    return sources


# ── Document retrieval ────────────────────────────────────────────────────────


class _Fetcher:
    """Reads JSON documents from disk or HTTP, classifying failures."""

    def __init__(self, data_dir: Path, session: SessionManager | None, timeout: float) -> None:
        self.data_dir = Path(data_dir)
        self.session = session
        self.timeout = timeout

    def locate(self, path: str, *parts: str) -> str:
        if REMOTE_SOURCE.match(path):
            return "/".join([path.rstrip("/"), *parts])
        return str(self.data_dir.joinpath(path, *parts))

    def read(self, location: str, report: StepReport | None) -> Any | None:
        """Return the decoded document, or None after logging the failure."""
        try:
            if REMOTE_SOURCE.match(location):
                return fetch_json(self.session.session, location, timeout=self.timeout)
            with open(location, "r", encoding="utf-8") as f:
                return json.load(f)
        except FileNotFoundError:
            self._skip(report, "missing_source", "file not found", location)
        except json.JSONDecodeError as exc:
            self._skip(report, "parse_error", f"invalid JSON: {exc}", location)
        except requests.RequestException as exc:
            self._skip(report, "fetch_error", str(exc), location)
        except ValueError as exc:
            # requests' own JSON decode error when the body is not JSON
            self._skip(report, "parse_error", str(exc), location)
        except OSError as exc:
            self._skip(report, "missing_source", str(exc), location)
        return None

    @staticmethod
    def _skip(report: StepReport | None, category: str, detail: str, item: str) -> None:
        logger.warning("Failed to load %s: %s", item, detail)
        if report is not None:
            report.add_skip(category, detail, item)
            report.add_error(f"{item}: {detail}")


# ── Loading ───────────────────────────────────────────────────────────────────


def _load_sections(source: PhaseSource, fetcher: _Fetcher, report: StepReport | None) -> Phase:
    records, titles = [], []
    for stem in source.files:
        if not SECTION_FILE_STEM.match(stem):
            logger.warning("phase %r: ignoring unsafe section file name %r", source.name, stem)
            if report is not None:
                report.add_skip("invalid_config", "unsafe section file name", stem)
            continue
        location = fetcher.locate(source.path, f"{stem}.json")
        data = fetcher.read(location, report)
        if data is None:
            continue
        if not isinstance(data, dict):
            fetcher._skip(report, "parse_error", "section document is not an object", location)
            continue
        records.append(data)
        titles.append(stem.replace("_", " ").title())
    phase = normalize_section_phase(source.name, records, titles)
    if report is not None:
        report.add_processed(len(phase.steps))
    return phase


def _load_mapping(source: PhaseSource, fetcher: _Fetcher, report: StepReport | None) -> Phase:
    data = fetcher.read(fetcher.locate(source.path), report)
    if data is None:
        return Phase(name=source.name)
    phase = normalize_mapping_phase(source.name, data)
    if report is not None:
        report.add_processed(len(phase.steps))
    return phase


def load_phase(
    source: PhaseSource,
    data_dir: Path | str,
    session: SessionManager | None = None,
    timeout: float = 15,
    report: StepReport | None = None,
) -> Phase:
    """Load and normalize one phase.  Never raises for retrieval errors."""
    if session is None and source.remote:
        with SessionManager() as owned:
            return load_phase(source, data_dir, owned, timeout, report)

    fetcher = _Fetcher(Path(data_dir), session, timeout)
    if source.kind == "mapping":
        phase = _load_mapping(source, fetcher, report)
    else:
        phase = _load_sections(source, fetcher, report)
    logger.info("Loaded %s: %d section(s)", source.name, len(phase.steps))
    return phase


def load_project(
    sources: Iterable[PhaseSource],
    data_dir: Path | str,
    workers: int = 4,
    session: SessionManager | None = None,
    timeout: float = 15,
    report: StepReport | None = None,
) -> Project:
    """Load every phase concurrently and return them in configured order.

    All phase loads finish before this returns; aggregation never sees a
    partially loaded project.  A phase whose task fails outright is replaced
    by an empty phase of the same name.
    """
    sources = list(sources)
    if not sources:
        return Project()

    owns_session = session is None and any(s.remote for s in sources)
    if owns_session:
        session = SessionManager()

    try:
        with ThreadPoolExecutor(max_workers=max(1, min(workers, len(sources))),
                                thread_name_prefix="phase-load") as pool:
            futures = [
                pool.submit(load_phase, src, data_dir, session, timeout, report)
                for src in sources
            ]
            phases = []
            for src, future in zip(sources, futures):
                try:
                    phases.append(future.result())
                except Exception as exc:
                    logger.exception("Loading %s failed", src.name)
                    if report is not None:
                        report.add_error(f"{src.name}: {exc}")
                    phases.append(Phase(name=src.name))
    finally:
        if owns_session and session is not None:
            session.close()

    if report is not None:
        report.metrics["phases"] = len(phases)
        report.metrics["sections"] = sum(len(p.steps) for p in phases)
    return Project(phases=phases)


# ── Stale-load detection ──────────────────────────────────────────────────────


class LoadTracker:
    """Sequence numbers per load key.

    Each ``begin()`` supersedes every earlier load for the same key.  A load
    commits its result only while ``is_current()`` still holds for its token,
    so a slow, older load can never overwrite a newer one.

    Usage::

        token = tracker.begin("project")
        project = load_project(...)
        if tracker.is_current("project", token):
            ctx.project = project
    """

    def __init__(self) -> None:
        self._seq: dict[str, int] = {}
        self._lock = threading.Lock()

    def begin(self, key: str) -> int:
        with self._lock:
            token = self._seq.get(key, 0) + 1
            self._seq[key] = token
            return token

    def cancel(self, key: str) -> None:
        """Invalidate any in-flight load for *key*."""
        self.begin(key)

    def current(self, key: str) -> int:
        with self._lock:
            return self._seq.get(key, 0)

    def is_current(self, key: str, token: int) -> bool:
        with self._lock:
            return self._seq.get(key, 0) == token
