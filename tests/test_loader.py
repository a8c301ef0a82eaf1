"""
Tests for pipeline/loader.py: phase source loading, concurrent join,
failure degradation and stale-load detection.
"""
import json
import sys
import threading
import time
from pathlib import Path

import pytest
import requests

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

import pipeline.loader as loader_mod
from conftest import MAPPING_PHASE, write_json
from pipeline.aggregate import project_budget
from pipeline.loader import (
    LoadTracker,
    PhaseSource,
    load_phase,
    load_project,
    sources_from_config,
)
from pipeline.logging import StepReport
from pipeline.models import Phase
from utils.config import ProjectConfig


def _sources(project_dir):
    return sources_from_config(ProjectConfig.load(data_dir=project_dir).phases)


# ── PhaseSource ───────────────────────────────────────────────────────────────

class TestPhaseSource:
    def test_from_dict(self):
        src = PhaseSource.from_dict(
            {"name": "Phase 1", "kind": "sections", "path": "phase1", "files": ["water"]})
        assert src == PhaseSource("Phase 1", "sections", "phase1", ("water",))
        assert src.remote is False

    def test_kind_defaults_to_sections(self):
        assert PhaseSource.from_dict({"name": "P", "path": "p"}).kind == "sections"

    def test_remote(self):
        assert PhaseSource.from_dict(
            {"name": "P", "kind": "mapping", "path": "https://example.test/p.json"}).remote

    @pytest.mark.parametrize("entry", [
        {"path": "p"},
        {"name": "P"},
        {"name": "P", "path": "p", "kind": "zip"},
        {"name": "P", "path": "p", "files": "water"},
        "Phase 1",
    ])
    def test_invalid_entries(self, entry):
        with pytest.raises(ValueError):
            PhaseSource.from_dict(entry)

    def test_sources_from_config_skips_bad(self):
        report = StepReport("load")
        sources = sources_from_config(
            [{"name": "A", "path": "a"}, {"name": "B"}], report)
        assert [s.name for s in sources] == ["A"]
        assert report.skip_counts_by_category() == {"invalid_config": 1}


# ── load_phase ────────────────────────────────────────────────────────────────

class TestLoadPhase:
    def test_sections_phase(self, project_dir):
        phase = load_phase(_sources(project_dir)[0], project_dir)
        assert phase.name == "Phase 1"
        assert [s.title for s in phase.steps] == ["Water System"]

    def test_mapping_phase(self, project_dir):
        phase = load_phase(_sources(project_dir)[2], project_dir)
        assert [s.title for s in phase.steps] == list(MAPPING_PHASE)

    def test_missing_section_file_skipped(self, project_dir):
        report = StepReport("load")
        src = PhaseSource("Phase 1", "sections", "phase1", ("water", "nope"))
        phase = load_phase(src, project_dir, report=report)
        assert [s.title for s in phase.steps] == ["Water System"]
        assert report.items_processed == 1
        assert report.skip_counts_by_category() == {"missing_source": 1}

    def test_invalid_json_skipped(self, project_dir):
        (project_dir / "phase1" / "broken.json").write_text("{not json", encoding="utf-8")
        report = StepReport("load")
        src = PhaseSource("Phase 1", "sections", "phase1", ("broken", "water"))
        phase = load_phase(src, project_dir, report=report)
        assert len(phase.steps) == 1
        assert report.skip_counts_by_category() == {"parse_error": 1}

    def test_section_document_not_object(self, project_dir):
        write_json(project_dir / "phase1" / "list.json", [1, 2, 3])
        report = StepReport("load")
        phase = load_phase(PhaseSource("P", "sections", "phase1", ("list",)),
                           project_dir, report=report)
        assert phase.steps == []
        assert report.skip_counts_by_category() == {"parse_error": 1}

    def test_unsafe_file_name_skipped(self, project_dir):
        report = StepReport("load")
        phase = load_phase(PhaseSource("P", "sections", "phase1", ("../project",)),
                           project_dir, report=report)
        assert phase.steps == []
        assert report.skip_counts_by_category() == {"invalid_config": 1}

    def test_missing_mapping_is_empty_phase(self, project_dir):
        report = StepReport("load")
        phase = load_phase(PhaseSource("Phase 9", "mapping", "phase9_data.json"),
                           project_dir, report=report)
        assert phase == Phase(name="Phase 9")
        assert report.items_errored == 1

    def test_section_title_falls_back_to_file_stem(self, project_dir):
        write_json(project_dir / "phase1" / "solar_pump.json", {"materials": []})
        phase = load_phase(PhaseSource("P", "sections", "phase1", ("solar_pump",)), project_dir)
        assert phase.steps[0].title == "Solar Pump"

    def test_fallback_titles_follow_skipped_files(self, project_dir):
        write_json(project_dir / "phase1" / "solar_pump.json", {"materials": []})
        phase = load_phase(PhaseSource("P", "sections", "phase1",
                                       ("nope", "water", "solar_pump")), project_dir)
        assert [s.title for s in phase.steps] == ["Water System", "Solar Pump"]

    def test_huge_quantity_does_not_blank_the_phase(self, project_dir):
        write_json(project_dir / "phase1" / "bolts.json", {
            "title": "Bolts",
            "materials": [{"item": "Bolt", "cost": 2, "quantity": 10**400},
                          {"item": "Nut", "cost": 3}],
        })
        src = PhaseSource("P", "sections", "phase1", ("water", "bolts"))
        project = load_project([src], project_dir)
        budget = project_budget(project)
        assert [s.title for s in project.phases[0].steps] == ["Water System", "Bolts"]
        assert budget.total == 11700 + 2 + 3

    def test_remote_mapping(self, project_dir, monkeypatch):
        seen = []

        def fake_fetch(session, url, timeout=15):
            seen.append((url, timeout))
            return MAPPING_PHASE

        monkeypatch.setattr(loader_mod, "fetch_json", fake_fetch)
        src = PhaseSource("Remote", "mapping", "https://example.test/phase3.json")
        phase = load_phase(src, project_dir, timeout=4)
        assert seen == [("https://example.test/phase3.json", 4)]
        assert len(phase.steps) == 2

    def test_remote_sections_url_layout(self, project_dir, monkeypatch):
        seen = []

        def fake_fetch(session, url, timeout=15):
            seen.append(url)
            return {"title": url.rsplit("/", 1)[-1]}

        monkeypatch.setattr(loader_mod, "fetch_json", fake_fetch)
        src = PhaseSource("Remote", "sections", "https://example.test/phase1/", ("water", "garden"))
        load_phase(src, project_dir)
        assert seen == ["https://example.test/phase1/water.json",
                        "https://example.test/phase1/garden.json"]

    def test_remote_failure_is_fetch_error(self, project_dir, monkeypatch):
        def failing_fetch(session, url, timeout=15):
            raise requests.ConnectionError("unreachable")

        monkeypatch.setattr(loader_mod, "fetch_json", failing_fetch)
        report = StepReport("load")
        phase = load_phase(PhaseSource("Remote", "mapping", "http://example.test/p.json"),
                           project_dir, report=report)
        assert phase.steps == []
        assert report.skip_counts_by_category() == {"fetch_error": 1}


# ── load_project ──────────────────────────────────────────────────────────────

class TestLoadProject:
    def test_loads_all_phases_in_order(self, project_dir):
        report = StepReport("load")
        project = load_project(_sources(project_dir), project_dir, report=report)
        assert [p.name for p in project] == ["Phase 1", "Phase 2", "Phase 3"]
        assert report.metrics == {"phases": 3, "sections": 4}
        assert project_budget(project).total == 15000

    def test_order_independent_of_completion(self, project_dir, monkeypatch):
        real_load_phase = loader_mod.load_phase
        finished = []

        def slow_first(source, *args, **kwargs):
            # First configured phase finishes last
            if source.name == "Phase 1":
                time.sleep(0.2)
            phase = real_load_phase(source, *args, **kwargs)
            finished.append(source.name)
            return phase

        monkeypatch.setattr(loader_mod, "load_phase", slow_first)
        project = load_project(_sources(project_dir), project_dir, workers=3)
        assert finished[-1] == "Phase 1"
        assert [p.name for p in project] == ["Phase 1", "Phase 2", "Phase 3"]

    def test_runs_concurrently(self, project_dir, monkeypatch):
        active = []
        peak = []
        lock = threading.Lock()

        def tracking(source, *args, **kwargs):
            with lock:
                active.append(source.name)
                peak.append(len(active))
            time.sleep(0.1)
            with lock:
                active.remove(source.name)
            return Phase(name=source.name)

        monkeypatch.setattr(loader_mod, "load_phase", tracking)
        load_project(_sources(project_dir), project_dir, workers=3)
        assert max(peak) > 1

    def test_failed_task_becomes_empty_phase(self, project_dir, monkeypatch):
        real_load_phase = loader_mod.load_phase

        def explode_on_two(source, *args, **kwargs):
            if source.name == "Phase 2":
                raise RuntimeError("boom")
            return real_load_phase(source, *args, **kwargs)

        monkeypatch.setattr(loader_mod, "load_phase", explode_on_two)
        report = StepReport("load")
        project = load_project(_sources(project_dir), project_dir, report=report)
        assert [p.name for p in project] == ["Phase 1", "Phase 2", "Phase 3"]
        assert project.phase("Phase 2").steps == []
        assert any("boom" in e for e in report.errors)
        assert project_budget(project).total == 11700

    def test_missing_phase_degrades_to_zero(self, project_dir):
        (project_dir / "phase2" / "shelter.json").unlink()
        project = load_project(_sources(project_dir), project_dir)
        budget = project_budget(project)
        assert budget.phase("Phase 2").total == 0
        assert budget.total == 11700

    def test_no_sources(self, project_dir):
        assert len(load_project([], project_dir)) == 0

    def test_shipped_data_loads(self):
        cfg = ProjectConfig.load()
        report = StepReport("load")
        project = load_project(sources_from_config(cfg.phases), cfg.data_dir, report=report)
        assert report.items_skipped == 0
        assert [p.name for p in project] == ["Phase 1", "Phase 2", "Phase 3", "Phase 4"]
        assert len(project.phase("Phase 1").steps) == 8
        # Later phases carry display-only costs
        budget = project_budget(project)
        assert budget.total == budget.phase("Phase 1").total > 0


# ── LoadTracker ───────────────────────────────────────────────────────────────

class TestLoadTracker:
    def test_latest_token_is_current(self):
        tracker = LoadTracker()
        first = tracker.begin("project")
        second = tracker.begin("project")
        assert not tracker.is_current("project", first)
        assert tracker.is_current("project", second)

    def test_keys_are_independent(self):
        tracker = LoadTracker()
        a = tracker.begin("a")
        tracker.begin("b")
        assert tracker.is_current("a", a)

    def test_cancel_invalidates(self):
        tracker = LoadTracker()
        token = tracker.begin("project")
        tracker.cancel("project")
        assert not tracker.is_current("project", token)

    def test_current(self):
        tracker = LoadTracker()
        assert tracker.current("x") == 0
        tracker.begin("x")
        assert tracker.current("x") == 1

    def test_stale_result_discarded(self):
        tracker = LoadTracker()
        committed = {}
        slow_started = threading.Event()

        def load(name, delay):
            token = tracker.begin("project")
            slow_started.set()
            time.sleep(delay)
            if tracker.is_current("project", token):
                committed["value"] = name

        slow = threading.Thread(target=load, args=("old", 0.2))
        slow.start()
        slow_started.wait()
        load("new", 0)
        slow.join()
        assert committed == {"value": "new"}
