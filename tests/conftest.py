"""
Pytest fixtures for the homestead budget tests.

Provides on-disk phase data written into ``tmp_path``: a project file, two
section-file phases with numeric costs and one mapping phase with display-only
string costs.

Fixture project totals:
    Phase 1 (sections: water)    11700
    Phase 2 (sections: shelter)   3300
    Phase 3 (mapping, "R..." costs)  0
    Project                      15000   -> 78.0% / 22.0% / 0.0%
"""

import json
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))


WATER_SECTION = {
    "title": "Water System",
    "days": "1-2",
    "goal": "Solar-pumped water to a storage tank.",
    "materials": [
        {"item": "Solar submersible pump kit", "cost": 8500},
        {"item": "100W solar panel", "cost": 1600, "quantity": 2},
    ],
    "total_cost": 11700,
    "tools": ["Spirit level", "Multimeter"],
    "steps": [
        {"title": "Test the borehole", "description": "Measure depth and water level."},
        "Install the panel frame facing north.",
    ],
    "tips": ["Fit a bypass valve.", {"content": "Shade the tank."}],
    "safety": ["Disconnect panels before wiring."],
    "troubleshooting": [
        {"problem": "Pump not running", "cause": "Low voltage",
         "solution": "Check panel connections."},
    ],
    "estimated_time_hours": 16,
    "images": [{"name": "images/tank.jpg", "description": "Tank stand"}],
}

SHELTER_SECTION = {
    "title": "Shelter",
    "days": "1-3",
    "materials": [
        {"item": "Canvas safari tent", "cost": 3300},
    ],
    "steps": ["Select and prepare the site."],
    "tips": ["Use <b>long</b> pegs & extra guy ropes."],
}

MAPPING_PHASE = {
    "Solar Power": {
        "days": "15-20",
        "materials": [
            {"item": "5kVA hybrid inverter", "cost": "R12,500"},
            {"item": "Mounting rails", "cost": "R2,400"},
        ],
        "steps": ["Mount the panels.", "Install the inverter."],
    },
    "Workshop": {
        "days": "24-28",
        "materials": [{"item": "Shipping container", "cost": "R28,000"}],
        "steps": ["Place the container."],
    },
}


def write_json(path: Path, data) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data), encoding="utf-8")
    return path


def write_project(root: Path, phases: list[dict] | None = None,
                  title: str = "Test Homestead") -> Path:
    """Write the fixture phase data under *root* and return *root*."""
    write_json(root / "phase1" / "water.json", WATER_SECTION)
    write_json(root / "phase2" / "shelter.json", SHELTER_SECTION)
    write_json(root / "phase3_data.json", MAPPING_PHASE)
    if phases is None:
        phases = [
            {"name": "Phase 1", "kind": "sections", "path": "phase1", "files": ["water"]},
            {"name": "Phase 2", "kind": "sections", "path": "phase2", "files": ["shelter"]},
            {"name": "Phase 3", "kind": "mapping", "path": "phase3_data.json"},
        ]
    write_json(root / "project.json", {"title": title, "phases": phases})
    return root


@pytest.fixture()
def project_dir(tmp_path):
    """A data directory holding the three-phase fixture project."""
    return write_project(tmp_path / "data")
