"""Tests for pipeline/export.py: CSV and Excel budget export."""
import csv
import io
import sys
from pathlib import Path

import openpyxl
import pytest

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from pipeline.aggregate import project_budget
from pipeline.export import budget_rows, to_csv_string, write_csv, write_xlsx, xlsx_bytes


@pytest.fixture()
def budget():
    return project_budget({
        "Phase 1": [{"title": "Water System", "materials": [
            {"item": "Pump", "cost": 8500},
            {"item": "Panel", "cost": 1600, "quantity": 2},
        ]}],
        "Phase 2": [
            {"title": "Shelter", "materials": [{"item": "Tent, canvas", "cost": 3300}]},
            {"title": "Solar", "materials": [{"item": "Inverter", "cost": "R12,500"}]},
        ],
        "Phase 3": [],
    })


def _parse(text):
    return list(csv.reader(io.StringIO(text)))


class TestBudgetRows:
    def test_header(self, budget):
        rows = list(budget_rows(budget))
        assert rows[0] == ["Phase", "Step", "Material", "Quantity", "Unit Cost", "Total Cost"]

    def test_section_label(self, budget):
        assert list(budget_rows(budget, step_label="Section"))[0][1] == "Section"

    def test_row_count_is_materials_plus_phases_plus_one(self, budget):
        rows = list(budget_rows(budget))
        assert len(rows) - 1 == budget.material_count + len(budget.phases) + 1
        assert len(rows) - 1 == 4 + 3 + 1

    def test_material_row(self, budget):
        rows = list(budget_rows(budget))
        assert rows[2] == ["Phase 1", "Water System", "Panel", "2", "1600", "3200"]

    def test_display_cost_material_exported_as_zero(self, budget):
        rows = list(budget_rows(budget))
        inverter = next(r for r in rows if r[2] == "Inverter")
        assert inverter[3:] == ["1", "0", "0"]

    def test_phase_and_project_totals(self, budget):
        rows = list(budget_rows(budget))
        assert ["Phase 1", "PHASE TOTAL", "", "", "", "11700"] in rows
        assert ["Phase 3", "PHASE TOTAL", "", "", "", "0"] in rows
        assert rows[-1] == ["PROJECT TOTAL", "", "", "", "", "15000"]

    def test_phase_total_follows_its_materials(self, budget):
        rows = list(budget_rows(budget))
        labels = [(r[0], r[1]) for r in rows[1:]]
        assert labels.index(("Phase 1", "PHASE TOTAL")) == 2
        assert labels.index(("Phase 2", "PHASE TOTAL")) == 5

    def test_empty_project(self):
        rows = list(budget_rows(project_budget({})))
        assert rows[1:] == [["PROJECT TOTAL", "", "", "", "", "0"]]


class TestCsv:
    def test_values_with_commas_are_quoted(self, budget):
        text = to_csv_string(budget)
        assert '"Tent, canvas"' in text
        assert ["Phase 2", "Shelter", "Tent, canvas", "1", "3300", "3300"] in _parse(text)

    def test_parses_back_to_rows(self, budget):
        assert _parse(to_csv_string(budget)) == list(budget_rows(budget))

    def test_fractional_amounts(self):
        b = project_budget({"P": [{"title": "S", "materials": [{"item": "Cable", "cost": 12.5, "quantity": 3}]}]})
        assert ["P", "S", "Cable", "3", "12.5", "37.5"] in _parse(to_csv_string(b))

    def test_unit_cost_keeps_full_precision(self):
        b = project_budget({"P": [{"title": "S", "materials": [{"item": "Washer", "cost": 0.125, "quantity": 3}]}]})
        row = next(r for r in _parse(to_csv_string(b)) if r[2] == "Washer")
        assert row[3:] == ["3", "0.125", "0.375"]
        assert float(row[4]) * int(row[3]) == float(row[5])

    def test_overflowing_line_total_exported_as_zero(self):
        b = project_budget({"P": [{"title": "S", "materials": [{"item": "Huge", "cost": 1e308, "quantity": 10}]}]})
        rows = _parse(to_csv_string(b))
        huge = next(r for r in rows if r[2] == "Huge")
        assert huge[5] == "0"
        assert rows[-1] == ["PROJECT TOTAL", "", "", "", "", "0"]

    def test_write_csv(self, budget, tmp_path):
        dest = write_csv(budget, tmp_path / "out" / "budget.csv", step_label="Section")
        with open(dest, newline="", encoding="utf-8") as f:
            rows = list(csv.reader(f))
        assert rows[0][1] == "Section"
        assert rows[-1][0] == "PROJECT TOTAL"


class TestXlsx:
    def test_write_xlsx(self, budget, tmp_path):
        dest = write_xlsx(budget, tmp_path / "budget.xlsx")
        wb = openpyxl.load_workbook(dest, read_only=True)
        ws = wb["Budget"]
        rows = [list(r) for r in ws.iter_rows(values_only=True)]
        wb.close()
        assert rows[0] == ["Phase", "Step", "Material", "Quantity", "Unit Cost", "Total Cost"]
        assert rows[-1][0] == "PROJECT TOTAL"
        assert rows[-1][5] == 15000
        assert len(rows) == 1 + 4 + 3 + 1

    def test_xlsx_bytes_is_zip(self, budget):
        assert xlsx_bytes(budget).startswith(b"PK")
