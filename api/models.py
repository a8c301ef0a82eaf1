"""
Pydantic response models for the budget API.

Amounts are plain Rand values (no thousands scaling).  Optional fields
default to None so sections with sparse content still validate.
"""

from __future__ import annotations

from pydantic import BaseModel, Field


# ── Budget models ─────────────────────────────────────────────────────────────

class MaterialOut(BaseModel):
    """One material line."""
    name: str = Field(..., description="Material name", examples=["Solar submersible pump kit"])
    kind: str = Field(..., description="numeric | display", examples=["numeric"])
    unit_cost: float = Field(..., description="Unit cost used for totals (0 for display-only costs)", examples=[8500.0])
    quantity: float = Field(..., description="Quantity (at least 1)", examples=[1])
    line_total: float = Field(..., description="unit_cost * quantity", examples=[8500.0])
    display_cost: str | None = Field(None, description="Cost string shown verbatim for display-only materials", examples=["R8,500"])
    high_cost: bool = Field(False, description="Line total at or above the high-cost threshold")


class SectionBudgetOut(BaseModel):
    """Budget of one section (step) within a phase."""
    index: int = Field(..., description="1-based position within the phase", examples=[1])
    title: str = Field(..., description="Section title", examples=["Water System"])
    total: float = Field(..., description="Sum of material line totals", examples=[17130.0])
    materials: list[MaterialOut] = Field(default_factory=list)


class PhaseBudgetOut(BaseModel):
    """Budget of one phase."""
    name: str = Field(..., description="Phase name", examples=["Phase 1"])
    total: float = Field(..., description="Sum of section totals", examples=[62450.0])
    percentage: float = Field(..., description="Share of the project total in percent, one decimal", examples=[41.3])
    high_cost: bool = Field(False, description="Phase total at or above the high-cost threshold")
    sections: list[SectionBudgetOut] = Field(default_factory=list)


class ProjectBudgetOut(BaseModel):
    """Whole-project budget with per-phase breakdown."""
    title: str = Field(..., description="Project title", examples=["Homestead Project"])
    total: float = Field(..., description="Sum of phase totals", examples=[151200.0])
    material_count: int = Field(..., description="Number of material lines across all phases", examples=[96])
    load_seq: int = Field(..., description="Sequence number of the load these figures come from", examples=[1])
    phases: list[PhaseBudgetOut] = Field(default_factory=list)


# ── Section content ───────────────────────────────────────────────────────────

class InstructionOut(BaseModel):
    title: str | None = None
    description: str


class ImageOut(BaseModel):
    src: str
    description: str | None = None


class TroubleshootingOut(BaseModel):
    problem: str = Field(..., examples=["Pump not running"])
    cause: str | None = Field(None, examples=["Low voltage"])
    solution: str | None = Field(None, examples=["Check panel connections and controller settings."])


class SectionOut(BaseModel):
    """Full content of one section plus its budget."""
    phase: str = Field(..., examples=["Phase 1"])
    index: int = Field(..., examples=[1])
    title: str = Field(..., examples=["Water System"])
    days: str | None = Field(None, examples=["1-2"])
    goal: str | None = None
    estimated_time_hours: float | None = None
    total: float = Field(..., description="Computed section total", examples=[17130.0])
    declared_total: str | float | None = Field(None, description="Total as written in the source data, display only")
    materials: list[MaterialOut] = Field(default_factory=list)
    instructions: list[InstructionOut] = Field(default_factory=list)
    tools: list[str] = Field(default_factory=list)
    tips: list[str] = Field(default_factory=list)
    safety: list[str] = Field(default_factory=list)
    images: list[ImageOut] = Field(default_factory=list)
    troubleshooting: list[TroubleshootingOut] = Field(default_factory=list)


# ── Refresh ───────────────────────────────────────────────────────────────────

class RefreshResponse(BaseModel):
    """Outcome of reloading the phase sources."""
    committed: bool = Field(..., description="False if a newer reload superseded this one")
    load_seq: int = Field(..., description="Sequence number of the load now in effect", examples=[2])
    phases: int = Field(..., description="Phases in the project now in effect", examples=[4])
    sections: int = Field(..., description="Sections in the project now in effect", examples=[20])
    skipped: int = Field(0, description="Sources or files skipped by this reload")
    errors: list[str] = Field(default_factory=list, description="Errors from this reload, if any")
