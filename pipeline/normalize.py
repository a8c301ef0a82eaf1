"""
Ingestion-time normalization of raw phase records.

Two raw shapes exist:

Section files (one JSON document per section, numeric costs)::

    {"title": "Water System", "days": "1-2", "goal": "...",
     "materials": [{"item": "Solar pump kit", "cost": 8500, "quantity": 1}],
     "steps": [{"title": "Test borehole", "description": "..."}],
     "tools": [...], "tips": [...], "safety": [...], "images": [...],
     "estimated_time_hours": 16, "total_cost": 17130}

Phase mappings (section name -> record, display-only string costs)::

    {"Water System": {"days": "1-2",
                      "materials": [{"item": "Solar pump kit", "cost": "R8,500"}],
                      "steps": ["Test borehole depth", ...]}}

Every function here is total: malformed fields fall back to empty values and
non-mapping records are dropped, never raised.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from typing import Any

from pipeline.models import Image, Instruction, Material, Phase, Step, Troubleshooting
from utils.strings import coerce_cost, coerce_quantity, is_display_cost, text_or_none

logger = logging.getLogger(__name__)

UNNAMED_MATERIAL = "Unnamed item"


def _as_list(val: Any) -> list:
    # Strings are sequences too; a bare string is never a list of items
    if isinstance(val, Sequence) and not isinstance(val, (str, bytes)):
        return list(val)
    return []


def _string_list(val: Any) -> list[str]:
    out = []
    for item in _as_list(val):
        text = text_or_none(item)
        if text:
            out.append(text)
    return out


def normalize_material(raw: Any) -> Material:
    """Convert a raw material record into a canonical ``Material``.

    Name comes from ``item``, then ``name``.  A numeric ``cost`` is used as the
    unit cost; a formatted string is kept for display with a unit cost of 0.
    """
    if isinstance(raw, Material):
        return raw
    if not isinstance(raw, Mapping):
        return Material(name=UNNAMED_MATERIAL)

    name = text_or_none(raw.get("item")) or text_or_none(raw.get("name")) or UNNAMED_MATERIAL
    cost = raw.get("cost", raw.get("unit_cost"))
    quantity = coerce_quantity(raw.get("quantity"))

    if is_display_cost(cost):
        return Material(name=name, unit_cost=0.0, quantity=quantity,
                        display_cost=cost.strip())
    return Material(name=name, unit_cost=coerce_cost(cost), quantity=quantity)


def normalize_materials(raw: Any) -> list[Material]:
    return [normalize_material(m) for m in _as_list(raw)]


def _normalize_instruction(raw: Any) -> Instruction | None:
    if isinstance(raw, Mapping):
        title = text_or_none(raw.get("title"))
        description = text_or_none(raw.get("description"))
        if description is None and title is None:
            return None
        return Instruction(description=description or "", title=title)
    text = text_or_none(raw)
    return Instruction(description=text) if text else None


def _normalize_tip(raw: Any) -> str | None:
    if isinstance(raw, Mapping):
        return text_or_none(raw.get("content"))
    return text_or_none(raw)


def _normalize_image(raw: Any) -> Image | None:
    if isinstance(raw, Mapping):
        src = text_or_none(raw.get("name")) or text_or_none(raw.get("src"))
        if not src:
            return None
        return Image(src=src, description=text_or_none(raw.get("description")))
    src = text_or_none(raw)
    return Image(src=src) if src else None


def _normalize_troubleshooting(raw: Any) -> Troubleshooting | None:
    if not isinstance(raw, Mapping):
        return None
    problem = text_or_none(raw.get("problem"))
    if not problem:
        return None
    return Troubleshooting(problem=problem, cause=text_or_none(raw.get("cause")),
                           solution=text_or_none(raw.get("solution")))


def _hours(val: Any) -> float | None:
    return coerce_cost(val) or None


def normalize_step(raw: Any, fallback_title: str | None = None,
                   title: str | None = None) -> Step:
    """Convert one raw section record into a ``Step``.

    ``title`` overrides the record (phase mappings key sections by title);
    ``fallback_title`` is used only when the record has no ``title`` field.
    """
    if isinstance(raw, Step):
        return raw
    if not isinstance(raw, Mapping):
        raw = {}

    title = title or text_or_none(raw.get("title")) or fallback_title or ""
    instructions = [i for i in map(_normalize_instruction, _as_list(raw.get("steps"))) if i]
    tips = [t for t in map(_normalize_tip, _as_list(raw.get("tips"))) if t]
    images = [i for i in map(_normalize_image, _as_list(raw.get("images"))) if i]
    troubleshooting = [t for t in map(_normalize_troubleshooting,
                                      _as_list(raw.get("troubleshooting"))) if t]

    return Step(
        title=title,
        materials=normalize_materials(raw.get("materials")),
        days=text_or_none(raw.get("days")),
        goal=text_or_none(raw.get("goal")),
        instructions=instructions,
        tools=_string_list(raw.get("tools")),
        tips=tips,
        safety=_string_list(raw.get("safety")),
        images=images,
        troubleshooting=troubleshooting,
        estimated_time_hours=_hours(raw.get("estimated_time_hours")),
        declared_total=raw.get("total_cost"),
    )


def normalize_section_phase(name: str, records: Any,
                            fallback_titles: Sequence[str] = ()) -> Phase:
    """Build a phase from a list of section-file records (in file order).

    A record without a ``title`` takes the matching entry of
    *fallback_titles*, else ``"Section <n>"``.
    """
    steps = []
    for i, record in enumerate(_as_list(records), start=1):
        if not isinstance(record, Mapping):
            logger.debug("phase %r: dropping non-object section #%d", name, i)
            continue
        fallback = fallback_titles[i - 1] if i <= len(fallback_titles) else f"Section {i}"
        steps.append(normalize_step(record, fallback_title=fallback))
    return Phase(name=name, steps=steps)


def normalize_mapping_phase(name: str, mapping: Any) -> Phase:
    """Build a phase from a ``section name -> record`` mapping (in key order)."""
    if not isinstance(mapping, Mapping):
        logger.debug("phase %r: mapping document is %s, not an object",
                     name, type(mapping).__name__)
        return Phase(name=name)
    steps = []
    for section_name, record in mapping.items():
        if not isinstance(record, Mapping):
            logger.debug("phase %r: dropping non-object section %r", name, section_name)
            continue
        steps.append(normalize_step(record, title=str(section_name)))
    return Phase(name=name, steps=steps)
