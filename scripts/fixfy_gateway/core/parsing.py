"""Recover structured JSON from free-form model replies.

Models are asked for a bare JSON object but are not bound to return one.
Extraction runs in two stages:

    1. Strip markdown code fences and parse the whole reply.
    2. Scrape the outermost ``{...}`` span and parse that.

If both stages fail the reply is ``Unparseable`` and callers decide whether
to degrade (room analysis) or fail (cost estimates).
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import Any, List, Mapping, Optional, Tuple, Union

from .contracts import CostEstimate, DetectedObject, Material, ShoppingLink

_FENCE_RE = re.compile(r"```(?:json)?\s*", re.IGNORECASE)
_OBJECT_RE = re.compile(r"\{[\s\S]*\}")


@dataclass(frozen=True)
class Parsed:
    value: Mapping[str, Any]
    stage: int


@dataclass(frozen=True)
class Unparseable:
    reason: str
    excerpt: str = ""


ParseOutcome = Union[Parsed, Unparseable]


FALLBACK_DETECTIONS: Tuple[DetectedObject, ...] = (
    DetectedObject(
        name="furniture",
        confidence=0.85,
        location="Central area",
        condition="Could benefit from modern updates and fresh styling",
    ),
    DetectedObject(
        name="lighting",
        confidence=0.80,
        location="Ceiling and ambient",
        condition="Consider adding layered lighting for better ambiance",
    ),
    DetectedObject(
        name="walls",
        confidence=0.90,
        location="Surrounding space",
        condition="Fresh paint or accent wall could enhance the space",
    ),
)


def _excerpt(text: str, limit: int = 200) -> str:
    compact = " ".join(text.split())
    return compact if len(compact) <= limit else compact[:limit].rstrip() + "..."


def _load_object(text: str) -> Optional[Mapping[str, Any]]:
    try:
        value = json.loads(text)
    except (TypeError, ValueError):
        return None
    return value if isinstance(value, dict) else None


def extract_json_object(text: Optional[str]) -> ParseOutcome:
    if not text or not text.strip():
        return Unparseable(reason="empty reply")
    cleaned = _FENCE_RE.sub("", text).replace("```", "").strip()
    value = _load_object(cleaned)
    if value is not None:
        return Parsed(value=value, stage=1)
    match = _OBJECT_RE.search(cleaned)
    if not match:
        return Unparseable(reason="no JSON object found in reply", excerpt=_excerpt(text))
    value = _load_object(match.group(0))
    if value is not None:
        return Parsed(value=value, stage=2)
    return Unparseable(reason="JSON object in reply could not be decoded", excerpt=_excerpt(match.group(0)))


def _as_float(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        digits = re.sub(r"[^0-9.\-]", "", value)
        if digits and digits not in {".", "-", "-."}:
            try:
                return float(digits)
            except ValueError:
                return None
    return None


def _as_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _shopping_links(raw: Any) -> Tuple[ShoppingLink, ...]:
    if not isinstance(raw, list):
        return ()
    links: List[ShoppingLink] = []
    for entry in raw:
        if not isinstance(entry, Mapping):
            continue
        store = _as_text(entry.get("store"))
        if not store:
            continue
        links.append(ShoppingLink(store=store, url=_as_text(entry.get("url")), price=_as_text(entry.get("price"))))
    return tuple(links)


def detected_object_from_mapping(entry: Mapping[str, Any]) -> Optional[DetectedObject]:
    name = _as_text(entry.get("name"))
    if not name:
        return None
    confidence = _as_float(entry.get("confidence"))
    if confidence is None:
        confidence = 0.0
    return DetectedObject(
        name=name,
        confidence=min(1.0, max(0.0, confidence)),
        location=_as_text(entry.get("location")) or "",
        project_title=_as_text(entry.get("projectTitle")),
        room_area=_as_text(entry.get("roomArea")),
        project_type=_as_text(entry.get("projectType")),
        issue_solved=_as_text(entry.get("issueSolved")),
        estimated_cost=_as_float(entry.get("estimatedCost")),
        timeline_days=_as_float(entry.get("timelineDays")),
        condition=_as_text(entry.get("condition")),
        shopping_links=_shopping_links(entry.get("shoppingLinks")),
    )


def detections_from_payload(value: Mapping[str, Any]) -> Optional[List[DetectedObject]]:
    """Decode ``detectedObjects``; ``None`` when the key is missing or not a list."""
    raw = value.get("detectedObjects")
    if not isinstance(raw, list):
        return None
    objects: List[DetectedObject] = []
    for entry in raw:
        if isinstance(entry, Mapping):
            detected = detected_object_from_mapping(entry)
            if detected is not None:
                objects.append(detected)
    return objects


def estimate_from_payload(value: Mapping[str, Any]) -> Optional[CostEstimate]:
    cost = _as_float(value.get("estimatedCost"))
    days = _as_float(value.get("estimatedTime"))
    if not cost or not days:
        return None
    materials: List[Material] = []
    raw_materials = value.get("materials")
    if isinstance(raw_materials, list):
        for entry in raw_materials:
            if not isinstance(entry, Mapping):
                continue
            name = _as_text(entry.get("name"))
            if not name:
                continue
            materials.append(
                Material(
                    name=name,
                    quantity=_as_text(entry.get("quantity")),
                    estimated_price=_as_float(entry.get("estimatedPrice")),
                )
            )
    return CostEstimate(
        estimated_cost=cost,
        estimated_time_days=days,
        materials=tuple(materials),
        breakdown=_as_text(value.get("breakdown")),
    )
