# apps/backend/ltconnect/core/normalize.py
from __future__ import annotations
import json
import math
import re
import logging
from typing import Any, Mapping, Optional, cast

from pydantic import BaseModel

from ltconnect.core.errors import MalformedInput
from ltconnect.core.models import (
    Complexity,
    GeneratedClientRequirement,
    GeneratedEpic,
    GeneratedFunctionalRequirement,
    GeneratedHierarchy,
    GeneratedTask,
    Milestone,
    Priority,
    ProjectAnalysis,
    RequirementType,
    Timeline,
)

logger = logging.getLogger(__name__)

_PRIORITIES = ("LOW", "MEDIUM", "HIGH", "CRITICAL")
_COMPLEXITIES = ("LOW", "MEDIUM", "HIGH", "VERY_HIGH")
_REQUIREMENT_TYPES = ("FUNCTIONAL", "NON_FUNCTIONAL", "TECHNICAL", "BUSINESS")

_FENCE_RE = re.compile(r"```(?:json)?[ \t]*\n?", re.IGNORECASE)


# --- coercion helpers ------------------------------------------------------

def _enum_key(v: Any) -> str:
    return re.sub(r"[\s\-]+", "_", str(v or "").strip()).upper()


def _coerce_priority(p: Any) -> Priority:
    s = _enum_key(p)
    return cast(Priority, s if s in _PRIORITIES else "MEDIUM")


def _coerce_complexity(c: Any) -> Complexity:
    s = _enum_key(c)
    return cast(Complexity, s if s in _COMPLEXITIES else "MEDIUM")


def _coerce_type(t: Any) -> RequirementType:
    s = _enum_key(t)
    return cast(RequirementType, s if s in _REQUIREMENT_TYPES else "FUNCTIONAL")


def _text(v: Any, default: str = "") -> str:
    if v is None:
        return default
    return str(v).strip()


def _optional_ref(v: Any) -> Optional[str]:
    s = _text(v)
    return s or None


def _number(v: Any, default: float = 0) -> float:
    try:
        n = float(v)
    except (TypeError, ValueError):
        return default
    return n if math.isfinite(n) and n >= 0 else default


def _as_list(v: Any, field: str) -> list:
    if v is None:
        return []
    if isinstance(v, (list, tuple)):
        return list(v)
    logger.warning("NORMALIZE field=%s expected list got=%s; using []", field, type(v).__name__)
    return []


def _str_list(v: Any, field: str) -> list[str]:
    return [str(x) for x in _as_list(v, field) if x is not None]


def _as_item(x: Any, title_key: str) -> dict[str, Any]:
    # a bare string/number still counts as an entity; it becomes the title
    if isinstance(x, Mapping):
        return dict(x)
    return {title_key: _text(x)}


# --- per-entity normalization ---------------------------------------------

def _client_requirement(raw: dict[str, Any]) -> GeneratedClientRequirement:
    return GeneratedClientRequirement(
        title=_text(raw.get("title")),
        client_name=_text(raw.get("clientName")),
        description=_text(raw.get("description")),
        priority=_coerce_priority(raw.get("priority")),
    )


def _functional_requirement(raw: dict[str, Any]) -> GeneratedFunctionalRequirement:
    return GeneratedFunctionalRequirement(
        title=_text(raw.get("title")),
        description=_text(raw.get("description")),
        type=_coerce_type(raw.get("type")),
        priority=_coerce_priority(raw.get("priority")),
        complexity=_coerce_complexity(raw.get("complexity")),
        acceptance_criteria=_str_list(raw.get("acceptanceCriteria"), "acceptanceCriteria"),
        business_rules=_str_list(raw.get("businessRules"), "businessRules"),
        tags=_str_list(raw.get("tags"), "tags"),
        parent_id=_optional_ref(raw.get("parentId")),
        client_requirement_id=_optional_ref(raw.get("clientRequirementId")),
    )


def _epic(raw: dict[str, Any]) -> GeneratedEpic:
    return GeneratedEpic(
        name=_text(raw.get("name") or raw.get("title")),
        description=_text(raw.get("description")),
        color=_optional_ref(raw.get("color")),
        start_date=_optional_ref(raw.get("startDate")),
        end_date=_optional_ref(raw.get("endDate")),
        functional_requirement_ids=_str_list(raw.get("functionalRequirementIds"), "functionalRequirementIds"),
    )


def _task(raw: dict[str, Any]) -> GeneratedTask:
    return GeneratedTask(
        title=_text(raw.get("title")),
        description=_text(raw.get("description")),
        priority=_coerce_priority(raw.get("priority")),
        estimated_hours=_number(raw.get("estimatedHours")),
        epic_id=_optional_ref(raw.get("epicId")),
        labels=_str_list(raw.get("labels"), "labels"),
    )


def _analysis(raw: Any) -> ProjectAnalysis:
    if not isinstance(raw, Mapping):
        return ProjectAnalysis()
    return ProjectAnalysis(
        summary=_text(raw.get("summary")),
        complexity=_coerce_complexity(raw.get("complexity")),
        estimated_duration=_text(raw.get("estimatedDuration")) or "TBD",
        recommended_team_size=max(1, int(_number(raw.get("recommendedTeamSize"), 1))),
    )


def _timeline(raw: Any) -> Timeline:
    if not isinstance(raw, Mapping):
        return Timeline()
    milestones = []
    for m in _as_list(raw.get("milestones"), "timeline.milestones"):
        item = _as_item(m, "name")
        milestones.append(
            Milestone(
                name=_text(item.get("name")),
                date=_text(item.get("date")),
                description=_text(item.get("description")),
            )
        )
    return Timeline(
        project_duration=_text(raw.get("projectDuration")) or "TBD",
        milestones=milestones,
    )


# --- public API -------------------------------------------------------------

def normalize_generation(payload: Any) -> GeneratedHierarchy:
    """
    Backfill defaults on a generation result without dropping or reordering
    entities. Raises MalformedInput only when the payload is not an object.
    """
    if isinstance(payload, BaseModel):
        payload = payload.model_dump(by_alias=True)
    if not isinstance(payload, Mapping):
        raise MalformedInput(
            f"generation result must be an object, got {type(payload).__name__}"
        )

    hierarchy = GeneratedHierarchy(
        analysis=_analysis(payload.get("analysis")),
        client_requirements=[
            _client_requirement(_as_item(x, "title"))
            for x in _as_list(payload.get("clientRequirements"), "clientRequirements")
        ],
        functional_requirements=[
            _functional_requirement(_as_item(x, "title"))
            for x in _as_list(payload.get("functionalRequirements"), "functionalRequirements")
        ],
        epics=[_epic(_as_item(x, "name")) for x in _as_list(payload.get("epics"), "epics")],
        tasks=[_task(_as_item(x, "title")) for x in _as_list(payload.get("tasks"), "tasks")],
        timeline=_timeline(payload.get("timeline")),
    )

    logger.debug(
        "NORMALIZE_DONE crs=%s frs=%s epics=%s tasks=%s",
        len(hierarchy.client_requirements),
        len(hierarchy.functional_requirements),
        len(hierarchy.epics),
        len(hierarchy.tasks),
    )
    return hierarchy


def parse_generation_text(text: str) -> GeneratedHierarchy:
    """
    Decode raw generator text. Markdown fences and any prose around the outermost
    JSON object are ignored.
    """
    cleaned = _FENCE_RE.sub("", text or "").strip()
    start = cleaned.find("{")
    end = cleaned.rfind("}")
    if start == -1 or end < start:
        raise MalformedInput("generator response contains no JSON object")
    try:
        payload = json.loads(cleaned[start:end + 1])
    except json.JSONDecodeError as e:
        raise MalformedInput(f"generator response is not valid JSON: {e}") from e
    return normalize_generation(payload)
