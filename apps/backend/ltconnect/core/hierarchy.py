# apps/backend/ltconnect/core/hierarchy.py
"""
Hierarchy codes: human-readable, position-derived identifiers.

    CR-01                 client requirement
    REQ-02                root functional requirement
    REQ-02.01.03          nested functional requirement (dotted path, any depth)
    TE-EPIC-01            epic in project "TE"
    TE-007                task in project "TE"

Everything here is pure; sequence numbers come from the caller's processing
order, never from the store.
"""
from __future__ import annotations
import re
from dataclasses import dataclass
from typing import Optional, Sequence

from ltconnect.core.models import EntityKind

PROJECT_CODE_LEN = 2
REQUIREMENT_CODE_LEN = 2
EPIC_CODE_LEN = 2
FUNCTIONAL_REQUIREMENT_CODE_LEN = 1
TASK_CODE_LEN = 3

_NON_LETTERS = re.compile(r"[^A-Za-z]")
_NON_ALNUM = re.compile(r"[^A-Za-z0-9]")


# --- fragments --------------------------------------------------------------

def extract_letters(text: Optional[str], count: int) -> str:
    """First `count` letters of `text`, upper-cased. Shorter names give shorter codes."""
    if not text:
        return ""
    return _NON_LETTERS.sub("", text)[:count].upper()


def derive_project_code(project_name: Optional[str]) -> str:
    # "Test Project" -> "TE"
    return extract_letters(project_name, PROJECT_CODE_LEN)


def pad(seq: int, width: int) -> str:
    # numbers wider than `width` are kept whole: pad(150, 2) -> "150"
    return str(seq).zfill(width)


# --- bulk save code families -----------------------------------------------

def client_requirement_code(seq: int) -> str:
    return f"CR-{pad(seq, 2)}"


def root_requirement_code(seq: int) -> str:
    return f"REQ-{pad(seq, 2)}"


def child_requirement_code(parent_code: str, sibling_seq: int) -> str:
    return f"{parent_code}.{pad(sibling_seq, 2)}"


def epic_code(project_code: str, seq: int) -> str:
    return f"{project_code}-EPIC-{pad(seq, 2)}"


def task_code(project_code: str, seq: int) -> str:
    return f"{project_code}-{pad(seq, 3)}"


def next_sibling_seq(parent_code: str, assigned_codes: Sequence[str]) -> int:
    """1 + number of direct children of `parent_code` among `assigned_codes`."""
    prefix = parent_code + "."
    direct = [
        c for c in assigned_codes
        if c.startswith(prefix) and "." not in c[len(prefix):]
    ]
    return len(direct) + 1


@dataclass(frozen=True)
class CodeContext:
    project_code: str
    # functional requirement codes assigned so far in this run, in order
    requirement_codes: tuple[str, ...] = ()


def assign_code(
    kind: EntityKind,
    position: int,
    context: CodeContext,
    parent_code: Optional[str] = None,
) -> str:
    """
    Code for the entity at 0-based `position` of its sequence. For functional
    requirements `position` counts roots only; children are numbered from
    `parent_code` and the codes already in `context`.
    """
    seq = position + 1
    if kind == "clientRequirements":
        return client_requirement_code(seq)
    if kind == "functionalRequirements":
        if parent_code is None:
            return root_requirement_code(seq)
        return child_requirement_code(
            parent_code, next_sibling_seq(parent_code, context.requirement_codes)
        )
    if kind == "epics":
        return epic_code(context.project_code, seq)
    if kind == "tasks":
        return task_code(context.project_code, seq)
    raise ValueError(f"unknown entity kind: {kind!r}")


# --- named code families (manual create flows) ------------------------------

def _project_or_derived(project_code: Optional[str], project_name: Optional[str]) -> str:
    return project_code or derive_project_code(project_name)


def requirement_code(project_code: Optional[str], project_name: Optional[str],
                     requirement_name: str, seq: int) -> str:
    """{Project}-{Req}-{NN}, e.g. TE-LO-01."""
    proj = _project_or_derived(project_code, project_name)
    req = extract_letters(requirement_name, REQUIREMENT_CODE_LEN)
    return f"{proj}-{req}-{pad(seq, 2)}"


def epic_code_for_requirement(project_code: Optional[str], project_name: Optional[str],
                              requirement_name: Optional[str], epic_name: str, seq: int) -> str:
    """{Project}-{Req}-{Epic}-{NN}; without a requirement {Project}-{Epic}-{NN}."""
    proj = _project_or_derived(project_code, project_name)
    epic = extract_letters(epic_name, EPIC_CODE_LEN)
    if not requirement_name:
        return f"{proj}-{epic}-{pad(seq, 2)}"
    req = extract_letters(requirement_name, REQUIREMENT_CODE_LEN)
    return f"{proj}-{req}-{epic}-{pad(seq, 2)}"


def functional_requirement_code(project_code: Optional[str], project_name: Optional[str],
                                fr_name: str, seq: int,
                                requirement_name: Optional[str] = None,
                                epic_name: Optional[str] = None) -> str:
    """
    {Project}[-{Req}][-{Epic}]-{F}-{NN}. The requirement fragment is only
    included together with an epic, matching the three traceability layouts:
    full, epic-only and standalone.
    """
    parts = [_project_or_derived(project_code, project_name)]
    if epic_name:
        if requirement_name:
            parts.append(extract_letters(requirement_name, REQUIREMENT_CODE_LEN))
        parts.append(extract_letters(epic_name, EPIC_CODE_LEN))
    parts.append(extract_letters(fr_name, FUNCTIONAL_REQUIREMENT_CODE_LEN))
    parts.append(pad(seq, 2))
    return "-".join(parts)


def named_task_code(parent_code: str, task_name: str, seq: int) -> str:
    """{Parent}-{Task}-{NN}; a task with no letters uses its number as the fragment."""
    fragment = extract_letters(task_name, TASK_CODE_LEN) or pad(seq, 2)
    return f"{parent_code}-{fragment}-{pad(seq, 2)}"


def sprint_code(project_code: Optional[str], project_name: Optional[str], sprint_name: str) -> str:
    """{Project}-S{Sprint}: "Sprint 1" -> TE-SSPRINT1, "1" -> TE-S1."""
    proj = _project_or_derived(project_code, project_name)
    return f"{proj}-S{_NON_ALNUM.sub('', sprint_name or '').upper()}"
