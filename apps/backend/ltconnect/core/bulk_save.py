# apps/backend/ltconnect/core/bulk_save.py
from __future__ import annotations
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional

from ltconnect.configs.settings import Settings, get_settings
from ltconnect.core.errors import StoreWriteFailure, UnresolvedEpicLink, UnresolvedParent
from ltconnect.core.hierarchy import CodeContext, assign_code, derive_project_code
from ltconnect.core.models import (
    BulkSaveRequest,
    BulkSaveResult,
    CreatedRecord,
    EntityKind,
    GeneratedClientRequirement,
    GeneratedEpic,
    GeneratedFunctionalRequirement,
    GeneratedHierarchy,
    GeneratedTask,
)
from ltconnect.core.normalize import normalize_generation
from ltconnect.core.results import ResultAggregator
from ltconnect.storage.documents import DocumentStore, new_document_id

logger = logging.getLogger(__name__)

DRAFT = "DRAFT"
TODO = "TODO"
INITIAL_VERSION = "1.0.0"

_INDEX_RE = re.compile(r"[0-9]+")  # ascii only; int() also takes "1_0" and other scripts


@dataclass(frozen=True)
class BulkSaveTarget:
    project_id: str
    project_code: str
    workspace_id: str
    user_id: str


def target_from_request(req: BulkSaveRequest) -> BulkSaveTarget:
    """Use the explicit project code, else derive it from the project name."""
    code = (req.project_code or "").strip() or derive_project_code(req.project_name)
    return BulkSaveTarget(
        project_id=req.project_id,
        project_code=code,
        workspace_id=req.workspace_id,
        user_id=req.user_id,
    )


def _index_from_key(key: Optional[str], prefix: str) -> Optional[int]:
    """'fr-3' / '3' -> 3 (for prefix 'fr'); anything else -> None."""
    s = (key or "").strip().lower()
    if s.startswith(prefix + "-"):
        s = s[len(prefix) + 1:]
    return int(s) if _INDEX_RE.fullmatch(s) else None


# --- per-invocation state ---------------------------------------------------

@dataclass
class _BulkSaveRun:
    store: DocumentStore
    target: BulkSaveTarget
    settings: Settings
    results: ResultAggregator = field(default_factory=ResultAggregator)
    phase: str = ""
    # position index -> persisted id, per entity type; never leaves this run
    cr_ids: Dict[int, str] = field(default_factory=dict)
    fr_ids: Dict[int, str] = field(default_factory=dict)
    fr_codes: Dict[int, str] = field(default_factory=dict)
    epic_ids: Dict[int, str] = field(default_factory=dict)

    def collection(self, kind: EntityKind) -> str:
        return {
            "clientRequirements": self.settings.CLIENT_REQUIREMENTS_COLLECTION,
            "functionalRequirements": self.settings.FUNCTIONAL_REQUIREMENTS_COLLECTION,
            "epics": self.settings.EPICS_COLLECTION,
            "tasks": self.settings.TASKS_COLLECTION,
        }[kind]

    def context(self) -> CodeContext:
        return CodeContext(
            project_code=self.target.project_code,
            requirement_codes=self.results.hierarchy_ids("functionalRequirements"),
        )

    def scope_fields(self) -> Dict[str, Any]:
        return {"workspaceId": self.target.workspace_id, "projectId": self.target.project_id}

    def create(self, kind: EntityKind, hierarchy_id: str, fields: Dict[str, Any]) -> str:
        collection = self.collection(kind)
        try:
            doc = self.store.create(collection, new_document_id(), fields)
        except Exception as e:
            raise StoreWriteFailure(e, self.results.snapshot(), phase=self.phase) from e
        self.results.record(kind, collection, doc["id"], hierarchy_id)
        logger.debug("BULK_SAVE_CREATED kind=%s id=%s code=%s", kind, doc["id"], hierarchy_id)
        return doc["id"]

    def get(self, kind: EntityKind, document_id: str) -> Dict[str, Any]:
        try:
            return self.store.get(self.collection(kind), document_id)
        except Exception as e:
            raise StoreWriteFailure(e, self.results.snapshot(), phase=self.phase) from e


# --- phases -----------------------------------------------------------------

def _client_requirement_fields(run: _BulkSaveRun, cr: GeneratedClientRequirement, code: str) -> Dict[str, Any]:
    return {
        **run.scope_fields(),
        "hierarchyId": code,
        "title": cr.title,
        "clientName": cr.client_name,
        "description": cr.description,
        "priority": cr.priority,
        "status": DRAFT,
        "attachments": [],
        "createdBy": run.target.user_id,
    }


def _save_client_requirements(run: _BulkSaveRun, generated: GeneratedHierarchy) -> None:
    for i, cr in enumerate(generated.client_requirements):
        code = assign_code("clientRequirements", i, run.context())
        run.cr_ids[i] = run.create("clientRequirements", code, _client_requirement_fields(run, cr, code))


def _client_requirement_link(run: _BulkSaveRun, fr: GeneratedFunctionalRequirement) -> str:
    idx = _index_from_key(fr.client_requirement_id, "cr")
    if idx is not None and idx in run.cr_ids:
        return run.cr_ids[idx]
    # no (resolvable) link declared: attach to the first client requirement, if any
    return run.cr_ids.get(0, "")


def _functional_requirement_fields(run: _BulkSaveRun, fr: GeneratedFunctionalRequirement,
                                   code: str, parent_db_id: str) -> Dict[str, Any]:
    return {
        **run.scope_fields(),
        "hierarchyId": code,
        "clientRequirementId": _client_requirement_link(run, fr),
        "parentRequirementId": parent_db_id,
        "title": fr.title,
        "description": fr.description,
        "type": fr.type,
        "priority": fr.priority,
        "complexity": fr.complexity,
        "status": DRAFT,
        "acceptanceCriteria": list(fr.acceptance_criteria),
        "businessRules": list(fr.business_rules),
        "dependencies": [],
        "tags": list(fr.tags),
        "isReusable": False,
        "version": INITIAL_VERSION,
        "linkedProjectIds": [],
        "createdBy": run.target.user_id,
    }


def _save_functional_requirements(run: _BulkSaveRun, generated: GeneratedHierarchy) -> None:
    frs = list(enumerate(generated.functional_requirements))

    # Pass 1: roots, in input order
    roots = [(i, fr) for i, fr in frs if fr.is_root]
    for root_pos, (i, fr) in enumerate(roots):
        code = assign_code("functionalRequirements", root_pos, run.context())
        run.fr_ids[i] = run.create("functionalRequirements", code, _functional_requirement_fields(run, fr, code, ""))
        run.fr_codes[i] = code

    # Pass 2: children. Each sweep keeps input order; children whose parent is
    # not persisted yet wait for the next sweep. Stop when a sweep adds nothing.
    pending = [(i, fr) for i, fr in frs if not fr.is_root]
    logger.info("BULK_SAVE_FR project=%s roots=%s children=%s", run.target.project_id, len(roots), len(pending))
    while pending:
        waiting = []
        for i, fr in pending:
            parent_index = _index_from_key(fr.parent_id, "fr")
            parent_db_id = run.fr_ids.get(parent_index) if parent_index is not None else None
            if parent_db_id is None:
                waiting.append((i, fr))
                continue

            parent = run.get("functionalRequirements", parent_db_id)
            parent_code = parent.get("hierarchyId") or run.fr_codes[parent_index]
            code = assign_code("functionalRequirements", i, run.context(), parent_code=parent_code)
            run.fr_ids[i] = run.create(
                "functionalRequirements", code, _functional_requirement_fields(run, fr, code, parent_db_id)
            )
            run.fr_codes[i] = code

        if len(waiting) == len(pending):
            break
        pending = waiting

    for i, fr in pending:
        issue = UnresolvedParent(i, fr.parent_id or "", fr.title)
        logger.warning("BULK_SAVE_SKIP project=%s %s", run.target.project_id, issue)
        run.results.warn(issue)


def _epic_requirement_links(run: _BulkSaveRun, epic: GeneratedEpic) -> list[str]:
    links: list[str] = []
    for key in epic.functional_requirement_ids:
        idx = _index_from_key(key, "fr")
        db_id = run.fr_ids.get(idx) if idx is not None else None
        if db_id is None:
            logger.debug("BULK_SAVE_EPIC_LINK unresolved requirement key=%s epic=%s", key, epic.name)
            continue
        if db_id not in links:
            links.append(db_id)
    return links


def _epic_fields(run: _BulkSaveRun, epic: GeneratedEpic, code: str) -> Dict[str, Any]:
    links = _epic_requirement_links(run, epic)
    fields: Dict[str, Any] = {
        **run.scope_fields(),
        "hierarchyId": code,
        "name": epic.name,
        "description": epic.description,
        "color": epic.color or run.settings.DEFAULT_EPIC_COLOR,
        "startDate": epic.start_date or "",
        "endDate": epic.end_date or "",
        "status": TODO,
        "progress": 0,
        "functionalRequirementId": links[0] if links else "",
        "createdBy": run.target.user_id,
    }
    if run.settings.EPIC_REQUIREMENT_LINKS == "all":
        fields["functionalRequirementIds"] = links
    return fields


def _save_epics(run: _BulkSaveRun, generated: GeneratedHierarchy) -> None:
    for i, epic in enumerate(generated.epics):
        code = assign_code("epics", i, run.context())
        run.epic_ids[i] = run.create("epics", code, _epic_fields(run, epic, code))


def _task_epic_link(run: _BulkSaveRun, i: int, task: GeneratedTask, epic_count: int) -> str:
    if not task.epic_id:
        return ""
    ref = task.epic_id.strip()
    idx = int(ref) if _INDEX_RE.fullmatch(ref) else -1
    if 0 <= idx < epic_count and idx in run.epic_ids:
        return run.epic_ids[idx]

    issue = UnresolvedEpicLink(i, task.epic_id, epic_count)
    logger.warning("BULK_SAVE_UNLINKED project=%s %s", run.target.project_id, issue)
    run.results.warn(issue)
    return ""


def _task_fields(run: _BulkSaveRun, i: int, task: GeneratedTask, code: str, epic_db_id: str) -> Dict[str, Any]:
    return {
        **run.scope_fields(),
        "hierarchyId": code,
        "title": task.title,
        "description": task.description,
        "status": TODO,
        "priority": task.priority,
        "assigneeIds": [],
        "createdBy": run.target.user_id,
        "dueDate": "",
        "estimatedHours": task.estimated_hours,
        "actualHours": 0,
        "sprintId": "",
        "epicId": epic_db_id,
        "parentTaskId": "",
        "labels": list(task.labels),
        "attachments": [],
        "customFields": {},
        "position": i,
    }


def _save_tasks(run: _BulkSaveRun, generated: GeneratedHierarchy) -> None:
    epic_count = len(generated.epics)
    for i, task in enumerate(generated.tasks):
        code = assign_code("tasks", i, run.context())
        epic_db_id = _task_epic_link(run, i, task, epic_count)
        run.create("tasks", code, _task_fields(run, i, task, code, epic_db_id))


# later phases read the id maps built by earlier ones; order is fixed
_PHASES: list[tuple[EntityKind, Callable[[_BulkSaveRun, GeneratedHierarchy], None]]] = [
    ("clientRequirements", _save_client_requirements),
    ("functionalRequirements", _save_functional_requirements),
    ("epics", _save_epics),
    ("tasks", _save_tasks),
]


# --- public API -------------------------------------------------------------

def bulk_save(
    store: DocumentStore,
    generated: Any,
    target: BulkSaveTarget,
    settings: Optional[Settings] = None,
) -> BulkSaveResult:
    """
    Normalize `generated`, then code and persist client requirements, functional
    requirements, epics and tasks, one store call at a time.

    Raises MalformedInput before any write when `generated` is not an object.
    Raises StoreWriteFailure on the first failing store call; nothing created
    before it is rolled back and `err.partial` lists it.
    """
    hierarchy = normalize_generation(generated)
    run = _BulkSaveRun(store=store, target=target, settings=settings or get_settings())

    logger.info(
        "BULK_SAVE_START project=%s code=%s workspace=%s user=%s crs=%s frs=%s epics=%s tasks=%s",
        target.project_id,
        target.project_code,
        target.workspace_id,
        target.user_id,
        len(hierarchy.client_requirements),
        len(hierarchy.functional_requirements),
        len(hierarchy.epics),
        len(hierarchy.tasks),
    )

    for phase, save in _PHASES:
        run.phase = phase
        logger.info("BULK_SAVE_PHASE project=%s phase=%s", target.project_id, phase)
        try:
            save(run, hierarchy)
        except StoreWriteFailure as e:
            logger.error(
                "BULK_SAVE_FAILED project=%s phase=%s created=%s error=%s",
                target.project_id,
                phase,
                e.counts,
                e.cause,
            )
            raise

    result = run.results.snapshot()
    logger.info(
        "BULK_SAVE_DONE project=%s created=%s warnings=%s",
        target.project_id,
        result.counts(),
        len(result.warnings),
    )
    return result


def save_request(store: DocumentStore, req: BulkSaveRequest, settings: Optional[Settings] = None) -> BulkSaveResult:
    return bulk_save(store, req.generated, target_from_request(req), settings=settings)


def cleanup_partial(store: DocumentStore, result: BulkSaveResult) -> list[CreatedRecord]:
    """
    Compensating pass: delete every record in `result.ledger`, newest first.
    Returns the records that could not be deleted.
    """
    failed: list[CreatedRecord] = []
    for rec in reversed(result.ledger):
        try:
            store.delete(rec.collection, rec.id)
        except Exception as e:
            logger.warning("BULK_SAVE_CLEANUP_FAILED collection=%s id=%s error=%s", rec.collection, rec.id, e)
            failed.append(rec)
    logger.info("BULK_SAVE_CLEANUP deleted=%s failed=%s", len(result.ledger) - len(failed), len(failed))
    return failed
