from __future__ import annotations
from typing import Any, Dict, Literal, Optional
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

Priority = Literal["LOW", "MEDIUM", "HIGH", "CRITICAL"]
Complexity = Literal["LOW", "MEDIUM", "HIGH", "VERY_HIGH"]
RequirementType = Literal["FUNCTIONAL", "NON_FUNCTIONAL", "TECHNICAL", "BUSINESS"]
EntityKind = Literal["clientRequirements", "functionalRequirements", "epics", "tasks"]


class _CamelModel(BaseModel):
    # wire format is camelCase (generator output, HTTP bodies); python side stays snake_case
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ====== Generation result (normalized) ======
class ProjectAnalysis(_CamelModel):
    summary: str = ""
    complexity: Complexity = "MEDIUM"
    estimated_duration: str = "TBD"
    recommended_team_size: int = 1


class Milestone(_CamelModel):
    name: str
    date: str = ""
    description: str = ""


class Timeline(_CamelModel):
    project_duration: str = "TBD"
    milestones: list[Milestone] = Field(default_factory=list)


class GeneratedClientRequirement(_CamelModel):
    title: str
    client_name: str = ""
    description: str = ""
    priority: Priority = "MEDIUM"


class GeneratedFunctionalRequirement(_CamelModel):
    title: str
    description: str = ""
    type: RequirementType = "FUNCTIONAL"
    priority: Priority = "MEDIUM"
    complexity: Complexity = "MEDIUM"
    acceptance_criteria: list[str] = Field(default_factory=list)
    business_rules: list[str] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)
    parent_id: Optional[str] = None             # index key, e.g. "fr-3"
    client_requirement_id: Optional[str] = None  # index key, e.g. "cr-0"

    @property
    def is_root(self) -> bool:
        return not self.parent_id


class GeneratedEpic(_CamelModel):
    name: str
    description: str = ""
    color: Optional[str] = None
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    functional_requirement_ids: list[str] = Field(default_factory=list)


class GeneratedTask(_CamelModel):
    title: str
    description: str = ""
    priority: Priority = "MEDIUM"
    estimated_hours: float = 0
    epic_id: Optional[str] = None  # stringified index into epics
    labels: list[str] = Field(default_factory=list)


class GeneratedHierarchy(_CamelModel):
    analysis: ProjectAnalysis = Field(default_factory=ProjectAnalysis)
    client_requirements: list[GeneratedClientRequirement] = Field(default_factory=list)
    functional_requirements: list[GeneratedFunctionalRequirement] = Field(default_factory=list)
    epics: list[GeneratedEpic] = Field(default_factory=list)
    tasks: list[GeneratedTask] = Field(default_factory=list)
    timeline: Timeline = Field(default_factory=Timeline)


# ====== Bulk save ======
class SavedRef(_CamelModel):
    id: str
    hierarchy_id: str


class SaveWarning(_CamelModel):
    kind: Literal["UnresolvedParent", "UnresolvedEpicLink"]
    index: int
    reference: str
    message: str


class CreatedRecord(_CamelModel):
    collection: str
    id: str


class BulkSaveResult(_CamelModel):
    client_requirements: list[SavedRef] = Field(default_factory=list)
    functional_requirements: list[SavedRef] = Field(default_factory=list)
    epics: list[SavedRef] = Field(default_factory=list)
    tasks: list[SavedRef] = Field(default_factory=list)
    warnings: list[SaveWarning] = Field(default_factory=list)
    # compensating-action ledger, in creation order; never serialized
    ledger: list[CreatedRecord] = Field(default_factory=list, exclude=True)

    def counts(self) -> Dict[str, int]:
        return {
            "clientRequirements": len(self.client_requirements),
            "functionalRequirements": len(self.functional_requirements),
            "epics": len(self.epics),
            "tasks": len(self.tasks),
        }


class BulkSaveRequest(_CamelModel):
    generated: Any = None  # raw generator output; shape checked by normalize_generation()
    project_id: str
    project_code: Optional[str] = None
    project_name: Optional[str] = None
    workspace_id: str
    user_id: str
    cleanup_on_failure: bool = False


class BulkSaveResponse(_CamelModel):
    success: bool = True
    result: BulkSaveResult
