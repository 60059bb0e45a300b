import pytest

from ltconnect.core.hierarchy import (
    CodeContext,
    assign_code,
    child_requirement_code,
    derive_project_code,
    epic_code,
    epic_code_for_requirement,
    extract_letters,
    functional_requirement_code,
    named_task_code,
    next_sibling_seq,
    requirement_code,
    sprint_code,
    task_code,
)


def test_project_code_from_name():
    assert derive_project_code("Test Project") == "TE"
    assert derive_project_code("  e-commerce 2.0") == "EC"


def test_short_and_non_alphabetic_names():
    # shorter than N: no letter padding
    assert extract_letters("X", 2) == "X"
    # digits only: empty fragment, the number is still emitted
    assert derive_project_code("2024") == ""
    assert epic_code(derive_project_code("2024"), 1) == "-EPIC-01"
    assert extract_letters(None, 3) == ""


def test_basic_code_families():
    ctx = CodeContext(project_code="TE")
    assert assign_code("clientRequirements", 0, ctx) == "CR-01"
    assert assign_code("functionalRequirements", 1, ctx) == "REQ-02"
    assert assign_code("epics", 0, ctx) == "TE-EPIC-01"
    assert assign_code("tasks", 6, ctx) == "TE-007"


def test_task_code_padding_and_overflow():
    assert task_code("TE", 150) == "TE-150"
    assert task_code("TE", 1000) == "TE-1000"
    assert epic_code("TE", 123) == "TE-EPIC-123"


def test_child_codes_count_direct_children_only():
    assigned = ["REQ-01", "REQ-01.01", "REQ-01.01.01", "REQ-02"]
    assert next_sibling_seq("REQ-01", assigned) == 2
    assert next_sibling_seq("REQ-01.01", assigned) == 2
    assert next_sibling_seq("REQ-02", assigned) == 1
    # REQ-1 is not a prefix match for REQ-10's children
    assert next_sibling_seq("REQ-1", ["REQ-10.01"]) == 1


def test_assign_child_uses_context():
    ctx = CodeContext(project_code="TE", requirement_codes=("REQ-01", "REQ-01.01"))
    assert assign_code("functionalRequirements", 5, ctx, parent_code="REQ-01") == "REQ-01.02"
    assert assign_code("functionalRequirements", 5, ctx, parent_code="REQ-01.01") == "REQ-01.01.01"
    assert child_requirement_code("REQ-03.02", 11) == "REQ-03.02.11"


def test_unknown_kind():
    with pytest.raises(ValueError):
        assign_code("sprints", 0, CodeContext(project_code="TE"))  # type: ignore[arg-type]


def test_named_code_families():
    assert requirement_code("TE", "Test Project", "Login", 1) == "TE-LO-01"
    # empty project code falls back to the derived one
    assert requirement_code("", "Test Project", "Login", 3) == "TE-LO-03"
    assert epic_code_for_requirement("TE", None, "Login", "Audit Trail", 2) == "TE-LO-AU-02"
    assert epic_code_for_requirement("TE", None, None, "Audit Trail", 2) == "TE-AU-02"
    assert functional_requirement_code("TE", None, "Search", 4, requirement_name="Login", epic_name="Audit") == "TE-LO-AU-S-04"
    assert functional_requirement_code("TE", None, "Search", 4, epic_name="Audit") == "TE-AU-S-04"
    assert functional_requirement_code("TE", None, "Search", 4) == "TE-S-04"


def test_named_task_and_sprint_codes():
    assert named_task_code("TE-S-04", "Login form", 1) == "TE-S-04-LOG-01"
    assert named_task_code("TE", "42", 7) == "TE-07-07"
    assert sprint_code("TE", None, "1") == "TE-S1"
    assert sprint_code(None, "Test Project", "Sprint #2") == "TE-SSPRINT2"
