# tests/base/test_field_table.py

import pytest

from search_filters.base.exceptions import (FieldNotFoundError,
                                            UnresolvedRelationError)
from search_filters.base.planner import find_field_table, resolve_field_table


@pytest.fixture
def inheritance_metadata(make_metadata):
    # Manager -> Employee -> Person
    return make_metadata(
        parents={"Manager": "Employee", "Employee": "Person"},
        fields={
            "Person": {"ID", "Name"},
            "Employee": {"ID", "Title"},
            "Manager": {"ID", "Budget"},
        },
    )


def test_field_on_own_table(inheritance_metadata):
    assert resolve_field_table(inheritance_metadata, "Manager", "Budget") == "Manager"


def test_field_on_parent_table(inheritance_metadata):
    assert resolve_field_table(inheritance_metadata, "Manager", "Title") == "Employee"


def test_field_on_grandparent_table(inheritance_metadata):
    assert resolve_field_table(inheritance_metadata, "Manager", "Name") == "Person"


def test_nearest_table_wins(inheritance_metadata):
    assert resolve_field_table(inheritance_metadata, "Manager", "ID") == "Manager"
    assert resolve_field_table(inheritance_metadata, "Person", "ID") == "Person"


def test_ancestry_walk_stops_at_first_match(inheritance_metadata):
    resolve_field_table(inheritance_metadata, "Manager", "Title")
    assert inheritance_metadata.field_lookups == [
        ("Manager", "Title"),
        ("Employee", "Title"),
    ]


def test_missing_field_raises_with_field_and_entity(inheritance_metadata):
    with pytest.raises(FieldNotFoundError, match=r"'Salary'.*Manager") as exc_info:
        resolve_field_table(inheritance_metadata, "Manager", "Salary")
    assert exc_info.value.field_name == "Salary"
    assert exc_info.value.entity_type == "Manager"
    # Whole ancestry was searched before giving up.
    assert [t for t, _ in inheritance_metadata.field_lookups] == [
        "Manager",
        "Employee",
        "Person",
    ]


def test_field_not_found_is_a_lookup_error(inheritance_metadata):
    with pytest.raises(LookupError):
        resolve_field_table(inheritance_metadata, "Person", "Title")


def test_find_field_table_returns_none(inheritance_metadata):
    assert find_field_table(inheritance_metadata, "Person", "Budget") is None


@pytest.mark.parametrize("error_cls", [FieldNotFoundError, UnresolvedRelationError])
def test_lookup_errors_take_optional_message(error_cls):
    default = error_cls("Name", "Person")
    custom = error_cls("Name", "Person", message="custom text")
    assert "Name" in str(default) and "Person" in str(default)
    assert str(custom) == "custom text"
    assert custom.entity_type == "Person"
