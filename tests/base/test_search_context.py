# tests/base/test_search_context.py

import pytest

from search_filters.base.context import SearchContext, build_entity_query
from search_filters.base.exceptions import FilterConfigurationError
from search_filters.base.filters import (ExactMatchFilter, PartialMatchFilter,
                                         WithinRangeFilter)
from search_filters.base.query import (ColumnRef, Condition, JoinType,
                                       QueryOperator)


def test_entity_query_for_root_type(registry):
    query = build_entity_query(registry, "Company")
    assert query.from_table == "Company"
    assert query.distinct is True
    assert query.joins == []
    assert query.select == [
        ColumnRef("Company", "ID"),
        ColumnRef("Company", "Name"),
        ColumnRef("Company", "Country"),
    ]


def test_entity_query_joins_ancestor_tables(registry):
    query = build_entity_query(registry, "Manager")
    assert query.from_table == "Person"
    assert query.joined_tables == ["Employee", "Manager"]
    assert all(join.join_type == JoinType.INNER for join in query.joins)
    assert query.joins[1].on.left == ColumnRef("Manager", "ID")
    assert query.joins[1].on.right == ColumnRef("Person", "ID")
    assert query.select == [
        ColumnRef("Person", "ID"),
        ColumnRef("Person", "Name"),
        ColumnRef("Person", "Age"),
        ColumnRef("Person", "CompanyID"),
        ColumnRef("Employee", "Title"),
        ColumnRef("Manager", "Budget"),
    ]


@pytest.fixture
def person_context(registry) -> SearchContext:
    return SearchContext(
        "Person",
        registry,
        {
            "Name": "PartialMatchFilter",
            "Company.Name": ExactMatchFilter,
            "Age": WithinRangeFilter,
        },
    )


def test_context_resolves_filter_names(person_context):
    assert person_context.filters == {
        "Name": PartialMatchFilter,
        "Company.Name": ExactMatchFilter,
        "Age": WithinRangeFilter,
    }


def test_get_query_applies_configured_filters(person_context):
    query = person_context.get_query(
        {"Name": "n", "Company.Name": "Acme", "Unknown": 1, "Age": None}
    )
    assert query.joined_tables == ["Company"]
    assert query.where == [
        Condition(ColumnRef("Person", "Name"), QueryOperator.LIKE, "n"),
        Condition(ColumnRef("Company", "Name"), QueryOperator.EQ, "Acme"),
    ]


def test_get_query_skips_empty_values(person_context):
    query = person_context.get_query({"Name": "", "Company.Name": None, "Age": ""})
    assert query.where == []
    assert query.joins == []


def test_get_query_builds_fresh_filters_each_time(person_context):
    params = {"Company.Name": "Acme", "Age": (20, 40)}
    first = person_context.get_query(params)
    second = person_context.get_query(params)
    assert first is not second
    assert first.to_sql() == second.to_sql()


def test_get_query_extends_given_query(person_context, registry):
    base = build_entity_query(registry, "Employee")
    query = person_context.get_query({"Name": "A"}, query=base)
    assert query is base
    assert query.joined_tables == ["Employee"]
    assert len(query.where) == 1


def test_create_filter_sets_model(person_context):
    search_filter = person_context.create_filter("Company.Name", "Acme")
    assert isinstance(search_filter, ExactMatchFilter)
    assert search_filter.model == "Person"
    assert search_filter.relation == ("Company",)


def test_add_and_remove_filter(person_context):
    person_context.add_filter("Age", "GreaterThanFilter")
    person_context.remove_filter("Name")
    person_context.remove_filter("NotThere")
    assert set(person_context.filters) == {"Company.Name", "Age"}


def test_add_filter_rejects_bad_specs(person_context):
    with pytest.raises(FilterConfigurationError):
        person_context.add_filter("Name", "FuzzyFilter")
    with pytest.raises(TypeError):
        person_context.add_filter("Name", dict)
