# src/search_filters/__init__.py

"""
Search Filters Library Initialization.

This package turns dotted field paths such as 'Author.Company.Name' into
joins and predicates on a query: each relation on the path is resolved
against entity metadata and joined in, and the terminal field is compared on
the table that stores it.

It initializes a logger with a NullHandler and makes the filters, the query
builder, the metadata interfaces and the SQLite executor available at the
top level.
"""

import logging

# --------------------------------------------------------------------------
# Logging Setup
# --------------------------------------------------------------------------
# Library logs are discarded unless the consuming application configures
# logging.
logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())
logger.propagate = False

# --------------------------------------------------------------------------
# Exception Exports
# --------------------------------------------------------------------------
from .base.exceptions import (
    SearchFilterError,
    FieldNotFoundError,
    UnresolvedRelationError,
    FilterConfigurationError,
)

# --------------------------------------------------------------------------
# Metadata and Relation Exports
# --------------------------------------------------------------------------
from .base.metadata import EntityMetadataProvider, ManyManyDefinition
from .base.relations import (
    RelationPath,
    parse_relation_path,
    OneToOne,
    OneToMany,
    ManyToMany,
    NoRelation,
)

# --------------------------------------------------------------------------
# Query Building Exports
# --------------------------------------------------------------------------
from .base.query import (
    SQLQuery,
    ColumnRef,
    Condition,
    JoinClause,
    JoinCondition,
    JoinType,
    QueryOperator,
)
from .base.planner import (
    JoinOptions,
    JoinPlan,
    plan_field,
    plan_hop,
    plan_joins,
    resolve_field_table,
)

# --------------------------------------------------------------------------
# Filter Exports
# --------------------------------------------------------------------------
from .base.filters import (
    SearchFilter,
    ExactMatchFilter,
    NegationFilter,
    PartialMatchFilter,
    StartsWithFilter,
    EndsWithFilter,
    GreaterThanFilter,
    LessThanFilter,
    WithinRangeFilter,
    ExactMatchMultiFilter,
    ExcludeMultiFilter,
    ExistsFilter,
    get_filter_class,
)
from .base.context import SearchContext, build_entity_query

# --------------------------------------------------------------------------
# Registry and Backend Exports
# --------------------------------------------------------------------------
from .registry.model_registry import DataModel, ModelRegistry
from .sqlite.base import SQLiteSearchExecutor

__all__ = [
    # Exceptions
    "SearchFilterError",
    "FieldNotFoundError",
    "UnresolvedRelationError",
    "FilterConfigurationError",
    # Metadata
    "EntityMetadataProvider",
    "ManyManyDefinition",
    "RelationPath",
    "parse_relation_path",
    "OneToOne",
    "OneToMany",
    "ManyToMany",
    "NoRelation",
    # Query
    "SQLQuery",
    "ColumnRef",
    "Condition",
    "JoinClause",
    "JoinCondition",
    "JoinType",
    "QueryOperator",
    "JoinOptions",
    "JoinPlan",
    "plan_field",
    "plan_hop",
    "plan_joins",
    "resolve_field_table",
    # Filters
    "SearchFilter",
    "ExactMatchFilter",
    "NegationFilter",
    "PartialMatchFilter",
    "StartsWithFilter",
    "EndsWithFilter",
    "GreaterThanFilter",
    "LessThanFilter",
    "WithinRangeFilter",
    "ExactMatchMultiFilter",
    "ExcludeMultiFilter",
    "ExistsFilter",
    "get_filter_class",
    "SearchContext",
    "build_entity_query",
    # Registry / backends
    "DataModel",
    "ModelRegistry",
    "SQLiteSearchExecutor",
    # Logging
    "logger",
]
