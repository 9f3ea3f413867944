# src/search_filters/base/filters.py
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Tuple, Type

from .exceptions import FilterConfigurationError
from .metadata import EntityMetadataProvider
from .planner import (DEFAULT_JOIN_OPTIONS, JoinOptions, JoinPlan, plan_field,
                      plan_joins)
from .query import ColumnRef, Condition, QueryOperator, SQLQuery
from .relations import parse_relation_path

log = logging.getLogger(__name__)


class SearchFilter(ABC):
    """
    Base class for a single search predicate on a dotted field path.

    The path is split once, at construction: 'Author.Company.Name' filters on
    the 'Name' field reached through the 'Author' and 'Company' relations.
    The query layer sets the root model before calling apply(), which adds
    the joins for each relation and then the variant's predicate on the
    table-qualified column.
    """

    def __init__(
        self,
        name: str,
        value: Any = None,
        model: Optional[str] = None,
        metadata: Optional[EntityMetadataProvider] = None,
        options: Optional[JoinOptions] = None,
    ):
        path = parse_relation_path(name)
        self._full_name = name
        self._name = path.field_name
        self._relation: Tuple[str, ...] = path.relations
        self._value = value
        self._model = model
        self._metadata = metadata
        self._options = options or DEFAULT_JOIN_OPTIONS
        self._applied_queries: List[SQLQuery] = []

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._full_name!r}, {self._value!r})"

    # --- Accessors ---

    @property
    def name(self) -> str:
        """The terminal field name."""
        return self._name

    @property
    def full_name(self) -> str:
        """The dotted path the filter was created with."""
        return self._full_name

    @property
    def relation(self) -> Tuple[str, ...]:
        """Relation names leading to the terminal field, in path order."""
        return self._relation

    @property
    def model(self) -> Optional[str]:
        return self._model

    @property
    def value(self) -> Any:
        return self._value

    @value.setter
    def value(self, value: Any) -> None:
        self._value = value

    def set_value(self, value: Any) -> None:
        """Set the current value to be filtered on."""
        self._value = value

    def get_value(self) -> Any:
        return self._value

    def set_model(
        self, model: str, metadata: Optional[EntityMetadataProvider] = None
    ) -> None:
        """Set the root entity type selected by the query this filter applies to."""
        self._model = model
        if metadata is not None:
            self._metadata = metadata

    def is_empty(self) -> bool:
        """True if the value carries no search criterion."""
        value = self._value
        if value is None:
            return True
        if isinstance(value, str):
            return value.strip() == ""
        if isinstance(value, (list, tuple, set, dict)):
            return len(value) == 0
        return False

    # --- Resolution ---

    def _require_configuration(self) -> Tuple[str, EntityMetadataProvider]:
        if not self._model:
            raise FilterConfigurationError(
                f"{self!r} has no model; call set_model() before applying it."
            )
        if self._metadata is None:
            raise FilterConfigurationError(
                f"{self!r} has no metadata provider to resolve '{self._full_name}'."
            )
        return self._model, self._metadata

    def plan(self, query: Optional[SQLQuery] = None) -> JoinPlan:
        """
        Plans the joins for this filter's relations without touching a query.

        Given the query the filter will be applied to, joins it already has
        are reused and names it already uses are avoided.
        """
        model, metadata = self._require_configuration()
        return plan_joins(metadata, model, self._relation, self._options, query)

    def resolve_column(
        self, plan: Optional[JoinPlan] = None, query: Optional[SQLQuery] = None
    ) -> Tuple[JoinPlan, ColumnRef]:
        """The plan completed with any join the terminal field needs, and its column."""
        _, metadata = self._require_configuration()
        plan = plan or self.plan(query)
        return plan_field(metadata, plan, self._name, self._options, query)

    def get_db_name(self, plan: Optional[JoinPlan] = None) -> ColumnRef:
        """The terminal field qualified with the name of the table that stores it."""
        return self.resolve_column(plan)[1]

    # --- Application ---

    def apply(self, query: SQLQuery) -> SQLQuery:
        """
        Apply the filter criteria to a query.

        Joins and the predicate are only added once the whole path has
        resolved, so a failed lookup leaves the query unchanged.

        Raises:
            FieldNotFoundError: If the terminal field is not stored on any
                table of the entity type reached.
            UnresolvedRelationError: In strict mode, for a path segment that
                is not a relation.
            FilterConfigurationError: If no model or metadata provider is
                set, or the filter was already applied to this query.
        """
        if any(applied is query for applied in self._applied_queries):
            raise FilterConfigurationError(f"{self!r} was already applied to this query.")

        plan, column = self.resolve_column(self.plan(query), query)

        for join in plan.joins:
            query.add_join(join)
        log.debug(f"Applying {self!r} on column '{column}'")
        self._apply_predicate(query, column)
        self._applied_queries.append(query)
        return query

    @abstractmethod
    def _apply_predicate(self, query: SQLQuery, column: ColumnRef) -> None:
        """Add the variant's where condition on the qualified column."""
        pass


class ExactMatchFilter(SearchFilter):
    """Matches rows whose column equals the value."""

    def _apply_predicate(self, query: SQLQuery, column: ColumnRef) -> None:
        query.add_where_equals(column, self.value)


class NegationFilter(SearchFilter):
    """Excludes rows whose column equals the value."""

    def _apply_predicate(self, query: SQLQuery, column: ColumnRef) -> None:
        query.add_where(Condition(column, QueryOperator.NE, self.value))


class PartialMatchFilter(SearchFilter):
    """Matches rows whose column contains the value as a substring."""

    def _apply_predicate(self, query: SQLQuery, column: ColumnRef) -> None:
        query.add_where(Condition(column, QueryOperator.LIKE, str(self.value)))


class StartsWithFilter(SearchFilter):
    def _apply_predicate(self, query: SQLQuery, column: ColumnRef) -> None:
        query.add_where(Condition(column, QueryOperator.STARTSWITH, str(self.value)))


class EndsWithFilter(SearchFilter):
    def _apply_predicate(self, query: SQLQuery, column: ColumnRef) -> None:
        query.add_where(Condition(column, QueryOperator.ENDSWITH, str(self.value)))


class GreaterThanFilter(SearchFilter):
    def _apply_predicate(self, query: SQLQuery, column: ColumnRef) -> None:
        query.add_where(Condition(column, QueryOperator.GT, self.value))


class LessThanFilter(SearchFilter):
    def _apply_predicate(self, query: SQLQuery, column: ColumnRef) -> None:
        query.add_where(Condition(column, QueryOperator.LT, self.value))


class WithinRangeFilter(SearchFilter):
    """
    Matches rows whose column lies within an inclusive range.

    The value is a (min, max) pair; a None bound is left open.
    """

    def __init__(self, name: str, value: Any = None, **kwargs):
        super().__init__(name, value, **kwargs)
        self._min, self._max = self._split_range(value)

    @staticmethod
    def _split_range(value: Any) -> Tuple[Any, Any]:
        if value is None or (isinstance(value, str) and not value.strip()):
            return None, None
        if not isinstance(value, (list, tuple)) or len(value) != 2:
            raise ValueError(
                f"WithinRangeFilter requires a (min, max) pair, got {value!r}"
            )
        return value[0], value[1]

    @property
    def value(self) -> Any:
        return self._value

    @value.setter
    def value(self, value: Any) -> None:
        self.set_value(value)

    def set_value(self, value: Any) -> None:
        self._min, self._max = self._split_range(value)
        self._value = value

    def set_min(self, min_value: Any) -> None:
        self._min = min_value
        self._value = (self._min, self._max)

    def set_max(self, max_value: Any) -> None:
        self._max = max_value
        self._value = (self._min, self._max)

    def is_empty(self) -> bool:
        return self._min is None and self._max is None

    def _apply_predicate(self, query: SQLQuery, column: ColumnRef) -> None:
        if self._min is not None:
            query.add_where(Condition(column, QueryOperator.GTE, self._min))
        if self._max is not None:
            query.add_where(Condition(column, QueryOperator.LTE, self._max))


class _MultiValueFilter(SearchFilter):
    """Shared value handling for set membership filters."""

    operator: QueryOperator

    def values(self) -> List[Any]:
        value = self.value
        if value is None:
            return []
        if isinstance(value, str):
            return [part.strip() for part in value.split(",") if part.strip()]
        if isinstance(value, (list, tuple, set)):
            return list(value)
        return [value]

    def is_empty(self) -> bool:
        return not self.values()

    def _apply_predicate(self, query: SQLQuery, column: ColumnRef) -> None:
        query.add_where(Condition(column, self.operator, self.values()))


class ExactMatchMultiFilter(_MultiValueFilter):
    """
    Matches rows whose column equals any of several values.

    Accepts a list/tuple/set, or a comma separated string.
    """

    operator = QueryOperator.IN


class ExcludeMultiFilter(_MultiValueFilter):
    """Excludes rows whose column equals any of several values."""

    operator = QueryOperator.NIN


class ExistsFilter(SearchFilter):
    """Matches rows where the column is set (value True) or NULL (value False)."""

    def __init__(self, name: str, value: Any = True, **kwargs):
        super().__init__(name, value, **kwargs)

    def _apply_predicate(self, query: SQLQuery, column: ColumnRef) -> None:
        if not isinstance(self.value, bool):
            raise TypeError(
                f"ExistsFilter requires a boolean value, got {type(self.value).__name__}"
            )
        query.add_where(Condition(column, QueryOperator.EXISTS, self.value))


# --- Lookup by name ---
FILTER_CLASSES: Dict[str, Type[SearchFilter]] = {
    cls.__name__: cls
    for cls in (
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
    )
}


def get_filter_class(name: str) -> Type[SearchFilter]:
    """Returns the filter class registered under name."""
    try:
        return FILTER_CLASSES[name]
    except KeyError:
        raise FilterConfigurationError(
            f"Unknown search filter '{name}'. "
            f"Available filters: {', '.join(sorted(FILTER_CLASSES))}"
        ) from None
