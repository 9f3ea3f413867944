# src/search_filters/base/context.py
import logging
from typing import Any, Dict, Mapping, Optional, Type, Union

from .filters import SearchFilter, get_filter_class
from .metadata import EntityMetadataProvider
from .planner import DEFAULT_JOIN_OPTIONS, JoinOptions
from .query import ColumnRef, JoinCondition, SQLQuery

log = logging.getLogger(__name__)

FilterSpec = Union[str, Type[SearchFilter]]


def build_entity_query(
    metadata: EntityMetadataProvider,
    entity_type: str,
    options: JoinOptions = DEFAULT_JOIN_OPTIONS,
) -> SQLQuery:
    """
    Starts a query selecting entity_type.

    Selects from the base table of the entity's ancestry and inner joins the
    table of every more specific type on the primary key. Only rows of
    entity_type (or its subtypes) match, and fields stored on any ancestor's
    table can be filtered and selected.
    """
    ancestry = metadata.ancestry_of(entity_type)
    base_table = metadata.base_table_of(entity_type)
    query = SQLQuery(from_table=base_table, distinct=True)
    query.select.append(ColumnRef(base_table, options.primary_key))

    # Root first, so subclass tables join onto the base table.
    for ancestor in reversed(ancestry):
        table = metadata.table_of(ancestor)
        if table != base_table:
            query.add_inner_join(
                table,
                JoinCondition(
                    ColumnRef(table, options.primary_key),
                    ColumnRef(base_table, options.primary_key),
                ),
            )
        for column in metadata.own_fields_of(ancestor):
            if column != options.primary_key:
                query.select.append(ColumnRef(table, column))

    log.debug(f"Built base query for {entity_type}: {query!r}")
    return query


class SearchContext:
    """
    Turns a mapping of search parameters into a query for one entity type.

    filters maps dotted field paths to the SearchFilter subclass (or its
    class name) used for that path. A new filter instance is created for
    every parameter of every get_query() call.
    """

    def __init__(
        self,
        entity_type: str,
        metadata: EntityMetadataProvider,
        filters: Optional[Mapping[str, FilterSpec]] = None,
        options: Optional[JoinOptions] = None,
    ):
        self.entity_type = entity_type
        self.metadata = metadata
        self.options = options or DEFAULT_JOIN_OPTIONS
        self._filters: Dict[str, Type[SearchFilter]] = {}
        for path, spec in (filters or {}).items():
            self.add_filter(path, spec)

    @property
    def filters(self) -> Dict[str, Type[SearchFilter]]:
        return dict(self._filters)

    def add_filter(self, path: str, spec: FilterSpec) -> None:
        filter_cls = get_filter_class(spec) if isinstance(spec, str) else spec
        if not (isinstance(filter_cls, type) and issubclass(filter_cls, SearchFilter)):
            raise TypeError(f"{spec!r} is not a SearchFilter subclass")
        self._filters[path] = filter_cls

    def remove_filter(self, path: str) -> None:
        self._filters.pop(path, None)

    def create_filter(self, path: str, value: Any) -> SearchFilter:
        """A filter for path, configured with this context's model and metadata."""
        search_filter = self._filters[path](
            path, value, metadata=self.metadata, options=self.options
        )
        search_filter.set_model(self.entity_type)
        return search_filter

    def get_query(
        self, params: Mapping[str, Any], query: Optional[SQLQuery] = None
    ) -> SQLQuery:
        """
        Applies a filter for each non-empty parameter that has one configured.

        Args:
            params: Field path -> search value.
            query: Query to extend; a new entity query is built if omitted.
        """
        if query is None:
            query = build_entity_query(self.metadata, self.entity_type, self.options)

        for path, value in params.items():
            if path not in self._filters:
                log.debug(f"No filter configured for '{path}', ignoring parameter")
                continue
            search_filter = self.create_filter(path, value)
            if search_filter.is_empty():
                log.debug(f"Skipping empty value for '{path}'")
                continue
            search_filter.apply(query)

        log.info(f"Built search query for {self.entity_type}: {query!r}")
        return query
