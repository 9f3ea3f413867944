# src/search_filters/base/planner.py
"""
Relation traversal for dotted filter paths.

A path like 'Author.Company.Name' is resolved hop by hop: each relation name
is looked up on the entity type reached so far, turned into the join clauses
for its relation kind, and the walk continues on the related type. The
terminal field is then located on the table that physically stores it.

Tables reached by a hop are referenced by their own name while that name is
free in the query. When it is already taken by a different join (two paths
reaching the same table, or a relation back to the root type), the join gets
an alias made of the table name and the relation path, so the same path
always yields the same alias.

Planning is pure. Nothing here mutates a query; callers add the planned
joins themselves once the whole path has resolved.
"""
import logging
from dataclasses import dataclass, field, replace
from typing import Callable, Dict, Iterable, List, Optional, Set, Tuple

from .exceptions import (FieldNotFoundError, FilterConfigurationError,
                         UnresolvedRelationError)
from .metadata import EntityMetadataProvider
from .query import ColumnRef, JoinClause, JoinCondition, JoinType, SQLQuery
from .relations import ManyToMany, NoRelation, OneToMany, OneToOne

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class JoinOptions:
    """Naming conventions and strictness used when planning joins."""

    strict: bool = False
    primary_key: str = "ID"
    foreign_key_suffix: str = "ID"


DEFAULT_JOIN_OPTIONS = JoinOptions()


@dataclass(frozen=True)
class JoinPlan:
    """
    The entity type reached by a walk and the joins it requires, in order.

    path holds the relations walked so far. tables maps each joined table of
    entity_type to the name it is referenced by; it is empty at the root of
    the walk, whose tables the query itself provides under their own names.
    """

    entity_type: str
    joins: Tuple[JoinClause, ...] = ()
    path: Tuple[str, ...] = field(default=(), compare=False)
    tables: Tuple[Tuple[str, str], ...] = field(default=(), compare=False)
    root_type: Optional[str] = field(default=None, compare=False)


# --- Field-to-Table Resolution ---


def find_field_table(
    metadata: EntityMetadataProvider, entity_type: str, field_name: str
) -> Optional[str]:
    """Like resolve_field_table, but returns None instead of raising."""
    for candidate in metadata.ancestry_of(entity_type):
        if metadata.field_exists_on_own_table(candidate, field_name):
            return metadata.table_of(candidate)
    return None


def resolve_field_table(
    metadata: EntityMetadataProvider, entity_type: str, field_name: str
) -> str:
    """
    Finds the table that physically stores field_name for entity_type.

    Walks the ancestry from the entity type itself up to its root base type
    and returns the table of the first type whose own table defines the
    field.

    Raises:
        FieldNotFoundError: If no table in the ancestry defines the field.
    """
    table = find_field_table(metadata, entity_type, field_name)
    if table is None:
        log.error(f"Field '{field_name}' not found in any of {entity_type}'s tables")
        raise FieldNotFoundError(field_name, entity_type)
    log.debug(f"Field '{field_name}' of {entity_type} is stored on table '{table}'")
    return table


# --- Join Planning ---


def _reverse_key_prefix(
    metadata: EntityMetadataProvider, entity_type: str, child_type: str
) -> str:
    for ancestor in metadata.ancestry_of(entity_type):
        prefix = metadata.reverse_foreign_key_name(child_type, ancestor)
        if prefix:
            return prefix
    log.debug(
        f"No reverse relation from {child_type} to {entity_type}, "
        f"using '{entity_type}' as key prefix"
    )
    return entity_type


class _JoinWalk:
    """
    Places the joins of one walk next to the joins a query already has.

    Names taken by the query (its FROM table, the tables of the root type,
    existing joins) are never reused for a different join.
    """

    def __init__(
        self,
        metadata: EntityMetadataProvider,
        options: JoinOptions,
        plan: JoinPlan,
        query: Optional[SQLQuery] = None,
    ):
        self.metadata = metadata
        self.options = options
        self.root_type = plan.root_type or plan.entity_type
        self.reserved: Set[str] = {
            metadata.table_of(ancestor)
            for ancestor in metadata.ancestry_of(self.root_type)
        }
        self.taken: Dict[str, JoinClause] = {}
        if query is not None:
            if query.from_table:
                self.reserved.add(query.from_table)
            self.taken.update((clause.name, clause) for clause in query.joins)
        self.taken.update((clause.name, clause) for clause in plan.joins)

    def place(
        self,
        join_type: JoinType,
        table: str,
        condition_for: Callable[[str], JoinCondition],
        path: Tuple[str, ...],
        added: List[JoinClause],
    ) -> JoinClause:
        """A join of table whose name clashes with no other join; condition_for builds its ON clause from that name."""
        clause = JoinClause(join_type, table, condition_for(table))
        if table in self.reserved or self.taken.get(table, clause) != clause:
            alias = "_".join((table,) + path)
            clause = JoinClause(join_type, table, condition_for(alias), alias=alias)
            if alias in self.reserved or self.taken.get(alias, clause) != clause:
                raise FilterConfigurationError(
                    f"Can't join '{table}' for '{'.'.join(path)}': "
                    f"alias '{alias}' is already used by another join."
                )
            log.debug(f"'{table}' is already joined, joining it as '{alias}'")
        if clause.name not in self.taken:
            self.taken[clause.name] = clause
            added.append(clause)
        return clause

    def locate(self, plan: JoinPlan, table: str, added: List[JoinClause]) -> str:
        """Name to reference table by, one of plan.entity_type's tables, joining it on the primary key if needed."""
        if not plan.path:
            return table
        tables = dict(plan.tables)
        if table in tables:
            return tables[table]
        anchor = plan.tables[0][1]
        pk = self.options.primary_key
        clause = self.place(
            JoinType.LEFT,
            table,
            lambda name: JoinCondition(ColumnRef(name, pk), ColumnRef(anchor, pk)),
            plan.path,
            added,
        )
        return clause.name

    def _one_to_one(self, plan, relation: OneToOne, path, added):
        pk = self.options.primary_key
        foreign_key = f"{relation.name}{self.options.foreign_key_suffix}"
        # The key column may be declared on an ancestor's table.
        owner_table = find_field_table(
            self.metadata, plan.entity_type, foreign_key
        ) or self.metadata.table_of(plan.entity_type)
        owner = self.locate(plan, owner_table, added)
        related_table = self.metadata.table_of(relation.related_type)
        related = self.place(
            JoinType.LEFT,
            related_table,
            lambda name: JoinCondition(ColumnRef(name, pk), ColumnRef(owner, foreign_key)),
            path,
            added,
        )
        return ((related_table, related.name),)

    def _one_to_many(self, plan, relation: OneToMany, path, added):
        pk = self.options.primary_key
        prefix = _reverse_key_prefix(self.metadata, plan.entity_type, relation.child_type)
        foreign_key = f"{prefix}{self.options.foreign_key_suffix}"
        current = self.locate(plan, self.metadata.table_of(plan.entity_type), added)
        child_table = self.metadata.table_of(relation.child_type)
        # The key column may live on an ancestor of the child type.
        key_table = find_field_table(
            self.metadata, relation.child_type, foreign_key
        ) or child_table
        keyed = self.place(
            JoinType.LEFT,
            key_table,
            lambda name: JoinCondition(ColumnRef(name, foreign_key), ColumnRef(current, pk)),
            path,
            added,
        )
        if key_table == child_table:
            return ((child_table, keyed.name),)
        child = self.place(
            JoinType.LEFT,
            child_table,
            lambda name: JoinCondition(ColumnRef(name, pk), ColumnRef(keyed.name, pk)),
            path,
            added,
        )
        return ((child_table, child.name), (key_table, keyed.name))

    def _many_to_many(self, plan, relation: ManyToMany, path, added):
        pk = self.options.primary_key
        if plan.path:
            parent = self.locate(plan, self.metadata.table_of(plan.entity_type), added)
        else:
            parent = self.metadata.base_table_of(relation.parent_type)
        link = self.place(
            JoinType.INNER,
            relation.join_table,
            lambda name: JoinCondition(
                ColumnRef(name, relation.parent_key), ColumnRef(parent, pk)
            ),
            path,
            added,
        )
        child_table = self.metadata.table_of(relation.child_type)
        child = self.place(
            JoinType.LEFT,
            child_table,
            lambda name: JoinCondition(
                ColumnRef(link.name, relation.child_key), ColumnRef(name, pk)
            ),
            path,
            added,
        )
        return ((child_table, child.name),)

    def hop(self, plan: JoinPlan, relation_name: str) -> JoinPlan:
        entity_type = plan.entity_type
        relation = self.metadata.resolve_relation(entity_type, relation_name)
        path = plan.path + (relation_name,)
        added: List[JoinClause] = []

        if isinstance(relation, OneToOne):
            next_type = relation.related_type
            tables = self._one_to_one(plan, relation, path, added)
        elif isinstance(relation, OneToMany):
            next_type = relation.child_type
            tables = self._one_to_many(plan, relation, path, added)
        elif isinstance(relation, ManyToMany):
            next_type = relation.child_type
            tables = self._many_to_many(plan, relation, path, added)
        elif isinstance(relation, NoRelation):
            if self.options.strict:
                raise UnresolvedRelationError(relation_name, entity_type)
            log.warning(
                f"'{relation_name}' is not a relation of {entity_type}, skipping hop"
            )
            return plan
        else:
            raise TypeError(f"Unsupported relation type: {type(relation).__name__}")

        log.debug(
            f"Hop {entity_type}.{relation_name} ({type(relation).__name__}) "
            f"-> {next_type} with {len(added)} join(s)"
        )
        return JoinPlan(
            entity_type=next_type,
            joins=plan.joins + tuple(added),
            path=path,
            tables=tables,
            root_type=self.root_type,
        )

    def column(self, plan: JoinPlan, field_name: str) -> Tuple[JoinPlan, ColumnRef]:
        table = resolve_field_table(self.metadata, plan.entity_type, field_name)
        added: List[JoinClause] = []
        name = self.locate(plan, table, added)
        return replace(plan, joins=plan.joins + tuple(added)), ColumnRef(name, field_name)


def plan_hop(
    metadata: EntityMetadataProvider,
    entity_type: str,
    relation_name: str,
    options: JoinOptions = DEFAULT_JOIN_OPTIONS,
    query: Optional[SQLQuery] = None,
) -> JoinPlan:
    """
    Resolves one relation hop from entity_type.

    Returns the entity type reached and the joins the hop needs. A name that
    is not a relation leaves the type unchanged and adds no joins, unless
    options.strict is set. If query is given, names its joins already use
    are avoided.

    Raises:
        UnresolvedRelationError: In strict mode, if relation_name is not a
            relation of entity_type.
    """
    start = JoinPlan(entity_type=entity_type)
    return _JoinWalk(metadata, options, start, query).hop(start, relation_name)


def plan_joins(
    metadata: EntityMetadataProvider,
    entity_type: str,
    relations: Iterable[str],
    options: JoinOptions = DEFAULT_JOIN_OPTIONS,
    query: Optional[SQLQuery] = None,
) -> JoinPlan:
    """
    Walks relations left to right starting at entity_type.

    Each hop is planned against the type reached by the previous one, and
    its joins are appended after the joins of earlier hops.
    """
    plan = JoinPlan(entity_type=entity_type)
    walk = _JoinWalk(metadata, options, plan, query)
    for relation_name in relations:
        plan = walk.hop(plan, relation_name)
    return plan


def plan_field(
    metadata: EntityMetadataProvider,
    plan: JoinPlan,
    field_name: str,
    options: JoinOptions = DEFAULT_JOIN_OPTIONS,
    query: Optional[SQLQuery] = None,
) -> Tuple[JoinPlan, ColumnRef]:
    """
    Locates field_name on the entity type a walk has reached.

    When the field is stored on an ancestor's table of a type reached by a
    hop, that table is joined to the hopped table on the primary key and the
    returned plan carries the extra join.

    Raises:
        FieldNotFoundError: If no table in the ancestry defines the field.
    """
    return _JoinWalk(metadata, options, plan, query).column(plan, field_name)
