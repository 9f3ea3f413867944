# src/search_filters/base/relations.py
import logging
from dataclasses import dataclass
from typing import Tuple, Union

log = logging.getLogger(__name__)

PATH_SEPARATOR = "."


# --- Relation Path ---
@dataclass(frozen=True)
class RelationPath:
    """A terminal field name plus the relation names leading to it."""

    field_name: str
    relations: Tuple[str, ...] = ()

    @property
    def full_name(self) -> str:
        return PATH_SEPARATOR.join(self.relations + (self.field_name,))


def parse_relation_path(path: str) -> RelationPath:
    """
    Splits a dotted path such as 'Author.Company.Name' into its terminal
    field ('Name') and the ordered relations leading to it
    (('Author', 'Company')). A path without a separator has no relations.
    """
    if PATH_SEPARATOR not in path:
        return RelationPath(field_name=path)
    *relations, field_name = path.split(PATH_SEPARATOR)
    log.debug(f"Parsed path '{path}': relations={relations}, field='{field_name}'")
    return RelationPath(field_name=field_name, relations=tuple(relations))


# --- Relation Kinds ---
@dataclass(frozen=True)
class OneToOne:
    """The owning type holds a '<name>ID' foreign key to related_type."""

    name: str
    related_type: str


@dataclass(frozen=True)
class OneToMany:
    """child_type holds a foreign key back to the owning type."""

    name: str
    child_type: str


@dataclass(frozen=True)
class ManyToMany:
    """Resolved through join_table holding parent_key and child_key."""

    name: str
    parent_type: str
    child_type: str
    parent_key: str
    child_key: str
    join_table: str


@dataclass(frozen=True)
class NoRelation:
    """The name does not resolve to any relation of the entity type."""

    name: str


Relation = Union[OneToOne, OneToMany, ManyToMany, NoRelation]
