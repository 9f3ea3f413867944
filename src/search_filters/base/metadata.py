# src/search_filters/base/metadata.py

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Optional

from search_filters.base.relations import (ManyToMany, NoRelation, OneToMany,
                                           OneToOne, Relation)

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class ManyManyDefinition:
    """Join-table description of a many-to-many relation."""

    parent_type: str
    child_type: str
    parent_key: str
    child_key: str
    join_table: str


class EntityMetadataProvider(ABC):
    """
    Read-only view of entity types: their fields, relations, and inheritance.

    Search filters only consume this interface. Implementations decide where
    the metadata comes from (model classes, a schema file, a live database).
    """

    @abstractmethod
    def has_one_relation(self, entity_type: str, name: str) -> Optional[str]:
        """
        Look up a one-to-one relation.

        Args:
            entity_type: The owning entity type.
            name: The relation name.

        Returns:
            The related entity type, or None if no such relation exists.
        """
        pass

    @abstractmethod
    def has_many_relation(self, entity_type: str, name: str) -> Optional[str]:
        """
        Look up a one-to-many relation.

        Returns:
            The child entity type, or None if no such relation exists.
        """
        pass

    @abstractmethod
    def many_many_relation(
        self, entity_type: str, name: str
    ) -> Optional[ManyManyDefinition]:
        """
        Look up a many-to-many relation.

        Returns:
            The join-table definition, or None if no such relation exists.
        """
        pass

    @abstractmethod
    def field_exists_on_own_table(self, entity_type: str, field_name: str) -> bool:
        """True if the entity type's own table (not an ancestor's) stores the field."""
        pass

    @abstractmethod
    def ancestry_of(self, entity_type: str) -> List[str]:
        """
        The inheritance chain of an entity type, most specific first.

        The first element is the entity type itself; the last is its root
        base type.
        """
        pass

    @abstractmethod
    def base_table_of(self, entity_type: str) -> str:
        """The table of the root base type in the entity's ancestry."""
        pass

    @abstractmethod
    def reverse_foreign_key_name(
        self, child_type: str, parent_type: str
    ) -> Optional[str]:
        """
        Name of the child's one-to-one relation pointing back at parent_type.

        Used as the prefix of the foreign key column on the child's table.
        Returns None if the child declares no such relation.
        """
        pass

    def table_of(self, entity_type: str) -> str:
        """The table holding the entity type's own fields. Defaults to its name."""
        return entity_type

    def own_fields_of(self, entity_type: str) -> List[str]:
        """Columns stored on the entity type's own table, if known."""
        return []

    def resolve_relation(self, entity_type: str, name: str) -> Relation:
        """
        Resolve a relation name to exactly one relation kind.

        Probes one-to-one, then one-to-many, then many-to-many, and returns
        NoRelation when none match. Providers with a single lookup for all
        kinds may override this.
        """
        related = self.has_one_relation(entity_type, name)
        if related:
            return OneToOne(name=name, related_type=related)

        child = self.has_many_relation(entity_type, name)
        if child:
            return OneToMany(name=name, child_type=child)

        definition = self.many_many_relation(entity_type, name)
        if definition:
            return ManyToMany(
                name=name,
                parent_type=definition.parent_type,
                child_type=definition.child_type,
                parent_key=definition.parent_key,
                child_key=definition.child_key,
                join_table=definition.join_table,
            )

        log.debug(f"'{name}' is not a relation of {entity_type}")
        return NoRelation(name=name)
