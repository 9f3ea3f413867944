# src/search_filters/registry/model_registry.py
import logging
from typing import Any, ClassVar, Dict, List, Optional, Type, TypeVar

from pydantic import BaseModel

from ..base.exceptions import FilterConfigurationError
from ..base.metadata import EntityMetadataProvider, ManyManyDefinition

log = logging.getLogger(__name__)

M = TypeVar("M", bound="DataModel")

PRIMARY_KEY = "ID"
FOREIGN_KEY_SUFFIX = "ID"


class DataModel(BaseModel):
    """
    Root for table-backed entity models.

    Each registered subclass owns a table named after the class that stores
    the fields the subclass itself declares. Relations are declared per class
    as relation name -> related entity name:

        class Team(DataModel):
            Title: str
            has_one: ClassVar[Dict[str, str]] = {"Coach": "Coach"}
            many_many: ClassVar[Dict[str, str]] = {"Players": "Player"}
    """

    ID: Optional[int] = None

    has_one: ClassVar[Dict[str, str]] = {}
    has_many: ClassVar[Dict[str, str]] = {}
    many_many: ClassVar[Dict[str, str]] = {}
    belongs_many_many: ClassVar[Dict[str, str]] = {}


def _own_fields(model_cls: Type[DataModel]) -> List[str]:
    """Pydantic fields first declared on model_cls, not inherited from a base."""
    inherited = set()
    for base in model_cls.__bases__:
        inherited.update(getattr(base, "model_fields", {}).keys())
    return [name for name in model_cls.model_fields if name not in inherited]


def _own_relations(model_cls: Type[DataModel], kind: str) -> Dict[str, str]:
    """Relations of one kind declared directly on model_cls."""
    return dict(model_cls.__dict__.get(kind, {}))


class ModelRegistry(EntityMetadataProvider):
    """
    Entity metadata derived from registered DataModel subclasses.

    Entity type names are class names; ancestry follows Python inheritance
    restricted to registered classes.
    """

    def __init__(self, models: Optional[List[Type[DataModel]]] = None):
        self._models: Dict[str, Type[DataModel]] = {}
        for model_cls in models or []:
            self.register(model_cls)

    def register(self, model_cls: Type[M]) -> Type[M]:
        """Registers a model class. Can be used as a class decorator."""
        if not (isinstance(model_cls, type) and issubclass(model_cls, DataModel)):
            raise TypeError(f"{model_cls!r} is not a DataModel subclass")
        name = model_cls.__name__
        existing = self._models.get(name)
        if existing is not None and existing is not model_cls:
            raise FilterConfigurationError(
                f"An entity type named '{name}' is already registered."
            )
        self._models[name] = model_cls
        log.debug(f"Registered entity type '{name}' with fields {_own_fields(model_cls)}")
        return model_cls

    @property
    def entity_types(self) -> List[str]:
        return list(self._models.keys())

    def get_model(self, entity_type: str) -> Type[DataModel]:
        try:
            return self._models[entity_type]
        except KeyError:
            raise FilterConfigurationError(
                f"Unknown entity type '{entity_type}'."
            ) from None

    # --- Inheritance ---

    def ancestry_of(self, entity_type: str) -> List[str]:
        model_cls = self.get_model(entity_type)
        return [
            cls.__name__
            for cls in model_cls.__mro__
            if cls.__name__ in self._models and self._models[cls.__name__] is cls
        ]

    def base_table_of(self, entity_type: str) -> str:
        return self.table_of(self.ancestry_of(entity_type)[-1])

    def own_fields_of(self, entity_type: str) -> List[str]:
        model_cls = self.get_model(entity_type)
        columns = [PRIMARY_KEY]
        columns.extend(name for name in _own_fields(model_cls) if name != PRIMARY_KEY)
        columns.extend(
            f"{relation}{FOREIGN_KEY_SUFFIX}"
            for relation in _own_relations(model_cls, "has_one")
        )
        return columns

    def field_exists_on_own_table(self, entity_type: str, field_name: str) -> bool:
        return field_name in self.own_fields_of(entity_type)

    def column_types_of(self, entity_type: str) -> Dict[str, Any]:
        """Annotation of each own column; foreign keys map to int."""
        model_cls = self.get_model(entity_type)
        types: Dict[str, Any] = {PRIMARY_KEY: int}
        for name in _own_fields(model_cls):
            if name != PRIMARY_KEY:
                types[name] = model_cls.model_fields[name].annotation
        for relation in _own_relations(model_cls, "has_one"):
            types[f"{relation}{FOREIGN_KEY_SUFFIX}"] = int
        return types

    # --- Relations ---

    def _inherited_relation(
        self, entity_type: str, kind: str, name: str
    ) -> Optional[tuple]:
        """(declaring type, related type) for the nearest declaration of name."""
        for ancestor in self.ancestry_of(entity_type):
            relations = _own_relations(self._models[ancestor], kind)
            if name in relations:
                return ancestor, relations[name]
        return None

    def has_one_relation(self, entity_type: str, name: str) -> Optional[str]:
        found = self._inherited_relation(entity_type, "has_one", name)
        return found[1] if found else None

    def has_many_relation(self, entity_type: str, name: str) -> Optional[str]:
        found = self._inherited_relation(entity_type, "has_many", name)
        return found[1] if found else None

    def many_many_relation(
        self, entity_type: str, name: str
    ) -> Optional[ManyManyDefinition]:
        found = self._inherited_relation(entity_type, "many_many", name)
        if found:
            parent, child = found
            return ManyManyDefinition(
                parent_type=parent,
                child_type=child,
                parent_key=f"{parent}{FOREIGN_KEY_SUFFIX}",
                child_key=f"{child}{FOREIGN_KEY_SUFFIX}",
                join_table=f"{parent}_{name}",
            )

        found = self._inherited_relation(entity_type, "belongs_many_many", name)
        if found:
            parent, child = found
            owner_relation = self._find_many_many_owner(child, parent)
            if owner_relation is None:
                raise FilterConfigurationError(
                    f"{parent}.{name} belongs to a many_many on {child}, "
                    f"but {child} declares none pointing at {parent}."
                )
            owner, owner_name, owner_target = owner_relation
            return ManyManyDefinition(
                parent_type=parent,
                child_type=child,
                parent_key=f"{owner_target}{FOREIGN_KEY_SUFFIX}",
                child_key=f"{owner}{FOREIGN_KEY_SUFFIX}",
                join_table=f"{owner}_{owner_name}",
            )
        return None

    def _find_many_many_owner(
        self, owner_type: str, target_type: str
    ) -> Optional[tuple]:
        """(declaring type, relation name, related type) of owner_type's many_many to target_type."""
        target_ancestry = set(self.ancestry_of(target_type))
        for ancestor in self.ancestry_of(owner_type):
            for name, related in _own_relations(self._models[ancestor], "many_many").items():
                if related in target_ancestry:
                    return ancestor, name, related
        return None

    def many_many_tables(self) -> List[ManyManyDefinition]:
        """Every join table declared by a registered model."""
        definitions = []
        for entity_type, model_cls in self._models.items():
            for name in _own_relations(model_cls, "many_many"):
                definitions.append(self.many_many_relation(entity_type, name))
        return definitions

    def reverse_foreign_key_name(
        self, child_type: str, parent_type: str
    ) -> Optional[str]:
        for ancestor in self.ancestry_of(child_type):
            for name, related in _own_relations(self._models[ancestor], "has_one").items():
                if related == parent_type:
                    return name
        return None
