# tests/conftest.py
import logging
from typing import ClassVar, Dict, List, Optional, Set, Tuple

import aiosqlite
import pytest
import pytest_asyncio

from search_filters.base.metadata import (EntityMetadataProvider,
                                          ManyManyDefinition)
from search_filters.registry.model_registry import DataModel, ModelRegistry
from search_filters.sqlite.base import SQLiteSearchExecutor


# --- Hand-written metadata ---


class StubMetadata(EntityMetadataProvider):
    """
    Metadata described with plain dicts.

    parents: type -> parent type (absent for root types)
    fields: type -> fields stored on the type's own table
    has_one / has_many: (type, relation) -> related type
    many_many: (type, relation) -> ManyManyDefinition
    reverse_keys: (child type, parent type) -> has_one name on the child
    """

    def __init__(
        self,
        parents: Optional[Dict[str, str]] = None,
        fields: Optional[Dict[str, Set[str]]] = None,
        has_one: Optional[Dict[Tuple[str, str], str]] = None,
        has_many: Optional[Dict[Tuple[str, str], str]] = None,
        many_many: Optional[Dict[Tuple[str, str], ManyManyDefinition]] = None,
        reverse_keys: Optional[Dict[Tuple[str, str], str]] = None,
    ):
        self.parents = parents or {}
        self.fields = fields or {}
        self.has_one = has_one or {}
        self.has_many = has_many or {}
        self.many_many = many_many or {}
        self.reverse_keys = reverse_keys or {}
        self.field_lookups: List[Tuple[str, str]] = []

    def has_one_relation(self, entity_type, name):
        return self.has_one.get((entity_type, name))

    def has_many_relation(self, entity_type, name):
        return self.has_many.get((entity_type, name))

    def many_many_relation(self, entity_type, name):
        return self.many_many.get((entity_type, name))

    def field_exists_on_own_table(self, entity_type, field_name):
        self.field_lookups.append((entity_type, field_name))
        return field_name in self.fields.get(entity_type, set())

    def ancestry_of(self, entity_type):
        ancestry = [entity_type]
        while ancestry[-1] in self.parents:
            ancestry.append(self.parents[ancestry[-1]])
        return ancestry

    def base_table_of(self, entity_type):
        return self.ancestry_of(entity_type)[-1]

    def reverse_foreign_key_name(self, child_type, parent_type):
        return self.reverse_keys.get((child_type, parent_type))

    def own_fields_of(self, entity_type):
        return ["ID"] + sorted(self.fields.get(entity_type, set()) - {"ID"})


@pytest.fixture
def make_metadata():
    """Factory for StubMetadata instances."""
    return StubMetadata


@pytest.fixture
def team_metadata() -> StubMetadata:
    """Team has a many-many 'Players' relation to Player through Team_Players."""
    return StubMetadata(
        fields={
            "Team": {"ID", "Title"},
            "Player": {"ID", "Name"},
        },
        many_many={
            ("Team", "Players"): ManyManyDefinition(
                parent_type="Team",
                child_type="Player",
                parent_key="TeamID",
                child_key="PlayerID",
                join_table="Team_Players",
            )
        },
    )


# --- Pydantic models ---


class Company(DataModel):
    Name: str
    Country: Optional[str] = None
    has_many: ClassVar[Dict[str, str]] = {"Staff": "Person"}


class Person(DataModel):
    Name: str
    Age: Optional[int] = None
    has_one: ClassVar[Dict[str, str]] = {"Company": "Company"}


class Employee(Person):
    Title: str


class Manager(Employee):
    Budget: Optional[float] = None


class Team(DataModel):
    Title: str
    has_one: ClassVar[Dict[str, str]] = {"Coach": "Person"}
    many_many: ClassVar[Dict[str, str]] = {"Players": "Player"}


class Player(DataModel):
    Name: str
    Number: Optional[int] = None
    Active: bool = True
    belongs_many_many: ClassVar[Dict[str, str]] = {"Teams": "Team"}


@pytest.fixture
def registry() -> ModelRegistry:
    return ModelRegistry([Company, Person, Employee, Manager, Team, Player])


# --- Logging ---


@pytest.fixture
def logger():
    """Create a test logger."""
    _logger = logging.getLogger("test_search_filters_logger")
    if not _logger.handlers:
        handler = logging.StreamHandler()
        formatter = logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        )
        handler.setFormatter(formatter)
        handler.setLevel(logging.DEBUG)
        _logger.addHandler(handler)
        _logger.setLevel(logging.DEBUG)
        _logger.propagate = False
    return logging.LoggerAdapter(_logger, {})


# --- SQLite ---


@pytest_asyncio.fixture
async def sqlite_memory_db_conn():
    """Provides an in-memory aiosqlite database connection for testing."""
    conn = None
    try:
        conn = await aiosqlite.connect(":memory:")
        yield conn
    finally:
        if conn:
            await conn.close()


@pytest_asyncio.fixture
async def executor(sqlite_memory_db_conn, registry, logger):
    """Executor over an in-memory database with the registry's schema and sample rows."""
    executor = SQLiteSearchExecutor(sqlite_memory_db_conn)
    await executor.create_schema(registry, logger)

    await executor.insert("Company", {"ID": 1, "Name": "Acme", "Country": "NZ"}, logger)
    await executor.insert("Company", {"ID": 2, "Name": "Globex", "Country": "US"}, logger)

    # Person 1-2 are plain people; 3-4 are employees; 5 is a manager.
    people = [
        (1, "Ann", 31, 1),
        (2, "Bob", 45, 2),
        (3, "Cid", 28, 1),
        (4, "Dee", 52, 2),
        (5, "Eve", 40, 1),
    ]
    for person_id, name, age, company_id in people:
        await executor.insert(
            "Person",
            {"ID": person_id, "Name": name, "Age": age, "CompanyID": company_id},
            logger,
        )
    await executor.insert("Employee", {"ID": 3, "Title": "Engineer"}, logger)
    await executor.insert("Employee", {"ID": 4, "Title": "Designer"}, logger)
    await executor.insert("Employee", {"ID": 5, "Title": "Director"}, logger)
    await executor.insert("Manager", {"ID": 5, "Budget": 1000.0}, logger)

    await executor.insert("Team", {"ID": 1, "Title": "Reds", "CoachID": 1}, logger)
    await executor.insert("Team", {"ID": 2, "Title": "Blues", "CoachID": 2}, logger)
    await executor.insert("Player", {"ID": 1, "Name": "Ann", "Number": 7, "Active": True}, logger)
    await executor.insert("Player", {"ID": 2, "Name": "Zed", "Number": 9, "Active": False}, logger)
    await executor.insert("Team_Players", {"TeamID": 1, "PlayerID": 1}, logger)
    await executor.insert("Team_Players", {"TeamID": 2, "PlayerID": 2}, logger)
    return executor
