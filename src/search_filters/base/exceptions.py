from typing import Optional


class SearchFilterError(Exception):
    """Base class for errors raised while assembling a search query."""

    def __init__(self, message: str = "Search filter error."):
        super().__init__(message)


class FieldNotFoundError(SearchFilterError, LookupError):
    """Raised when a field does not exist on any table in an entity's ancestry."""

    def __init__(self, field_name: str, entity_type: str, message: Optional[str] = None):
        self.field_name = field_name
        self.entity_type = entity_type
        super().__init__(
            message
            or f"Couldn't find field '{field_name}' in any of {entity_type}'s tables."
        )


class UnresolvedRelationError(SearchFilterError, LookupError):
    """Raised in strict mode when a path segment is not a relation."""

    def __init__(self, relation_name: str, entity_type: str, message: Optional[str] = None):
        self.relation_name = relation_name
        self.entity_type = entity_type
        super().__init__(
            message
            or f"'{relation_name}' is not a relation of {entity_type}."
        )


class FilterConfigurationError(SearchFilterError):
    """Raised when a filter or registry is used without the setup it needs."""

    def __init__(self, message: str = "Search filter is not configured."):
        super().__init__(message)
