"""Exception hierarchy shared by the loader, builder, session and host page."""


class ContactGraphError(Exception):
    """Base class for all errors raised by this package."""


class ConfigurationError(ContactGraphError, ValueError):
    """A view configuration is unusable. Raised at construction time."""


class DataLoadError(ContactGraphError):
    """One of the input datasets could not be fetched or parsed."""

    def __init__(self, source: str, reason: str):
        self.source = source
        self.reason = reason
        super().__init__(f"Failed to load {source}: {reason}")


class UnknownEntityError(ContactGraphError, KeyError):
    """An interaction or pin referenced an entity id that is not in the view."""

    def __init__(self, entity_id):
        self.entity_id = entity_id
        super().__init__(entity_id)

    def __str__(self) -> str:
        return f"Unknown entity: {self.entity_id!r}"
