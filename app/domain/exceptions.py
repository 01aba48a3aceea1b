"""
Domain exceptions.

Validation errors subclass ValueError so the global error handler can map
anything that escapes the routers to a 400 response.
"""


class MalformedDateError(ValueError):
    """A date field is not a zero-padded YYYY-MM-DD calendar date."""

    def __init__(self, field: str, value):
        self.field = field
        self.value = value
        super().__init__(f"Malformed date in '{field}': {value!r}")


class SchemaMismatchError(ValueError):
    """Imported JSON matches neither supported dataset layout."""
    pass


class InvalidSlotError(ValueError):
    """The (contract, line) pair cannot hold a dataset."""

    def __init__(self, contract, line):
        self.contract = contract
        self.line = line
        super().__init__(f"Contract '{contract}' cannot be loaded on line '{line}'")


class DatasetNotFoundError(LookupError):
    """No dataset is loaded for the requested slot."""
    pass


class DatasetStoreError(Exception):
    """The dataset store could not be read or written."""
    pass
