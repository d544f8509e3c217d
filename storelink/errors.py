"""
Exception hierarchy for the store federation layer.

    StoreLinkError (base)
    ├── ConfigurationError      - bad/missing store name, unreachable store
    ├── StoreConnectionError    - raised by the connection provider
    ├── InvalidDescriptorError  - malformed relationship descriptor / JoinSpec
    └── StoreQueryError         - underlying store call failed

NotFound is a normal outcome, so it is a value and not an exception.
"""
from dataclasses import dataclass
from typing import Any


class StoreLinkError(Exception):
    """Base exception for all storelink errors."""

    def __init__(self, message: str, details: str = None):
        self.message = message
        self.details = details
        super().__init__(self.message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message}: {self.details}"
        return self.message


class ConfigurationError(StoreLinkError):
    """Missing store name, unknown entity or a store that cannot be connected."""


class StoreConnectionError(StoreLinkError):
    """The connection provider could not produce a usable engine."""

    def __init__(self, message: str, details: str = None, store_name: str = None):
        super().__init__(message, details)
        self.store_name = store_name


class InvalidDescriptorError(StoreLinkError):
    """A relationship descriptor or JoinSpec is malformed."""


class StoreQueryError(StoreLinkError):
    """
    A query against a store failed.

    Raised from a join batch, it aborts that join only; joins already
    merged onto the rows stay attached.
    """

    def __init__(self, message: str, details: str = None, entity: str = None):
        super().__init__(message, details)
        self.entity = entity


@dataclass(frozen=True)
class NotFound:
    """No primary row exists for the requested identifier."""

    entity: str
    identifier: Any
    message: str = "NOT_FOUND"

    def to_dict(self) -> dict:
        return {"error": True, "message": self.message}
