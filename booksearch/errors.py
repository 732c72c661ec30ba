"""Fetch error taxonomy and result wrapper."""
from dataclasses import dataclass
from enum import Enum
from typing import Generic, Optional, TypeVar

T = TypeVar("T")


class FetchErrorKind(str, Enum):
    """Failure categories of the fetch path."""
    NETWORK = "network"
    DECODE = "decode"
    PARTIAL_ITEM = "partial_item"


class SchemaError(ValueError):
    """Payload does not have the expected top-level shape."""


@dataclass(frozen=True)
class FetchError:
    """
    A failed catalog call.

    Attributes:
        kind: Failure category
        detail: Human-readable diagnostic
        status: HTTP status if a response was received
    """
    kind: FetchErrorKind
    detail: str
    status: Optional[int] = None

    @classmethod
    def network(cls, detail: str, status: Optional[int] = None) -> "FetchError":
        return cls(FetchErrorKind.NETWORK, detail, status)

    @classmethod
    def decode(cls, detail: str, status: Optional[int] = None) -> "FetchError":
        return cls(FetchErrorKind.DECODE, detail, status)

    @classmethod
    def partial_item(cls, detail: str) -> "FetchError":
        return cls(FetchErrorKind.PARTIAL_ITEM, detail)

    def __str__(self) -> str:
        if self.status is not None:
            return f"{self.kind.value} error ({self.status}): {self.detail}"
        return f"{self.kind.value} error: {self.detail}"


@dataclass(frozen=True)
class FetchResult(Generic[T]):
    """Either a decoded value or a FetchError, never both."""
    value: Optional[T] = None
    error: Optional[FetchError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: T) -> "FetchResult[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, error: FetchError) -> "FetchResult[T]":
        return cls(error=error)
