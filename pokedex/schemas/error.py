"""Closed error taxonomy shared by the catalog client and controller."""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    """Categories of failure surfaced to the UI shell."""

    BAD_URL = "bad_url"
    BAD_RESPONSE = "bad_response"
    DECODING_ERROR = "decoding_error"
    SERVER_ERROR = "server_error"
    NO_INTERNET_CONNECTION = "no_internet_connection"
    UNKNOWN = "unknown"


_MESSAGES: dict[ErrorKind, str] = {
    ErrorKind.BAD_URL: "Invalid URL",
    ErrorKind.BAD_RESPONSE: "Bad response from server",
    ErrorKind.DECODING_ERROR: "Failed to decode data",
    ErrorKind.NO_INTERNET_CONNECTION: "No internet connection",
    ErrorKind.UNKNOWN: "An unknown error occurred",
}


class CatalogError(Exception):
    """Failure raised by catalog operations.

    ``status_code`` is only populated for :attr:`ErrorKind.SERVER_ERROR`.
    """

    def __init__(
        self,
        kind: ErrorKind,
        *,
        status_code: int | None = None,
        detail: str | None = None,
    ) -> None:
        self.kind = kind
        self.status_code = status_code
        self.detail = detail
        super().__init__(self.message)

    @classmethod
    def from_kind(cls, kind: ErrorKind, *, detail: str | None = None) -> "CatalogError":
        return cls(kind, detail=detail)

    @classmethod
    def server_error(cls, status_code: int) -> "CatalogError":
        return cls(ErrorKind.SERVER_ERROR, status_code=status_code)

    @property
    def message(self) -> str:
        """Human-readable description suitable for an alert body."""

        if self.kind is ErrorKind.SERVER_ERROR:
            return f"Server error: {self.status_code}"
        return _MESSAGES[self.kind]

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, CatalogError):
            return NotImplemented
        return self.kind is other.kind and self.status_code == other.status_code

    def __hash__(self) -> int:
        return hash((self.kind, self.status_code))

    def __repr__(self) -> str:
        if self.status_code is not None:
            return f"CatalogError({self.kind.name}, status_code={self.status_code})"
        return f"CatalogError({self.kind.name})"


__all__ = ["CatalogError", "ErrorKind"]
