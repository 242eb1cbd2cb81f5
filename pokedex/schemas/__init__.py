"""Schema package exports for convenient imports across the client."""

from .catalog import CatalogPage, ItemDetail, ListItem
from .error import CatalogError, ErrorKind

__all__ = [
    "CatalogError",
    "CatalogPage",
    "ErrorKind",
    "ItemDetail",
    "ListItem",
]
