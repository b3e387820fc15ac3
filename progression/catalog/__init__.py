"""Content catalog access (read-only) and JSON catalog loading."""

from progression.catalog.loader import CatalogLoader, CatalogSpec
from progression.catalog.repository import CatalogRepository

__all__ = [
    "CatalogRepository",
    "CatalogLoader",
    "CatalogSpec",
]
