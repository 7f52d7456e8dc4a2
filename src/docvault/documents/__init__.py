from .models import (
    Category,
    CleanupResult,
    DeleteResult,
    Document,
    DocumentData,
    DocumentWithCategories,
    FileUpload,
)
from .query import SearchQuery, build_tsquery, parse_keywords
from .repository import DocumentRepository, object_name
from .search import SearchController

__all__ = [
    # Data shapes
    "Category",
    "Document",
    "DocumentWithCategories",
    "DocumentData",
    "FileUpload",
    "DeleteResult",
    "CleanupResult",
    # Queries
    "SearchQuery",
    "build_tsquery",
    "parse_keywords",
    # Operations
    "DocumentRepository",
    "SearchController",
    "object_name",
]
