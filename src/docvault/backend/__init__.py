from .base import DocumentBackend
from .sql import SqlDocumentBackend

__all__ = ["DocumentBackend", "SqlDocumentBackend"]
