"""Document-side data shapes.

``Document`` mirrors a ``documents`` row; ``DocumentData`` is what a form
submits (keywords still a comma-separated string); ``FileUpload`` is the file
picked by the user.
"""

from __future__ import annotations

import mimetypes
import uuid
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class Category(BaseModel):
    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: int
    name: str


class Document(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    user_id: uuid.UUID
    title: str
    description: str = ""
    keywords: list[str] = Field(default_factory=list)
    file_url: str
    created_at: datetime
    updated_at: datetime


class DocumentWithCategories(Document):
    categories: list[Category] = Field(default_factory=list)


class DocumentData(BaseModel):
    title: str
    description: str = ""
    keywords: str = Field(default="", description="Comma-separated keywords")


class FileUpload(BaseModel):
    name: str
    content_type: str = "application/octet-stream"
    data: bytes

    @property
    def extension(self) -> str:
        """Text after the last dot of the original name, or ``""``."""
        stem, dot, ext = self.name.rpartition(".")
        return ext if dot and stem else ""

    @classmethod
    def from_path(cls, path: str | Path, content_type: Optional[str] = None) -> "FileUpload":
        path = Path(path)
        guessed, _ = mimetypes.guess_type(path.name)
        return cls(
            name=path.name,
            content_type=content_type or guessed or "application/octet-stream",
            data=path.read_bytes(),
        )


@dataclass(frozen=True)
class DeleteResult:
    """Row deletion always happened; storage cleanup is best effort."""

    document_id: uuid.UUID
    storage_path: str
    storage_removed: bool
    storage_error: Optional[str] = None


@dataclass(frozen=True)
class CleanupResult:
    storage_path: str
    removed: bool
    error: Optional[str] = None


__all__ = [
    "Category",
    "Document",
    "DocumentWithCategories",
    "DocumentData",
    "FileUpload",
    "DeleteResult",
    "CleanupResult",
]
