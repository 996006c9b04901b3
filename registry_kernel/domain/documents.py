"""
Document references (``registry_kernel.domain.documents``).

Responsibility
--------------
Applications have carried documents in two places: rows in the
``documents`` table, and a loosely-typed inline JSON list on the
application itself.  ``DocumentRef`` is the tagged variant over the two,
and ``to_info()`` normalises either one into a single ``DocumentInfo``
shape at read time.  Callers never branch on where a document lives.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.

Invariants enforced
-------------------
* Inline blobs are normalised with fixed fallbacks: type from
  ``documentType`` then ``type`` (else ``"document"``), name from
  ``fileName`` then ``name``, path from ``filePath``, ``fileUrl``,
  ``url``; size 0 and ``application/octet-stream`` when absent.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Union
from uuid import UUID

PHOTO_DOCUMENT_TYPE = "property_photo"
DEFAULT_MIME_TYPE = "application/octet-stream"


@dataclass(frozen=True)
class DocumentInfo:
    """The one shape every caller sees."""

    document_type: str
    file_name: str
    file_path: str
    file_size: int
    mime_type: str
    is_verified: bool = False
    document_id: UUID | None = None

    @property
    def is_photo(self) -> bool:
        return self.document_type == PHOTO_DOCUMENT_TYPE


@dataclass(frozen=True)
class StructuredDocument:
    """A row in the documents table."""

    document_id: UUID
    document_type: str
    file_name: str
    file_path: str
    file_size: int
    mime_type: str
    is_verified: bool = False

    def to_info(self) -> DocumentInfo:
        return DocumentInfo(
            document_type=self.document_type,
            file_name=self.file_name,
            file_path=self.file_path,
            file_size=self.file_size,
            mime_type=self.mime_type,
            is_verified=self.is_verified,
            document_id=self.document_id,
        )


def _first(blob: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        value = blob.get(key)
        if value not in (None, ""):
            return value
    return None


@dataclass(frozen=True)
class InlineDocument:
    """An entry of the inline JSON document list on an application."""

    blob: Mapping[str, Any]

    def to_info(self) -> DocumentInfo:
        blob = self.blob
        size = _first(blob, "fileSize", "size")
        try:
            file_size = int(size) if size is not None else 0
        except (TypeError, ValueError):
            file_size = 0
        return DocumentInfo(
            document_type=str(_first(blob, "documentType", "type") or "document"),
            file_name=str(_first(blob, "fileName", "name") or ""),
            file_path=str(_first(blob, "filePath", "fileUrl", "url") or ""),
            file_size=file_size,
            mime_type=str(_first(blob, "mimeType") or DEFAULT_MIME_TYPE),
            is_verified=bool(blob.get("isVerified", False)),
        )


DocumentRef = Union[StructuredDocument, InlineDocument]


def normalize(refs: list[DocumentRef]) -> list[DocumentInfo]:
    return [ref.to_info() for ref in refs]
