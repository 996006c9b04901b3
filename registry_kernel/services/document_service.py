"""
DocumentService -- default Document Store collaborator.

Responsibility:
    Reads an application's documents from the ``documents`` table, falling
    back to the inline JSON list on the application when no rows exist,
    and normalises both into ``DocumentInfo``.  Answers the submission
    preconditions (required types present, minimum photo count) and owns
    the explicit inline-to-table migration.

Invariants enforced:
    - Structured rows win: inline entries are only read for applications
      with no rows.
    - ``sync_documents_from_inline`` is idempotent: it copies nothing once
      structured rows exist.

Failure modes:
    - ApplicationNotFoundError for unknown application ids.
"""

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from registry_kernel.domain.clock import Clock
from registry_kernel.domain.documents import (
    DEFAULT_MIME_TYPE,
    PHOTO_DOCUMENT_TYPE,
    DocumentInfo,
    DocumentRef,
    InlineDocument,
    normalize,
)
from registry_kernel.domain.policies import DocumentRequirements
from registry_kernel.domain.statuses import ApplicationKind
from registry_kernel.exceptions import ApplicationNotFoundError
from registry_kernel.logging_config import get_logger
from registry_kernel.models.application import Application
from registry_kernel.models.document import Document
from registry_kernel.services.base import BaseService

logger = get_logger("services.documents")


class DocumentService(BaseService[Document]):
    """Structured and inline documents behind one read path."""

    def __init__(
        self,
        session: Session,
        requirements: DocumentRequirements | None = None,
        clock: Clock | None = None,
    ):
        super().__init__(session, clock)
        self._requirements = requirements or DocumentRequirements()

    @property
    def requirements(self) -> DocumentRequirements:
        return self._requirements

    def _application(self, application_id: UUID) -> Application:
        row = self.session.get(Application, application_id)
        if row is None:
            raise ApplicationNotFoundError(str(application_id))
        return row

    def _rows(self, application_id: UUID) -> list[Document]:
        return list(self.session.execute(
            select(Document)
            .where(Document.application_id == application_id)
            .order_by(Document.created_at, Document.file_name)
        ).scalars())

    def add_document(
        self,
        application_id: UUID,
        document_type: str,
        file_name: str,
        file_path: str,
        file_size: int = 0,
        mime_type: str | None = None,
    ) -> DocumentInfo:
        self._application(application_id)
        row = Document(
            application_id=application_id,
            document_type=document_type,
            file_name=file_name,
            file_path=file_path,
            file_size=file_size,
            mime_type=mime_type or DEFAULT_MIME_TYPE,
            source="upload",
            created_at=self._clock.now(),
        )
        self.session.add(row)
        self.session.flush()
        return row.to_ref().to_info()

    def references(self, application_id: UUID) -> list[DocumentRef]:
        rows = self._rows(application_id)
        if rows:
            return [row.to_ref() for row in rows]
        application = self._application(application_id)
        return [InlineDocument(blob) for blob in (application.inline_documents or [])]

    def list_documents(self, application_id: UUID) -> list[DocumentInfo]:
        return normalize(self.references(application_id))

    def missing_document_types(self, application_id: UUID) -> list[str]:
        application = self._application(application_id)
        required = self._requirements.required_for(ApplicationKind(application.kind))
        present = {doc.document_type for doc in self.list_documents(application_id)}
        return sorted(required - present)

    def has_required_documents(self, application_id: UUID) -> bool:
        return not self.missing_document_types(application_id)

    def photo_count(self, application_id: UUID) -> int:
        return sum(1 for doc in self.list_documents(application_id) if doc.is_photo)

    def mark_verified(self, application_id: UUID, verifier_id: UUID) -> int:
        """Mark every structured document of the application verified."""
        now = self._clock.now()
        count = 0
        for row in self._rows(application_id):
            if row.is_verified:
                continue
            row.is_verified = True
            row.verified_by = verifier_id
            row.verified_at = now
            count += 1
        self.session.flush()
        return count

    def sync_documents_from_inline(self, application_id: UUID) -> int:
        """
        Copy inline document entries into structured rows.

        Returns the number of rows written; 0 when the application already
        has structured rows or carries no inline entries.
        """
        application = self._application(application_id)
        if self._rows(application_id):
            logger.info(
                "document_sync_skipped",
                extra={"application_id": str(application_id), "skip_reason": "structured_rows_exist"},
            )
            return 0

        now = self._clock.now()
        infos = normalize([InlineDocument(b) for b in (application.inline_documents or [])])
        for info in infos:
            self.session.add(Document(
                application_id=application_id,
                document_type=info.document_type,
                file_name=info.file_name or f"{info.document_type}.bin",
                file_path=info.file_path,
                file_size=info.file_size,
                mime_type=info.mime_type,
                is_verified=info.is_verified,
                source="inline_sync",
                created_at=now,
            ))
        self.session.flush()

        logger.info(
            "documents_synced_from_inline",
            extra={
                "application_id": str(application_id),
                "document_count": len(infos),
                "photo_count": sum(1 for i in infos if i.document_type == PHOTO_DOCUMENT_TYPE),
            },
        )
        return len(infos)
