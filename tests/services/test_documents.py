"""
Tests for DocumentService: structured rows, the inline JSON fallback and
the explicit inline-to-table sync.
"""

from uuid import uuid4

import pytest

from registry_kernel.domain.statuses import ApplicationStatus, WorkflowAction
from registry_kernel.exceptions import ApplicationNotFoundError

INLINE = [
    {"documentType": "revenue_papers", "fileName": "jamabandi.pdf", "fileUrl": "/u/1.pdf", "fileSize": 3000},
    {"type": "affidavit_section_29", "name": "affidavit.pdf", "url": "/u/2.pdf"},
    {"documentType": "undertaking_form_c", "fileName": "form-c.pdf", "filePath": "/u/3.pdf"},
    {"documentType": "property_photo", "fileName": "front.jpg", "mimeType": "image/jpeg"},
    {"documentType": "property_photo", "fileName": "room.jpg", "mimeType": "image/jpeg"},
]


class TestStructuredDocuments:

    def test_required_types_and_photos(self, driver, registry):
        app = driver.create()
        docs = registry.documents

        assert docs.missing_document_types(app.id) == [
            "affidavit_section_29", "revenue_papers", "undertaking_form_c",
        ]
        driver.add_documents(app.id, photos=1)

        assert docs.has_required_documents(app.id)
        assert docs.photo_count(app.id) == 1
        assert len(docs.list_documents(app.id)) == 4

    def test_add_to_unknown_application(self, registry):
        with pytest.raises(ApplicationNotFoundError):
            registry.documents.add_document(uuid4(), "revenue_papers", "a.pdf", "/a.pdf")

    def test_verify_document_action_marks_rows(self, driver, registry, da_id):
        app = driver.under_scrutiny()

        driver.apply(app.id, WorkflowAction.VERIFY_DOCUMENT, da_id)

        docs = registry.documents.list_documents(app.id)
        assert docs and all(d.is_verified for d in docs)
        assert driver.status(app.id) is ApplicationStatus.UNDER_SCRUTINY


class TestInlineFallback:

    def test_inline_entries_are_read_when_no_rows(self, driver, registry):
        app = driver.create(inline_documents=INLINE)

        docs = registry.documents.list_documents(app.id)

        assert [d.document_type for d in docs][:3] == [
            "revenue_papers", "affidavit_section_29", "undertaking_form_c",
        ]
        assert all(d.document_id is None for d in docs)
        assert registry.documents.has_required_documents(app.id)
        assert registry.documents.photo_count(app.id) == 2

    def test_inline_only_application_can_submit(self, driver, registry, owner_id):
        app = driver.create(inline_documents=INLINE)
        driver.apply(app.id, WorkflowAction.SUBMIT, owner_id)
        assert driver.status(app.id) is ApplicationStatus.SUBMITTED

    def test_structured_rows_win(self, driver, registry):
        app = driver.create(inline_documents=INLINE)
        registry.documents.add_document(app.id, "revenue_papers", "new.pdf", "/new.pdf")

        docs = registry.documents.list_documents(app.id)

        assert [d.file_name for d in docs] == ["new.pdf"]
        assert not registry.documents.has_required_documents(app.id)


class TestSyncFromInline:

    def test_sync_copies_entries(self, driver, registry, captured_logs):
        app = driver.create(inline_documents=INLINE)

        copied = registry.documents.sync_documents_from_inline(app.id)

        assert copied == 5
        docs = registry.documents.list_documents(app.id)
        assert all(d.document_id is not None for d in docs)
        assert {d.file_path for d in docs} >= {"/u/1.pdf", "/u/2.pdf", "/u/3.pdf"}
        synced = [r for r in captured_logs() if r["message"] == "documents_synced_from_inline"]
        assert synced[0]["photo_count"] == 2

    def test_sync_is_idempotent(self, driver, registry):
        app = driver.create(inline_documents=INLINE)
        registry.documents.sync_documents_from_inline(app.id)
        assert registry.documents.sync_documents_from_inline(app.id) == 0
        assert len(registry.documents.list_documents(app.id)) == 5

    def test_nothing_to_sync(self, driver, registry):
        app = driver.create()
        assert registry.documents.sync_documents_from_inline(app.id) == 0
