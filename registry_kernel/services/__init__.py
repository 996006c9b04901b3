"""Services for the registry kernel (write side)."""

from registry_kernel.services.action_log import ActionLog
from registry_kernel.services.application_store import ApplicationStore
from registry_kernel.services.document_service import DocumentService
from registry_kernel.services.draft_maintenance import DraftMaintenanceService, DraftPurgeReport
from registry_kernel.services.sequence_allocator import (
    APPLICATION_SCOPE,
    CERTIFICATE_SCOPE,
    SequenceAllocator,
    SerialScope,
)
from registry_kernel.services.settings_service import SettingsService

__all__ = [
    "APPLICATION_SCOPE",
    "ActionLog",
    "ApplicationStore",
    "CERTIFICATE_SCOPE",
    "DocumentService",
    "DraftMaintenanceService",
    "DraftPurgeReport",
    "SequenceAllocator",
    "SerialScope",
    "SettingsService",
]
