"""Domain models for the registration kernel."""

from registry_kernel.models.application import Application, active_slot_for
from registry_kernel.models.application_action import ApplicationAction
from registry_kernel.models.certificate import Certificate
from registry_kernel.models.document import Document
from registry_kernel.models.draft_purge import DraftPurgeRecord
from registry_kernel.models.inspection import InspectionOrder, InspectionReport
from registry_kernel.models.system_setting import SystemSetting

__all__ = [
    "Application",
    "ApplicationAction",
    "Certificate",
    "Document",
    "DraftPurgeRecord",
    "InspectionOrder",
    "InspectionReport",
    "SystemSetting",
    "active_slot_for",
]
