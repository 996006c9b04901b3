"""Selectors for the registry kernel (read side)."""

from registry_kernel.selectors.application_selector import ApplicationSelector
from registry_kernel.selectors.inspection_selector import InspectionSelector

__all__ = [
    "ApplicationSelector",
    "InspectionSelector",
]
