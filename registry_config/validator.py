"""
Configuration validator (``registry_config.validator``).

Responsibility
--------------
Checks a parsed ``RegistryConfig`` for values the kernel cannot run
with: unknown application kinds, roles or capabilities, impossible
limits, ambiguous number codes.

Failure modes
-------------
* ``ConfigValidationResult.errors`` -> the set MUST NOT be activated;
  ``get_active_config`` raises ``ConfigurationError``.
* ``ConfigValidationResult.warnings`` -> usable, but worth a review.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

from registry_config.schema import RegistryConfig
from registry_kernel.domain.rbac import Capability, Role
from registry_kernel.domain.statuses import ApplicationKind

_CODE_PATTERN = re.compile(r"^[A-Z0-9]+(-[A-Z0-9]+)*$")
_RESUBMIT_TARGETS = ("origin", "dtdo")


@dataclass
class ConfigValidationResult:
    """``is_valid`` is True only when ``errors`` is empty."""

    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return len(self.errors) == 0

    def add_error(self, msg: str) -> None:
        self.errors.append(msg)

    def add_warning(self, msg: str) -> None:
        self.warnings.append(msg)


def validate_configuration(config: RegistryConfig) -> ConfigValidationResult:
    result = ConfigValidationResult()

    _validate_numbering(config, result)
    _validate_limits(config, result)
    _validate_documents(config, result)
    _validate_rbac(config, result)

    return result


def _known_kinds() -> set[str]:
    return {k.value for k in ApplicationKind}


def _validate_numbering(config: RegistryConfig, result: ConfigValidationResult) -> None:
    kind_codes = config.numbering.kind_codes_dict()
    for kind in sorted(set(kind_codes) - _known_kinds()):
        result.add_error(f"numbering.kind_codes: unknown application kind '{kind}'")
    for kind in sorted(_known_kinds() - set(kind_codes)):
        if kind_codes:
            result.add_error(f"numbering.kind_codes: no code for application kind '{kind}'")

    seen: dict[str, str] = {}
    for kind, code in sorted(kind_codes.items()):
        if not _CODE_PATTERN.match(code):
            result.add_error(f"numbering.kind_codes: invalid code '{code}' for '{kind}'")
        if code in seen:
            result.add_error(
                f"numbering.kind_codes: code '{code}' used by both '{seen[code]}' and '{kind}'"
            )
        seen[code] = kind

    districts: dict[str, str] = {}
    for district, code in config.numbering.district_codes:
        if not _CODE_PATTERN.match(code):
            result.add_error(f"numbering.district_codes: invalid code '{code}' for '{district}'")
        if code in districts:
            result.add_warning(
                f"numbering.district_codes: '{district}' and '{districts[code]}' share code '{code}'"
            )
        districts[code] = district

    if not _CODE_PATTERN.match(config.numbering.certificate_prefix):
        result.add_error(
            f"numbering.certificate_prefix: invalid prefix '{config.numbering.certificate_prefix}'"
        )


def _validate_limits(config: RegistryConfig, result: ConfigValidationResult) -> None:
    if config.allocation.max_attempts < 1:
        result.add_error("allocation.max_attempts must be at least 1")
    if config.allocation.max_attempts > 50:
        result.add_warning("allocation.max_attempts above 50 hides contention problems")

    wf = config.workflow
    if wf.max_reverts is not None and wf.max_reverts < 0:
        result.add_error("workflow.max_reverts must be >= 0 or null")
    if wf.correction_resubmit_target not in _RESUBMIT_TARGETS:
        result.add_error(
            f"workflow.correction_resubmit_target must be one of {', '.join(_RESUBMIT_TARGETS)}"
        )

    if config.inspection.early_override_window_days < 0:
        result.add_error("inspection.early_override_window_days must be >= 0")
    if config.inspection.min_override_reason_length < 0:
        result.add_error("inspection.min_override_reason_length must be >= 0")

    if config.certificate.validity_years < 1:
        result.add_error("certificate.validity_years must be at least 1")

    if config.drafts.abandoned_after_days < 1:
        result.add_error("drafts.abandoned_after_days must be at least 1")


def _validate_documents(config: RegistryConfig, result: ConfigValidationResult) -> None:
    if config.documents.min_photos < 0:
        result.add_error("documents.min_photos must be >= 0")
    for kind, types in config.documents.required_types:
        if kind not in _known_kinds():
            result.add_error(f"documents.required_types: unknown application kind '{kind}'")
        if len(set(types)) != len(types):
            result.add_warning(f"documents.required_types.{kind} lists a type twice")


def _validate_rbac(config: RegistryConfig, result: ConfigValidationResult) -> None:
    roles = {r.value for r in Role}
    capabilities = {c.value for c in Capability}
    for role, caps in config.rbac.role_capabilities:
        if role not in roles:
            result.add_error(f"rbac.role_capabilities: unknown role '{role}'")
            continue
        for cap in caps:
            if cap not in capabilities:
                result.add_error(f"rbac.role_capabilities.{role}: unknown capability '{cap}'")
            elif cap == Capability.SYSTEM_TRANSITION.value and role != Role.SYSTEM.value:
                result.add_error(
                    f"rbac.role_capabilities.{role}: '{cap}' is reserved for the system role"
                )
