"""
Configuration loader (``registry_config.loader``).

Responsibility
--------------
Reads one YAML configuration set and parses it into the frozen
``registry_config.schema`` dataclasses.  Build and test tooling only;
runtime callers go through ``registry_config.get_active_config()``.

Invariants enforced
-------------------
* ``yaml.safe_load`` only; no arbitrary object construction.
* Unknown keys are errors, not silently ignored.
* ``compute_checksum`` is a deterministic SHA-256 over canonical JSON of
  the raw document, so the same file always yields the same checksum.

Failure modes
-------------
* Missing file -> ``FileNotFoundError`` propagates.
* Malformed YAML -> ``yaml.YAMLError`` propagates.
* Wrong shape, unknown or missing keys -> ``ConfigurationError``.
"""

from __future__ import annotations

import hashlib
import json
from pathlib import Path
from typing import Any

import yaml

from registry_config.schema import (
    AllocationConfig,
    CertificateConfig,
    DocumentsConfig,
    DraftsConfig,
    InspectionConfig,
    NumberingConfig,
    RbacConfig,
    RegistryConfig,
    WorkflowConfig,
)
from registry_kernel.exceptions import ConfigurationError

_SECTIONS = (
    "numbering",
    "allocation",
    "workflow",
    "inspection",
    "certificate",
    "documents",
    "rbac",
    "drafts",
)
_TOP_LEVEL_KEYS = frozenset({"config_id", "version", "description", *_SECTIONS})


def load_yaml_file(path: Path) -> dict[str, Any]:
    """Load a YAML file; an empty file yields ``{}``."""
    with open(path) as f:
        return yaml.safe_load(f) or {}


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON serialisation of ``data``."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()


def _section(data: dict[str, Any], name: str, allowed: set[str], source: str) -> dict[str, Any]:
    section = data.get(name) or {}
    if not isinstance(section, dict):
        raise ConfigurationError([f"Section '{name}' must be a mapping"], source)
    unknown = sorted(set(section) - allowed)
    if unknown:
        raise ConfigurationError(
            [f"Unknown key(s) in '{name}': {', '.join(unknown)}"], source,
        )
    return section


def _sorted_pairs(mapping: Any, name: str, source: str) -> tuple[tuple[str, Any], ...]:
    if mapping is None:
        return ()
    if not isinstance(mapping, dict):
        raise ConfigurationError([f"'{name}' must be a mapping"], source)
    return tuple(sorted((str(k), v) for k, v in mapping.items()))


def _string_lists(mapping: Any, name: str, source: str) -> tuple[tuple[str, tuple[str, ...]], ...]:
    pairs = []
    for key, values in _sorted_pairs(mapping, name, source):
        if values is None:
            values = []
        if not isinstance(values, list):
            raise ConfigurationError([f"'{name}.{key}' must be a list"], source)
        pairs.append((key, tuple(str(v) for v in values)))
    return tuple(pairs)


def parse_numbering(data: dict[str, Any], source: str) -> NumberingConfig:
    section = _section(
        data, "numbering", {"kind_codes", "district_codes", "certificate_prefix"}, source,
    )
    return NumberingConfig(
        kind_codes=tuple(
            (k, str(v)) for k, v in _sorted_pairs(section.get("kind_codes"), "kind_codes", source)
        ),
        district_codes=tuple(
            (k, str(v))
            for k, v in _sorted_pairs(section.get("district_codes"), "district_codes", source)
        ),
        certificate_prefix=str(section.get("certificate_prefix", "HP-HST")),
    )


def parse_registry_config(data: dict[str, Any], source: str = "<memory>") -> RegistryConfig:
    """Parse a raw YAML document into a ``RegistryConfig``."""
    if not isinstance(data, dict):
        raise ConfigurationError(["Configuration document must be a mapping"], source)
    unknown = sorted(set(data) - _TOP_LEVEL_KEYS)
    if unknown:
        raise ConfigurationError([f"Unknown top-level key(s): {', '.join(unknown)}"], source)
    missing = [k for k in ("config_id", "version") if k not in data]
    if missing:
        raise ConfigurationError([f"Missing required key(s): {', '.join(missing)}"], source)

    allocation = _section(data, "allocation", {"max_attempts"}, source)
    workflow = _section(
        data,
        "workflow",
        {
            "max_reverts",
            "correction_resubmit_target",
            "issue_on_verification_when_prepaid",
            "enforce_district",
        },
        source,
    )
    inspection = _section(
        data, "inspection", {"early_override_window_days", "min_override_reason_length"}, source,
    )
    certificate = _section(data, "certificate", {"validity_years"}, source)
    documents = _section(data, "documents", {"required_types", "min_photos"}, source)
    rbac = _section(data, "rbac", {"role_capabilities"}, source)
    drafts = _section(
        data, "drafts", {"single_open_service_request", "abandoned_after_days"}, source,
    )

    return RegistryConfig(
        config_id=str(data["config_id"]),
        version=int(data["version"]),
        description=str(data.get("description") or ""),
        numbering=parse_numbering(data, source),
        allocation=AllocationConfig(
            max_attempts=int(allocation.get("max_attempts", 5)),
        ),
        workflow=WorkflowConfig(
            max_reverts=(
                None if workflow.get("max_reverts", 1) is None
                else int(workflow.get("max_reverts", 1))
            ),
            correction_resubmit_target=str(
                workflow.get("correction_resubmit_target", "origin")
            ),
            issue_on_verification_when_prepaid=bool(
                workflow.get("issue_on_verification_when_prepaid", True)
            ),
            enforce_district=bool(workflow.get("enforce_district", True)),
        ),
        inspection=InspectionConfig(
            early_override_window_days=int(inspection.get("early_override_window_days", 7)),
            min_override_reason_length=int(inspection.get("min_override_reason_length", 15)),
        ),
        certificate=CertificateConfig(
            validity_years=int(certificate.get("validity_years", 1)),
        ),
        documents=DocumentsConfig(
            required_types=_string_lists(
                documents.get("required_types"), "documents.required_types", source,
            ),
            min_photos=int(documents.get("min_photos", 2)),
        ),
        rbac=RbacConfig(
            role_capabilities=_string_lists(
                rbac.get("role_capabilities"), "rbac.role_capabilities", source,
            ),
        ),
        drafts=DraftsConfig(
            single_open_service_request=bool(drafts.get("single_open_service_request", True)),
            abandoned_after_days=int(drafts.get("abandoned_after_days", 180)),
        ),
        checksum=compute_checksum(data),
    )


def load_registry_config(path: Path) -> RegistryConfig:
    """Load and parse the configuration set at ``path``."""
    return parse_registry_config(load_yaml_file(path), source=str(path))
