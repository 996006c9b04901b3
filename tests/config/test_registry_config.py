"""Tests for loading, validating and bridging the YAML configuration set."""

from __future__ import annotations

import dataclasses

import pytest
import yaml

from registry_config import DEFAULT_CONFIG_PATH, get_active_config
from registry_config.bridges import build_kernel_policies, build_rbac_table
from registry_config.loader import compute_checksum, load_yaml_file, parse_registry_config
from registry_config.schema import NumberingConfig, RbacConfig, RegistryConfig
from registry_config.validator import validate_configuration
from registry_kernel.domain.rbac import DEFAULT_RBAC, Capability, Role
from registry_kernel.domain.statuses import ApplicationKind
from registry_kernel.exceptions import ConfigurationError


def _raw() -> dict:
    return load_yaml_file(DEFAULT_CONFIG_PATH)


class TestDefaultSet:

    def test_loads_and_validates(self, captured_logs):
        config = get_active_config()

        assert config.config_id == "hp-homestay-registration"
        assert config.version == 1
        assert config.workflow.max_reverts == 1
        assert config.inspection.early_override_window_days == 7
        assert config.numbering.kind_codes_dict()["add_rooms"] == "HP-AR"
        assert len(config.checksum) == 64
        traces = [r for r in captured_logs() if r["message"] == "REGISTRY_CONFIG_TRACE"]
        assert traces[0]["checksum"] == config.checksum

    def test_checksum_is_deterministic(self):
        assert get_active_config().checksum == get_active_config().checksum
        assert compute_checksum({"b": 1, "a": 2}) == compute_checksum({"a": 2, "b": 1})

    def test_checksum_follows_content(self):
        raw = _raw()
        changed = dict(raw, version=2)
        assert parse_registry_config(raw).checksum != parse_registry_config(changed).checksum


class TestLoaderErrors:

    def test_unknown_top_level_key(self):
        with pytest.raises(ConfigurationError, match="Unknown top-level"):
            parse_registry_config(dict(_raw(), ledger={}))

    def test_unknown_section_key(self):
        raw = _raw()
        raw["workflow"] = dict(raw["workflow"], max_revert=2)
        with pytest.raises(ConfigurationError) as exc_info:
            parse_registry_config(raw, source="test.yaml")
        assert exc_info.value.source == "test.yaml"
        assert "max_revert" in exc_info.value.errors[0]

    def test_missing_version(self):
        raw = _raw()
        del raw["version"]
        with pytest.raises(ConfigurationError, match="version"):
            parse_registry_config(raw)

    def test_section_must_be_mapping(self):
        with pytest.raises(ConfigurationError, match="must be a mapping"):
            parse_registry_config(dict(_raw(), inspection=[7, 15]))

    def test_document_not_a_mapping(self):
        with pytest.raises(ConfigurationError):
            parse_registry_config(["not", "a", "mapping"])

    def test_null_max_reverts_means_unlimited(self):
        raw = _raw()
        raw["workflow"] = dict(raw["workflow"], max_reverts=None)
        assert parse_registry_config(raw).workflow.max_reverts is None

    def test_omitted_sections_take_defaults(self):
        config = parse_registry_config({"config_id": "minimal", "version": 3})
        assert config.allocation.max_attempts == 5
        assert config.certificate.validity_years == 1
        assert config.drafts.abandoned_after_days == 180


class TestValidator:

    def _config(self, **changes) -> RegistryConfig:
        return dataclasses.replace(get_active_config(), **changes)

    def test_default_set_is_valid(self):
        result = validate_configuration(get_active_config())
        assert result.is_valid
        assert result.warnings == []

    def test_unknown_kind_code(self):
        numbering = NumberingConfig(
            kind_codes=get_active_config().numbering.kind_codes + (("houseboat", "HP-HB"),),
        )
        result = validate_configuration(self._config(numbering=numbering))
        assert "numbering.kind_codes: unknown application kind 'houseboat'" in result.errors

    def test_duplicate_and_malformed_codes(self):
        numbering = NumberingConfig(
            kind_codes=(("add_rooms", "HP-X"), ("delete_rooms", "HP-X"), ("renewal", "hp rn")),
        )
        result = validate_configuration(self._config(numbering=numbering))
        assert any("used by both" in e for e in result.errors)
        assert any("invalid code 'hp rn'" in e for e in result.errors)

    def test_limits(self):
        config = self._config(
            allocation=dataclasses.replace(get_active_config().allocation, max_attempts=0),
            certificate=dataclasses.replace(get_active_config().certificate, validity_years=0),
        )
        result = validate_configuration(config)
        assert "allocation.max_attempts must be at least 1" in result.errors
        assert "certificate.validity_years must be at least 1" in result.errors

    def test_system_capability_reserved(self):
        rbac = RbacConfig(role_capabilities=(("dealing_assistant", ("system.transition",)),))
        result = validate_configuration(self._config(rbac=rbac))
        assert not result.is_valid
        assert "reserved for the system role" in result.errors[0]

    def test_unknown_role_and_capability(self):
        rbac = RbacConfig(role_capabilities=(
            ("auditor", ("application.decide",)),
            ("state_officer", ("application.teleport",)),
        ))
        result = validate_configuration(self._config(rbac=rbac))
        assert "rbac.role_capabilities: unknown role 'auditor'" in result.errors
        assert any("application.teleport" in e for e in result.errors)


class TestActiveConfigFile:

    def test_invalid_file_raises(self, tmp_path):
        raw = _raw()
        raw["certificate"] = {"validity_years": 0}
        path = tmp_path / "broken.yaml"
        path.write_text(yaml.safe_dump(raw))

        with pytest.raises(ConfigurationError) as exc_info:
            get_active_config(path)

        assert exc_info.value.source == str(path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            get_active_config(tmp_path / "absent.yaml")


class TestBridges:

    def test_policies_follow_config(self):
        config = get_active_config()
        policies = build_kernel_policies(config)

        assert policies.allocation.max_attempts == 5
        assert policies.workflow.max_reverts == 1
        assert policies.inspection.min_override_reason_length == 15
        assert policies.documents.required_for(ApplicationKind.CANCELLATION) == frozenset()
        assert policies.documents.required_for(ApplicationKind.RENEWAL) == {"undertaking_form_c"}
        assert policies.formatter.application_number(
            1, ApplicationKind.NEW_REGISTRATION, "Kullu", 2025,
        ) == "HP-HS-2025-KLU-000001"
        assert policies.formatter.certificate_number(7, 2026) == "HP-HST-2026-000007"

    def test_empty_rbac_keeps_defaults(self):
        assert build_rbac_table(get_active_config()) is DEFAULT_RBAC

    def test_rbac_override_replaces_role(self):
        config = dataclasses.replace(
            get_active_config(),
            rbac=RbacConfig(role_capabilities=(("state_officer", ("application.decide",)),)),
        )
        table = build_rbac_table(config)
        assert table.capabilities_for([Role.STATE_OFFICER]) == {Capability.APPLICATION_DECIDE}
        assert Capability.INSPECTION_SCHEDULE in table.capabilities_for(
            [Role.DISTRICT_TOURISM_OFFICER]
        )
