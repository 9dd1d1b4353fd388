"""Tests for the dependency, network and port validators."""
from __future__ import annotations

import socket
from pathlib import Path
from typing import Callable, List, Tuple

import pytest

import sys
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from mediastack.models import SelectionContext, Service, Severity, ValidationResult
from mediastack.registry import ServiceRegistry
from mediastack.validation import run_validation
from mediastack.validators.dependency_validator import (
    DependencyValidator,
    format_dependency_error,
    get_missing_dependencies,
    suggest_dependencies,
)
from mediastack.validators.network_validator import (
    NetworkValidator,
    check_service_network,
    network_definition,
)
from mediastack.validators.port_validator import (
    PortConflictValidator,
    effective_ports,
    exposed_ports,
    get_port_conflicts,
    is_port_in_use,
)

ContextFactory = Callable[..., SelectionContext]


def _free(port: int, protocol: str) -> bool:
    return False


class TestValidationResult:
    """Tests for the result container."""

    def test_empty_result_is_valid(self):
        assert ValidationResult().valid is True

    def test_warning_keeps_result_valid(self):
        result = ValidationResult()
        result.add("ports", "busy", Severity.warning)
        assert result.valid is True
        assert result.has_warnings()
        assert not result.has_errors()

    @pytest.mark.parametrize("severity", [Severity.error, Severity.critical])
    def test_error_invalidates(self, severity: Severity):
        result = ValidationResult()
        result.add("ports", "conflict", severity)
        assert result.valid is False
        assert result.errors[0].severity == severity

    def test_merge_concatenates(self):
        first = ValidationResult()
        first.add("a", "one", Severity.error)
        second = ValidationResult()
        second.add("b", "two", Severity.warning)
        merged = first.merge(second)
        assert [issue.field for issue in merged.errors] == ["a"]
        assert [issue.field for issue in merged.warnings] == ["b"]

    def test_valid_serialized(self):
        result = ValidationResult()
        result.add("a", "one", Severity.critical)
        assert result.model_dump(mode="json")["valid"] is False

    def test_issue_string(self):
        result = ValidationResult()
        result.add("ports", "conflict", Severity.error)
        assert str(result.errors[0]) == "[ERROR] ports: conflict"


class TestDependencyValidator:
    """Tests for dependency checks."""

    def test_radarr_alone_reports_two_errors(self, make_context: ContextFactory):
        result = DependencyValidator(make_context(["radarr"])).validate()
        assert result.valid is False
        messages = [issue.message for issue in result.get_field_errors("dependencies")]
        assert messages == [
            "Service 'Radarr' requires 'qBittorrent' but it is not selected",
            "Service 'Radarr' requires 'Prowlarr' but it is not selected",
        ]

    def test_satisfied_dependencies(self, make_context: ContextFactory):
        result = DependencyValidator(make_context(["qbittorrent", "prowlarr", "radarr", "sonarr"])).validate()
        assert result.get_field_errors("dependencies") == []
        assert result.valid is True

    def test_jellyseerr_without_jellyfin(self, make_context: ContextFactory):
        result = DependencyValidator(make_context(["jellyseerr"])).validate()
        assert len(result.errors) == 1
        assert "'Jellyfin'" in result.errors[0].message

    def test_no_dependencies(self, make_context: ContextFactory):
        result = DependencyValidator(make_context(["jellyfin"])).validate()
        assert result.errors == []
        assert result.warnings == []

    def test_unknown_dependency_uses_raw_id(
        self, registry: ServiceRegistry, make_service: Callable[..., Service]
    ):
        orphan = make_service("orphan", dependencies=["ghost"])
        context = SelectionContext(services=[orphan], registry=registry)
        result = DependencyValidator(context).validate()
        assert result.errors[0].message == "Service 'Orphan' requires 'ghost' but it is not selected"

    def test_vpn_without_gateway_is_critical(self, make_context: ContextFactory):
        context = make_context(["radarr"], vpn_enabled=True, normalize=False)
        result = DependencyValidator(context).validate()
        assert len(result.errors) == 3
        critical = [issue for issue in result.errors if issue.severity == Severity.critical]
        assert len(critical) == 1
        assert critical[0].field == "vpn"

    def test_vpn_with_gateway_and_dependencies(self, make_context: ContextFactory):
        context = make_context(["gluetun", "qbittorrent", "prowlarr", "radarr"], vpn_enabled=True)
        result = DependencyValidator(context).validate()
        assert result.valid is True

    def test_missing_dependency_map(self, make_context: ContextFactory):
        missing = get_missing_dependencies(make_context(["radarr", "jellyfin"]))
        assert missing == {"Radarr": ["qBittorrent", "Prowlarr"]}

    def test_suggestions(self, make_context: ContextFactory):
        assert suggest_dependencies(make_context(["radarr", "sonarr", "jellyseerr"])) == [
            "Jellyfin",
            "Prowlarr",
            "qBittorrent",
        ]

    def test_format_dependency_error(self):
        assert format_dependency_error("Radarr", []) == ""
        assert format_dependency_error("Radarr", ["Prowlarr"]) == "Service 'Radarr' requires 'Prowlarr'"
        assert (
            format_dependency_error("Radarr", ["qBittorrent", "Prowlarr"])
            == "Service 'Radarr' requires: qBittorrent, Prowlarr"
        )


class TestNetworkValidator:
    """Tests for network mode compatibility."""

    def test_requires_vpn_without_vpn(self, make_service: Callable[..., Service]):
        service = make_service("tunnelled", requires_vpn=True, supports_vpn=True)
        assert check_service_network(service, vpn_enabled=False) == (
            "Service 'Tunnelled' requires VPN but VPN mode is disabled"
        )

    def test_requires_vpn_with_vpn(self, make_service: Callable[..., Service]):
        service = make_service("tunnelled", requires_vpn=True, supports_vpn=True)
        assert check_service_network(service, vpn_enabled=True) is None

    def test_vpn_optional_service_compatible(self, registry: ServiceRegistry):
        assert check_service_network(registry.get("jellyfin"), vpn_enabled=True) is None

    def test_missing_bridge_networks(self, make_service: Callable[..., Service]):
        service = make_service("bare", network={"bridge_mode": {"hostname": "bare"}})
        assert check_service_network(service, vpn_enabled=False) == (
            "Service 'Bare' has no bridge network configuration"
        )
        assert check_service_network(service, vpn_enabled=True) is None

    def test_first_failing_rule_only(self, make_service: Callable[..., Service]):
        service = make_service(
            "both", requires_vpn=True, network={"bridge_mode": {"hostname": "both"}}
        )
        assert "requires VPN" in check_service_network(service, vpn_enabled=False)

    def test_gateway_in_bridge_mode_rejected(self, make_context: ContextFactory):
        result = NetworkValidator(make_context(["gluetun", "jellyfin"])).validate()
        assert len(result.errors) == 1
        assert result.errors[0].field == "network"
        assert "Gluetun" in result.errors[0].message

    def test_scan_continues_across_services(
        self, registry: ServiceRegistry, make_service: Callable[..., Service]
    ):
        services = [
            make_service("first", requires_vpn=True),
            make_service("second", network={"bridge_mode": {"hostname": "second"}}),
            registry.get("jellyfin"),
        ]
        context = SelectionContext(services=services, registry=registry)
        result = NetworkValidator(context).validate()
        assert len(result.errors) == 2

    def test_catalog_valid_in_vpn_mode(self, registry: ServiceRegistry, make_context: ContextFactory):
        ids = [service.id for service in registry.filter_by_vpn_compatibility(True)]
        result = NetworkValidator(make_context(ids, vpn_enabled=True)).validate()
        assert result.errors == []

    def test_network_definition(self):
        assert network_definition(vpn_enabled=False) == {"name": "media", "driver": "bridge"}
        assert network_definition(vpn_enabled=True) is None


class TestPortConflictValidator:
    """Tests for host port collisions and in-use warnings."""

    def test_shared_web_port_in_bridge_mode(self, make_context: ContextFactory):
        result = PortConflictValidator(make_context(["qbittorrent", "sabnzbd"]), probe=_free).validate()
        port_errors = result.get_field_errors("ports")
        assert len(port_errors) == 1
        assert "8080/tcp" in port_errors[0].message
        assert "qBittorrent" in port_errors[0].message
        assert "SABnzbd" in port_errors[0].message

    def test_shared_web_port_in_vpn_mode(self, make_context: ContextFactory):
        context = make_context(["qbittorrent", "sabnzbd"], vpn_enabled=True)
        result = PortConflictValidator(context, probe=_free).validate()
        assert len(result.get_field_errors("ports")) == 1

    def test_same_port_different_protocol(self, make_context: ContextFactory):
        result = PortConflictValidator(make_context(["qbittorrent"]), probe=_free).validate()
        assert result.valid is True

    def test_in_use_port_is_only_a_warning(self, make_context: ContextFactory):
        calls: List[Tuple[int, str]] = []

        def probe(port: int, protocol: str) -> bool:
            calls.append((port, protocol))
            return port == 7878

        context = make_context(["qbittorrent", "prowlarr", "radarr"])
        result = PortConflictValidator(context, probe=probe).validate()
        assert result.valid is True
        assert len(result.warnings) == 1
        assert "7878/tcp" in result.warnings[0].message
        assert (6881, "udp") in calls

    def test_vpn_mode_ignores_gateway_ports(
        self, registry: ServiceRegistry, make_service: Callable[..., Service]
    ):
        gateway = make_service(
            "gluetun", category="vpn", ports=[{"host": 8000, "container": 8000}]
        )
        app = make_service("app", ports=[{"host": 8000, "container": 8000}])
        context = SelectionContext(services=[gateway, app], registry=registry, vpn_enabled=True)
        assert PortConflictValidator(context, probe=_free).validate().valid is True
        bridge = SelectionContext(services=[gateway, app], registry=registry, vpn_enabled=False)
        assert PortConflictValidator(bridge, probe=_free).validate().valid is False

    def test_effective_ports_attribute_owners(self, make_context: ContextFactory):
        context = make_context(["jellyfin"], vpn_enabled=True)
        pairs = effective_ports(context.services, vpn_enabled=True)
        assert {owner for _mapping, owner in pairs} == {"Jellyfin"}
        assert [mapping.label for mapping, _owner in pairs] == ["8096/tcp", "7359/udp", "1900/udp"]

    def test_exposed_ports_deduplicated(self, make_service: Callable[..., Service]):
        mapping = {"host": 9000, "container": 9000, "protocol": "tcp"}
        services = [
            make_service("gluetun", category="vpn"),
            make_service("one", ports=[mapping]),
            make_service("two", ports=[mapping, {"host": 9001, "container": 9001}]),
        ]
        assert [port.label for port in exposed_ports(services)] == ["9000/tcp", "9001/tcp"]

    def test_get_port_conflicts(self, make_context: ContextFactory):
        conflicts = get_port_conflicts(make_context(["qbittorrent", "sabnzbd", "radarr"]))
        assert conflicts == {"8080/tcp": ["qBittorrent", "SABnzbd"]}

    def test_probe_detects_bound_port(self):
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as listener:
            listener.bind(("0.0.0.0", 0))
            listener.listen(1)
            port = listener.getsockname()[1]
            assert is_port_in_use(port, "tcp") is True


class TestRunValidation:
    """Scenario tests across all validators."""

    def test_radarr_alone(self, make_context: ContextFactory):
        result = run_validation(make_context(["radarr"]), probe=_free)
        assert result.valid is False
        assert len(result.errors) == 2
        assert all(issue.field == "dependencies" for issue in result.errors)

    def test_full_vpn_stack(self, make_context: ContextFactory):
        context = make_context(["gluetun", "qbittorrent", "prowlarr", "radarr"], vpn_enabled=True)
        result = run_validation(context, probe=_free)
        assert result.valid is True
        assert result.errors == []

    def test_port_collision(self, make_context: ContextFactory):
        result = run_validation(make_context(["qbittorrent", "sabnzbd"]), probe=_free)
        assert len(result.errors) == 1
        assert result.errors[0].field == "ports"

    @pytest.mark.parametrize("vpn_enabled", [False, True])
    def test_jellyfin_alone(self, make_context: ContextFactory, vpn_enabled: bool):
        result = run_validation(make_context(["jellyfin"], vpn_enabled=vpn_enabled), probe=_free)
        assert result.valid is True
        assert result.errors == []
        assert result.warnings == []

    def test_order_independent(self, make_context: ContextFactory):
        first = run_validation(make_context(["radarr", "sabnzbd", "qbittorrent"]), probe=_free)
        second = run_validation(make_context(["qbittorrent", "sabnzbd", "radarr"]), probe=_free)
        assert [i.message for i in first.errors] == [i.message for i in second.errors]
