"""Checks that each selected service can run in the active network mode."""
from __future__ import annotations

from typing import Dict, Optional

from mediastack.constants import BRIDGE_NETWORK_DRIVER, BRIDGE_NETWORK_NAME, FIELD_NETWORK
from mediastack.models import SelectionContext, Service, Severity, ValidationResult


def check_service_network(service: Service, vpn_enabled: bool) -> Optional[str]:
    """Return the message of the first rule ``service`` breaks, or None."""
    if service.requires_vpn and not vpn_enabled:
        return f"Service '{service.name}' requires VPN but VPN mode is disabled"

    if vpn_enabled:
        if not service.is_gateway and not service.is_compatible_with_vpn(True):
            return f"Service '{service.name}' is not compatible with VPN mode"
        return None

    if not service.network.bridge_mode.networks:
        return f"Service '{service.name}' has no bridge network configuration"
    return None


def network_definition(vpn_enabled: bool) -> Optional[Dict[str, str]]:
    """Top-level network for the manifest; VPN mode shares the gateway's stack instead."""
    if vpn_enabled:
        return None
    return {"name": BRIDGE_NETWORK_NAME, "driver": BRIDGE_NETWORK_DRIVER}


class NetworkValidator:
    """Applies the per-service network rules across the whole selection."""

    def __init__(self, context: SelectionContext) -> None:
        self.context = context

    def validate(self) -> ValidationResult:
        result = ValidationResult()
        for service in self.context.services:
            message = check_service_network(service, self.context.vpn_enabled)
            if message:
                result.add(FIELD_NETWORK, message, Severity.error, code="NETWORK_MODE")
        return result
