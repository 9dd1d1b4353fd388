"""Checks that every selected service has its declared dependencies selected."""
from __future__ import annotations

from typing import Dict, List

from mediastack.constants import FIELD_DEPENDENCIES, FIELD_VPN, GATEWAY_SERVICE_ID
from mediastack.models import SelectionContext, Severity, ValidationResult


class DependencyValidator:
    """Reports missing dependencies; never adds them to the selection.

    The dependency graph is assumed acyclic by construction of the catalog,
    so no cycle detection happens here.
    """

    def __init__(self, context: SelectionContext) -> None:
        self.context = context

    def validate(self) -> ValidationResult:
        result = ValidationResult()
        selected = self.context.selected_ids()
        registry = self.context.registry

        for service in self.context.services:
            for dep_id in service.dependencies:
                if dep_id in selected:
                    continue
                result.add(
                    FIELD_DEPENDENCIES,
                    f"Service '{service.name}' requires '{registry.display_name(dep_id)}' "
                    "but it is not selected",
                    Severity.error,
                    code="MISSING_DEPENDENCY",
                )

        # Unreachable after normalization injects the gateway.
        if self.context.vpn_enabled and GATEWAY_SERVICE_ID not in selected:
            result.add(
                FIELD_VPN,
                f"VPN mode is enabled but {registry.display_name(GATEWAY_SERVICE_ID)} "
                "service is not included",
                Severity.critical,
                code="GATEWAY_MISSING",
            )

        return result


def get_missing_dependencies(context: SelectionContext) -> Dict[str, List[str]]:
    """Map each service name to the names of its unselected dependencies."""
    selected = context.selected_ids()
    missing: Dict[str, List[str]] = {}
    for service in context.services:
        names = [
            context.registry.display_name(dep_id)
            for dep_id in service.dependencies
            if dep_id not in selected
        ]
        if names:
            missing[service.name] = names
    return missing


def suggest_dependencies(context: SelectionContext) -> List[str]:
    """Names of known services that would close every dependency gap."""
    selected = context.selected_ids()
    suggestions = {
        dep_id
        for service in context.services
        for dep_id in service.dependencies
        if dep_id not in selected and context.registry.has(dep_id)
    }
    return sorted(context.registry.display_name(dep_id) for dep_id in suggestions)


def format_dependency_error(service_name: str, missing: List[str]) -> str:
    if not missing:
        return ""
    if len(missing) == 1:
        return f"Service '{service_name}' requires '{missing[0]}'"
    return f"Service '{service_name}' requires: {', '.join(missing)}"
