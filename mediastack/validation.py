"""Runs every selection validator and merges their findings."""
from __future__ import annotations

from .models import SelectionContext, ValidationResult
from .validators.dependency_validator import DependencyValidator
from .validators.network_validator import NetworkValidator
from .validators.port_validator import PortConflictValidator, PortProbe, is_port_in_use


def run_validation(context: SelectionContext, probe: PortProbe = is_port_in_use) -> ValidationResult:
    """Collect all findings for the selection; no validator stops the scan early."""
    result = ValidationResult()
    validators = [
        DependencyValidator(context),
        NetworkValidator(context),
        PortConflictValidator(context, probe=probe),
    ]
    for validator in validators:
        result.merge(validator.validate())
    return result
