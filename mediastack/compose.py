"""Compose orchestration: selection normalization, validation and rendering."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, List, Optional, Tuple

from jinja2 import Environment

from .constants import DEFAULT_BASE_PATH, FIELD_BASE_PATH, FIELD_SERVICES, GATEWAY_SERVICE_ID
from .errors import ServiceNotFoundError
from .models import (
    EnvConfig,
    GenerateRequest,
    GenerationResult,
    SelectionContext,
    Severity,
    ValidationResult,
    normalize_base_path,
)
from .registry import ServiceRegistry
from .rendering import EnvRenderer, build_environment, select_strategy
from .storage import OutputWriter
from .validation import run_validation
from .validators.port_validator import PortProbe, is_port_in_use

log = logging.getLogger(__name__)


def normalize_selection(
    service_ids: Iterable[str],
    vpn_enabled: bool,
    gateway_id: str = GATEWAY_SERVICE_ID,
) -> List[str]:
    """Clean up a user selection before it is resolved.

    Blank entries and repeats are dropped (first occurrence wins) and, in
    VPN mode, the gateway is prepended exactly once when it was not chosen.
    """
    normalized: List[str] = []
    for raw in service_ids:
        service_id = raw.strip()
        if service_id and service_id not in normalized:
            normalized.append(service_id)
    if vpn_enabled and gateway_id not in normalized:
        normalized.insert(0, gateway_id)
    return normalized


class ComposeOrchestrator:
    """Runs one generate or preview request against a service registry."""

    def __init__(
        self,
        registry: ServiceRegistry,
        probe: PortProbe = is_port_in_use,
        environment: Optional[Environment] = None,
    ) -> None:
        self.registry = registry
        self.probe = probe
        self.environment = environment or build_environment()
        self.env_renderer = EnvRenderer(self.environment)

    def build_context(
        self,
        service_ids: Iterable[str],
        vpn_enabled: bool,
        base_path: str = DEFAULT_BASE_PATH,
        output_dir: str = ".",
    ) -> SelectionContext:
        """Resolve a selection; raises ``ServiceNotFoundError`` on an unknown id.

        Services are kept in registry display order, so findings and output
        do not depend on the order the ids were given in.
        """
        normalized = normalize_selection(service_ids, vpn_enabled)
        return SelectionContext(
            services=self.registry.sort_services(self.registry.get_many(normalized)),
            registry=self.registry,
            vpn_enabled=vpn_enabled,
            base_path=base_path,
            output_dir=output_dir,
        )

    def _prepare(
        self,
        service_ids: Iterable[str],
        vpn_enabled: bool,
        base_path: str,
        output_dir: str,
    ) -> Tuple[Optional[SelectionContext], ValidationResult]:
        service_ids = list(service_ids)
        result = ValidationResult()

        if not normalize_selection(service_ids, vpn_enabled=False):
            result.add(FIELD_SERVICES, "No services selected", Severity.critical, code="EMPTY_SELECTION")
            return None, result

        try:
            context = self.build_context(service_ids, vpn_enabled, base_path, output_dir)
        except ServiceNotFoundError as exc:
            result.add(
                FIELD_SERVICES,
                f"Service '{exc.service_id}' not found",
                Severity.critical,
                code="UNKNOWN_SERVICE",
            )
            return None, result

        try:
            context.base_path = normalize_base_path(base_path)
        except ValueError as exc:
            result.add(FIELD_BASE_PATH, str(exc), Severity.error, code="INVALID_BASE_PATH")

        result.merge(run_validation(context, probe=self.probe))
        return context, result

    def validate(
        self,
        service_ids: Iterable[str],
        vpn_enabled: bool,
        base_path: str = DEFAULT_BASE_PATH,
        output_dir: str = ".",
    ) -> ValidationResult:
        _context, result = self._prepare(service_ids, vpn_enabled, base_path, output_dir)
        return result

    def _render(
        self,
        service_ids: Iterable[str],
        vpn_enabled: bool,
        base_path: str,
        output_dir: str,
        env: Optional[EnvConfig],
    ) -> Tuple[Optional[SelectionContext], GenerationResult]:
        context, validation = self._prepare(service_ids, vpn_enabled, base_path, output_dir)
        if context is None or validation.has_errors():
            log.warning(
                "Validation failed with %d error(s); nothing rendered", len(validation.errors)
            )
            return None, GenerationResult(ok=False, validation=validation)

        services = context.services
        strategy = select_strategy(vpn_enabled, self.environment)
        compose = strategy.render(services)
        env_text = self.env_renderer.render(env or EnvConfig(), vpn_enabled, context.base_path)
        return context, GenerationResult(
            ok=True,
            validation=validation,
            services=[service.id for service in services],
            compose=compose,
            env=env_text,
        )

    def preview(
        self,
        service_ids: Iterable[str],
        vpn_enabled: bool,
        base_path: str = DEFAULT_BASE_PATH,
        output_dir: str = ".",
        env: Optional[EnvConfig] = None,
    ) -> GenerationResult:
        """Validate and render without touching the filesystem."""
        _context, result = self._render(service_ids, vpn_enabled, base_path, output_dir, env)
        return result

    def generate(
        self,
        service_ids: Iterable[str],
        vpn_enabled: bool,
        base_path: str = DEFAULT_BASE_PATH,
        output_dir: str = ".",
        env: Optional[EnvConfig] = None,
        backup: bool = True,
        create_directories: bool = True,
    ) -> GenerationResult:
        """Validate, render, then write ``docker-compose.yml`` and ``.env``.

        Both documents are rendered in memory first; nothing is written
        when validation reports an error.
        """
        context, result = self._render(service_ids, vpn_enabled, base_path, output_dir, env)
        if context is None or result.compose is None or result.env is None:
            return result

        writer = OutputWriter(Path(output_dir))
        if create_directories:
            result.created_directories = writer.ensure_volume_directories(
                context.services, context.base_path
            )
        result.compose_path = writer.write_compose(result.compose, backup=backup)
        result.env_path = writer.write_env(result.env, backup=backup)
        log.info(
            "Generated %s (%s mode, %d services)",
            result.compose_path,
            "vpn" if vpn_enabled else "bridge",
            len(result.services),
        )
        return result

    def run(self, request: GenerateRequest, write: bool = True) -> GenerationResult:
        if not write:
            return self.preview(
                request.services,
                request.vpn_enabled,
                request.base_path,
                request.output_dir,
                request.environment,
            )
        return self.generate(
            request.services,
            request.vpn_enabled,
            request.base_path,
            request.output_dir,
            request.environment,
            backup=request.backup,
        )
