"""Rendering of docker compose manifests and environment files from Jinja templates."""
from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, List, Optional

from jinja2 import Environment, FileSystemLoader, StrictUndefined, TemplateError

from .constants import DEFAULT_BASE_PATH, GATEWAY_NETWORK_MODE, TEMPLATES_DIR
from .errors import RenderError
from .models import EnvConfig, Service, VPNConfig
from .validators.network_validator import network_definition
from .validators.port_validator import exposed_ports


def build_environment(template_dir: Path = TEMPLATES_DIR) -> Environment:
    return Environment(
        loader=FileSystemLoader(str(template_dir)),
        trim_blocks=True,
        lstrip_blocks=True,
        keep_trailing_newline=True,
        undefined=StrictUndefined,
        autoescape=False,
    )


class ComposeStrategy(ABC):
    """Turns an already validated, sorted service list into manifest text.

    Strategies never validate; they are only called once every validator
    reported no errors.
    """

    template_name: str = ""

    def __init__(self, environment: Optional[Environment] = None) -> None:
        self.environment = environment or build_environment()

    @abstractmethod
    def build_context(self, services: List[Service]) -> Dict[str, Any]:
        ...

    def render(self, services: List[Service]) -> str:
        context = self.build_context(services)
        try:
            return self.environment.get_template(self.template_name).render(**context)
        except TemplateError as exc:
            raise RenderError(f"Failed to render {self.template_name}: {exc}") from exc


class BridgeModeStrategy(ComposeStrategy):
    """Each service joins the shared bridge network and publishes its own ports."""

    template_name = "bridge-mode.yml.j2"

    def build_context(self, services: List[Service]) -> Dict[str, Any]:
        return {
            "services": [service for service in services if not service.is_gateway],
            "network": network_definition(vpn_enabled=False),
        }


class VPNModeStrategy(ComposeStrategy):
    """All services share the gateway's network namespace; only the gateway publishes ports."""

    template_name = "vpn-mode.yml.j2"

    def build_context(self, services: List[Service]) -> Dict[str, Any]:
        gateways = [service for service in services if service.is_gateway]
        if len(gateways) != 1:
            raise RenderError(
                f"VPN mode needs exactly one gateway service, got {len(gateways)}"
            )
        return {
            "gateway": gateways[0],
            "services": [service for service in services if not service.is_gateway],
            "exposed_ports": exposed_ports(services),
            "gateway_network_mode": GATEWAY_NETWORK_MODE,
        }


def select_strategy(vpn_enabled: bool, environment: Optional[Environment] = None) -> ComposeStrategy:
    if vpn_enabled:
        return VPNModeStrategy(environment)
    return BridgeModeStrategy(environment)


class EnvRenderer:
    """Renders the ``.env`` file consumed by the compose manifest."""

    template_name = "env.j2"

    def __init__(self, environment: Optional[Environment] = None) -> None:
        self.environment = environment or build_environment()

    def render(self, env: EnvConfig, vpn_enabled: bool, base_path: str = DEFAULT_BASE_PATH) -> str:
        vpn: Optional[VPNConfig] = None
        if vpn_enabled:
            vpn = env.vpn or VPNConfig()
        try:
            template = self.environment.get_template(self.template_name)
            return template.render(env=env, vpn=vpn, base_path=base_path)
        except TemplateError as exc:
            raise RenderError(f"Failed to render {self.template_name}: {exc}") from exc
