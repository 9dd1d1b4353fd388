"""Pydantic models for the service catalog, validation results and generation requests."""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Dict, List, Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator

from .constants import (
    BASE_PATH_PLACEHOLDER,
    DEFAULT_BASE_PATH,
    DEFAULT_DNS_ADDRESS,
    DEFAULT_PGID,
    DEFAULT_PROJECT_NAME,
    DEFAULT_PUID,
    DEFAULT_TIMEZONE,
    DEFAULT_UMASK,
    DEFAULT_VPN_TYPE,
    GATEWAY_NETWORK_MODE,
)

if TYPE_CHECKING:  # pragma: no cover
    from .registry import ServiceRegistry


class ServiceCategory(str, Enum):
    download = "download"
    indexer = "indexer"
    media = "media"
    subtitles = "subtitles"
    streaming = "streaming"
    request = "request"
    transcode = "transcode"
    vpn = "vpn"


class PortMapping(BaseModel):
    model_config = ConfigDict(frozen=True)

    host: int = Field(ge=1, le=65535)
    container: int = Field(ge=1, le=65535)
    protocol: Literal["tcp", "udp"] = "tcp"

    @property
    def key(self) -> Tuple[int, str]:
        return (self.host, self.protocol)

    @property
    def label(self) -> str:
        return f"{self.host}/{self.protocol}"

    @property
    def compose_entry(self) -> str:
        return f"{self.host}:{self.container}/{self.protocol}"


class VolumeMapping(BaseModel):
    model_config = ConfigDict(frozen=True)

    host: str
    container: str
    read_only: bool = False

    @property
    def compose_entry(self) -> str:
        entry = f"{self.host}:{self.container}"
        return f"{entry}:ro" if self.read_only else entry

    def resolve_host(self, base_path: str) -> str:
        """Return the host path with the base path placeholder substituted."""
        return self.host.replace(BASE_PATH_PLACEHOLDER, base_path.rstrip("/") or "/")


class BridgeModeConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    hostname: str = ""
    networks: Tuple[str, ...] = ()


class VPNModeConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    network_mode: str = GATEWAY_NETWORK_MODE


class NetworkConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    bridge_mode: BridgeModeConfig = Field(default_factory=BridgeModeConfig)
    vpn_mode: VPNModeConfig = Field(default_factory=VPNModeConfig)


class Service(BaseModel):
    """A single deployable application from the catalog.

    Instances are built once when the registry loads and are shared,
    read-only, by every validation and render call.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1)
    name: str = Field(min_length=1)
    category: ServiceCategory
    description: str = ""
    image: str = Field(min_length=1)
    container_name: str = Field(min_length=1)
    ports: Tuple[PortMapping, ...] = ()
    volumes: Tuple[VolumeMapping, ...] = ()
    environment: Tuple[str, ...] = ()
    devices: Tuple[str, ...] = ()
    cap_add: Tuple[str, ...] = ()
    network: NetworkConfig = Field(default_factory=NetworkConfig)
    restart: str = "unless-stopped"
    supports_vpn: bool = False
    requires_vpn: bool = False
    dependencies: Tuple[str, ...] = ()
    optional: bool = False

    @property
    def is_gateway(self) -> bool:
        return self.category == ServiceCategory.vpn

    @property
    def hostname(self) -> str:
        return self.network.bridge_mode.hostname or self.id

    def is_compatible_with_vpn(self, vpn_enabled: bool) -> bool:
        if self.requires_vpn:
            return vpn_enabled
        return True

    def has_dependencies(self) -> bool:
        return len(self.dependencies) > 0


class Severity(str, Enum):
    warning = "warning"
    error = "error"
    critical = "critical"


class ValidationIssue(BaseModel):
    """A single finding reported by a validator."""

    field: str
    message: str
    severity: Severity
    code: str = ""

    def __str__(self) -> str:
        return f"[{self.severity.value.upper()}] {self.field}: {self.message}"


class ValidationResult(BaseModel):
    """Findings of one or more validators.

    ``valid`` is derived from ``errors`` so a warning can never make a
    result invalid and an error or critical finding always does.
    """

    errors: List[ValidationIssue] = Field(default_factory=list)
    warnings: List[ValidationIssue] = Field(default_factory=list)

    @computed_field  # type: ignore[misc]
    @property
    def valid(self) -> bool:
        return not self.errors

    def add(self, field: str, message: str, severity: Severity, code: str = "") -> None:
        issue = ValidationIssue(field=field, message=message, severity=severity, code=code)
        if severity == Severity.warning:
            self.warnings.append(issue)
        else:
            self.errors.append(issue)

    def merge(self, other: "ValidationResult") -> "ValidationResult":
        self.errors.extend(other.errors)
        self.warnings.extend(other.warnings)
        return self

    def has_errors(self) -> bool:
        return len(self.errors) > 0

    def has_warnings(self) -> bool:
        return len(self.warnings) > 0

    def has_critical(self) -> bool:
        return any(issue.severity == Severity.critical for issue in self.errors)

    def get_field_errors(self, field: str) -> List[ValidationIssue]:
        return [issue for issue in self.errors if issue.field == field]


@dataclass
class SelectionContext:
    """State of one generation request, built fresh per call."""

    services: List[Service]
    registry: "ServiceRegistry"
    vpn_enabled: bool = False
    base_path: str = DEFAULT_BASE_PATH
    output_dir: str = "."

    def selected_ids(self) -> set[str]:
        return {service.id for service in self.services}


def ensure_single_line(value: str) -> str:
    """Reject values that would spill into further lines of the ``.env`` file."""
    if "\n" in value or "\r" in value:
        raise ValueError("Value must not contain line breaks")
    return value


def normalize_base_path(value: str) -> str:
    if not value or not Path(value).is_absolute():
        raise ValueError("Base path must be absolute")
    ensure_single_line(value)
    return value.rstrip("/") or "/"


class VPNConfig(BaseModel):
    service_provider: str = ""
    type: Literal["wireguard", "openvpn"] = DEFAULT_VPN_TYPE
    wireguard_private_key: str = ""
    wireguard_public_key: str = ""
    wireguard_addresses: str = ""
    openvpn_user: str = ""
    openvpn_password: str = ""
    server_countries: str = ""
    port_forwarding: bool = False
    dns_address: str = DEFAULT_DNS_ADDRESS

    @field_validator(
        "service_provider",
        "wireguard_private_key",
        "wireguard_public_key",
        "wireguard_addresses",
        "openvpn_user",
        "openvpn_password",
        "server_countries",
        "dns_address",
    )
    @classmethod
    def check_single_line(cls, value: str) -> str:
        return ensure_single_line(value)

    @property
    def port_forwarding_flag(self) -> str:
        return "on" if self.port_forwarding else "off"


class EnvConfig(BaseModel):
    """Values written to ``.env``.

    ``BASE_PATH`` is not part of this model; it always comes from the
    request's ``base_path`` so the manifest, the env file and the created
    volume directories agree.
    """

    model_config = ConfigDict(extra="forbid")

    project_name: str = Field(default=DEFAULT_PROJECT_NAME, min_length=1)
    timezone: str = DEFAULT_TIMEZONE
    puid: int = Field(default=DEFAULT_PUID, ge=0)
    pgid: int = Field(default=DEFAULT_PGID, ge=0)
    umask: str = Field(default=DEFAULT_UMASK, pattern=r"^[0-7]{3,4}$")
    vpn: Optional[VPNConfig] = None
    custom_env: Dict[str, str] = Field(default_factory=dict)

    @field_validator("project_name", "timezone")
    @classmethod
    def check_single_line(cls, value: str) -> str:
        return ensure_single_line(value)

    @field_validator("custom_env")
    @classmethod
    def ensure_env_entries(cls, value: Dict[str, str]) -> Dict[str, str]:
        for key, entry in value.items():
            if not key or "=" in key or any(ch.isspace() for ch in key):
                raise ValueError(f"Invalid environment variable name: {key!r}")
            if "\n" in entry or "\r" in entry:
                raise ValueError(f"Value of {key} must not contain line breaks")
        return value


class GenerateRequest(BaseModel):
    services: List[str] = Field(default_factory=list)
    vpn_enabled: bool = False
    base_path: str = DEFAULT_BASE_PATH
    output_dir: str = "."
    environment: EnvConfig = Field(default_factory=EnvConfig)
    backup: bool = True


class GenerationResult(BaseModel):
    ok: bool
    validation: ValidationResult
    services: List[str] = Field(default_factory=list)
    compose: Optional[str] = None
    env: Optional[str] = None
    compose_path: Optional[Path] = None
    env_path: Optional[Path] = None
    created_directories: List[str] = Field(default_factory=list)
