"""Centralized constants for the stack generator.

Service identities, network names, output file names and env defaults
live here instead of being repeated across validators and renderers.
"""

from __future__ import annotations

from pathlib import Path

PACKAGE_DIR = Path(__file__).resolve().parent
CATALOG_DIR = PACKAGE_DIR / "catalog"
TEMPLATES_DIR = PACKAGE_DIR / "templates"

# ---------------------------------------------------------------------------
# Categories, in display order. Registry sorting follows this order.
# ---------------------------------------------------------------------------
CATEGORY_ORDER: list[str] = [
    "download",
    "indexer",
    "media",
    "subtitles",
    "streaming",
    "request",
    "transcode",
    "vpn",
]

# ---------------------------------------------------------------------------
# VPN gateway
# The gateway is the single vpn-category service. Every other service shares
# its network namespace when VPN mode is on.
# ---------------------------------------------------------------------------
GATEWAY_SERVICE_ID = "gluetun"
GATEWAY_NETWORK_MODE = f"service:{GATEWAY_SERVICE_ID}"

# ---------------------------------------------------------------------------
# Bridge mode network
# ---------------------------------------------------------------------------
BRIDGE_NETWORK_NAME = "media"
BRIDGE_NETWORK_DRIVER = "bridge"

# ---------------------------------------------------------------------------
# Placeholder substituted by docker compose from the generated .env
# ---------------------------------------------------------------------------
BASE_PATH_PLACEHOLDER = "${BASE_PATH}"

# ---------------------------------------------------------------------------
# Output files
# ---------------------------------------------------------------------------
COMPOSE_FILENAME = "docker-compose.yml"
ENV_FILENAME = ".env"
BACKUP_TIMESTAMP_FORMAT = "%Y%m%d_%H%M%S"

# ---------------------------------------------------------------------------
# .env defaults
# ---------------------------------------------------------------------------
DEFAULT_PROJECT_NAME = "mediastack"
DEFAULT_BASE_PATH = "/opt/mediastack"
DEFAULT_TIMEZONE = "UTC"
DEFAULT_PUID = 1000
DEFAULT_PGID = 1000
DEFAULT_UMASK = "002"
DEFAULT_VPN_TYPE = "wireguard"
DEFAULT_DNS_ADDRESS = "1.1.1.1"

# ---------------------------------------------------------------------------
# Validation result field tags
# ---------------------------------------------------------------------------
FIELD_BASE_PATH = "base_path"
FIELD_DEPENDENCIES = "dependencies"
FIELD_NETWORK = "network"
FIELD_PORTS = "ports"
FIELD_SERVICES = "services"
FIELD_VPN = "vpn"
