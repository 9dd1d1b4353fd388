"""Pytest configuration and shared fixtures."""
from __future__ import annotations

import tempfile
from pathlib import Path
from typing import Any, Callable, Dict, Generator, List
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

# Add project root to path
import sys
sys.path.insert(0, str(Path(__file__).parent.parent))

from mediastack.compose import ComposeOrchestrator, normalize_selection
from mediastack.models import SelectionContext, Service
from mediastack.registry import ServiceRegistry, default_registry


def _ports_free(port: int, protocol: str) -> bool:
    return False


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def registry() -> ServiceRegistry:
    """The registry built from the bundled catalog."""
    return default_registry()


@pytest.fixture
def orchestrator(registry: ServiceRegistry) -> ComposeOrchestrator:
    """Orchestrator whose host port probe never reports a bound port."""
    return ComposeOrchestrator(registry, probe=_ports_free)


@pytest.fixture
def make_context(registry: ServiceRegistry) -> Callable[..., SelectionContext]:
    """Build a normalized selection context from catalog ids."""

    def _make(service_ids: List[str], vpn_enabled: bool = False, normalize: bool = True) -> SelectionContext:
        ids = normalize_selection(service_ids, vpn_enabled) if normalize else list(service_ids)
        return SelectionContext(
            services=registry.sort_services(registry.get_many(ids)),
            registry=registry,
            vpn_enabled=vpn_enabled,
        )

    return _make


@pytest.fixture
def make_service() -> Callable[..., Service]:
    """Build a synthetic catalog entry; keyword arguments override the defaults."""

    def _make(service_id: str, **overrides: Any) -> Service:
        data: Dict[str, Any] = {
            "id": service_id,
            "name": service_id.capitalize(),
            "category": "media",
            "image": f"example/{service_id}:latest",
            "container_name": service_id,
            "network": {
                "bridge_mode": {"hostname": service_id, "networks": ["media"]},
                "vpn_mode": {"network_mode": "service:gluetun"},
            },
        }
        data.update(overrides)
        return Service.model_validate(data)

    return _make


@pytest.fixture
def sample_request(temp_dir: Path) -> Dict[str, Any]:
    """A valid bridge-mode generation request writing into ``temp_dir``."""
    return {
        "services": ["qbittorrent", "prowlarr", "radarr"],
        "vpn_enabled": False,
        "base_path": str(temp_dir / "media"),
        "output_dir": str(temp_dir / "out"),
        "environment": {
            "project_name": "teststack",
            "timezone": "Europe/Lisbon",
            "puid": 1001,
            "pgid": 1001,
            "umask": "022",
        },
    }


@pytest.fixture
def api_client(orchestrator: ComposeOrchestrator) -> Generator[TestClient, None, None]:
    """Create a test client for the FastAPI app."""
    from mediastack.app import app

    # Patch the module-level orchestrator used by app routes
    with patch("mediastack.app.orchestrator", orchestrator):
        with TestClient(app) as client:
            yield client
