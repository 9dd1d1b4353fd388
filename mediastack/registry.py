"""Service catalog loading and lookup."""
from __future__ import annotations

import logging
from functools import lru_cache
from pathlib import Path
from typing import Dict, Iterable, List

import yaml
from pydantic import ValidationError

from .constants import CATALOG_DIR, CATEGORY_ORDER, GATEWAY_SERVICE_ID
from .errors import CatalogError, ServiceNotFoundError
from .models import Service, ServiceCategory

log = logging.getLogger(__name__)


def _sort_key(service: Service) -> tuple[int, str, str]:
    return (CATEGORY_ORDER.index(service.category.value), service.name.casefold(), service.id)


def load_catalog(directory: Path = CATALOG_DIR) -> List[Service]:
    """Parse every ``*.yaml`` service definition in ``directory``.

    Any unreadable or malformed file aborts the whole load; a partially
    populated registry is never returned.
    """
    if not directory.is_dir():
        raise CatalogError(f"Service catalog directory not found: {directory}")

    services: List[Service] = []
    for path in sorted(directory.glob("*.yaml")):
        try:
            data = yaml.safe_load(path.read_text())
        except (OSError, yaml.YAMLError) as exc:
            raise CatalogError(f"Failed to read service file {path.name}: {exc}") from exc
        if not isinstance(data, dict):
            raise CatalogError(f"Service file {path.name} does not contain a mapping")
        try:
            services.append(Service.model_validate(data))
        except ValidationError as exc:
            raise CatalogError(f"Failed to parse service file {path.name}: {exc}") from exc

    if not services:
        raise CatalogError(f"No service definitions found in {directory}")

    log.debug("Loaded %d service definitions from %s", len(services), directory)
    return services


class ServiceRegistry:
    """Read-only index of the service catalog by id and by category."""

    def __init__(self, services: Iterable[Service]) -> None:
        self._services: Dict[str, Service] = {}
        self._by_category: Dict[ServiceCategory, List[Service]] = {}

        for service in services:
            if service.id in self._services:
                raise CatalogError(f"Duplicate service id in catalog: {service.id}")
            self._services[service.id] = service
            self._by_category.setdefault(service.category, []).append(service)

        for members in self._by_category.values():
            members.sort(key=lambda item: item.name.casefold())

    @classmethod
    def from_directory(cls, directory: Path = CATALOG_DIR) -> "ServiceRegistry":
        return cls(load_catalog(directory))

    def __len__(self) -> int:
        return len(self._services)

    def __contains__(self, service_id: object) -> bool:
        return service_id in self._services

    def has(self, service_id: str) -> bool:
        return service_id in self._services

    def get(self, service_id: str) -> Service:
        try:
            return self._services[service_id]
        except KeyError:
            raise ServiceNotFoundError(service_id) from None

    def get_many(self, service_ids: Iterable[str]) -> List[Service]:
        """Resolve ids in order, failing on the first unknown id."""
        return [self.get(service_id) for service_id in service_ids]

    def all_services(self) -> List[Service]:
        return self.sort_services(self._services.values())

    def all_by_category(self, category: ServiceCategory | str) -> List[Service]:
        return list(self._by_category.get(ServiceCategory(category), []))

    def categories(self) -> List[ServiceCategory]:
        """Categories that have at least one service, in display order."""
        return [
            ServiceCategory(name)
            for name in CATEGORY_ORDER
            if ServiceCategory(name) in self._by_category
        ]

    def filter_by_vpn_compatibility(self, vpn_enabled: bool) -> List[Service]:
        """Services selectable in the given mode, without the gateway itself."""
        return self.sort_services(
            service
            for service in self._services.values()
            if not service.is_gateway and service.is_compatible_with_vpn(vpn_enabled)
        )

    def gateway(self) -> Service:
        return self.get(GATEWAY_SERVICE_ID)

    def display_name(self, service_id: str) -> str:
        """Human-readable name for an id, or the raw id when it is unknown."""
        service = self._services.get(service_id)
        return service.name if service is not None else service_id

    @staticmethod
    def sort_services(services: Iterable[Service]) -> List[Service]:
        return sorted(services, key=_sort_key)


@lru_cache(maxsize=1)
def default_registry() -> ServiceRegistry:
    """Registry built from the bundled catalog, loaded once per process."""
    return ServiceRegistry.from_directory(CATALOG_DIR)
