"""FastAPI entrypoint exposing the service catalog and the generator."""
from __future__ import annotations

from typing import Dict, List, Optional

from fastapi import FastAPI, HTTPException

from .compose import ComposeOrchestrator
from .errors import ServiceNotFoundError
from .models import GenerateRequest, GenerationResult, Service, ValidationResult
from .registry import default_registry

app = FastAPI(title="Media Stack Generator", version="0.1.0")
registry = default_registry()
orchestrator = ComposeOrchestrator(registry)


@app.get("/api/services", response_model=List[Service])
def list_services(vpn: Optional[bool] = None) -> List[Service]:
    """Return the catalog, or only the services selectable in the given VPN mode."""
    if vpn is None:
        return registry.all_services()
    return registry.filter_by_vpn_compatibility(vpn)


@app.get("/api/services/{service_id}", response_model=Service)
def get_service(service_id: str) -> Service:
    try:
        return registry.get(service_id)
    except ServiceNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc


@app.get("/api/categories", response_model=Dict[str, List[str]])
def list_categories() -> Dict[str, List[str]]:
    """Return service ids grouped by category, in display order."""
    return {
        category.value: [service.id for service in registry.all_by_category(category)]
        for category in registry.categories()
    }


@app.post("/api/validate", response_model=ValidationResult)
def validate_selection(request: GenerateRequest) -> ValidationResult:
    return orchestrator.validate(
        request.services, request.vpn_enabled, request.base_path, request.output_dir
    )


@app.post("/api/preview", response_model=GenerationResult)
def preview_stack(request: GenerateRequest) -> GenerationResult:
    """Render the manifest and env file without writing anything."""
    return orchestrator.run(request, write=False)


@app.post("/api/generate", response_model=GenerationResult)
def generate_stack(request: GenerateRequest) -> GenerationResult:
    """Render and write docker-compose.yml and .env to the requested directory."""
    try:
        result = orchestrator.run(request, write=True)
    except OSError as exc:
        raise HTTPException(status_code=500, detail=str(exc)) from exc
    if not result.ok:
        raise HTTPException(
            status_code=422, detail=result.validation.model_dump(mode="json")
        )
    return result
