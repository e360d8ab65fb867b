"""Provider inventory and health endpoints."""

from typing import Any, Dict, List

from fastapi import APIRouter

from app.api.dependencies import Registry

router = APIRouter(prefix="/providers", tags=["providers"])


@router.get("")
def list_providers(registry: Registry) -> Dict[str, List[Dict[str, str]]]:
    """List configured providers in the order they are attempted."""

    return {
        "providers": [
            {"name": adapter.name, "model": adapter.model} for adapter in registry.ordered()
        ]
    }


@router.get("/health")
async def providers_health(registry: Registry) -> Dict[str, bool]:
    """Health-check every configured provider."""

    return await registry.health()


@router.get("/stats")
async def providers_stats(registry: Registry) -> Dict[str, Dict[str, Any]]:
    """Per-provider model catalogue, features and current health."""

    return await registry.stats()
