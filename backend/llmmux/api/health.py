"""
Health Check Route
"""

from fastapi import APIRouter

from llmmux.api.deps import ContainerDep

router = APIRouter(tags=["Health"])


@router.get("/healthz")
async def healthz(container: ContainerDep):
    """Probe every known backend; unauthenticated"""
    return await container.health.check()
