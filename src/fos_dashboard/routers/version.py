"""Version router for exposing the API version."""

from fastapi import APIRouter

from fos_dashboard.core.version import get_version

router = APIRouter(prefix="/api", tags=["version"])


@router.get("/version")
async def get_api_version() -> dict[str, str]:
    """Get the running API version."""
    return {"version": get_version(), "component": "fos-dashboard-api"}
