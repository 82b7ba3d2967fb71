"""
Health check endpoint.

GET /health checks MongoDB connectivity. MongoDB failure means "unhealthy"
(503); the app cannot authenticate anyone without it.
"""

from __future__ import annotations

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from schemas.dto.responses.common import HealthResponse

router = APIRouter(tags=["health"])


@router.get(
    "/health",
    response_model=HealthResponse,
    responses={503: {"model": HealthResponse, "description": "MongoDB is unreachable"}},
)
async def health_check(request: Request) -> JSONResponse:
    checks: dict[str, str] = {}
    overall = "healthy"

    try:
        db = request.app.state.db
        await db.client.admin.command("ping")
        checks["mongodb"] = "ok"
    except Exception:
        checks["mongodb"] = "error"
        overall = "unhealthy"

    registry = getattr(request.app.state, "registry", None)
    if registry is not None:
        checks["active_clients"] = str(len(registry))

    status_code = 503 if overall == "unhealthy" else 200
    return JSONResponse(
        status_code=status_code,
        content=HealthResponse(status=overall, checks=checks).model_dump(),
    )
