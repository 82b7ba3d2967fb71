from fastapi import APIRouter

from api.v1.auth import router as auth_router
from api.v1.workspace import router as workspace_router
from schemas.dto.responses.common import ErrorResponse

# Every AppError subclass renders as ErrorResponse
ERROR_RESPONSES = {
    status: {"model": ErrorResponse}
    for status in (400, 401, 403, 404, 409, 410, 503)
}

api_v1 = APIRouter(prefix="/api/v1", responses=ERROR_RESPONSES)
api_v1.include_router(auth_router)
api_v1.include_router(workspace_router)
