"""
Folder Upload Routes: 폴더 업로드 릴레이 API.

- POST /api/folder-upload → multipart 수신, 검증, n8n 전달
- GET /api/folder-upload/config → 클라이언트 사전 검증용 공개 제한값
"""

from typing import Any

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from src.app.services.upload import UploadService

# Routers
api_router = APIRouter()  # API endpoints


def get_upload_service(request: Request) -> UploadService:
    """Request에서 UploadService 가져오기."""
    return request.app.state.upload_service


# =============================================================================
# API Routes
# =============================================================================

@api_router.post("")
async def folder_upload(request: Request) -> JSONResponse:
    """
    폴더 업로드.

    multipart/form-data:
    - files[]: 0개 이상 (filename = 폴더 내 상대 경로)
    - meta: JSON 객체 (선택)
    """
    service = get_upload_service(request)
    outcome = await service.handle(request)

    return JSONResponse(
        status_code=outcome.status_code,
        content=outcome.body,
        headers=outcome.headers,
    )


@api_router.get("/config")
async def upload_config(request: Request) -> dict[str, Any]:
    """공개 업로드 제한값 (시크릿 제외)."""
    return request.app.state.settings.public_limits()
