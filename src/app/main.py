"""
FastAPI 애플리케이션 진입점.

실행:
- 개발: uv run uvicorn src.app.main:app --reload
- 프로덕션: uv run uvicorn src.app.main:app
"""

import asyncio
import contextlib
import logging
from collections.abc import AsyncGenerator, Awaitable, Callable
from contextlib import asynccontextmanager
from typing import Any

import httpx
from dotenv import load_dotenv
from fastapi import FastAPI, Request, Response

from src.app.config import Settings, load_settings
from src.app.routes import folder_upload
from src.app.security import SECURITY_HEADERS
from src.app.services.forwarder import WebhookForwarder
from src.app.services.upload import UploadService
from src.core.logging import configure_logging
from src.core.rate_limit import RateLimiter, RateLimitStore

logger = logging.getLogger(__name__)


# =============================================================================
# Background Tasks
# =============================================================================


async def sweep_rate_limits(limiter: RateLimiter, interval_seconds: float) -> None:
    """만료된 rate limit 레코드를 주기적으로 정리."""
    while True:
        await asyncio.sleep(interval_seconds)
        limiter.sweep()


# =============================================================================
# App Factory
# =============================================================================


def create_app(
    settings: Settings | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
    rate_limit_store: RateLimitStore | None = None,
) -> FastAPI:
    """
    FastAPI 앱 생성.

    Args:
        settings: 설정 (None이면 시작 시 .env/default.yaml/환경 변수에서 로드)
        transport: 다운스트림 httpx transport (테스트용)
        rate_limit_store: rate limit 저장소 (기본: 프로세스 내 메모리)
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """
        애플리케이션 생명주기 관리.

        시작 시: 설정 로드, 서비스 구성, sweep 태스크 시작
        종료 시: sweep 태스크 취소
        """
        # Startup
        resolved = settings
        if resolved is None:
            load_dotenv()
            resolved = load_settings()

        configure_logging(resolved.log_level)
        missing = resolved.missing_required()
        if missing:
            logger.warning(f"Missing required settings: {', '.join(missing)}")

        limiter = RateLimiter(
            max_requests=resolved.rate_limit_max_requests,
            window_seconds=resolved.rate_limit_window_ms / 1000,
            store=rate_limit_store,
            enabled=resolved.rate_limit_enabled,
        )
        forwarder = WebhookForwarder(resolved.webhook_target(), transport=transport)

        app.state.settings = resolved
        app.state.rate_limiter = limiter
        app.state.upload_service = UploadService(resolved, limiter, forwarder)

        sweeper = asyncio.create_task(
            sweep_rate_limits(limiter, max(1, resolved.rate_limit_sweep_seconds))
        )

        yield

        # Shutdown
        sweeper.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await sweeper

    app = FastAPI(
        title="Folder Upload Relay",
        description="폴더 업로드 → 검증 → n8n webhook 전달",
        version="0.1.0",
        lifespan=lifespan,
    )

    @app.middleware("http")
    async def add_security_headers(
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        response = await call_next(request)
        for name, value in SECURITY_HEADERS.items():
            response.headers.setdefault(name, value)
        return response

    # API 라우트
    app.include_router(
        folder_upload.api_router, prefix="/api/folder-upload", tags=["Folder Upload API"]
    )

    @app.get("/")
    async def root() -> dict[str, Any]:
        """서비스 안내."""
        return {
            "message": "Folder Upload Relay",
            "endpoints": {
                "upload": "/api/folder-upload",
                "config": "/api/folder-upload/config",
                "health": "/health",
            },
        }

    @app.get("/health")
    async def health() -> dict[str, str]:
        """헬스 체크."""
        return {"status": "ok"}

    return app


# =============================================================================
# App Instance
# =============================================================================

app = create_app()


# =============================================================================
# CLI Entry Point
# =============================================================================

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "src.app.main:app",
        host="127.0.0.1",
        port=8000,
        reload=True,
    )
