"""
Pytest fixtures for the upload relay tests.

구성:
- Settings: 테스트용 작은 제한값 + 가짜 webhook
- WebhookStub: httpx.MockTransport 핸들러 (다운스트림 응답 시나리오 + 요청 기록)
- make_item / make_batch: 배치 생성 헬퍼
"""

import io
from collections.abc import Callable
from pathlib import Path
from typing import Any

import httpx
import pytest

from src.app.config import Settings
from src.domain.schemas import UploadBatch, UploadItem, UploadLimits, WebhookTarget

WEBHOOK_URL = "https://n8n.example.test/webhook/folder-upload"
WEBHOOK_SECRET = "test-hook-secret"


# =============================================================================
# Path Fixtures
# =============================================================================

@pytest.fixture
def project_root() -> Path:
    """프로젝트 루트 경로."""
    return Path(__file__).parent.parent


@pytest.fixture
def default_config_path(project_root: Path) -> Path:
    """default.yaml 경로."""
    return project_root / "default.yaml"


# =============================================================================
# Downstream Webhook Stub
# =============================================================================

class WebhookStub:
    """
    다운스트림 webhook 흉내.

    outcomes 항목:
    - int: 해당 상태 코드, 빈 본문
    - (int, dict): 상태 코드 + JSON 본문
    - Exception: 전송 단계에서 예외 (timeout/network)

    outcomes를 모두 쓰면 마지막 항목을 반복.
    """

    def __init__(self, *outcomes: Any):
        self.outcomes = list(outcomes) or [200]
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        index = min(len(self.requests), len(self.outcomes) - 1)
        self.requests.append(request)
        outcome = self.outcomes[index]

        if isinstance(outcome, Exception):
            raise outcome
        if isinstance(outcome, tuple):
            status, body = outcome
            return httpx.Response(status, json=body)
        return httpx.Response(outcome, text="")

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)

    @property
    def call_count(self) -> int:
        return len(self.requests)


@pytest.fixture
def webhook_stub() -> Callable[..., WebhookStub]:
    """WebhookStub 팩토리."""
    return WebhookStub


class SleepRecorder:
    """asyncio.sleep 대체 (대기 없이 지연값만 기록)."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.fixture
def sleep_recorder() -> SleepRecorder:
    return SleepRecorder()


# =============================================================================
# Config Fixtures
# =============================================================================

@pytest.fixture
def test_settings() -> Settings:
    """테스트용 설정."""
    return Settings(
        webhook_url=WEBHOOK_URL,
        webhook_secret=WEBHOOK_SECRET,
        client_id="test_client",
        timeout_ms=1000,
        retry_attempts=2,
        retry_backoff_ms=(0, 0),
        max_file_bytes=1024,
        max_total_bytes=4096,
        max_file_count=10,
        allowed_extensions=("jpg", "jpeg", "png", "cr2"),
        rate_limit_enabled=True,
        rate_limit_window_ms=60_000,
        rate_limit_max_requests=100,
        log_uploads=True,
    )


@pytest.fixture
def webhook_target() -> WebhookTarget:
    """테스트용 webhook 대상."""
    return WebhookTarget(
        url=WEBHOOK_URL,
        secret=WEBHOOK_SECRET,
        client_id="test_client",
        timeout_ms=1000,
        max_retries=2,
        backoff_ms=(500, 1500),
    )


@pytest.fixture
def limits() -> UploadLimits:
    """테스트용 제한값."""
    return UploadLimits(
        max_file_bytes=100,
        max_total_bytes=250,
        max_file_count=5,
        allowed_extensions=frozenset({"jpg", "jpeg", "png", "cr2"}),
    )


# =============================================================================
# Batch Helpers
# =============================================================================

def make_item(
    path: str = "shoot/IMG_0001.jpg",
    size: int = 10,
    content_type: str = "image/jpeg",
) -> UploadItem:
    """size 바이트짜리 UploadItem (인메모리 파일 객체)."""
    return UploadItem(
        relative_path=path,
        size_bytes=size,
        content_type=content_type,
        content=io.BytesIO(b"x" * size),
    )


def make_batch(*items: UploadItem, metadata: dict | None = None) -> UploadBatch:
    """테스트용 UploadBatch (고정 batch_id)."""
    return UploadBatch(
        items=tuple(items),
        batch_id="BATCH-TEST-0001",
        metadata=metadata or {},
    )


@pytest.fixture
def item_factory() -> Callable[..., UploadItem]:
    return make_item


@pytest.fixture
def batch_factory() -> Callable[..., UploadBatch]:
    return make_batch
