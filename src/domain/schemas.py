"""
Data schemas for the upload relay.

규칙:
- UploadBatch의 file_count/total_bytes/metadata_json은 생성 시 1회 계산 후 재사용
  (검증과 아웃바운드 헤더가 같은 값을 봐야 함)
- 영속화 대상 없음: 모두 요청 단위 객체
"""

import json
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, BinaryIO

from src.domain.constants import (
    DEFAULT_RETRY_ATTEMPTS,
    DEFAULT_RETRY_BACKOFF_MS,
    DEFAULT_TIMEOUT_MS,
)

# =============================================================================
# Upload Schemas
# =============================================================================

@dataclass(frozen=True)
class UploadItem:
    """업로드된 파일 1개."""
    relative_path: str  # multipart filename으로 전달된 폴더 내 상대 경로
    size_bytes: int
    content_type: str
    content: BinaryIO = field(repr=False)  # 스풀 파일 객체 (전송 시점에 스트리밍)

    def with_path(self, relative_path: str) -> "UploadItem":
        """경로만 바꾼 사본."""
        return replace(self, relative_path=relative_path)


@dataclass(frozen=True)
class UploadBatch:
    """
    한 요청으로 들어온 파일 전체 + 메타데이터.

    batch_id는 불투명 토큰 (src.core.ids.generate_batch_id).
    """
    items: tuple[UploadItem, ...]
    batch_id: str
    metadata: dict[str, Any] = field(default_factory=dict)

    file_count: int = field(init=False)
    total_bytes: int = field(init=False)
    metadata_json: str = field(init=False, repr=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "items", tuple(self.items))
        object.__setattr__(self, "file_count", len(self.items))
        object.__setattr__(
            self, "total_bytes", sum(item.size_bytes for item in self.items)
        )
        object.__setattr__(self, "metadata_json", serialize_metadata(self.metadata))

    @property
    def is_empty(self) -> bool:
        return self.file_count == 0

    def with_items(self, items: list[UploadItem]) -> "UploadBatch":
        """같은 batch_id/metadata로 items만 교체한 사본."""
        return UploadBatch(items=tuple(items), batch_id=self.batch_id, metadata=self.metadata)


def serialize_metadata(metadata: dict[str, Any]) -> str:
    """메타데이터 정규 직렬화 (정렬된 키, 해시 대상)."""
    return json.dumps(metadata, sort_keys=True, ensure_ascii=False, allow_nan=False)


# =============================================================================
# Validation Schemas
# =============================================================================

@dataclass(frozen=True)
class UploadLimits:
    """업로드 제한 설정. 확장자는 점 없이 소문자."""
    max_file_bytes: int
    max_total_bytes: int
    max_file_count: int
    allowed_extensions: frozenset[str]
    allowed_mime_types: frozenset[str] = frozenset()
    require_mime_match: bool = False


@dataclass
class ValidationResult:
    """배치 검증 결과. warnings는 절대 차단하지 않음."""
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    file_count: int = 0
    total_bytes: int = 0

    @property
    def valid(self) -> bool:
        return not self.errors

    def to_dict(self) -> dict[str, Any]:
        """JSON 직렬화용."""
        return {
            "valid": self.valid,
            "errors": list(self.errors),
            "warnings": list(self.warnings),
            "fileCount": self.file_count,
            "totalBytes": self.total_bytes,
        }


# =============================================================================
# Rate Limit Schemas
# =============================================================================

@dataclass
class RateLimitRecord:
    """키(클라이언트 IP 등)별 고정 윈도우 카운터."""
    key: str
    count: int
    reset_at: float  # clock 기준 초

    def is_expired(self, now: float) -> bool:
        return now >= self.reset_at


@dataclass(frozen=True)
class RateLimitDecision:
    """check() 결과."""
    allowed: bool
    limit: int
    remaining: int
    reset_at: float
    retry_after_seconds: int = 0


@dataclass(frozen=True)
class RateLimitInfo:
    """키의 현재 한도 상태 (조회 전용, 카운트 증가 없음)."""
    limit: int
    remaining: int
    reset_at: float


# =============================================================================
# Forwarding Schemas
# =============================================================================

class RetryState(str, Enum):
    """
    재전송 상태 머신.

    ATTEMPTING(n) → SUCCESS | PERMANENT_FAILURE | ATTEMPTING(n+1) | EXHAUSTED
    """
    ATTEMPTING = "attempting"
    SUCCESS = "success"                      # 2xx
    PERMANENT_FAILURE = "permanent_failure"  # 4xx, 재시도 무의미
    EXHAUSTED = "exhausted"                  # 5xx/timeout/network, 재시도 소진


@dataclass(frozen=True)
class ForwardResult:
    """
    forward() 1회 호출 결과. 영속화하지 않음.

    attempts_used는 마지막 시도의 0 기반 인덱스 (= 수행한 재시도 횟수).
    http_status 0 → 응답을 받지 못함 (timeout/network).
    """
    http_status: int
    succeeded: bool
    body_text: str
    attempts_used: int
    state: RetryState

    def json_body(self) -> dict[str, Any] | None:
        """다운스트림 응답이 JSON 객체면 dict, 아니면 None."""
        if not self.body_text:
            return None
        try:
            data = json.loads(self.body_text)
        except json.JSONDecodeError:
            return None
        return data if isinstance(data, dict) else None


@dataclass(frozen=True)
class WebhookTarget:
    """다운스트림 webhook 접속 정보 + 재시도 설정."""
    url: str
    secret: str = field(repr=False)
    client_id: str
    timeout_ms: int = DEFAULT_TIMEOUT_MS
    max_retries: int = DEFAULT_RETRY_ATTEMPTS
    backoff_ms: tuple[int, ...] = DEFAULT_RETRY_BACKOFF_MS


# =============================================================================
# Endpoint Outcome
# =============================================================================

@dataclass
class UploadOutcome:
    """엔드포인트 1회 처리 결과 (route에서 JSONResponse로 변환)."""
    status_code: int
    body: dict[str, Any]
    headers: dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return bool(self.body.get("ok"))
