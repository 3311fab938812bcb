"""
Domain Constants: 릴레이 전역 상수.

multipart 필드명, 다운스트림 헤더명, 기본 제한값 등.
"""

# =============================================================================
# Multipart Fields (인바운드/아웃바운드 공통)
# =============================================================================

FILES_FIELD = "files[]"
META_FIELD = "meta"

DEFAULT_CONTENT_TYPE = "application/octet-stream"

# =============================================================================
# Downstream Webhook Headers
# =============================================================================
# Content-Type은 여기 없음: httpx가 boundary 포함해서 자동 생성해야 함

HEADER_HOOK_SECRET = "x-hook-secret"
HEADER_CLIENT_ID = "x-client-id"
HEADER_FILE_COUNT = "x-file-total-count"
HEADER_TOTAL_BYTES = "x-file-total-bytes"
HEADER_BATCH_ID = "x-batch-id"
HEADER_META_SHA256 = "x-meta-sha256"

# =============================================================================
# Default Limits
# =============================================================================

MB = 1024 * 1024
GB = 1024 * MB

DEFAULT_MAX_FILE_BYTES = 50 * MB
DEFAULT_MAX_TOTAL_BYTES = 2 * GB
DEFAULT_MAX_FILE_COUNT = 1000

# 사진 원본(RAW) 포맷 포함. 점(.) 없이 소문자로 저장
DEFAULT_ALLOWED_EXTENSIONS = (
    "jpg", "jpeg", "png", "webp", "tif", "tiff",
    "raw", "cr2", "nef", "arw", "dng", "raf", "orf", "rw2",
)

DEFAULT_TIMEOUT_MS = 60_000
DEFAULT_RETRY_ATTEMPTS = 2
DEFAULT_RETRY_BACKOFF_MS = (500, 1500)

# 전송 중 클라이언트 연결 종료 확인 주기 (초)
DISCONNECT_POLL_SECONDS = 0.5

DEFAULT_RATE_LIMIT_WINDOW_MS = 5 * 60 * 1000
DEFAULT_RATE_LIMIT_MAX_REQUESTS = 30
DEFAULT_RATE_LIMIT_SWEEP_SECONDS = 10 * 60

BATCH_ID_PREFIX = "BATCH-"

# 502 응답에 실을 다운스트림 본문 최대 길이
MAX_DOWNSTREAM_BODY_CHARS = 500

# =============================================================================
# MIME Types
# =============================================================================
# RAW 포맷은 브라우저마다 신고하는 타입이 제각각이라 매핑하지 않음

MIME_TYPES = {
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "png": "image/png",
    "webp": "image/webp",
    "tif": "image/tiff",
    "tiff": "image/tiff",
}

GENERIC_MIME_TYPES = frozenset({"", DEFAULT_CONTENT_TYPE})


def get_mime_type(extension: str) -> str | None:
    """
    확장자(점 없음)에서 기대 MIME 타입 조회.

    Args:
        extension: 소문자 확장자 (예: "jpg")

    Returns:
        MIME 타입 문자열 (매핑 없으면 None)
    """
    return MIME_TYPES.get(extension.lower())
