"""
Error definitions for the upload relay.

규칙:
- 조용한 실패 금지 → 코드가 붙은 예외로 명시적 실패
- 모든 예외는 엔드포인트 경계에서 JSON 응답으로 변환
- 시크릿 값은 메시지/컨텍스트에 절대 포함하지 않음
"""

from typing import Any


class UploadRelayError(Exception):
    """
    업로드 릴레이 공통 에러.

    Usage:
        raise ValidationError(ErrorCodes.NO_FILES, "No files[] found")
        raise ForwardingError("Downstream webhook failed after 3 attempts", status=503, attempts=3)
    """

    status_code = 500

    def __init__(self, code: str, message: str, **context: Any) -> None:
        self.code = code
        self.message = message
        self.context = context
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        ctx_str = ", ".join(f"{k}={v!r}" for k, v in self.context.items())
        return f"[{self.code}] {self.message} ({ctx_str})" if ctx_str else f"[{self.code}] {self.message}"

    def to_dict(self) -> dict[str, Any]:
        """응답 JSON 직렬화용."""
        body: dict[str, Any] = {
            "ok": False,
            "error": self.code,
            "message": self.message,
        }
        if self.context:
            body["details"] = dict(self.context)
        return body

    def headers(self) -> dict[str, str]:
        """에러 응답에 추가할 헤더."""
        return {}


class ValidationError(UploadRelayError):
    """클라이언트 입력이 제약 조건 위반 (400)."""

    status_code = 400


class InvalidPathError(ValidationError):
    """상대 경로 정규화 실패 (traversal, 빈 경로, 허용되지 않은 문자)."""

    def __init__(self, message: str, path: str) -> None:
        super().__init__(ErrorCodes.INVALID_PATH, message, path=path)
        self.path = path


class AuthenticationError(UploadRelayError):
    """정적 자격 증명 누락/불일치 (401)."""

    status_code = 401

    def headers(self) -> dict[str, str]:
        return {"WWW-Authenticate": 'Basic realm="folder-upload"'}


class RateLimitError(UploadRelayError):
    """동일 키의 요청 과다 (429)."""

    status_code = 429

    def __init__(self, retry_after: int) -> None:
        super().__init__(
            ErrorCodes.RATE_LIMITED,
            "Too many requests. Please try again later.",
            retryAfter=retry_after,
        )
        self.retry_after = retry_after

    def headers(self) -> dict[str, str]:
        return {"Retry-After": str(self.retry_after)}


class ConfigurationError(UploadRelayError):
    """서버 필수 설정 누락 (500). 설정 이름만 노출, 값은 노출 금지."""

    status_code = 500


class ForwardingError(UploadRelayError):
    """다운스트림 webhook 거절 또는 재시도 소진 (502)."""

    status_code = 502

    def __init__(self, message: str, status: int, attempts: int, **context: Any) -> None:
        super().__init__(
            ErrorCodes.FORWARDING_FAILED,
            message,
            downstreamStatus=status,
            attempts=attempts,
            **context,
        )
        self.status = status
        self.attempts = attempts


class ClientDisconnectedError(UploadRelayError):
    """전송 도중 클라이언트가 연결을 끊음 (499). 응답은 아무도 받지 않음."""

    status_code = 499

    def __init__(self, batch_id: str, attempts: int) -> None:
        super().__init__(
            ErrorCodes.CLIENT_DISCONNECTED,
            "Client disconnected; forwarding abandoned",
            batchId=batch_id,
            attempts=attempts,
        )


class UnexpectedError(UploadRelayError):
    """처리되지 않은 예외 (500). 일반 메시지만 반환."""

    status_code = 500


# =============================================================================
# Error Codes
# =============================================================================

class ErrorCodes:
    """에러 코드 상수. 응답 JSON의 `error` 필드 값."""

    # === Validation (400) ===
    VALIDATION_FAILED = "VALIDATION_FAILED"
    NO_FILES = "NO_FILES"
    INVALID_PATH = "INVALID_PATH"
    INVALID_METADATA = "INVALID_METADATA"
    INVALID_FORM = "INVALID_FORM"

    # === Auth (401) ===
    AUTH_REQUIRED = "AUTH_REQUIRED"
    AUTH_INVALID = "AUTH_INVALID"

    # === Rate limit (429) ===
    RATE_LIMITED = "RATE_LIMITED"

    # === Client gone (499) ===
    CLIENT_DISCONNECTED = "CLIENT_DISCONNECTED"

    # === Server (500) ===
    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"
    INTERNAL_ERROR = "INTERNAL_ERROR"

    # === Downstream (502) ===
    FORWARDING_FAILED = "FORWARDING_FAILED"
