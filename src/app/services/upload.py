"""
Upload Service: 폴더 업로드 요청 1건 처리 (엔드포인트 조합).

처리 순서:
1. rate limit → 429
2. 필수 설정 확인 (클라이언트 데이터 읽기 전) → 500
3. 정적 자격 증명 (설정 시) → 401
4. multipart 파싱 → UploadBatch
5. 빈 배치 → 400
6. 배치 검증 (에러 전부) → 400
7. 경로 정규화 (실패 시 전송 안 함) → 400
8. webhook 전송 (폼 파일 객체에서 스트리밍, 클라이언트 연결 종료 시 중단 → 499)
9. 성공 → 200 / 다운스트림 실패 → 502
10. 그 외 모든 예외 → 500 (일반 메시지만)
"""

import logging
from typing import Any

from starlette.datastructures import FormData
from starlette.exceptions import HTTPException
from starlette.formparsers import MultiPartException
from starlette.requests import Request

from src.app.config import Settings
from src.app.security import get_client_key, verify_basic_auth
from src.app.services.forwarder import WebhookForwarder
from src.app.services.intake import IntakeService
from src.app.services.validate import ValidationService
from src.core.logging import log_upload_event
from src.core.paths import normalize_relative_path
from src.core.rate_limit import RateLimiter
from src.domain.constants import MAX_DOWNSTREAM_BODY_CHARS
from src.domain.errors import (
    ConfigurationError,
    ErrorCodes,
    ForwardingError,
    RateLimitError,
    UnexpectedError,
    UploadRelayError,
    ValidationError,
)
from src.domain.schemas import (
    ForwardResult,
    RetryState,
    UploadBatch,
    UploadOutcome,
    ValidationResult,
)

logger = logging.getLogger(__name__)


def normalize_batch(batch: UploadBatch) -> UploadBatch:
    """
    모든 항목 경로 정규화.

    Raises:
        InvalidPathError: 하나라도 실패하면 배치 전체 거절
    """
    return batch.with_items(
        [item.with_path(normalize_relative_path(item.relative_path)) for item in batch.items]
    )


class UploadService:
    """
    폴더 업로드 엔드포인트 서비스.

    구성 요소는 모두 주입받음 (Settings는 읽기 전용).
    """

    def __init__(
        self,
        settings: Settings,
        rate_limiter: RateLimiter,
        forwarder: WebhookForwarder,
        validator: ValidationService | None = None,
        intake: IntakeService | None = None,
    ):
        self.settings = settings
        self.rate_limiter = rate_limiter
        self.forwarder = forwarder
        self.validator = validator or ValidationService(settings.upload_limits())
        self.intake = intake or IntakeService()

    async def handle(self, request: Request) -> UploadOutcome:
        """
        요청 1건 처리. 어떤 경우에도 구조화된 UploadOutcome 반환.

        취소(asyncio.CancelledError)는 BaseException이라 여기서 잡히지 않음.
        """
        client_key = get_client_key(request, self.settings.trusted_proxies)

        try:
            return await self._process(request, client_key)

        except UploadRelayError as e:
            if e.status_code >= 500:
                logger.error(f"Upload from {client_key} failed: {e}")
            else:
                logger.info(f"Upload from {client_key} rejected: {e}")
            return self._error_outcome(e)

        except Exception as e:
            logger.exception(f"Unexpected error handling upload from {client_key}")
            context: dict[str, Any] = {}
            if self.settings.debug:
                context["exception"] = f"{type(e).__name__}: {e}"
            return self._error_outcome(
                UnexpectedError(ErrorCodes.INTERNAL_ERROR, "Internal server error", **context)
            )

    async def _process(self, request: Request, client_key: str) -> UploadOutcome:
        # 1. Rate limit
        decision = self.rate_limiter.check(client_key)
        if not decision.allowed:
            raise RateLimitError(decision.retry_after_seconds)

        # 2. 필수 설정
        missing = self.settings.missing_required()
        if missing:
            raise ConfigurationError(
                ErrorCodes.CONFIGURATION_ERROR,
                "Server configuration error: required settings are missing",
                missing=missing,
            )

        # 3. 정적 자격 증명
        verify_basic_auth(request.headers.get("authorization"), self.settings)

        # 4. 파싱 (파일 객체는 전송이 끝날 때까지 열어 둠)
        form = await self._read_form(request)
        try:
            return await self._relay(request, client_key, form, decision.remaining)
        finally:
            await form.close()

    async def _relay(
        self,
        request: Request,
        client_key: str,
        form: FormData,
        remaining: int,
    ) -> UploadOutcome:
        batch = await self.intake.build_batch(form)

        # 5. 빈 배치
        if batch.is_empty:
            raise ValidationError(ErrorCodes.NO_FILES, "No files[] found")

        # 6. 검증
        validation = self.validator.validate(batch)
        if not validation.valid:
            raise ValidationError(
                ErrorCodes.VALIDATION_FAILED,
                "Upload validation failed",
                errors=validation.errors,
                warnings=validation.warnings,
            )

        # 7. 경로 정규화
        batch = normalize_batch(batch)

        # 8. 전송
        result = await self.forwarder.forward(batch, is_cancelled=request.is_disconnected)

        if self.settings.log_uploads:
            log_upload_event(client_key, batch, result)

        if not result.succeeded:
            raise self._forwarding_error(result)

        return self._success_outcome(batch, result, validation, remaining)

    async def _read_form(self, request: Request) -> FormData:
        try:
            return await request.form(max_files=self.settings.max_file_count + 1)
        except (HTTPException, MultiPartException) as e:
            detail = getattr(e, "detail", None) or getattr(e, "message", None) or str(e)
            raise ValidationError(
                ErrorCodes.INVALID_FORM,
                "Malformed multipart request",
                error=str(detail),
            ) from e

    def _forwarding_error(self, result: ForwardResult) -> ForwardingError:
        if result.state is RetryState.PERMANENT_FAILURE:
            message = f"Downstream webhook rejected the upload with status {result.http_status}"
        else:
            message = (
                f"Downstream webhook failed after {result.attempts_used + 1} attempts"
            )
        return ForwardingError(
            message,
            status=result.http_status,
            attempts=result.attempts_used + 1,
            downstreamBody=result.body_text[:MAX_DOWNSTREAM_BODY_CHARS],
        )

    def _success_outcome(
        self,
        batch: UploadBatch,
        result: ForwardResult,
        validation: ValidationResult,
        remaining: int,
    ) -> UploadOutcome:
        data = result.json_body() or {}

        body: dict[str, Any] = {
            "ok": True,
            "message": "Upload successful",
            "filesProcessed": batch.file_count,
            "totalBytes": batch.total_bytes,
            "batchId": batch.batch_id,
        }

        job_id = data.get("jobId") or data.get("executionId")
        if job_id:
            body["jobId"] = str(job_id)

        n8n_response: dict[str, Any] = {"status": str(data.get("status") or "accepted")}
        if data.get("executionId"):
            n8n_response["executionId"] = str(data["executionId"])
        body["n8nResponse"] = n8n_response

        if validation.warnings:
            body["warnings"] = list(validation.warnings)

        headers = {
            "X-Batch-Id": batch.batch_id,
            "X-Retries": str(result.attempts_used),
            "X-RateLimit-Limit": str(self.rate_limiter.max_requests),
            "X-RateLimit-Remaining": str(remaining),
        }
        return UploadOutcome(status_code=200, body=body, headers=headers)

    @staticmethod
    def _error_outcome(error: UploadRelayError) -> UploadOutcome:
        return UploadOutcome(
            status_code=error.status_code,
            body=error.to_dict(),
            headers=error.headers(),
        )
