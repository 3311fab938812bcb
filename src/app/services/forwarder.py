"""
Forwarding Service: 업로드 배치 → n8n webhook multipart 전송.

규칙:
- 파일 1개당 `files[]` 파트 1개 (filename = 정규화된 상대 경로) + `meta` 파트 1개
- Content-Type 수동 지정 금지: httpx가 boundary 포함해서 생성
- 2xx 즉시 성공, 4xx 즉시 실패(재시도 없음), 5xx/timeout/network → 백오프 후 재시도
- timeout_ms는 시도 1회 전체(연결~응답 본문 수신)의 상한
- 부분 성공 없음: 배치 전체가 한 번의 호출로 수락되거나 전체 실패
- 클라이언트가 연결을 끊으면 진행 중인 시도/대기를 중단하고 더 시도하지 않음
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any, BinaryIO, TypeVar

import httpx

from src.core.hashing import compute_metadata_hash
from src.domain.constants import (
    DEFAULT_CONTENT_TYPE,
    DISCONNECT_POLL_SECONDS,
    FILES_FIELD,
    HEADER_BATCH_ID,
    HEADER_CLIENT_ID,
    HEADER_FILE_COUNT,
    HEADER_HOOK_SECRET,
    HEADER_META_SHA256,
    HEADER_TOTAL_BYTES,
    META_FIELD,
)
from src.domain.errors import ClientDisconnectedError
from src.domain.schemas import ForwardResult, RetryState, UploadBatch, WebhookTarget
from src.utils.retry import AttemptOutcome, RetryPolicy, classify_status

logger = logging.getLogger(__name__)

T = TypeVar("T")

# 클라이언트 연결 종료 여부 확인 함수 (Starlette Request.is_disconnected 형태)
CancelCheck = Callable[[], Awaitable[bool]]


class WebhookForwarder:
    """
    n8n webhook 전송 서비스.

    재시도 상태 전이는 RetryPolicy가 결정하고,
    여기서는 요청 구성과 시도 결과 분류만 담당.
    """

    def __init__(
        self,
        target: WebhookTarget,
        transport: httpx.AsyncBaseTransport | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        poll_interval: float = DISCONNECT_POLL_SECONDS,
    ):
        """
        Args:
            target: webhook 접속 정보
            transport: httpx transport (테스트에서 MockTransport 주입)
            sleep: 백오프 대기 함수
            poll_interval: 클라이언트 연결 종료 확인 주기 (초)
        """
        self.target = target
        self._transport = transport
        self._sleep = sleep
        self._poll_interval = poll_interval

    def build_headers(self, batch: UploadBatch) -> dict[str, str]:
        """다운스트림 헤더 (Content-Type 제외)."""
        return {
            HEADER_HOOK_SECRET: self.target.secret,
            HEADER_CLIENT_ID: self.target.client_id,
            HEADER_FILE_COUNT: str(batch.file_count),
            HEADER_TOTAL_BYTES: str(batch.total_bytes),
            HEADER_BATCH_ID: batch.batch_id,
            HEADER_META_SHA256: compute_metadata_hash(batch.metadata_json),
        }

    @staticmethod
    def build_files(batch: UploadBatch) -> list[tuple[str, tuple[str, BinaryIO, str]]]:
        """
        httpx multipart files 인자.

        파일 객체를 그대로 넘기므로 본문은 전송 시점에 스트리밍됨.
        httpx가 매 요청마다 seek(0) 후 읽기 때문에 재시도에도 같은 내용이 나감.
        """
        return [
            (
                FILES_FIELD,
                (item.relative_path, item.content, item.content_type or DEFAULT_CONTENT_TYPE),
            )
            for item in batch.items
        ]

    async def forward(
        self,
        batch: UploadBatch,
        is_cancelled: CancelCheck | None = None,
    ) -> ForwardResult:
        """
        배치를 webhook으로 전송 (재시도 포함).

        취소(asyncio.CancelledError)는 잡지 않고 그대로 전파.

        Args:
            batch: 경로가 정규화된 업로드 배치
            is_cancelled: 원 요청 클라이언트의 연결 종료 여부 (None이면 확인 안 함)

        Returns:
            ForwardResult (마지막 시도의 상태/본문)

        Raises:
            ClientDisconnectedError: 시도 또는 백오프 도중 클라이언트 연결 종료
        """
        policy = RetryPolicy(
            max_retries=self.target.max_retries,
            backoff_ms=self.target.backoff_ms,
        )
        headers = self.build_headers(batch)
        timeout = httpx.Timeout(self.target.timeout_ms / 1000)

        async with httpx.AsyncClient(transport=self._transport, timeout=timeout) as client:
            attempt = 0
            while True:
                status, body, outcome = await self._guarded(
                    lambda: self._attempt(client, batch, headers),
                    is_cancelled,
                    batch,
                    attempt,
                )
                state = policy.next_state(attempt, outcome)

                if state is not RetryState.ATTEMPTING:
                    return self._finish(batch, status, body, attempt, state, policy)

                delay = policy.delay_for(attempt)
                logger.warning(
                    f"Webhook attempt {attempt + 1}/{policy.total_attempts} failed "
                    f"for {batch.batch_id} ({outcome.value}, status={status}). "
                    f"Retrying in {delay:.1f}s..."
                )
                await self._guarded(
                    lambda: self._sleep(delay), is_cancelled, batch, attempt + 1
                )
                attempt += 1

    async def _attempt(
        self,
        client: httpx.AsyncClient,
        batch: UploadBatch,
        headers: dict[str, str],
    ) -> tuple[int, str, AttemptOutcome]:
        try:
            # httpx.Timeout은 단계별(connect/read/write) 상한이라
            # 느린 응답이 조금씩 들어오면 끝나지 않음 → 전체 상한을 따로 둠
            async with asyncio.timeout(self.target.timeout_ms / 1000):
                response = await client.post(
                    self.target.url,
                    headers=headers,
                    data={META_FIELD: batch.metadata_json},
                    files=self.build_files(batch),
                )
        except (httpx.TimeoutException, TimeoutError):
            return 0, f"Request timed out after {self.target.timeout_ms}ms", AttemptOutcome.TIMEOUT
        except httpx.TransportError as e:
            return 0, f"{type(e).__name__}: {e}", AttemptOutcome.NETWORK_ERROR

        return response.status_code, response.text, classify_status(response.status_code)

    async def _guarded(
        self,
        make_step: Callable[[], Awaitable[T]],
        is_cancelled: CancelCheck | None,
        batch: UploadBatch,
        attempts: int,
    ) -> T:
        """
        시도/대기 1단계를 클라이언트 연결 감시와 경쟁시켜 실행.

        단계 시작 전에 이미 끊겼으면 단계를 만들지도 않음.
        """
        if is_cancelled is None:
            return await make_step()

        if await is_cancelled():
            self._log_disconnect(batch, attempts)
            raise ClientDisconnectedError(batch.batch_id, attempts)

        step: asyncio.Future[Any] = asyncio.ensure_future(make_step())
        watcher = asyncio.ensure_future(self._wait_disconnect(is_cancelled))
        try:
            await asyncio.wait({step, watcher}, return_when=asyncio.FIRST_COMPLETED)
            if step.done():
                return step.result()
            self._log_disconnect(batch, attempts)
            raise ClientDisconnectedError(batch.batch_id, attempts)
        finally:
            step.cancel()
            watcher.cancel()
            await asyncio.gather(step, watcher, return_exceptions=True)

    async def _wait_disconnect(self, is_cancelled: CancelCheck) -> None:
        while True:
            await asyncio.sleep(self._poll_interval)
            if await is_cancelled():
                return

    @staticmethod
    def _log_disconnect(batch: UploadBatch, attempts: int) -> None:
        logger.warning(
            f"Client disconnected; abandoning {batch.batch_id} after {attempts} attempt(s)"
        )

    def _finish(
        self,
        batch: UploadBatch,
        status: int,
        body: str,
        attempt: int,
        state: RetryState,
        policy: RetryPolicy,
    ) -> ForwardResult:
        if state is RetryState.SUCCESS:
            if attempt > 0:
                logger.info(
                    f"Webhook retry succeeded on attempt {attempt + 1}/{policy.total_attempts} "
                    f"for {batch.batch_id}"
                )
        elif state is RetryState.PERMANENT_FAILURE:
            logger.error(
                f"Webhook rejected {batch.batch_id} with status {status}; not retrying"
            )
        else:
            logger.error(
                f"All {policy.total_attempts} webhook attempts failed for {batch.batch_id}. "
                f"Last status: {status}"
            )

        return ForwardResult(
            http_status=status,
            succeeded=state is RetryState.SUCCESS,
            body_text=body,
            attempts_used=attempt,
            state=state,
        )
