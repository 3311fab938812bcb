"""
재시도 정책 유틸리티.

다운스트림 호출의 재시도 상태 머신을 네트워크 코드와 분리해서 정의합니다.
(최대 시도 횟수, 백오프 테이블을 독립적으로 테스트 가능)

상태 전이:
    ATTEMPTING(n) --2xx--> SUCCESS
    ATTEMPTING(n) --4xx--> PERMANENT_FAILURE
    ATTEMPTING(n) --5xx/timeout/network--> ATTEMPTING(n+1)  (n+1 <= max_retries)
                                       +--> EXHAUSTED        (n+1 >  max_retries)
"""

from dataclasses import dataclass
from enum import Enum

from src.domain.constants import DEFAULT_RETRY_BACKOFF_MS
from src.domain.schemas import RetryState


class AttemptOutcome(str, Enum):
    """단일 시도 결과 분류."""
    OK = "ok"
    CLIENT_ERROR = "client_error"
    SERVER_ERROR = "server_error"
    TIMEOUT = "timeout"
    NETWORK_ERROR = "network_error"


def classify_status(status_code: int) -> AttemptOutcome:
    """
    HTTP 상태 코드 → 시도 결과.

    2xx 외에 4xx가 아닌 모든 코드(1xx/3xx/5xx)는 재시도 대상.
    """
    if 200 <= status_code < 300:
        return AttemptOutcome.OK
    if 400 <= status_code < 500:
        return AttemptOutcome.CLIENT_ERROR
    return AttemptOutcome.SERVER_ERROR


@dataclass(frozen=True)
class RetryPolicy:
    """
    고정 백오프 테이블 기반 재시도 정책.

    총 시도 횟수 = max_retries + 1
    """
    max_retries: int = 2
    backoff_ms: tuple[int, ...] = DEFAULT_RETRY_BACKOFF_MS

    def __post_init__(self) -> None:
        if self.max_retries < 0:
            raise ValueError(f"max_retries must be >= 0, got {self.max_retries}")

    @property
    def total_attempts(self) -> int:
        return self.max_retries + 1

    def delay_for(self, attempt: int) -> float:
        """
        attempt번째 시도 실패 후 대기 시간(초).

        테이블을 넘어가면 마지막 값 재사용. 테이블이 비어 있으면 0.
        """
        if not self.backoff_ms:
            return 0.0
        index = min(attempt, len(self.backoff_ms) - 1)
        return self.backoff_ms[index] / 1000

    def next_state(self, attempt: int, outcome: AttemptOutcome) -> RetryState:
        """
        시도 결과에 따른 다음 상태.

        Args:
            attempt: 방금 끝난 시도 인덱스 (0부터)
            outcome: 시도 결과

        Returns:
            SUCCESS / PERMANENT_FAILURE / ATTEMPTING / EXHAUSTED
        """
        if outcome is AttemptOutcome.OK:
            return RetryState.SUCCESS
        if outcome is AttemptOutcome.CLIENT_ERROR:
            return RetryState.PERMANENT_FAILURE
        if attempt + 1 > self.max_retries:
            return RetryState.EXHAUSTED
        return RetryState.ATTEMPTING
