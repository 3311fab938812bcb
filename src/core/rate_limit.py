"""
Rate limiting: 키(클라이언트 IP)별 고정 윈도우 카운터.

규칙:
- 윈도우 만료(now >= reset_at) 시 카운터를 1로 리셋
- 한도 초과 시 Retry-After(초, 올림) 반환
- 저장소는 주입 가능 (분산 캐시로 교체해도 limiter 로직 불변)
- 단일 프로세스 한정: 인스턴스 간 보장 없음
"""

import logging
import math
import threading
import time
from collections.abc import Callable
from typing import Protocol

from src.domain.schemas import RateLimitDecision, RateLimitInfo, RateLimitRecord

logger = logging.getLogger(__name__)


# =============================================================================
# Store
# =============================================================================

class RateLimitStore(Protocol):
    """RateLimitRecord 저장소 인터페이스."""

    def get(self, key: str) -> RateLimitRecord | None: ...

    def set(self, record: RateLimitRecord) -> None: ...

    def delete(self, key: str) -> None: ...

    def sweep(self, now: float) -> int: ...

    def __len__(self) -> int: ...


class InMemoryRateLimitStore:
    """프로세스 내 dict 저장소 (기본값)."""

    def __init__(self) -> None:
        self._records: dict[str, RateLimitRecord] = {}

    def get(self, key: str) -> RateLimitRecord | None:
        return self._records.get(key)

    def set(self, record: RateLimitRecord) -> None:
        self._records[record.key] = record

    def delete(self, key: str) -> None:
        self._records.pop(key, None)

    def sweep(self, now: float) -> int:
        """만료된 레코드 삭제. 삭제 개수 반환."""
        expired = [key for key, record in self._records.items() if record.is_expired(now)]
        for key in expired:
            del self._records[key]
        return len(expired)

    def __len__(self) -> int:
        return len(self._records)


# =============================================================================
# Limiter
# =============================================================================

class RateLimiter:
    """
    고정 윈도우 rate limiter.

    check()의 읽기-수정-쓰기는 lock으로 원자화 (스레드 서버 대비).
    sweep()은 메모리 정리용일 뿐, check() 정확성과 무관.
    """

    def __init__(
        self,
        max_requests: int,
        window_seconds: float,
        store: RateLimitStore | None = None,
        clock: Callable[[], float] = time.monotonic,
        enabled: bool = True,
    ):
        """
        Args:
            max_requests: 윈도우당 허용 요청 수
            window_seconds: 윈도우 길이 (초)
            store: 레코드 저장소 (기본: InMemoryRateLimitStore)
            clock: 현재 시각(초) 함수
            enabled: False면 모든 요청 허용
        """
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.store: RateLimitStore = store if store is not None else InMemoryRateLimitStore()
        self.clock = clock
        self.enabled = enabled
        self._lock = threading.Lock()

    def check(self, key: str) -> RateLimitDecision:
        """
        요청 1건 카운트 후 허용/거절 판정.

        Args:
            key: 클라이언트 식별자 (IP 등)

        Returns:
            RateLimitDecision (거절 시 retry_after_seconds > 0)
        """
        if not self.enabled:
            return RateLimitDecision(
                allowed=True,
                limit=self.max_requests,
                remaining=self.max_requests,
                reset_at=self.clock(),
            )

        with self._lock:
            now = self.clock()
            record = self.store.get(key)

            if record is None or record.is_expired(now):
                record = RateLimitRecord(key=key, count=1, reset_at=now + self.window_seconds)
                self.store.set(record)
                return self._decision(record, allowed=True)

            if record.count >= self.max_requests:
                retry_after = max(1, math.ceil(record.reset_at - now))
                logger.warning(
                    f"Rate limit exceeded for {key}: {record.count}/{self.max_requests}, "
                    f"retry after {retry_after}s"
                )
                return self._decision(record, allowed=False, retry_after=retry_after)

            record.count += 1
            self.store.set(record)
            return self._decision(record, allowed=True)

    def info(self, key: str) -> RateLimitInfo:
        """카운트 증가 없이 현재 상태 조회."""
        now = self.clock()
        record = self.store.get(key)

        if record is None or record.is_expired(now):
            return RateLimitInfo(
                limit=self.max_requests,
                remaining=self.max_requests,
                reset_at=now + self.window_seconds,
            )

        return RateLimitInfo(
            limit=self.max_requests,
            remaining=max(0, self.max_requests - record.count),
            reset_at=record.reset_at,
        )

    def reset(self, key: str) -> None:
        """키의 카운터 삭제 (관리용)."""
        with self._lock:
            self.store.delete(key)

    def sweep(self) -> int:
        """만료 레코드 정리. 삭제 개수 반환."""
        with self._lock:
            removed = self.store.sweep(self.clock())
        if removed:
            logger.debug(f"Rate limit sweep removed {removed} expired records")
        return removed

    def _decision(
        self,
        record: RateLimitRecord,
        allowed: bool,
        retry_after: int = 0,
    ) -> RateLimitDecision:
        return RateLimitDecision(
            allowed=allowed,
            limit=self.max_requests,
            remaining=max(0, self.max_requests - record.count),
            reset_at=record.reset_at,
            retry_after_seconds=retry_after,
        )
