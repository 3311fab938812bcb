"""
Core layer: 요청 경로 안전 핵심 모듈.

역할:
- 상대 경로 정규화 (traversal 차단)
- 메타데이터 해시, batch_id
- rate limit
"""

from .hashing import compute_metadata_hash
from .ids import generate_batch_id
from .logging import configure_logging, log_upload_event
from .paths import file_extension, normalize_relative_path
from .rate_limit import InMemoryRateLimitStore, RateLimiter, RateLimitStore

__all__ = [
    # paths
    "normalize_relative_path",
    "file_extension",
    # hashing
    "compute_metadata_hash",
    # ids
    "generate_batch_id",
    # rate_limit
    "RateLimiter",
    "RateLimitStore",
    "InMemoryRateLimitStore",
    # logging
    "configure_logging",
    "log_upload_event",
]
