"""
ID 생성: batch_id

규칙:
- 요청마다 새로 발급, 결정론 불필요
- 헤더 값으로 쓰이므로 ASCII만
"""

import uuid
from datetime import UTC, datetime

from src.domain.constants import BATCH_ID_PREFIX


def generate_batch_id() -> str:
    """
    Batch ID 생성.

    고유성 보장: UUID v4
    포맷: BATCH-{timestamp}-{uuid hex}

    Returns:
        batch_id 문자열
    """
    now = datetime.now(UTC)
    timestamp = now.strftime("%Y%m%d%H%M%S")
    unique = uuid.uuid4().hex

    return f"{BATCH_ID_PREFIX}{timestamp}-{unique}"
