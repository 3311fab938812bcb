"""
Logging: 프로세스 로깅 설정 + 업로드 감사 로그.

규칙:
- 모듈별 logging.getLogger(__name__) 사용
- 시크릿(x-hook-secret, 비밀번호)은 절대 로그에 남기지 않음
- 업로드 감사 로그는 LOG_UPLOADS 설정 시에만, 요청당 1줄
"""

import logging

from src.domain.schemas import ForwardResult, UploadBatch

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

upload_logger = logging.getLogger("src.uploads")


def configure_logging(level: str = "INFO") -> None:
    """
    루트 로거 설정 (앱 시작 시 1회).

    Args:
        level: 로그 레벨 이름 (DEBUG, INFO, WARNING, ...)
    """
    resolved = logging.getLevelName(level.upper())
    if not isinstance(resolved, int):
        resolved = logging.INFO

    logging.basicConfig(level=resolved, format=LOG_FORMAT)
    logging.getLogger().setLevel(resolved)


def log_upload_event(
    client_key: str,
    batch: UploadBatch,
    result: ForwardResult,
) -> None:
    """
    업로드 1건 감사 로그.

    Args:
        client_key: 클라이언트 식별자 (IP)
        batch: 전송한 배치
        result: 전송 결과
    """
    level = logging.INFO if result.succeeded else logging.WARNING
    upload_logger.log(
        level,
        f"upload batch={batch.batch_id} client={client_key} "
        f"files={batch.file_count} bytes={batch.total_bytes} "
        f"state={result.state.value} status={result.http_status} "
        f"retries={result.attempts_used}",
    )
