"""
Validation Service: 업로드 배치 제약 조건 검증.

규칙:
- 배치 전체를 평가 (short-circuit 없음) → 적용되는 에러 전부 수집
- 경고(빈 파일, 중복 경로, MIME 미신고)는 절대 차단하지 않음
- 파일 단위 에러는 해당 파일만 지목
"""

from collections import Counter

from src.core.paths import file_extension, normalize_relative_path
from src.domain.constants import GENERIC_MIME_TYPES, get_mime_type
from src.domain.errors import InvalidPathError
from src.domain.schemas import UploadBatch, UploadItem, UploadLimits, ValidationResult


def format_bytes(size: int) -> str:
    """사람이 읽기 쉬운 크기 문자열."""
    if size < 1024:
        return f"{size} B"
    value = size / 1024
    for unit in ("KB", "MB"):
        if value < 1024:
            return f"{value:.1f} {unit}"
        value /= 1024
    return f"{value:.1f} GB"


def validate_batch(batch: UploadBatch, limits: UploadLimits) -> ValidationResult:
    """
    배치 검증.

    Args:
        batch: 업로드 배치
        limits: 제한 설정

    Returns:
        ValidationResult (errors 비어 있으면 valid)
    """
    result = ValidationResult(file_count=batch.file_count, total_bytes=batch.total_bytes)

    # 1. 파일 개수
    if batch.file_count == 0:
        result.errors.append("No files provided")
    elif batch.file_count > limits.max_file_count:
        result.errors.append(
            f"Too many files: {batch.file_count} (maximum {limits.max_file_count})"
        )

    # 2. 전체 크기
    if batch.total_bytes > limits.max_total_bytes:
        result.errors.append(
            f"Total size {format_bytes(batch.total_bytes)} ({batch.total_bytes} bytes) "
            f"exceeds limit of {format_bytes(limits.max_total_bytes)} "
            f"({limits.max_total_bytes} bytes)"
        )

    # 3~6. 파일 단위
    for item in batch.items:
        _validate_item(item, limits, result)

    # 7. 중복 경로 (경고)
    _check_duplicates(batch, result)

    return result


def _validate_item(item: UploadItem, limits: UploadLimits, result: ValidationResult) -> None:
    name = item.relative_path

    if item.size_bytes > limits.max_file_bytes:
        result.errors.append(
            f"File too large: {name} ({format_bytes(item.size_bytes)}, "
            f"maximum {format_bytes(limits.max_file_bytes)})"
        )

    if item.size_bytes == 0:
        result.warnings.append(f"Empty file: {name}")

    ext = file_extension(name)
    if ext not in limits.allowed_extensions:
        shown = f".{ext}" if ext else "(none)"
        result.errors.append(f"Disallowed file type {shown}: {name}")

    content_type = (item.content_type or "").lower()

    if limits.allowed_mime_types and content_type not in limits.allowed_mime_types:
        result.errors.append(
            f"Disallowed content type {content_type or '(none)'}: {name}"
        )

    if limits.require_mime_match:
        expected = get_mime_type(ext)
        if expected is None:
            return
        if content_type in GENERIC_MIME_TYPES:
            result.warnings.append(f"Content type not declared for {name}, expected {expected}")
        elif content_type != expected:
            result.errors.append(
                f"Content type mismatch for {name}: declared {content_type}, expected {expected}"
            )


def _check_duplicates(batch: UploadBatch, result: ValidationResult) -> None:
    paths = []
    for item in batch.items:
        try:
            paths.append(normalize_relative_path(item.relative_path))
        except InvalidPathError:
            # 정규화 실패는 엔드포인트 정규화 단계에서 거절
            paths.append(item.relative_path)

    for path, count in Counter(paths).items():
        if count > 1:
            result.warnings.append(f"Duplicate path ({count} files): {path}")


class ValidationService:
    """
    제한 설정을 묶어 둔 검증 서비스.

    엔드포인트에 주입해서 사용.
    """

    def __init__(self, limits: UploadLimits):
        self.limits = limits

    def validate(self, batch: UploadBatch) -> ValidationResult:
        return validate_batch(batch, self.limits)
