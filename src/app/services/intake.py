"""
Intake Service: 인바운드 multipart 폼 → UploadBatch.

규칙:
- `files[]` 파트 전부 UploadItem으로 (filename = 클라이언트 상대 경로, 원문 유지)
- 파일 본문은 읽지 않음: Starlette 스풀 파일 객체를 그대로 넘기고 전송 시점에 스트리밍
- 크기는 스풀 파일의 실제 길이 기준 (클라이언트 신고값 불신)
- `meta` 파트는 UTF-8 JSON 객체만 허용 (NaN/Infinity 불가)
- 경로 정규화는 여기서 하지 않음 (엔드포인트 단계에서 일괄 처리)
"""

import json
import logging
import math
import os
from collections.abc import Callable
from typing import Any, BinaryIO, NoReturn

from starlette.datastructures import FormData, UploadFile

from src.core.ids import generate_batch_id
from src.domain.constants import DEFAULT_CONTENT_TYPE, FILES_FIELD, META_FIELD
from src.domain.errors import ErrorCodes, ValidationError
from src.domain.schemas import UploadBatch, UploadItem

logger = logging.getLogger(__name__)


class IntakeService:
    """
    multipart 폼 파싱 서비스.

    반환된 배치는 폼의 파일 객체를 참조하므로 폼은 전송이 끝난 뒤 닫아야 함.
    """

    def __init__(self, batch_id_factory: Callable[[], str] = generate_batch_id):
        """
        Args:
            batch_id_factory: batch_id 생성 함수
        """
        self.batch_id_factory = batch_id_factory

    async def build_batch(self, form: FormData) -> UploadBatch:
        """
        폼 → UploadBatch.

        Args:
            form: Starlette FormData

        Returns:
            UploadBatch (경로 미정규화)

        Raises:
            ValidationError: INVALID_METADATA
        """
        items: list[UploadItem] = []

        for part in form.getlist(FILES_FIELD):
            if not isinstance(part, UploadFile):
                logger.warning(f"Ignoring non-file {FILES_FIELD} part")
                continue
            items.append(self._to_item(part))

        metadata = await self._read_metadata(form.get(META_FIELD))

        return UploadBatch(
            items=tuple(items),
            batch_id=self.batch_id_factory(),
            metadata=metadata,
        )

    @staticmethod
    def _to_item(upload: UploadFile) -> UploadItem:
        return UploadItem(
            relative_path=upload.filename or "",
            size_bytes=spooled_size(upload.file),
            content_type=upload.content_type or DEFAULT_CONTENT_TYPE,
            content=upload.file,
        )

    async def _read_metadata(self, raw: str | UploadFile | None) -> dict[str, Any]:
        if raw is None:
            return {}
        if isinstance(raw, UploadFile):
            data = await raw.read()
            try:
                raw = data.decode("utf-8")
            except UnicodeDecodeError as e:
                raise ValidationError(
                    ErrorCodes.INVALID_METADATA,
                    "Metadata must be UTF-8 encoded",
                    error=str(e),
                ) from e
        return parse_metadata(raw)


def spooled_size(file: BinaryIO) -> int:
    """파일 객체 길이 (읽지 않고 끝으로 seek). 위치는 처음으로 되돌림."""
    file.seek(0, os.SEEK_END)
    size = file.tell()
    file.seek(0)
    return size


def _reject_constant(name: str) -> NoReturn:
    raise ValueError(f"{name} is not allowed")


def _parse_finite_float(text: str) -> float:
    value = float(text)
    if not math.isfinite(value):
        raise ValueError(f"{text} is out of range")
    return value


def parse_metadata(raw: str) -> dict[str, Any]:
    """
    meta 파트 JSON 파싱.

    빈 문자열 → 빈 dict. JSON 객체가 아니거나
    NaN/Infinity 같은 비유한 수가 있으면 ValidationError.
    """
    if not raw.strip():
        return {}

    try:
        data = json.loads(
            raw,
            parse_constant=_reject_constant,
            parse_float=_parse_finite_float,
        )
    except json.JSONDecodeError as e:
        raise ValidationError(
            ErrorCodes.INVALID_METADATA,
            "Metadata must be valid JSON",
            error=e.msg,
        ) from e
    except ValueError as e:
        raise ValidationError(
            ErrorCodes.INVALID_METADATA,
            "Metadata must not contain non-finite numbers",
            error=str(e),
        ) from e

    if not isinstance(data, dict):
        raise ValidationError(
            ErrorCodes.INVALID_METADATA,
            "Metadata must be a JSON object",
        )

    return data
