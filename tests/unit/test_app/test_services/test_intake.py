"""
test_intake.py - multipart 폼 → UploadBatch 테스트

DoD:
- files[] 파트마다 UploadItem 1개, filename 원문 유지 (정규화는 나중 단계)
- 크기는 실제 바이트 수, 본문은 읽지 않고 파일 객체 그대로 전달
- meta: 없음/빈 값 → {}, UTF-8 JSON 객체만 허용 (NaN/Infinity 불가) → 그 외 INVALID_METADATA
"""

import io

import pytest
from starlette.datastructures import FormData, Headers, UploadFile

from src.app.services.intake import IntakeService, parse_metadata
from src.domain.errors import ErrorCodes, ValidationError

# =============================================================================
# Fixtures
# =============================================================================


def _upload(filename: str, content: bytes, content_type: str | None = "image/jpeg") -> UploadFile:
    headers = Headers({"content-type": content_type}) if content_type else Headers({})
    return UploadFile(file=io.BytesIO(content), filename=filename, headers=headers)


@pytest.fixture
def intake_service() -> IntakeService:
    """고정 batch_id를 쓰는 IntakeService."""
    return IntakeService(batch_id_factory=lambda: "BATCH-FIXED")


# =============================================================================
# build_batch 테스트
# =============================================================================


class TestBuildBatch:
    """IntakeService.build_batch 테스트."""

    @pytest.mark.asyncio
    async def test_files_become_items(self, intake_service):
        form = FormData(
            [
                ("files[]", _upload("wedding/raw/IMG_0001.CR2", b"raw-bytes", "image/x-canon-cr2")),
                ("files[]", _upload("wedding/jpg/IMG_0001.jpg", b"jpg")),
            ]
        )

        batch = await intake_service.build_batch(form)

        assert batch.batch_id == "BATCH-FIXED"
        assert [item.relative_path for item in batch.items] == [
            "wedding/raw/IMG_0001.CR2",
            "wedding/jpg/IMG_0001.jpg",
        ]
        assert batch.items[0].content.read() == b"raw-bytes"
        assert batch.items[0].content_type == "image/x-canon-cr2"
        assert batch.file_count == 2
        assert batch.total_bytes == len(b"raw-bytes") + len(b"jpg")

    @pytest.mark.asyncio
    async def test_content_not_read(self, intake_service):
        """스풀 파일 객체를 그대로 참조, 위치는 처음."""
        upload = _upload("a.jpg", b"0123456789")
        upload.file.seek(4)
        form = FormData([("files[]", upload)])

        batch = await intake_service.build_batch(form)

        item = batch.items[0]
        assert item.content is upload.file
        assert item.size_bytes == 10
        assert item.content.tell() == 0

    @pytest.mark.asyncio
    async def test_path_kept_verbatim(self, intake_service):
        """경로 정규화/거절은 intake에서 하지 않음."""
        form = FormData([("files[]", _upload("../../etc/passwd", b"x"))])

        batch = await intake_service.build_batch(form)

        assert batch.items[0].relative_path == "../../etc/passwd"

    @pytest.mark.asyncio
    async def test_missing_content_type_defaults(self, intake_service):
        form = FormData([("files[]", _upload("a.jpg", b"x", content_type=None))])

        batch = await intake_service.build_batch(form)

        assert batch.items[0].content_type == "application/octet-stream"

    @pytest.mark.asyncio
    async def test_non_file_parts_ignored(self, intake_service):
        """files[]에 문자열 값 → 무시."""
        form = FormData([("files[]", "not-a-file"), ("files[]", _upload("a.jpg", b"x"))])

        batch = await intake_service.build_batch(form)

        assert batch.file_count == 1

    @pytest.mark.asyncio
    async def test_other_fields_ignored(self, intake_service):
        form = FormData([("photos", _upload("a.jpg", b"x"))])

        batch = await intake_service.build_batch(form)

        assert batch.is_empty

    @pytest.mark.asyncio
    async def test_metadata_parsed(self, intake_service):
        form = FormData(
            [
                ("files[]", _upload("a.jpg", b"x")),
                ("meta", '{"event": "wedding", "date": "2024-05-01"}'),
            ]
        )

        batch = await intake_service.build_batch(form)

        assert batch.metadata == {"event": "wedding", "date": "2024-05-01"}
        assert batch.metadata_json == '{"date": "2024-05-01", "event": "wedding"}'

    @pytest.mark.asyncio
    async def test_metadata_as_file_part(self, intake_service):
        """meta가 파일 파트로 와도 JSON으로 읽음."""
        form = FormData(
            [("meta", _upload("meta.json", b'{"event": "wedding"}', "application/json"))]
        )

        batch = await intake_service.build_batch(form)

        assert batch.metadata == {"event": "wedding"}

    @pytest.mark.asyncio
    async def test_no_metadata(self, intake_service):
        form = FormData([("files[]", _upload("a.jpg", b"x"))])

        batch = await intake_service.build_batch(form)

        assert batch.metadata == {}
        assert batch.metadata_json == "{}"

    @pytest.mark.asyncio
    async def test_invalid_metadata_rejected(self, intake_service):
        form = FormData([("files[]", _upload("a.jpg", b"x")), ("meta", "{not json")])

        with pytest.raises(ValidationError) as exc_info:
            await intake_service.build_batch(form)

        assert exc_info.value.code == ErrorCodes.INVALID_METADATA


# =============================================================================
# parse_metadata 테스트
# =============================================================================


class TestParseMetadata:
    """parse_metadata 함수 테스트."""

    @pytest.mark.parametrize("raw", ["", "   ", "\n"])
    def test_blank_is_empty(self, raw):
        assert parse_metadata(raw) == {}

    def test_object(self):
        assert parse_metadata('{"a": 1}') == {"a": 1}

    def test_invalid_json(self):
        with pytest.raises(ValidationError, match="valid JSON") as exc_info:
            parse_metadata("{oops")

        assert exc_info.value.status_code == 400
        assert "error" in exc_info.value.context

    @pytest.mark.parametrize("raw", ["[1, 2]", '"text"', "42", "null"])
    def test_non_object_rejected(self, raw):
        with pytest.raises(ValidationError, match="JSON object") as exc_info:
            parse_metadata(raw)

        assert exc_info.value.code == ErrorCodes.INVALID_METADATA

    @pytest.mark.parametrize(
        "raw",
        [
            '{"a": NaN}',
            '{"a": Infinity}',
            '{"a": -Infinity}',
            '{"a": 1e999}',
        ],
    )
    def test_non_finite_numbers_rejected(self, raw):
        with pytest.raises(ValidationError, match="non-finite") as exc_info:
            parse_metadata(raw)

        assert exc_info.value.code == ErrorCodes.INVALID_METADATA

    def test_finite_float_kept(self):
        assert parse_metadata('{"rating": 4.5}') == {"rating": 4.5}


class TestMetadataFilePart:
    """meta 파일 파트 디코딩 테스트."""

    @pytest.mark.asyncio
    async def test_invalid_utf8_rejected(self, intake_service):
        """잘못된 UTF-8은 대체 문자로 바꾸지 않고 거절."""
        form = FormData([("meta", _upload("meta.json", b'{"event": "\xff\xfe"}', None))])

        with pytest.raises(ValidationError, match="UTF-8") as exc_info:
            await intake_service.build_batch(form)

        assert exc_info.value.code == ErrorCodes.INVALID_METADATA

    @pytest.mark.asyncio
    async def test_utf8_file_part(self, intake_service):
        form = FormData([("meta", _upload("meta.json", '{"event": "결혼식"}'.encode(), None))])

        batch = await intake_service.build_batch(form)

        assert batch.metadata == {"event": "결혼식"}
