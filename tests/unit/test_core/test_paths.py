"""
test_paths.py - 상대 경로 정규화 테스트

DoD:
- 반복 슬래시 병합, 선행/후행 슬래시 제거
- `..` 세그먼트 → InvalidPathError (제거하지 않음)
- 파일명 안의 `..` (a..b.jpg) 는 허용
- null byte, 허용되지 않은 문자, 빈 결과 → InvalidPathError
"""

import pytest

from src.core.paths import file_extension, normalize_relative_path
from src.domain.errors import ErrorCodes, InvalidPathError

# =============================================================================
# normalize_relative_path 테스트
# =============================================================================


class TestNormalizeRelativePath:
    """normalize_relative_path 함수 테스트."""

    def test_collapses_repeated_slashes(self):
        """a//b///c → a/b/c."""
        assert normalize_relative_path("a//b///c") == "a/b/c"

    def test_strips_leading_slash(self):
        """절대 경로 → 상대 경로."""
        assert normalize_relative_path("/wedding/IMG_0001.jpg") == "wedding/IMG_0001.jpg"

    def test_strips_trailing_slash(self):
        """후행 슬래시 제거."""
        assert normalize_relative_path("wedding/raw/") == "wedding/raw"

    def test_backslash_converted(self):
        r"""Windows 구분자 \ → /."""
        assert normalize_relative_path("wedding\\raw\\IMG_0001.CR2") == "wedding/raw/IMG_0001.CR2"

    def test_current_dir_segments_dropped(self):
        """`.` 세그먼트는 무시."""
        assert normalize_relative_path("./wedding/./IMG_0001.jpg") == "wedding/IMG_0001.jpg"

    def test_spaces_allowed(self):
        """공백 포함 경로 허용."""
        assert normalize_relative_path("My Photos/day 1.jpg") == "My Photos/day 1.jpg"

    def test_idempotent(self):
        """정규화 결과를 다시 정규화해도 동일."""
        once = normalize_relative_path("//a//b/./c.jpg/")

        assert normalize_relative_path(once) == once

    def test_dots_inside_filename_allowed(self):
        """세그먼트 전체가 `..`이 아니면 허용."""
        assert normalize_relative_path("shoot/a..b.jpg") == "shoot/a..b.jpg"

    @pytest.mark.parametrize(
        "path",
        [
            "../../etc/passwd",
            "wedding/../../secret.jpg",
            "..",
            "a/b/..",
            "..\\windows\\system32",
        ],
    )
    def test_parent_traversal_rejected(self, path):
        """`..` 세그먼트는 위치와 관계없이 거절."""
        with pytest.raises(InvalidPathError) as exc_info:
            normalize_relative_path(path)

        assert exc_info.value.code == ErrorCodes.INVALID_PATH
        assert "traversal" in exc_info.value.message
        assert exc_info.value.path == path

    def test_null_byte_rejected(self):
        """null byte 포함 → 거절."""
        with pytest.raises(InvalidPathError, match="null bytes"):
            normalize_relative_path("photo.jpg\0.txt")

    @pytest.mark.parametrize("path", ["", "/", "///", "./."])
    def test_empty_result_rejected(self, path):
        """정규화 후 빈 경로 → 거절."""
        with pytest.raises(InvalidPathError, match="empty path"):
            normalize_relative_path(path)

    @pytest.mark.parametrize("path", ["shoot/사진.jpg", "a:b.jpg", "shoot/<img>.png", "a|b"])
    def test_invalid_characters_rejected(self, path):
        """허용 문자 외 → 거절."""
        with pytest.raises(InvalidPathError, match="invalid characters"):
            normalize_relative_path(path)

    def test_error_is_http_400(self):
        """InvalidPathError는 400."""
        with pytest.raises(InvalidPathError) as exc_info:
            normalize_relative_path("../x.jpg")

        assert exc_info.value.status_code == 400


# =============================================================================
# file_extension 테스트
# =============================================================================


class TestFileExtension:
    """file_extension 함수 테스트."""

    def test_lowercased(self):
        """대문자 확장자 → 소문자."""
        assert file_extension("wedding/raw/IMG_0001.CR2") == "cr2"

    def test_last_suffix_only(self):
        """마지막 점 뒤만."""
        assert file_extension("archive.tar.gz") == "gz"

    def test_no_extension(self):
        """점 없음 → 빈 문자열."""
        assert file_extension("wedding/README") == ""

    def test_dot_in_directory_ignored(self):
        """디렉터리 이름의 점은 무시."""
        assert file_extension("v1.2/notes") == ""

    def test_backslash_path(self):
        r"""\ 구분자 경로도 마지막 세그먼트 기준."""
        assert file_extension("shoot\\IMG_0002.JPG") == "jpg"
