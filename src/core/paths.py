"""
상대 경로 정규화.

규칙:
- `..` 세그먼트는 제거가 아니라 거절 (fail-fast)
- 비교는 세그먼트 단위: `a..b.jpg` 같은 파일명은 그대로 유지
- 절대 경로 → 선행 슬래시 제거 후 상대 경로로 취급
- 허용 문자: 영숫자, `-`, `_`, `.`, `/`, 공백
"""

import re
from pathlib import PurePosixPath

from src.domain.errors import InvalidPathError

_ALLOWED_PATH = re.compile(r"^[A-Za-z0-9\-_./ ]+$")
_REPEATED_SLASHES = re.compile(r"/{2,}")


def normalize_relative_path(path: str) -> str:
    """
    폴더 업로드 상대 경로를 정규화.

    Args:
        path: 클라이언트가 보낸 경로 (multipart filename)

    Returns:
        정규화된 상대 경로 (예: "a//b///c" → "a/b/c")

    Raises:
        InvalidPathError: null byte, `..` 세그먼트, 허용되지 않은 문자, 빈 결과
    """
    if "\0" in path:
        raise InvalidPathError("Invalid path: null bytes not allowed", path=path)

    candidate = path.replace("\\", "/").lstrip("/")
    candidate = _REPEATED_SLASHES.sub("/", candidate).rstrip("/")

    segments = []
    for segment in candidate.split("/"):
        if segment == "..":
            raise InvalidPathError(
                "Invalid path: parent directory traversal not allowed", path=path
            )
        if segment in (".", ""):
            continue
        segments.append(segment)

    normalized = "/".join(segments)

    if not normalized:
        raise InvalidPathError("Invalid path: empty path", path=path)

    if not _ALLOWED_PATH.match(normalized):
        raise InvalidPathError("Invalid path: contains invalid characters", path=path)

    return normalized


def file_extension(path: str) -> str:
    """
    마지막 세그먼트의 확장자 (소문자, 점 제외).

    점이 없으면 빈 문자열. 디렉터리 이름의 점은 무시.
    """
    name = PurePosixPath(path.replace("\\", "/")).name
    if "." not in name:
        return ""
    return name.rsplit(".", 1)[1].lower()
