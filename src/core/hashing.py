"""
해시 계산: 메타데이터 위변조 감지용 체크섬.

규칙:
- 다운스트림이 받는 meta 파트 문자열과 정확히 같은 바이트를 해시
- SHA-256, hex digest
"""

import hashlib


def compute_metadata_hash(metadata_json: str) -> str:
    """
    직렬화된 메타데이터의 SHA-256.

    Args:
        metadata_json: meta 파트로 전송되는 JSON 문자열

    Returns:
        SHA-256 해시 문자열 (x-meta-sha256 헤더 값)
    """
    return hashlib.sha256(metadata_json.encode("utf-8")).hexdigest()
