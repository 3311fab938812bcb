"""
요청 보안 유틸리티: 정적 Basic 자격 증명, 클라이언트 식별, 보안 헤더.

규칙:
- 자격 증명 비교는 상수 시간 (hmac.compare_digest)
- 인증 비활성 시 모든 요청 허용
- 프록시 헤더(X-Forwarded-For/X-Real-IP)는 신뢰 프록시 peer에서 온 요청만 반영
"""

import base64
import binascii
import hmac
from collections.abc import Iterable

from starlette.requests import Request

from src.app.config import Settings
from src.domain.errors import AuthenticationError, ErrorCodes

SECURITY_HEADERS = {
    "Strict-Transport-Security": "max-age=31536000; includeSubDomains",
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "strict-origin-when-cross-origin",
    "Permissions-Policy": "interest-cohort=()",
}


def get_client_key(request: Request, trusted_proxies: Iterable[str] = ()) -> str:
    """
    rate limit 키로 쓸 클라이언트 IP.

    프록시 헤더는 누구나 위조할 수 있으므로 소켓 peer가 trusted_proxies에
    있을 때만 사용.

    우선순위: (신뢰 프록시일 때) X-Forwarded-For 첫 hop → X-Real-IP
    → 소켓 peer → "unknown"
    """
    peer = request.client.host if request.client and request.client.host else ""

    if peer and peer.lower() in {proxy.lower() for proxy in trusted_proxies}:
        forwarded = request.headers.get("x-forwarded-for", "")
        first_hop = forwarded.split(",")[0].strip()
        if first_hop:
            return first_hop

        real_ip = request.headers.get("x-real-ip", "").strip()
        if real_ip:
            return real_ip

    return peer or "unknown"


def verify_basic_auth(authorization: str | None, settings: Settings) -> None:
    """
    Authorization 헤더 검증.

    Args:
        authorization: Authorization 헤더 값
        settings: 설정 (auth_enabled, auth_username, auth_password)

    Raises:
        AuthenticationError: AUTH_REQUIRED (헤더 없음) / AUTH_INVALID (불일치)
    """
    if not settings.auth_enabled:
        return

    if not authorization or not authorization.startswith("Basic "):
        raise AuthenticationError(ErrorCodes.AUTH_REQUIRED, "Authentication required")

    try:
        decoded = base64.b64decode(authorization[6:], validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError) as e:
        raise AuthenticationError(ErrorCodes.AUTH_INVALID, "Invalid credentials") from e

    username, _, password = decoded.partition(":")

    user_ok = hmac.compare_digest(username.encode(), settings.auth_username.encode())
    password_ok = hmac.compare_digest(password.encode(), settings.auth_password.encode())
    if not (user_ok and password_ok):
        raise AuthenticationError(ErrorCodes.AUTH_INVALID, "Invalid credentials")
