"""
설정 로드: default.yaml → 환경 변수 → Settings.

규칙:
- Settings는 앱 시작 시 1회 생성, 이후 읽기 전용 (frozen)
- 비즈니스 로직은 os.environ을 직접 읽지 않음 → Settings를 인자로 받음
- 필수값(webhook URL/secret) 누락은 여기서 예외로 막지 않음
  → 요청 시점에 CONFIGURATION_ERROR로 빠르게 실패
"""

import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from src.domain.constants import (
    DEFAULT_ALLOWED_EXTENSIONS,
    DEFAULT_MAX_FILE_BYTES,
    DEFAULT_MAX_FILE_COUNT,
    DEFAULT_MAX_TOTAL_BYTES,
    DEFAULT_RATE_LIMIT_MAX_REQUESTS,
    DEFAULT_RATE_LIMIT_SWEEP_SECONDS,
    DEFAULT_RATE_LIMIT_WINDOW_MS,
    DEFAULT_RETRY_ATTEMPTS,
    DEFAULT_RETRY_BACKOFF_MS,
    DEFAULT_TIMEOUT_MS,
)
from src.domain.schemas import UploadLimits, WebhookTarget

DEFAULT_CONFIG_PATH = Path(__file__).parent.parent.parent / "default.yaml"

_SIZE_UNITS = {"B": 1, "KB": 1024, "MB": 1024**2, "GB": 1024**3}

# 환경 변수 → Settings 필드
ENV_FIELDS = {
    "N8N_WEBHOOK_URL": "webhook_url",
    "N8N_HOOK_SECRET": "webhook_secret",
    "CLIENT_ID": "client_id",
    "N8N_TIMEOUT": "timeout_ms",
    "N8N_RETRY_ATTEMPTS": "retry_attempts",
    "N8N_RETRY_BACKOFF": "retry_backoff_ms",
    "MAX_FILE_SIZE": "max_file_bytes",
    "MAX_TOTAL_SIZE": "max_total_bytes",
    "MAX_FILE_COUNT": "max_file_count",
    "ALLOWED_EXTENSIONS": "allowed_extensions",
    "ALLOWED_MIME_TYPES": "allowed_mime_types",
    "ENABLE_MIME_TYPE_VERIFICATION": "require_mime_match",
    "RATE_LIMIT_ENABLED": "rate_limit_enabled",
    "RATE_LIMIT_WINDOW_MS": "rate_limit_window_ms",
    "RATE_LIMIT_MAX_REQUESTS": "rate_limit_max_requests",
    "RATE_LIMIT_SWEEP_INTERVAL": "rate_limit_sweep_seconds",
    "TRUSTED_PROXIES": "trusted_proxies",
    "AUTH_ENABLED": "auth_enabled",
    "AUTH_USERNAME": "auth_username",
    "AUTH_PASSWORD": "auth_password",
    "LOG_LEVEL": "log_level",
    "LOG_UPLOADS": "log_uploads",
    "DEBUG": "debug",
}


# =============================================================================
# Value Parsers
# =============================================================================

def parse_size(value: Any, default: int) -> int:
    """
    크기 문자열 → 바이트.

    "50MB", "1.5 GB", "1024", 정수 모두 허용. 형식 오류 시 default.
    """
    if value is None or value == "":
        return default
    if isinstance(value, bool):
        return default
    if isinstance(value, int | float):
        return int(value)

    text = str(value).strip().upper()
    number = text
    unit = "B"
    for suffix in ("KB", "MB", "GB", "B"):
        if text.endswith(suffix):
            number, unit = text[: -len(suffix)].strip(), suffix
            break

    try:
        return int(float(number) * _SIZE_UNITS[unit])
    except ValueError:
        return default


def parse_list(value: Any, default: tuple[str, ...]) -> tuple[str, ...]:
    """쉼표 구분 문자열(또는 YAML 리스트) → 소문자 튜플."""
    if value is None or value == "":
        return default
    items = value if isinstance(value, list | tuple) else str(value).split(",")
    return tuple(str(item).strip().lower() for item in items if str(item).strip())


def parse_bool(value: Any, default: bool) -> bool:
    """"true"/"false"/"1"/"0"/"yes"/"no" → bool."""
    if value is None or value == "":
        return default
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in ("1", "true", "yes", "on"):
        return True
    if text in ("0", "false", "no", "off"):
        return False
    return default


def parse_int(value: Any, default: int) -> int:
    if value is None or value == "":
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def parse_backoff(value: Any, default: tuple[int, ...]) -> tuple[int, ...]:
    """"500,1500" → (500, 1500). 숫자가 아닌 항목이 있으면 default."""
    if value is None or value == "":
        return default
    items = value if isinstance(value, list | tuple) else str(value).split(",")
    try:
        parsed = tuple(int(str(item).strip()) for item in items if str(item).strip())
    except ValueError:
        return default
    return parsed or default


# =============================================================================
# Settings
# =============================================================================

@dataclass(frozen=True)
class Settings:
    """프로세스 전역 설정 (읽기 전용)."""

    # === Webhook ===
    webhook_url: str = ""
    webhook_secret: str = field(default="", repr=False)
    client_id: str = "default_client"
    timeout_ms: int = DEFAULT_TIMEOUT_MS
    retry_attempts: int = DEFAULT_RETRY_ATTEMPTS
    retry_backoff_ms: tuple[int, ...] = DEFAULT_RETRY_BACKOFF_MS

    # === Upload limits ===
    max_file_bytes: int = DEFAULT_MAX_FILE_BYTES
    max_total_bytes: int = DEFAULT_MAX_TOTAL_BYTES
    max_file_count: int = DEFAULT_MAX_FILE_COUNT
    allowed_extensions: tuple[str, ...] = DEFAULT_ALLOWED_EXTENSIONS
    allowed_mime_types: tuple[str, ...] = ()
    require_mime_match: bool = False

    # === Rate limit ===
    rate_limit_enabled: bool = True
    rate_limit_window_ms: int = DEFAULT_RATE_LIMIT_WINDOW_MS
    rate_limit_max_requests: int = DEFAULT_RATE_LIMIT_MAX_REQUESTS
    rate_limit_sweep_seconds: int = DEFAULT_RATE_LIMIT_SWEEP_SECONDS
    # 이 peer 주소에서 온 요청만 X-Forwarded-For/X-Real-IP 신뢰
    trusted_proxies: tuple[str, ...] = ()

    # === Auth (정적 Basic 자격 증명, 선택) ===
    auth_enabled: bool = False
    auth_username: str = ""
    auth_password: str = field(default="", repr=False)

    # === Logging / runtime ===
    log_level: str = "INFO"
    log_uploads: bool = True
    debug: bool = False

    def missing_required(self) -> list[str]:
        """누락된 필수 설정 이름 목록 (값은 절대 포함하지 않음)."""
        missing = []
        if not self.webhook_url:
            missing.append("N8N_WEBHOOK_URL")
        if not self.webhook_secret:
            missing.append("N8N_HOOK_SECRET")
        if self.auth_enabled and not (self.auth_username and self.auth_password):
            missing.append("AUTH_USERNAME/AUTH_PASSWORD")
        return missing

    def upload_limits(self) -> UploadLimits:
        return UploadLimits(
            max_file_bytes=self.max_file_bytes,
            max_total_bytes=self.max_total_bytes,
            max_file_count=self.max_file_count,
            allowed_extensions=frozenset(ext.lstrip(".") for ext in self.allowed_extensions),
            allowed_mime_types=frozenset(self.allowed_mime_types),
            require_mime_match=self.require_mime_match,
        )

    def webhook_target(self) -> WebhookTarget:
        return WebhookTarget(
            url=self.webhook_url,
            secret=self.webhook_secret,
            client_id=self.client_id,
            timeout_ms=self.timeout_ms,
            max_retries=self.retry_attempts,
            backoff_ms=self.retry_backoff_ms,
        )

    def public_limits(self) -> dict[str, Any]:
        """클라이언트 사전 검증용 공개 설정 (시크릿 제외)."""
        return {
            "maxFileBytes": self.max_file_bytes,
            "maxTotalBytes": self.max_total_bytes,
            "maxFileCount": self.max_file_count,
            "allowedExtensions": sorted(ext.lstrip(".") for ext in self.allowed_extensions),
            "allowedMimeTypes": sorted(self.allowed_mime_types),
            "authRequired": self.auth_enabled,
        }


# =============================================================================
# Loading
# =============================================================================

def load_config(config_path: Path | None = None) -> dict[str, Any]:
    """
    YAML 설정 파일 로드 (섹션 구조 → 평탄화된 Settings 필드 dict).

    파일이 없으면 빈 dict.
    """
    if config_path is None:
        config_path = DEFAULT_CONFIG_PATH

    if not config_path.exists():
        return {}

    with open(config_path, encoding="utf-8") as f:
        data: dict[str, Any] = yaml.safe_load(f) or {}

    flat: dict[str, Any] = {}
    for section, values in data.items():
        if isinstance(values, dict):
            flat.update(values)
        else:
            flat[section] = values
    return flat


def load_settings(
    config_path: Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> Settings:
    """
    Settings 생성: default.yaml 값 위에 환경 변수를 덮어씀.

    Args:
        config_path: YAML 경로 (기본: 프로젝트 루트 default.yaml)
        environ: 환경 변수 매핑 (기본: os.environ)

    Returns:
        Settings
    """
    if environ is None:
        environ = os.environ

    raw = load_config(config_path)
    for env_name, field_name in ENV_FIELDS.items():
        if environ.get(env_name):
            raw[field_name] = environ[env_name]

    return build_settings(raw)


def build_settings(raw: Mapping[str, Any]) -> Settings:
    """평탄화된 원시 값 → 타입 변환된 Settings."""
    d = Settings()
    return Settings(
        webhook_url=str(raw.get("webhook_url") or d.webhook_url).strip(),
        webhook_secret=str(raw.get("webhook_secret") or d.webhook_secret),
        client_id=str(raw.get("client_id") or d.client_id),
        timeout_ms=parse_int(raw.get("timeout_ms"), d.timeout_ms),
        retry_attempts=max(0, parse_int(raw.get("retry_attempts"), d.retry_attempts)),
        retry_backoff_ms=parse_backoff(raw.get("retry_backoff_ms"), d.retry_backoff_ms),
        max_file_bytes=parse_size(raw.get("max_file_bytes"), d.max_file_bytes),
        max_total_bytes=parse_size(raw.get("max_total_bytes"), d.max_total_bytes),
        max_file_count=parse_int(raw.get("max_file_count"), d.max_file_count),
        allowed_extensions=tuple(
            ext.lstrip(".")
            for ext in parse_list(raw.get("allowed_extensions"), d.allowed_extensions)
        ),
        allowed_mime_types=parse_list(raw.get("allowed_mime_types"), d.allowed_mime_types),
        require_mime_match=parse_bool(raw.get("require_mime_match"), d.require_mime_match),
        rate_limit_enabled=parse_bool(raw.get("rate_limit_enabled"), d.rate_limit_enabled),
        rate_limit_window_ms=parse_int(raw.get("rate_limit_window_ms"), d.rate_limit_window_ms),
        rate_limit_max_requests=parse_int(
            raw.get("rate_limit_max_requests"), d.rate_limit_max_requests
        ),
        rate_limit_sweep_seconds=parse_int(
            raw.get("rate_limit_sweep_seconds"), d.rate_limit_sweep_seconds
        ),
        trusted_proxies=parse_list(raw.get("trusted_proxies"), d.trusted_proxies),
        auth_enabled=parse_bool(raw.get("auth_enabled"), d.auth_enabled),
        auth_username=str(raw.get("auth_username") or d.auth_username),
        auth_password=str(raw.get("auth_password") or d.auth_password),
        log_level=str(raw.get("log_level") or d.log_level).upper(),
        log_uploads=parse_bool(raw.get("log_uploads"), d.log_uploads),
        debug=parse_bool(raw.get("debug"), d.debug),
    )
