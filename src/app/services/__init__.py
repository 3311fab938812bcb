"""
Application Services.

역할:
- intake: multipart 폼 → UploadBatch
- validate: 크기/개수/확장자/MIME 검증
- forwarder: n8n webhook 전송 + 재시도
- upload: 위 서비스를 조합한 엔드포인트 처리
"""

from .forwarder import WebhookForwarder
from .intake import IntakeService
from .upload import UploadService
from .validate import ValidationService

__all__ = [
    "IntakeService",
    "ValidationService",
    "WebhookForwarder",
    "UploadService",
]
