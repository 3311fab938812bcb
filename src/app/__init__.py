"""
App layer: 업로드 릴레이 서버 (FastAPI).

역할:
- multipart 수신, rate limit, 정적 자격 증명
- 검증 후 n8n webhook으로 전달
- ⚠️ 경로 정규화/해시/한도 로직은 core에 위임
"""
