"""
FastAPI Routes.

API 라우트 (REST)
"""

from . import folder_upload

__all__ = ["folder_upload"]
