"""业务服务模块"""

from .review_service import ReviewService, build_review_service

__all__ = ["ReviewService", "build_review_service"]
