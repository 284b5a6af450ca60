"""数据模型模块"""

from .document import DocumentStatus, DocumentType, ReviewDocument, ReviewDocumentCreate
from .profile import MatchingOptions, StudentProfile
from .review import (
    AnalysisType,
    DocumentReviewPayload,
    ModelResponse,
    ReviewKind,
    ReviewResult,
    StudentAnalysis,
    TokenUsage,
)

__all__ = [
    "DocumentStatus",
    "DocumentType",
    "ReviewDocument",
    "ReviewDocumentCreate",
    "MatchingOptions",
    "StudentProfile",
    "AnalysisType",
    "DocumentReviewPayload",
    "ModelResponse",
    "ReviewKind",
    "ReviewResult",
    "StudentAnalysis",
    "TokenUsage",
]
