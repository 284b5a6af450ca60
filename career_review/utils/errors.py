"""
异常定义模块

审阅流水线中所有可预期的失败都以下列异常类型抛出：
- 文本提取: PayloadTooLarge / UnsupportedFormat / EmptyContent / CorruptedDocument
- 模型调用: ModelTimeout / TransportFailure / MalformedResponse / SchemaViolation
  (均为可重试的 TransientModelError)，重试耗尽后统一为 ModelInvocationError
- 持久化与状态机: PersistenceFailure / StorageError / DocumentNotFound / InvalidStatusTransition
"""

from enum import Enum
from typing import Any, Dict, Optional


class CareerReviewError(Exception):
    """所有业务异常的基类"""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


# ==================== 文本提取异常 ====================

class ExtractionError(CareerReviewError):
    """文本提取失败"""
    pass


class PayloadTooLarge(ExtractionError):
    """文件超过大小上限"""

    def __init__(self, size: int, limit: int) -> None:
        super().__init__(
            f"文件大小超过上限: {size} 字节 > {limit} 字节",
            {"size": size, "limit": limit}
        )
        self.size = size
        self.limit = limit


class UnsupportedFormat(ExtractionError):
    """不支持的文件格式"""

    def __init__(self, media_type: str) -> None:
        super().__init__(f"不支持的文件格式: {media_type}。仅支持 PDF、DOCX、TXT 文件")
        self.media_type = media_type


class EmptyContent(ExtractionError):
    """提取结果为空(例如仅含图片的PDF)"""

    def __init__(self, media_type: str) -> None:
        super().__init__(f"无法从文件中提取文本: {media_type}")
        self.media_type = media_type


class CorruptedDocument(ExtractionError):
    """文件已损坏或无法解析"""

    def __init__(self, media_type: str, reason: str) -> None:
        super().__init__(f"文件解析失败: {media_type}", {"reason": reason})
        self.media_type = media_type


# ==================== 模型调用异常 ====================

class FailureKind(str, Enum):
    """可重试失败的类型"""
    TIMEOUT = "timeout"
    TRANSPORT = "transport"
    MALFORMED_RESPONSE = "malformed_response"
    SCHEMA_VIOLATION = "schema_violation"


class ModelError(CareerReviewError):
    """模型调用异常基类"""
    pass


class ModelConfigurationError(ModelError):
    """模型客户端配置错误"""
    pass


class TransientModelError(ModelError):
    """单次调用失败，计入重试次数"""

    kind: FailureKind = FailureKind.TRANSPORT


class ModelTimeout(TransientModelError):
    """单次调用超时"""

    kind = FailureKind.TIMEOUT

    def __init__(self, timeout: float) -> None:
        super().__init__(f"请求超时({timeout}秒)", {"timeout": timeout})
        self.timeout = timeout


class TransportFailure(TransientModelError):
    """网络错误或非2xx响应"""

    kind = FailureKind.TRANSPORT

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        details = {"status_code": status_code} if status_code is not None else None
        super().__init__(message, details)
        self.status_code = status_code


class MalformedResponse(TransientModelError):
    """响应不是合法JSON"""

    kind = FailureKind.MALFORMED_RESPONSE


class SchemaViolation(TransientModelError):
    """响应是合法JSON但结构不符合约定"""

    kind = FailureKind.SCHEMA_VIOLATION


class ModelInvocationError(ModelError):
    """重试耗尽后的汇总异常，消息中包含最后一次失败原因"""

    def __init__(self, attempts: int, last_error: BaseException) -> None:
        super().__init__(
            f"Gemini API 调用失败(共尝试{attempts}次): {last_error}",
            {"attempts": attempts}
        )
        self.attempts = attempts
        self.last_error = last_error

    @property
    def kind(self) -> Optional[FailureKind]:
        return getattr(self.last_error, "kind", None)


# ==================== 存储与状态异常 ====================

class PersistenceFailure(CareerReviewError):
    """审阅结果写入失败"""
    pass


class StorageError(CareerReviewError):
    """文件存储异常"""
    pass


class BlobNotFound(StorageError):
    """存储中找不到文件"""
    pass


class InvalidStoragePath(StorageError):
    """存储路径超出存储根目录"""
    pass


class DocumentNotFound(CareerReviewError):
    """文档不存在"""

    def __init__(self, document_id: int) -> None:
        super().__init__(f"文档不存在: {document_id}")
        self.document_id = document_id


class InvalidStatusTransition(CareerReviewError):
    """非法的状态转换"""

    def __init__(self, document_id: int, current: str, target: str) -> None:
        super().__init__(
            f"文档 {document_id} 无法从 {current} 转换到 {target}",
            {"current": current, "target": target}
        )
        self.document_id = document_id
        self.current = current
        self.target = target


class ReviewInProgress(InvalidStatusTransition):
    """文档正在审阅中"""
    pass
