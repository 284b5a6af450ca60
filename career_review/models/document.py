"""审阅文档数据模型"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class DocumentType(str, Enum):
    """文档类型枚举"""
    RESUME = "resume"  # 简历
    COVER_LETTER = "cover_letter"  # 求职信


class DocumentStatus(str, Enum):
    """文档状态枚举"""
    UPLOADED = "uploaded"  # 已上传
    REVIEWING = "reviewing"  # 审阅中
    REVIEWED = "reviewed"  # 已审阅
    FAILED = "failed"  # 审阅失败，可重新提交


# 允许进入审阅中的状态
REVIEWABLE_STATUSES = (DocumentStatus.UPLOADED, DocumentStatus.FAILED)


class ReviewDocumentCreate(BaseModel):
    """创建文档模型"""
    user_id: str = Field(..., description="所属学生ID")
    document_type: DocumentType = Field(..., description="文档类型")
    file_name: str = Field(..., description="原始文件名")
    title: Optional[str] = Field(None, description="标题")
    media_type: str = Field(..., description="文件MIME类型")
    storage_uri: str = Field(..., description="文件存储地址")
    file_size: Optional[int] = Field(None, ge=0, description="文件大小(字节)")
    uploaded_by: Optional[str] = Field(None, description="上传人")

    @field_validator("user_id", "file_name")
    @classmethod
    def validate_not_blank(cls, v):
        if not v or not v.strip():
            raise ValueError("字段不能为空")
        return v.strip()


class ReviewDocument(ReviewDocumentCreate):
    """完整文档模型"""
    model_config = ConfigDict(from_attributes=True)

    id: int = Field(..., description="文档ID")
    status: DocumentStatus = Field(DocumentStatus.UPLOADED, description="审阅状态")

    # 时间戳
    created_at: datetime = Field(..., description="创建时间")
    updated_at: datetime = Field(..., description="更新时间")

    @property
    def is_reviewable(self) -> bool:
        return self.status in REVIEWABLE_STATUSES
