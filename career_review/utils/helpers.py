"""辅助函数模块"""

import mimetypes
import re
from datetime import datetime
from pathlib import Path
from typing import Iterable, Optional

PDF_MEDIA_TYPE = "application/pdf"
DOCX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
TEXT_MEDIA_TYPE = "text/plain"

# 扩展名 -> MIME类型 (上传记录中可能只保存了扩展名)
EXTENSION_MEDIA_TYPES = {
    "pdf": PDF_MEDIA_TYPE,
    "docx": DOCX_MEDIA_TYPE,
    "txt": TEXT_MEDIA_TYPE,
}

_CODE_FENCE_PATTERN = re.compile(r"```(?:json)?\s*([\s\S]*?)```")


def strip_code_fence(text: str) -> str:
    """去掉模型回复外层的Markdown代码块标记"""
    match = _CODE_FENCE_PATTERN.search(text)
    return match.group(1).strip() if match else text.strip()


def normalize_media_type(media_type: Optional[str]) -> str:
    """标准化文件类型: 去掉参数、统一小写、扩展名映射为MIME类型"""
    if not media_type:
        return ""

    value = media_type.split(";", 1)[0].strip().lower()
    return EXTENSION_MEDIA_TYPES.get(value.lstrip("."), value)


def guess_media_type(file_name: str) -> str:
    """根据文件名推断MIME类型"""
    suffix = Path(file_name).suffix.lower().lstrip(".")
    if suffix in EXTENSION_MEDIA_TYPES:
        return EXTENSION_MEDIA_TYPES[suffix]

    mime_type, _ = mimetypes.guess_type(file_name)
    return mime_type or "application/octet-stream"


def strip_extension(file_name: str) -> str:
    """去掉文件扩展名，用作默认标题"""
    return re.sub(r"\.[^.]+$", "", file_name)


def render_list(items: Iterable[str], empty: str = "无") -> str:
    """把列表渲染为Markdown条目，空列表返回占位文本"""
    lines = [f"- {item}" for item in items]
    return "\n".join(lines) if lines else empty


def or_placeholder(value, placeholder: str = "未填写") -> str:
    """缺失字段返回占位文本"""
    if value is None:
        return placeholder
    if isinstance(value, str) and not value.strip():
        return placeholder
    return str(value)


def truncate_text(text: str, max_length: int = 200, suffix: str = "...") -> str:
    """截断文本到指定长度"""
    if len(text) <= max_length:
        return text

    return text[:max_length - len(suffix)] + suffix


def now_iso() -> str:
    """当前时间(ISO格式)"""
    return datetime.now().isoformat()
