"""
文本提取模块

把上传文件的原始字节转换为纯文本:
- PDF (.pdf) 使用 PyPDF2
- Word (.docx) 使用 python-docx
- 纯文本 (.txt) 按 UTF-8 解码

提取是确定性的纯函数，失败直接抛出类型化异常，不做重试。
"""

import io
from typing import Dict, Optional

from docx import Document
from PyPDF2 import PdfReader

from ..utils.errors import CorruptedDocument, EmptyContent, PayloadTooLarge, UnsupportedFormat
from ..utils.helpers import (
    DOCX_MEDIA_TYPE,
    PDF_MEDIA_TYPE,
    TEXT_MEDIA_TYPE,
    normalize_media_type,
)
from ..utils.logger import app_logger

DEFAULT_MAX_SIZE_BYTES = 10 * 1024 * 1024  # 10MB


class TextExtractor:
    """文档文本提取器"""

    # MIME类型 -> 解析方法名
    PARSERS: Dict[str, str] = {
        PDF_MEDIA_TYPE: "_extract_pdf",
        DOCX_MEDIA_TYPE: "_extract_docx",
        TEXT_MEDIA_TYPE: "_extract_text",
    }

    def __init__(self, max_size_bytes: int = DEFAULT_MAX_SIZE_BYTES):
        self.max_size_bytes = max_size_bytes

    @property
    def supported_media_types(self):
        return list(self.PARSERS)

    def extract(self, content: bytes, media_type: Optional[str]) -> str:
        """
        提取文本

        Args:
            content: 文件原始字节
            media_type: 声明的文件类型(MIME类型或扩展名)

        Returns:
            非空文本

        Raises:
            PayloadTooLarge: 超过大小上限，不会进入任何解析器
            UnsupportedFormat: 不支持的文件类型
            EmptyContent: 解析结果为空或只有空白
            CorruptedDocument: 文件无法解析
        """
        if len(content) > self.max_size_bytes:
            raise PayloadTooLarge(len(content), self.max_size_bytes)

        normalized = normalize_media_type(media_type)
        parser_name = self.PARSERS.get(normalized)
        if parser_name is None:
            raise UnsupportedFormat(media_type or "")

        text = getattr(self, parser_name)(content)
        if not text or not text.strip():
            raise EmptyContent(normalized)

        app_logger.info(f"文本提取完成: {normalized} - {len(content)} 字节 -> {len(text)} 字符")

        return text

    def _extract_pdf(self, content: bytes) -> str:
        """从PDF提取文本"""
        try:
            reader = PdfReader(io.BytesIO(content))
            text_parts = []
            for page in reader.pages:
                page_text = page.extract_text()
                if page_text:
                    text_parts.append(page_text)
            return "\n".join(text_parts)
        except Exception as e:
            raise CorruptedDocument(PDF_MEDIA_TYPE, str(e)) from e

    def _extract_docx(self, content: bytes) -> str:
        """从DOCX提取文本"""
        try:
            doc = Document(io.BytesIO(content))
        except Exception as e:
            raise CorruptedDocument(DOCX_MEDIA_TYPE, str(e)) from e

        text_parts = []

        # 段落
        for para in doc.paragraphs:
            if para.text.strip():
                text_parts.append(para.text)

        # 表格
        for table in doc.tables:
            for row in table.rows:
                row_text = [cell.text.strip() for cell in row.cells if cell.text.strip()]
                if row_text:
                    text_parts.append(" | ".join(row_text))

        return "\n".join(text_parts)

    def _extract_text(self, content: bytes) -> str:
        """解码纯文本"""
        try:
            return content.decode("utf-8-sig")
        except UnicodeDecodeError as e:
            raise CorruptedDocument(TEXT_MEDIA_TYPE, str(e)) from e


def extract_text(content: bytes, media_type: Optional[str], max_size_bytes: int = DEFAULT_MAX_SIZE_BYTES) -> str:
    """提取文本的便捷函数"""
    return TextExtractor(max_size_bytes).extract(content, media_type)
