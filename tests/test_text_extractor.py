"""
文本提取测试
"""

import io
from unittest.mock import patch

import pytest
from PyPDF2 import PdfWriter

from career_review.core.text_extractor import TextExtractor, extract_text
from career_review.utils.errors import CorruptedDocument, EmptyContent, PayloadTooLarge, UnsupportedFormat
from career_review.utils.helpers import DOCX_MEDIA_TYPE, PDF_MEDIA_TYPE, TEXT_MEDIA_TYPE
from conftest import make_docx, make_pdf


class TestPlainText:

    def test_returns_text_unchanged(self, extractor):
        text = "Experienced backend engineer with 5 years of Python.\n"
        assert extractor.extract(text.encode("utf-8"), "text/plain") == text

    def test_media_type_parameters_are_ignored(self, extractor):
        content = "后端开发工程师".encode("utf-8")
        assert extractor.extract(content, "text/plain; charset=utf-8") == "后端开发工程师"

    def test_utf8_bom_is_dropped(self, extractor):
        assert extractor.extract(b"\xef\xbb\xbfhello", TEXT_MEDIA_TYPE) == "hello"

    def test_whitespace_only_raises_empty_content(self, extractor):
        with pytest.raises(EmptyContent):
            extractor.extract(b"  \n\t  ", TEXT_MEDIA_TYPE)

    def test_invalid_utf8_raises_corrupted_document(self, extractor):
        with pytest.raises(CorruptedDocument):
            extractor.extract(b"\xff\xfe\xfa", TEXT_MEDIA_TYPE)


class TestPdf:

    def test_extracts_page_text(self, extractor):
        text = extractor.extract(make_pdf("Backend Engineer"), PDF_MEDIA_TYPE)
        assert "Backend" in text

    def test_blank_pdf_raises_empty_content(self, extractor):
        writer = PdfWriter()
        writer.add_blank_page(width=612, height=792)
        buffer = io.BytesIO()
        writer.write(buffer)

        with pytest.raises(EmptyContent):
            extractor.extract(buffer.getvalue(), PDF_MEDIA_TYPE)

    def test_garbage_bytes_raise_corrupted_document(self, extractor):
        with pytest.raises(CorruptedDocument):
            extractor.extract(b"this is not a pdf", PDF_MEDIA_TYPE)


class TestDocx:

    def test_extracts_paragraphs_and_tables(self, extractor):
        content = make_docx(
            ["个人简历", "熟悉 Python 与 FastAPI"],
            table=[["学校", "华南理工大学"], ["专业", "计算机"]],
        )
        text = extractor.extract(content, DOCX_MEDIA_TYPE)

        assert "个人简历" in text
        assert "熟悉 Python 与 FastAPI" in text
        assert "学校 | 华南理工大学" in text

    def test_empty_document_raises_empty_content(self, extractor):
        with pytest.raises(EmptyContent):
            extractor.extract(make_docx([]), DOCX_MEDIA_TYPE)

    def test_garbage_bytes_raise_corrupted_document(self, extractor):
        with pytest.raises(CorruptedDocument):
            extractor.extract(b"PK\x03\x04 broken", DOCX_MEDIA_TYPE)


class TestDispatch:

    def test_oversized_payload_never_reaches_a_parser(self):
        extractor = TextExtractor(max_size_bytes=16)
        with patch.object(TextExtractor, "_extract_text") as parser:
            with pytest.raises(PayloadTooLarge) as exc_info:
                extractor.extract(b"x" * 17, TEXT_MEDIA_TYPE)

        parser.assert_not_called()
        assert exc_info.value.size == 17
        assert exc_info.value.limit == 16

    def test_payload_at_limit_is_accepted(self):
        extractor = TextExtractor(max_size_bytes=5)
        assert extractor.extract(b"hello", TEXT_MEDIA_TYPE) == "hello"

    @pytest.mark.parametrize("media_type", ["image/png", "application/msword", "text/html"])
    def test_unsupported_type_is_named_in_error(self, extractor, media_type):
        with pytest.raises(UnsupportedFormat) as exc_info:
            extractor.extract(b"data", media_type)

        assert media_type in str(exc_info.value)
        assert exc_info.value.media_type == media_type

    @pytest.mark.parametrize("declared", ["TXT", "txt", ".txt", "Text/Plain"])
    def test_extension_and_case_variants_are_normalized(self, extractor, declared):
        assert extractor.extract(b"resume body", declared) == "resume body"

    def test_convenience_function(self):
        assert extract_text(b"cover letter", "text/plain") == "cover letter"
