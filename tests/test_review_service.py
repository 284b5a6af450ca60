"""
审阅编排服务测试
"""

import asyncio
import sqlite3
from unittest.mock import AsyncMock

import httpx
import pytest

from career_review.core.prompt_builder import DOCUMENT_REVIEW_SCHEMA, JSON_INSTRUCTION
from career_review.core.text_extractor import TextExtractor
from career_review.integrations.gemini_api import GeminiAPI
from career_review.models.document import DocumentStatus, DocumentType
from career_review.models.profile import MatchingOptions, StudentProfile
from career_review.models.review import AnalysisType
from career_review.services.review_service import ReviewService
from career_review.utils.errors import (
    EmptyContent,
    InvalidStatusTransition,
    ModelInvocationError,
    PayloadTooLarge,
    PersistenceFailure,
    ReviewInProgress,
    UnsupportedFormat,
)
from conftest import DOCUMENT_REVIEW, JOB_MATCHING, gemini_response, make_docx

RESUME_TEXT = "Experienced backend engineer with five years of Python and PostgreSQL."


async def upload_resume(service, content: bytes = RESUME_TEXT.encode("utf-8"),
                        file_name: str = "resume.txt", media_type: str = "text/plain"):
    return await service.upload_document(
        user_id="stu-001",
        document_type=DocumentType.RESUME,
        file_name=file_name,
        content=content,
        media_type=media_type,
    )


class TestUpload:

    @pytest.mark.asyncio
    async def test_upload_stores_blob_and_record(self, review_service, blob_store):
        document = await upload_resume(review_service)

        assert document.status == DocumentStatus.UPLOADED
        assert document.title == "resume"
        assert document.file_size == len(RESUME_TEXT.encode("utf-8"))
        assert document.storage_uri.startswith("file://")
        assert blob_store.get_bytes(document.storage_uri) == RESUME_TEXT.encode("utf-8")

    @pytest.mark.asyncio
    async def test_octet_stream_falls_back_to_extension(self, review_service):
        document = await upload_resume(review_service, media_type="application/octet-stream")
        assert document.media_type == "text/plain"

    @pytest.mark.asyncio
    async def test_extension_only_media_type_is_normalized(self, review_service):
        document = await upload_resume(review_service, media_type="TXT")
        assert document.media_type == "text/plain"

    @pytest.mark.asyncio
    async def test_unsupported_upload_is_rejected(self, review_service, data_manager):
        with pytest.raises(UnsupportedFormat):
            await upload_resume(review_service, content=b"\x89PNG", file_name="photo.png", media_type="image/png")

        assert await data_manager.list_documents() == []

    @pytest.mark.asyncio
    async def test_oversized_upload_is_rejected(self, data_manager, blob_store, model_client):
        service = ReviewService(data_manager, blob_store, TextExtractor(max_size_bytes=8), model_client)

        with pytest.raises(PayloadTooLarge):
            await upload_resume(service)


class TestReviewDocument:

    @pytest.mark.asyncio
    async def test_successful_review(self, review_service, data_manager, gemini_stub):
        gemini_stub.push(gemini_response(DOCUMENT_REVIEW, input_tokens=512, output_tokens=128))
        document = await upload_resume(review_service)

        result = await review_service.review_document(document.id)

        assert result.document_id == document.id
        assert result.overall_score == 78
        assert result.input_tokens == 512
        assert result.output_tokens == 128
        assert result.model_name == "gemini-2.5-flash"
        assert (await data_manager.get_document(document.id)).status == DocumentStatus.REVIEWED
        assert await data_manager.count_review_results(document.id) == 1
        assert await review_service.get_review_result(document.id) == result

    @pytest.mark.asyncio
    async def test_prompt_contains_extracted_text(self, review_service, gemini_stub):
        gemini_stub.push(gemini_response(DOCUMENT_REVIEW))
        document = await upload_resume(review_service)

        await review_service.review_document(document.id)

        prompt = gemini_stub.prompts[0]
        assert RESUME_TEXT in prompt
        assert prompt.endswith(f"{JSON_INSTRUCTION}\n{DOCUMENT_REVIEW_SCHEMA}")

    @pytest.mark.asyncio
    async def test_cover_letter_docx(self, review_service, gemini_stub):
        gemini_stub.push(gemini_response(DOCUMENT_REVIEW))
        document = await review_service.upload_document(
            user_id="stu-001",
            document_type=DocumentType.COVER_LETTER,
            file_name="letter.docx",
            content=make_docx(["我从小就对计算机充满兴趣。"]),
        )

        result = await review_service.review_document(document.id)

        assert result.document_type == DocumentType.COVER_LETTER
        assert "我从小就对计算机充满兴趣。" in gemini_stub.prompts[0]
        assert "求职动机" in gemini_stub.prompts[0]

    @pytest.mark.asyncio
    async def test_extraction_failure_marks_failed(self, review_service, data_manager, gemini_stub):
        document = await upload_resume(review_service, content=b"   \n  ")

        with pytest.raises(EmptyContent):
            await review_service.review_document(document.id)

        assert gemini_stub.calls == 0
        assert (await data_manager.get_document(document.id)).status == DocumentStatus.FAILED
        assert await data_manager.count_review_results(document.id) == 0

    @pytest.mark.asyncio
    async def test_model_failure_marks_failed(self, review_service, data_manager, gemini_stub):
        gemini_stub.always(lambda: httpx.Response(500, text="error"))
        document = await upload_resume(review_service)

        with pytest.raises(ModelInvocationError):
            await review_service.review_document(document.id)

        assert gemini_stub.calls == 3
        assert (await data_manager.get_document(document.id)).status == DocumentStatus.FAILED
        assert await data_manager.count_review_results(document.id) == 0
        assert await review_service.get_review_result(document.id) is None

    @pytest.mark.asyncio
    async def test_persistence_failure_marks_failed(self, review_service, data_manager, gemini_stub, monkeypatch):
        gemini_stub.push(gemini_response(DOCUMENT_REVIEW))
        document = await upload_resume(review_service)
        monkeypatch.setattr(
            data_manager, "complete_review",
            AsyncMock(side_effect=PersistenceFailure("磁盘已满"))
        )

        with pytest.raises(PersistenceFailure):
            await review_service.review_document(document.id)

        assert (await data_manager.get_document(document.id)).status == DocumentStatus.FAILED
        assert await data_manager.count_review_results(document.id) == 0

    @pytest.mark.asyncio
    async def test_review_error_survives_mark_failed_error(self, review_service, data_manager, gemini_stub,
                                                           monkeypatch):
        gemini_stub.always(lambda: httpx.Response(503))
        document = await upload_resume(review_service)
        monkeypatch.setattr(
            data_manager, "mark_failed",
            AsyncMock(side_effect=sqlite3.OperationalError("database is locked"))
        )

        with pytest.raises(ModelInvocationError):
            await review_service.review_document(document.id)

    @pytest.mark.asyncio
    async def test_failed_document_can_be_resubmitted(self, review_service, data_manager, gemini_stub):
        gemini_stub.push(httpx.Response(500), httpx.Response(500), httpx.Response(500))
        gemini_stub.always(lambda: gemini_response(DOCUMENT_REVIEW))
        document = await upload_resume(review_service)

        with pytest.raises(ModelInvocationError):
            await review_service.review_document(document.id)
        assert (await data_manager.get_document(document.id)).status == DocumentStatus.FAILED

        result = await review_service.review_document(document.id)

        assert result.overall_score == 78
        assert (await data_manager.get_document(document.id)).status == DocumentStatus.REVIEWED
        assert await data_manager.count_review_results(document.id) == 1

    @pytest.mark.asyncio
    async def test_cancelled_review_can_be_resubmitted(self, review_service, data_manager, blob_store,
                                                       extractor, gemini_stub):
        request_sent = asyncio.Event()

        async def slow_model(request):
            request_sent.set()
            await asyncio.sleep(3600)

        slow_client = GeminiAPI(
            api_key="test-key",
            http_client=httpx.AsyncClient(transport=httpx.MockTransport(slow_model)),
        )
        slow_service = ReviewService(data_manager, blob_store, extractor, slow_client)
        document = await upload_resume(slow_service)

        task = asyncio.create_task(slow_service.review_document(document.id))
        await request_sent.wait()
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        await slow_client.aclose()

        assert (await data_manager.get_document(document.id)).status == DocumentStatus.FAILED

        gemini_stub.push(gemini_response(DOCUMENT_REVIEW))
        result = await review_service.review_document(document.id)

        assert result.overall_score == 78
        assert (await data_manager.get_document(document.id)).status == DocumentStatus.REVIEWED

    @pytest.mark.asyncio
    async def test_concurrent_review_fails_fast(self, review_service, data_manager, gemini_stub):
        document = await upload_resume(review_service)
        await data_manager.begin_review(document.id)

        with pytest.raises(ReviewInProgress):
            await review_service.review_document(document.id)

        assert gemini_stub.calls == 0
        assert (await data_manager.get_document(document.id)).status == DocumentStatus.REVIEWING

    @pytest.mark.asyncio
    async def test_reviewed_document_is_not_reviewed_again(self, review_service, data_manager, gemini_stub):
        gemini_stub.push(gemini_response(DOCUMENT_REVIEW))
        document = await upload_resume(review_service)
        await review_service.review_document(document.id)

        with pytest.raises(InvalidStatusTransition):
            await review_service.review_document(document.id)

        assert gemini_stub.calls == 1
        assert (await data_manager.get_document(document.id)).status == DocumentStatus.REVIEWED


class TestReviewFile:

    @pytest.mark.asyncio
    async def test_review_without_persistence(self, review_service, data_manager, gemini_stub):
        gemini_stub.push(gemini_response(DOCUMENT_REVIEW, fenced=True))

        response = await review_service.review_file(RESUME_TEXT.encode("utf-8"), "text/plain")

        assert response.data == DOCUMENT_REVIEW
        assert response.payload.overall_score == 78
        assert await data_manager.list_documents() == []

    @pytest.mark.asyncio
    async def test_unsupported_file(self, review_service, gemini_stub):
        with pytest.raises(UnsupportedFormat):
            await review_service.review_file(b"<html></html>", "text/html")

        assert gemini_stub.calls == 0


class TestAnalyzeStudent:

    @pytest.mark.asyncio
    async def test_job_matching_is_persisted(self, review_service, gemini_stub, student_profile_data):
        gemini_stub.push(gemini_response(JOB_MATCHING))
        profile = StudentProfile(**student_profile_data)

        analysis = await review_service.analyze_student(
            "stu-001", profile, AnalysisType.JOB_MATCHING,
            MatchingOptions(certBased=False)
        )

        assert analysis.analysis_type == AnalysisType.JOB_MATCHING
        assert analysis.result == JOB_MATCHING
        assert "资质匹配" not in gemini_stub.prompts[0]

        stored = await review_service.list_student_analyses("stu-001")
        assert [a.id for a in stored] == [analysis.id]

    @pytest.mark.asyncio
    async def test_invalid_analysis_is_not_persisted(self, review_service, gemini_stub, student_profile_data):
        gemini_stub.always(lambda: gemini_response({"summary": "缺少必要字段"}))

        with pytest.raises(ModelInvocationError):
            await review_service.analyze_student("stu-001", StudentProfile(**student_profile_data))

        assert await review_service.list_student_analyses("stu-001") == []
