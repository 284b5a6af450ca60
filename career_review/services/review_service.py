"""审阅编排服务"""

import asyncio
from datetime import datetime
from typing import List, Optional

from ..core.blob_store import BlobStore, LocalBlobStore
from ..core.data_manager import DataManager
from ..core.prompt_builder import build_prompt
from ..core.text_extractor import TextExtractor
from ..integrations.gemini_api import GeminiAPI
from ..models.document import DocumentType, ReviewDocument, ReviewDocumentCreate
from ..models.profile import MatchingOptions, StudentProfile
from ..models.review import (
    ANALYSIS_REVIEW_KINDS,
    DOCUMENT_REVIEW_KINDS,
    REVIEW_SCHEMAS,
    AnalysisType,
    DocumentReviewPayload,
    ModelResponse,
    ReviewResult,
    ReviewResultCreate,
    StudentAnalysis,
    StudentAnalysisCreate,
)
from ..utils.config import Settings, get_settings
from ..utils.errors import DocumentNotFound, PayloadTooLarge, UnsupportedFormat
from ..utils.helpers import guess_media_type, normalize_media_type, strip_extension
from ..utils.logger import app_logger


class ReviewService:
    """
    审阅编排服务

    文档状态机: uploaded -> reviewing -> reviewed | failed，failed 可重新提交。
    进入 reviewing 的写入发生在任何提取/模型调用之前；
    结果写入与 reviewed 状态在同一事务中提交，任一步骤失败文档都会停在 failed。
    """

    def __init__(self, data_manager: DataManager, blob_store: BlobStore,
                 extractor: TextExtractor, model_client: GeminiAPI):
        self.data_manager = data_manager
        self.blob_store = blob_store
        self.extractor = extractor
        self.model_client = model_client

    async def aclose(self):
        await self.model_client.aclose()

    # ==================== 文档管理 ====================

    async def upload_document(self, user_id: str, document_type: DocumentType, file_name: str,
                              content: bytes, media_type: Optional[str] = None,
                              title: Optional[str] = None,
                              uploaded_by: Optional[str] = None) -> ReviewDocument:
        """保存上传文件并创建文档记录"""
        normalized = normalize_media_type(media_type) or guess_media_type(file_name)
        if normalized not in self.extractor.supported_media_types:
            # 浏览器可能上报 application/octet-stream，此时以扩展名为准
            normalized = guess_media_type(file_name)
        if normalized not in self.extractor.supported_media_types:
            raise UnsupportedFormat(media_type or file_name)

        if len(content) > self.extractor.max_size_bytes:
            raise PayloadTooLarge(len(content), self.extractor.max_size_bytes)

        storage_uri = self.blob_store.put_bytes(user_id, file_name, content)

        document = await self.data_manager.create_document(ReviewDocumentCreate(
            user_id=user_id,
            document_type=document_type,
            file_name=file_name,
            title=title or strip_extension(file_name),
            media_type=normalized,
            storage_uri=storage_uri,
            file_size=len(content),
            uploaded_by=uploaded_by or user_id
        ))

        app_logger.info(f"文档上传成功: {file_name} (ID: {document.id}, 类型: {document_type.value})")
        return document

    async def get_document(self, document_id: int) -> ReviewDocument:
        """获取文档，不存在时抛出 DocumentNotFound"""
        document = await self.data_manager.get_document(document_id)
        if document is None:
            raise DocumentNotFound(document_id)
        return document

    async def list_documents(self, user_id: Optional[str] = None, status=None) -> List[ReviewDocument]:
        return await self.data_manager.list_documents(user_id=user_id, status=status)

    # ==================== 文档审阅 ====================

    async def review_document(self, document_id: int) -> ReviewResult:
        """
        审阅已上传的文档

        Returns:
            ReviewResult: 已持久化的审阅结果

        Raises:
            DocumentNotFound: 文档不存在
            ReviewInProgress: 文档正在被其他请求审阅，文档状态不变
            InvalidStatusTransition: 文档已审阅完成
            其余提取/模型/持久化异常原样抛出，此时文档已标记为 failed
        """
        start_time = datetime.now()
        document = await self.data_manager.begin_review(document_id)
        app_logger.info(f"开始审阅文档: {document.file_name} (ID: {document_id})")

        try:
            content = self.blob_store.get_bytes(document.storage_uri)
            text = self.extractor.extract(content, document.media_type)

            kind = DOCUMENT_REVIEW_KINDS[document.document_type]
            response = await self.model_client.invoke(build_prompt(kind, text), schema=REVIEW_SCHEMAS[kind])
            payload: DocumentReviewPayload = response.payload

            result = await self.data_manager.complete_review(ReviewResultCreate(
                document_id=document.id,
                user_id=document.user_id,
                document_type=document.document_type,
                overall_score=payload.overall_score,
                sections=payload.sections,
                improvement_points=payload.improvement_points,
                reviewer_comment=payload.reviewer_comment,
                raw_result=response.data,
                input_tokens=response.usage.input_tokens,
                output_tokens=response.usage.output_tokens,
                model_name=response.model_name
            ))
        except asyncio.CancelledError:
            app_logger.warning(f"文档审阅被取消: ID {document_id}")
            await self._mark_failed(document_id)
            raise
        except Exception as e:
            duration = (datetime.now() - start_time).total_seconds()
            app_logger.error(f"文档审阅失败: ID {document_id}, 耗时 {duration:.2f}秒 - {str(e)}")
            await self._mark_failed(document_id)
            raise

        duration = (datetime.now() - start_time).total_seconds()
        app_logger.info(f"文档审阅完成: ID {document_id}, 得分 {result.overall_score}, 耗时 {duration:.2f}秒")
        return result

    async def _mark_failed(self, document_id: int):
        """标记失败，自身出错只记录日志，调用方仍抛出原始异常"""
        try:
            await self.data_manager.mark_failed(document_id)
        except Exception as e:
            app_logger.error(f"标记文档失败状态时出错: ID {document_id} - {str(e)}")

    async def review_file(self, content: bytes, media_type: Optional[str],
                          document_type: DocumentType = DocumentType.RESUME) -> ModelResponse:
        """直接审阅文件内容，不落库"""
        text = self.extractor.extract(content, media_type)
        kind = DOCUMENT_REVIEW_KINDS[DocumentType(document_type)]

        response = await self.model_client.invoke(build_prompt(kind, text), schema=REVIEW_SCHEMAS[kind])
        app_logger.info(f"文件审阅完成: {kind.value}, 得分 {response.payload.overall_score}")

        return response

    async def get_review_result(self, document_id: int) -> Optional[ReviewResult]:
        """获取审阅结果，文档尚未审阅完成时返回None"""
        await self.get_document(document_id)
        return await self.data_manager.get_review_result(document_id)

    # ==================== 学生分析 ====================

    async def analyze_student(self, user_id: str, profile: StudentProfile,
                              analysis_type: AnalysisType = AnalysisType.COMPETENCY,
                              options: Optional[MatchingOptions] = None) -> StudentAnalysis:
        """根据学生档案生成分析并保存"""
        analysis_type = AnalysisType(analysis_type)
        kind = ANALYSIS_REVIEW_KINDS[analysis_type]

        app_logger.info(f"开始学生分析: {user_id} - {analysis_type.value}")

        response = await self.model_client.invoke(
            build_prompt(kind, profile, options),
            schema=REVIEW_SCHEMAS[kind]
        )

        analysis = await self.data_manager.create_student_analysis(StudentAnalysisCreate(
            user_id=user_id,
            analysis_type=analysis_type,
            result=response.data,
            input_tokens=response.usage.input_tokens,
            output_tokens=response.usage.output_tokens,
            model_name=response.model_name
        ))

        app_logger.info(f"学生分析完成: {user_id} - {analysis_type.value} (ID: {analysis.id})")
        return analysis

    async def list_student_analyses(self, user_id: str,
                                    analysis_type: Optional[AnalysisType] = None) -> List[StudentAnalysis]:
        return await self.data_manager.list_student_analyses(user_id, analysis_type)


def build_review_service(settings: Optional[Settings] = None) -> ReviewService:
    """按配置组装审阅服务，进程启动时调用一次"""
    settings = settings or get_settings()

    return ReviewService(
        data_manager=DataManager(settings.database.sqlite_path),
        blob_store=LocalBlobStore(settings.storage.root_dir),
        extractor=TextExtractor(settings.review.max_document_size_bytes),
        model_client=GeminiAPI.from_config(settings.gemini)
    )
