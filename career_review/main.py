"""AI文档审阅系统主应用入口"""

import argparse
import asyncio
import json
from contextlib import asynccontextmanager
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from fastapi import Depends, FastAPI, File, Form, HTTPException, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from .core.data_manager import DataManager
from .models.document import DocumentStatus, DocumentType, ReviewDocument
from .models.profile import MatchingOptions, StudentProfile
from .models.review import AnalysisType, ReviewResult, StudentAnalysis, TokenUsage
from .services.review_service import ReviewService, build_review_service
from .utils.config import get_settings
from .utils.errors import (
    CareerReviewError,
    CorruptedDocument,
    DocumentNotFound,
    EmptyContent,
    InvalidStatusTransition,
    InvalidStoragePath,
    ModelError,
    PayloadTooLarge,
    UnsupportedFormat,
)
from .utils.helpers import guess_media_type
from .utils.logger import app_logger

# 异常类型 -> HTTP状态码，按顺序匹配
ERROR_STATUS_CODES = [
    (InvalidStoragePath, 400),
    (DocumentNotFound, 404),
    (InvalidStatusTransition, 409),
    (PayloadTooLarge, 413),
    (UnsupportedFormat, 415),
    (EmptyContent, 422),
    (CorruptedDocument, 422),
    (ModelError, 502),
]


# ==================== 请求/响应模型 ====================

class AnalysisRequest(BaseModel):
    """学生分析请求"""
    analysis_type: AnalysisType = Field(AnalysisType.COMPETENCY, description="分析类型")
    profile: StudentProfile = Field(..., description="学生档案")
    options: Optional[MatchingOptions] = Field(None, description="岗位匹配选项")


class FileReviewResponse(BaseModel):
    """文件直接审阅响应"""
    model_config = ConfigDict(protected_namespaces=())

    result: dict = Field(..., description="审阅结果")
    usage: TokenUsage = Field(..., description="Token用量")
    model_name: str = Field(..., description="使用的模型")


def get_review_service(request: Request) -> ReviewService:
    return request.app.state.review_service


# ==================== 应用工厂 ====================

def create_app(service: Optional[ReviewService] = None) -> FastAPI:
    """创建FastAPI应用，未传入服务时在启动阶段按配置组装"""
    settings = get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owns_service = app.state.review_service is None
        if owns_service:
            app.state.review_service = build_review_service(settings)
        app_logger.info(f"{settings.app.name} 启动完成")
        yield
        if owns_service:
            await app.state.review_service.aclose()

    app = FastAPI(
        title=settings.app.name,
        description="基于Gemini的简历/求职信审阅与学生职业能力分析服务",
        version=settings.app.version,
        lifespan=lifespan
    )
    app.state.review_service = service

    # 添加CORS中间件
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(CareerReviewError)
    async def handle_review_error(request: Request, exc: CareerReviewError):
        status_code = next((code for cls, code in ERROR_STATUS_CODES if isinstance(exc, cls)), 500)
        if status_code >= 500:
            app_logger.error(f"请求处理失败: {request.url.path} - {exc}")
        return JSONResponse(
            status_code=status_code,
            content={"detail": exc.message, "error": type(exc).__name__}
        )

    # ==================== API路由 ====================

    @app.get("/health")
    async def health_check():
        """健康检查"""
        return {
            "status": "healthy",
            "version": settings.app.version,
            "timestamp": datetime.now().isoformat()
        }

    # ==================== 文档管理API ====================

    @app.post("/api/documents", response_model=ReviewDocument, status_code=201)
    async def upload_document(
        user_id: str = Form(...),
        document_type: DocumentType = Form(...),
        title: Optional[str] = Form(None),
        file: UploadFile = File(...),
        service: ReviewService = Depends(get_review_service)
    ):
        """上传简历/求职信"""
        content = await file.read()
        return await service.upload_document(
            user_id=user_id,
            document_type=document_type,
            file_name=file.filename or "document",
            content=content,
            media_type=file.content_type,
            title=title
        )

    @app.get("/api/documents", response_model=List[ReviewDocument])
    async def list_documents(user_id: Optional[str] = None, status: Optional[DocumentStatus] = None,
                             service: ReviewService = Depends(get_review_service)):
        """查询文档列表"""
        return await service.list_documents(user_id=user_id, status=status)

    @app.get("/api/documents/{document_id}", response_model=ReviewDocument)
    async def get_document(document_id: int, service: ReviewService = Depends(get_review_service)):
        """获取文档详情"""
        return await service.get_document(document_id)

    # ==================== 审阅API ====================

    @app.post("/api/documents/{document_id}/review", response_model=ReviewResult)
    async def review_document(document_id: int, service: ReviewService = Depends(get_review_service)):
        """审阅文档"""
        return await service.review_document(document_id)

    @app.get("/api/documents/{document_id}/review", response_model=ReviewResult)
    async def get_review_result(document_id: int, service: ReviewService = Depends(get_review_service)):
        """获取审阅结果"""
        result = await service.get_review_result(document_id)
        if result is None:
            raise HTTPException(status_code=404, detail="审阅结果不存在")
        return result

    @app.post("/api/reviews", response_model=FileReviewResponse)
    async def review_file(
        document_type: DocumentType = Form(DocumentType.RESUME),
        file: UploadFile = File(...),
        service: ReviewService = Depends(get_review_service)
    ):
        """直接审阅上传的文件(不保存)"""
        content = await file.read()
        media_type = file.content_type
        if not media_type or media_type == "application/octet-stream":
            media_type = guess_media_type(file.filename or "")

        response = await service.review_file(content, media_type, document_type)
        return FileReviewResponse(result=response.data, usage=response.usage, model_name=response.model_name)

    # ==================== 学生分析API ====================

    @app.post("/api/students/{user_id}/analyses", response_model=StudentAnalysis, status_code=201)
    async def analyze_student(user_id: str, request: AnalysisRequest,
                              service: ReviewService = Depends(get_review_service)):
        """生成学生分析"""
        return await service.analyze_student(user_id, request.profile, request.analysis_type, request.options)

    @app.get("/api/students/{user_id}/analyses", response_model=List[StudentAnalysis])
    async def list_student_analyses(user_id: str, analysis_type: Optional[AnalysisType] = None,
                                    service: ReviewService = Depends(get_review_service)):
        """获取学生分析记录"""
        return await service.list_student_analyses(user_id, analysis_type)

    return app


# ==================== 命令行接口 ====================

def cli_init_db(args):
    """命令行初始化数据库"""
    settings = get_settings()
    data_manager = DataManager(args.db_path or settings.database.sqlite_path)
    print(f"数据库初始化完成: {data_manager.db_path}")


async def cli_upload(args):
    """命令行上传文档"""
    path = Path(args.file)
    if not path.is_file():
        print(f"错误: 文件不存在 ({args.file})")
        return

    service = build_review_service()
    try:
        document = await service.upload_document(
            user_id=args.user_id,
            document_type=DocumentType(args.type),
            file_name=path.name,
            content=path.read_bytes(),
            media_type=guess_media_type(path.name),
            title=args.title
        )
        print("文档上传成功:")
        print(f"ID: {document.id}")
        print(f"标题: {document.title}")
        print(f"类型: {document.document_type.value}")
        print(f"状态: {document.status.value}")
    except CareerReviewError as e:
        print(f"上传失败: {e.message}")
    finally:
        await service.aclose()


async def cli_review(args):
    """命令行审阅文档"""
    service = build_review_service()
    try:
        result = await service.review_document(args.document_id)
        print(f"审阅完成: 文档 {result.document_id}")
        print(f"综合得分: {result.overall_score}")
        print(f"Token用量: {result.input_tokens}/{result.output_tokens}")
        print(json.dumps(result.raw_result, ensure_ascii=False, indent=2))
    except CareerReviewError as e:
        print(f"审阅失败: {e.message}")
    finally:
        await service.aclose()


def main():
    """主函数"""
    parser = argparse.ArgumentParser(description="AI文档审阅系统")
    subparsers = parser.add_subparsers(dest="command", help="可用命令")

    # 启动API服务器
    server_parser = subparsers.add_parser("server", help="启动API服务器")
    server_parser.add_argument("--host", default="0.0.0.0", help="服务器地址")
    server_parser.add_argument("--port", type=int, default=8000, help="服务器端口")
    server_parser.add_argument("--reload", action="store_true", help="开发模式")

    # 初始化数据库
    db_parser = subparsers.add_parser("init-db", help="初始化数据库")
    db_parser.add_argument("--db-path", help="数据库文件路径")

    # 上传文档
    upload_parser = subparsers.add_parser("upload", help="上传简历/求职信")
    upload_parser.add_argument("user_id", help="学生ID")
    upload_parser.add_argument("file", help="文件路径")
    upload_parser.add_argument("--type", default=DocumentType.RESUME.value,
                               choices=[t.value for t in DocumentType], help="文档类型")
    upload_parser.add_argument("--title", help="标题")

    # 审阅文档
    review_parser = subparsers.add_parser("review", help="审阅已上传的文档")
    review_parser.add_argument("document_id", type=int, help="文档ID")

    args = parser.parse_args()

    if args.command == "server":
        import uvicorn
        uvicorn.run(
            "career_review.main:create_app",
            factory=True,
            host=args.host,
            port=args.port,
            reload=args.reload
        )
    elif args.command == "init-db":
        cli_init_db(args)
    elif args.command == "upload":
        asyncio.run(cli_upload(args))
    elif args.command == "review":
        asyncio.run(cli_review(args))
    else:
        parser.print_help()


if __name__ == "__main__":
    main()
