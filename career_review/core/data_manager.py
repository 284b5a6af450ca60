"""数据管理器核心模块"""

import json
import sqlite3
from contextlib import asynccontextmanager
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from ..models.document import (
    REVIEWABLE_STATUSES,
    DocumentStatus,
    DocumentType,
    ReviewDocument,
    ReviewDocumentCreate,
)
from ..models.review import (
    AnalysisType,
    ReviewResult,
    ReviewResultCreate,
    SectionScore,
    StudentAnalysis,
    StudentAnalysisCreate,
)
from ..utils.config import get_settings
from ..utils.errors import DocumentNotFound, InvalidStatusTransition, PersistenceFailure, ReviewInProgress
from ..utils.helpers import now_iso
from ..utils.logger import db_logger


class DataManager:
    """数据管理器"""

    def __init__(self, db_path: Optional[str] = None):
        self.db_path = db_path or get_settings().database.sqlite_path
        self._init_database()

    def _init_database(self):
        """初始化数据库"""
        try:
            # 确保数据库目录存在
            db_dir = Path(self.db_path).parent
            db_dir.mkdir(parents=True, exist_ok=True)

            with sqlite3.connect(self.db_path) as conn:
                conn.execute("PRAGMA foreign_keys = ON")
                self._create_tables(conn)
                db_logger.info(f"数据库初始化完成: {self.db_path}")
        except Exception as e:
            db_logger.error(f"数据库初始化失败: {str(e)}")
            raise

    def _create_tables(self, conn: sqlite3.Connection):
        """创建数据表"""
        # 审阅文档表
        conn.execute("""
            CREATE TABLE IF NOT EXISTS review_documents (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                user_id TEXT NOT NULL,
                document_type TEXT NOT NULL,
                file_name TEXT NOT NULL,
                title TEXT,
                media_type TEXT NOT NULL,
                storage_uri TEXT NOT NULL,
                file_size INTEGER,
                uploaded_by TEXT,
                status TEXT NOT NULL DEFAULT 'uploaded',
                created_at TIMESTAMP NOT NULL,
                updated_at TIMESTAMP NOT NULL
            )
        """)

        # 审阅结果表 (每个文档最多一条)
        conn.execute("""
            CREATE TABLE IF NOT EXISTS review_results (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                document_id INTEGER NOT NULL UNIQUE,
                user_id TEXT NOT NULL,
                document_type TEXT NOT NULL,
                overall_score INTEGER NOT NULL,
                sections TEXT,  -- JSON array
                improvement_points TEXT,  -- JSON array
                reviewer_comment TEXT,
                raw_result TEXT,  -- JSON object
                input_tokens INTEGER NOT NULL DEFAULT 0,
                output_tokens INTEGER NOT NULL DEFAULT 0,
                model_name TEXT NOT NULL,
                created_at TIMESTAMP NOT NULL,
                FOREIGN KEY (document_id) REFERENCES review_documents (id)
            )
        """)

        # 学生分析表 (每个学生每种类型可有多条)
        conn.execute("""
            CREATE TABLE IF NOT EXISTS student_analyses (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                user_id TEXT NOT NULL,
                analysis_type TEXT NOT NULL,
                result TEXT NOT NULL,  -- JSON object
                input_tokens INTEGER NOT NULL DEFAULT 0,
                output_tokens INTEGER NOT NULL DEFAULT 0,
                model_name TEXT NOT NULL,
                created_at TIMESTAMP NOT NULL
            )
        """)

        # 创建索引
        indexes = [
            "CREATE INDEX IF NOT EXISTS idx_documents_user ON review_documents(user_id)",
            "CREATE INDEX IF NOT EXISTS idx_documents_status ON review_documents(status)",
            "CREATE INDEX IF NOT EXISTS idx_results_user ON review_results(user_id)",
            "CREATE INDEX IF NOT EXISTS idx_analyses_user_type ON student_analyses(user_id, analysis_type)",
        ]

        for index_sql in indexes:
            conn.execute(index_sql)

        conn.commit()

    @asynccontextmanager
    async def get_connection(self):
        """获取数据库连接"""
        conn = None
        try:
            conn = sqlite3.connect(self.db_path)
            conn.execute("PRAGMA foreign_keys = ON")
            conn.row_factory = sqlite3.Row
            yield conn
        except Exception:
            if conn:
                conn.rollback()
            raise
        finally:
            if conn:
                conn.close()

    # ==================== 文档管理 ====================

    async def create_document(self, document_data: ReviewDocumentCreate) -> ReviewDocument:
        """创建文档记录(状态为 uploaded)"""
        try:
            now = now_iso()
            async with self.get_connection() as conn:
                cursor = conn.execute("""
                    INSERT INTO review_documents (
                        user_id, document_type, file_name, title, media_type,
                        storage_uri, file_size, uploaded_by, status, created_at, updated_at
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """, (
                    document_data.user_id,
                    document_data.document_type.value,
                    document_data.file_name,
                    document_data.title,
                    document_data.media_type,
                    document_data.storage_uri,
                    document_data.file_size,
                    document_data.uploaded_by,
                    DocumentStatus.UPLOADED.value,
                    now,
                    now
                ))

                document_id = cursor.lastrowid
                conn.commit()

            document = await self.get_document(document_id)
            db_logger.info(f"创建文档成功: {document.file_name} (ID: {document_id})")

            return document
        except Exception as e:
            db_logger.error(f"创建文档失败: {str(e)}")
            raise

    async def get_document(self, document_id: int) -> Optional[ReviewDocument]:
        """根据ID获取文档"""
        async with self.get_connection() as conn:
            row = conn.execute(
                "SELECT * FROM review_documents WHERE id = ?", (document_id,)
            ).fetchone()

        return self._row_to_document(row) if row else None

    async def list_documents(self, user_id: Optional[str] = None,
                             status: Optional[DocumentStatus] = None,
                             limit: int = 50, offset: int = 0) -> List[ReviewDocument]:
        """按学生/状态查询文档"""
        where_conditions = []
        params = []

        if user_id:
            where_conditions.append("user_id = ?")
            params.append(user_id)

        if status:
            where_conditions.append("status = ?")
            params.append(DocumentStatus(status).value)

        where_clause = " AND ".join(where_conditions) if where_conditions else "1=1"
        params.extend([limit, offset])

        async with self.get_connection() as conn:
            rows = conn.execute(
                f"SELECT * FROM review_documents WHERE {where_clause} "
                f"ORDER BY created_at DESC, id DESC LIMIT ? OFFSET ?",
                params
            ).fetchall()

        return [self._row_to_document(row) for row in rows]

    # ==================== 状态转换 ====================

    async def begin_review(self, document_id: int) -> ReviewDocument:
        """
        开始审阅: uploaded|failed -> reviewing

        使用带条件的UPDATE完成比较并设置，同一文档的并发请求只有一个能成功。

        Raises:
            DocumentNotFound: 文档不存在
            ReviewInProgress: 文档已处于 reviewing
            InvalidStatusTransition: 文档已审阅完成
        """
        allowed = [s.value for s in REVIEWABLE_STATUSES]

        async with self.get_connection() as conn:
            cursor = conn.execute(
                f"UPDATE review_documents SET status = ?, updated_at = ? "
                f"WHERE id = ? AND status IN ({', '.join('?' for _ in allowed)})",
                (DocumentStatus.REVIEWING.value, now_iso(), document_id, *allowed)
            )
            conn.commit()
            updated = cursor.rowcount

        document = await self.get_document(document_id)
        if document is None:
            raise DocumentNotFound(document_id)

        if updated == 0:
            if document.status == DocumentStatus.REVIEWING:
                raise ReviewInProgress(document_id, document.status.value, DocumentStatus.REVIEWING.value)
            raise InvalidStatusTransition(document_id, document.status.value, DocumentStatus.REVIEWING.value)

        db_logger.info(f"文档进入审阅: ID {document_id}")
        return document

    async def complete_review(self, result_data: ReviewResultCreate) -> ReviewResult:
        """
        完成审阅: 写入审阅结果并把文档置为 reviewed，两者在同一事务中提交

        Raises:
            PersistenceFailure: 写入失败或文档不处于 reviewing，事务已回滚
        """
        now = now_iso()
        try:
            async with self.get_connection() as conn:
                cursor = conn.execute("""
                    INSERT INTO review_results (
                        document_id, user_id, document_type, overall_score, sections,
                        improvement_points, reviewer_comment, raw_result,
                        input_tokens, output_tokens, model_name, created_at
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """, (
                    result_data.document_id,
                    result_data.user_id,
                    result_data.document_type.value,
                    result_data.overall_score,
                    json.dumps([s.model_dump() for s in result_data.sections], ensure_ascii=False),
                    json.dumps(result_data.improvement_points, ensure_ascii=False),
                    result_data.reviewer_comment,
                    json.dumps(result_data.raw_result, ensure_ascii=False),
                    result_data.input_tokens,
                    result_data.output_tokens,
                    result_data.model_name,
                    now
                ))
                result_id = cursor.lastrowid

                cursor = conn.execute(
                    "UPDATE review_documents SET status = ?, updated_at = ? WHERE id = ? AND status = ?",
                    (DocumentStatus.REVIEWED.value, now, result_data.document_id, DocumentStatus.REVIEWING.value)
                )
                if cursor.rowcount != 1:
                    raise PersistenceFailure(f"文档 {result_data.document_id} 不处于审阅中，无法保存结果")

                conn.commit()
        except PersistenceFailure:
            db_logger.error(f"保存审阅结果失败: 文档 {result_data.document_id} 状态已变化")
            raise
        except sqlite3.Error as e:
            db_logger.error(f"保存审阅结果失败: {str(e)}")
            raise PersistenceFailure(f"保存审阅结果失败: {str(e)}") from e

        db_logger.info(f"审阅结果已保存: 文档 {result_data.document_id} (结果ID: {result_id})")
        return await self.get_review_result(result_data.document_id)

    async def mark_failed(self, document_id: int) -> None:
        """标记审阅失败: reviewing -> failed"""
        async with self.get_connection() as conn:
            conn.execute(
                "UPDATE review_documents SET status = ?, updated_at = ? WHERE id = ? AND status = ?",
                (DocumentStatus.FAILED.value, now_iso(), document_id, DocumentStatus.REVIEWING.value)
            )
            conn.commit()

        db_logger.warning(f"文档审阅失败: ID {document_id}")

    # ==================== 审阅结果 ====================

    async def get_review_result(self, document_id: int) -> Optional[ReviewResult]:
        """获取文档的审阅结果"""
        async with self.get_connection() as conn:
            row = conn.execute(
                "SELECT * FROM review_results WHERE document_id = ?", (document_id,)
            ).fetchone()

        return self._row_to_review_result(row) if row else None

    async def count_review_results(self, document_id: int) -> int:
        """统计文档的审阅结果数"""
        async with self.get_connection() as conn:
            row = conn.execute(
                "SELECT COUNT(*) FROM review_results WHERE document_id = ?", (document_id,)
            ).fetchone()

        return row[0]

    # ==================== 学生分析 ====================

    async def create_student_analysis(self, analysis_data: StudentAnalysisCreate) -> StudentAnalysis:
        """保存学生分析结果"""
        try:
            async with self.get_connection() as conn:
                cursor = conn.execute("""
                    INSERT INTO student_analyses (
                        user_id, analysis_type, result, input_tokens,
                        output_tokens, model_name, created_at
                    ) VALUES (?, ?, ?, ?, ?, ?, ?)
                """, (
                    analysis_data.user_id,
                    analysis_data.analysis_type.value,
                    json.dumps(analysis_data.result, ensure_ascii=False),
                    analysis_data.input_tokens,
                    analysis_data.output_tokens,
                    analysis_data.model_name,
                    now_iso()
                ))
                analysis_id = cursor.lastrowid
                conn.commit()

                row = conn.execute(
                    "SELECT * FROM student_analyses WHERE id = ?", (analysis_id,)
                ).fetchone()
        except sqlite3.Error as e:
            db_logger.error(f"保存学生分析失败: {str(e)}")
            raise PersistenceFailure(f"保存学生分析失败: {str(e)}") from e

        db_logger.info(f"学生分析已保存: {analysis_data.user_id} - {analysis_data.analysis_type.value}")
        return self._row_to_student_analysis(row)

    async def list_student_analyses(self, user_id: str,
                                    analysis_type: Optional[AnalysisType] = None) -> List[StudentAnalysis]:
        """获取学生的分析记录(最新在前)"""
        sql = "SELECT * FROM student_analyses WHERE user_id = ?"
        params = [user_id]
        if analysis_type:
            sql += " AND analysis_type = ?"
            params.append(AnalysisType(analysis_type).value)
        sql += " ORDER BY created_at DESC, id DESC"

        async with self.get_connection() as conn:
            rows = conn.execute(sql, params).fetchall()

        return [self._row_to_student_analysis(row) for row in rows]

    # ==================== 数据转换方法 ====================

    def _row_to_document(self, row: sqlite3.Row) -> ReviewDocument:
        """将数据库行转换为ReviewDocument对象"""
        return ReviewDocument(
            id=row["id"],
            user_id=row["user_id"],
            document_type=DocumentType(row["document_type"]),
            file_name=row["file_name"],
            title=row["title"],
            media_type=row["media_type"],
            storage_uri=row["storage_uri"],
            file_size=row["file_size"],
            uploaded_by=row["uploaded_by"],
            status=DocumentStatus(row["status"]),
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"])
        )

    def _row_to_review_result(self, row: sqlite3.Row) -> ReviewResult:
        """将数据库行转换为ReviewResult对象"""
        sections = [SectionScore(**s) for s in json.loads(row["sections"])] if row["sections"] else []

        return ReviewResult(
            id=row["id"],
            document_id=row["document_id"],
            user_id=row["user_id"],
            document_type=DocumentType(row["document_type"]),
            overall_score=row["overall_score"],
            sections=sections,
            improvement_points=json.loads(row["improvement_points"]) if row["improvement_points"] else [],
            reviewer_comment=row["reviewer_comment"],
            raw_result=json.loads(row["raw_result"]) if row["raw_result"] else {},
            input_tokens=row["input_tokens"],
            output_tokens=row["output_tokens"],
            model_name=row["model_name"],
            created_at=datetime.fromisoformat(row["created_at"])
        )

    def _row_to_student_analysis(self, row: sqlite3.Row) -> StudentAnalysis:
        """将数据库行转换为StudentAnalysis对象"""
        return StudentAnalysis(
            id=row["id"],
            user_id=row["user_id"],
            analysis_type=AnalysisType(row["analysis_type"]),
            result=json.loads(row["result"]),
            input_tokens=row["input_tokens"],
            output_tokens=row["output_tokens"],
            model_name=row["model_name"],
            created_at=datetime.fromisoformat(row["created_at"])
        )

