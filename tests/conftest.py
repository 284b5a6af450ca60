"""测试公共夹具"""

import io
import json
from typing import Any, Dict, List, Optional

import httpx
import pytest

from career_review.core.blob_store import LocalBlobStore
from career_review.core.data_manager import DataManager
from career_review.core.text_extractor import TextExtractor
from career_review.integrations.gemini_api import GeminiAPI
from career_review.services.review_service import ReviewService

DOCUMENT_REVIEW = {
    "overall_score": 78,
    "sections": [
        {"name": "工作经历", "score": 80, "feedback": "成果描述较具体"},
        {"name": "技术栈", "score": 75, "feedback": "可以补充云原生相关经验"},
    ],
    "improvement_points": ["量化项目成果", "补充开源贡献", "精简个人简介"],
    "reviewer_comment": "整体结构清晰，建议突出核心项目。",
}

JOB_MATCHING = {
    "matches": [
        {
            "job_title": "后端开发工程师",
            "match_rate": 82,
            "reasons": ["熟悉Python", "有API项目经验"],
            "student_has": ["Python", "FastAPI"],
            "student_lacks": ["Kubernetes"],
            "preparation_tips": "补充容器化部署经验",
        }
    ],
    "overall_readiness": 70,
    "top_recommendation": "后端开发工程师",
    "growth_plan": "三个月内完成一个完整的微服务项目",
}


def gemini_response(data: Any, fenced: bool = False, input_tokens: int = 120,
                    output_tokens: int = 45, status_code: int = 200) -> httpx.Response:
    """构造 generateContent 响应"""
    text = data if isinstance(data, str) else json.dumps(data, ensure_ascii=False)
    if fenced:
        text = f"```json\n{text}\n```"

    return httpx.Response(status_code, json={
        "candidates": [{"content": {"role": "model", "parts": [{"text": text}]}}],
        "usageMetadata": {"promptTokenCount": input_tokens, "candidatesTokenCount": output_tokens},
    })


class GeminiStub:
    """按顺序返回预设响应的 MockTransport 处理器"""

    def __init__(self):
        self.queue: List[Any] = []
        self.fallback = None
        self.requests: List[httpx.Request] = []

    def push(self, *items):
        self.queue.extend(items)

    def always(self, factory):
        self.fallback = factory

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        item = self.queue.pop(0) if self.queue else self.fallback
        if callable(item) and not isinstance(item, httpx.Response):
            item = item()
        if isinstance(item, Exception):
            raise item
        if item is None:
            raise AssertionError("没有预设的模型响应")
        return item

    @property
    def calls(self) -> int:
        return len(self.requests)

    @property
    def prompts(self) -> List[str]:
        return [json.loads(r.content)["contents"][0]["parts"][0]["text"] for r in self.requests]


class SleepRecorder:
    """替代 asyncio.sleep，只记录等待时长"""

    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


def make_pdf(text: str) -> bytes:
    """生成只有一页文字的最小PDF"""
    stream = f"BT /F1 12 Tf 72 720 Td ({text}) Tj ET".encode("latin-1")
    objects = [
        b"<< /Type /Catalog /Pages 2 0 R >>",
        b"<< /Type /Pages /Kids [3 0 R] /Count 1 >>",
        b"<< /Type /Page /Parent 2 0 R /MediaBox [0 0 612 792] "
        b"/Contents 4 0 R /Resources << /Font << /F1 5 0 R >> >> >>",
        b"<< /Length %d >>\nstream\n" % len(stream) + stream + b"\nendstream",
        b"<< /Type /Font /Subtype /Type1 /BaseFont /Helvetica >>",
    ]

    out = io.BytesIO()
    out.write(b"%PDF-1.4\n")
    offsets = []
    for number, body in enumerate(objects, start=1):
        offsets.append(out.tell())
        out.write(b"%d 0 obj\n" % number + body + b"\nendobj\n")

    xref_offset = out.tell()
    out.write(b"xref\n0 %d\n" % (len(objects) + 1))
    out.write(b"0000000000 65535 f \n")
    for offset in offsets:
        out.write(b"%010d 00000 n \n" % offset)
    out.write(b"trailer\n<< /Size %d /Root 1 0 R >>\n" % (len(objects) + 1))
    out.write(b"startxref\n%d\n%%%%EOF\n" % xref_offset)

    return out.getvalue()


def make_docx(paragraphs: List[str], table: Optional[List[List[str]]] = None) -> bytes:
    """生成DOCX文件"""
    from docx import Document

    doc = Document()
    for text in paragraphs:
        doc.add_paragraph(text)

    if table:
        grid = doc.add_table(rows=len(table), cols=len(table[0]))
        for row, values in zip(grid.rows, table):
            for cell, value in zip(row.cells, values):
                cell.text = value

    buffer = io.BytesIO()
    doc.save(buffer)
    return buffer.getvalue()


@pytest.fixture
def gemini_stub():
    return GeminiStub()


@pytest.fixture
def sleep_recorder():
    return SleepRecorder()


@pytest.fixture
def model_client(gemini_stub, sleep_recorder):
    """使用 MockTransport 的 Gemini 客户端"""
    return GeminiAPI(
        api_key="test-key",
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(gemini_stub.handler)),
        sleep=sleep_recorder,
    )


@pytest.fixture
def data_manager(tmp_path):
    return DataManager(str(tmp_path / "review.db"))


@pytest.fixture
def blob_store(tmp_path):
    return LocalBlobStore(str(tmp_path / "blobs"))


@pytest.fixture
def extractor():
    return TextExtractor()


@pytest.fixture
def review_service(data_manager, blob_store, extractor, model_client):
    return ReviewService(
        data_manager=data_manager,
        blob_store=blob_store,
        extractor=extractor,
        model_client=model_client,
    )


@pytest.fixture
def student_profile_data() -> Dict[str, Any]:
    return {
        "name": "张三",
        "school": "华南理工大学",
        "department": "计算机科学与技术",
        "grade": 3,
        "target_field": "后端开发",
        "goals": [{"title": "完成微服务项目", "category": "项目", "status": "进行中"}],
        "skills": [{"name": "Python", "level": 4, "category": "编程语言"}],
        "projects": [{"title": "校园二手平台", "tech_stack": ["FastAPI", "Vue"], "status": "已完成"}],
        "certificates": [{"name": "软件设计师", "type": "证书", "issuer": "工信部"}],
    }
