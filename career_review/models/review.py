"""审阅结果数据模型"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Type

from pydantic import BaseModel, ConfigDict, Field

from .document import DocumentType


class ReviewKind(str, Enum):
    """审阅类型枚举"""
    RESUME = "resume"  # 简历审阅
    COVER_LETTER = "cover_letter"  # 求职信审阅
    STUDENT_ANALYSIS = "student_analysis"  # 学生能力分析
    JOB_MATCHING = "job_matching"  # 岗位匹配
    COUNSELING_SUGGESTION = "counseling_suggestion"  # 辅导建议


class AnalysisType(str, Enum):
    """学生分析记录类型"""
    COMPETENCY = "competency"
    JOB_MATCHING = "job_matching"
    COUNSELING = "counseling"


# ==================== 模型输出结构 ====================

class SectionScore(BaseModel):
    """分项评分"""
    name: str = Field(..., description="分项名称")
    score: int = Field(..., ge=0, le=100, description="得分(0-100)")
    feedback: str = Field(..., description="分项反馈")


class DocumentReviewPayload(BaseModel):
    """简历/求职信审阅结果"""
    overall_score: int = Field(..., ge=0, le=100, description="综合得分(0-100)")
    sections: List[SectionScore] = Field(default_factory=list, description="分项评分")
    improvement_points: List[str] = Field(default_factory=list, description="改进建议")
    reviewer_comment: str = Field(..., description="总评")


class SkillScore(BaseModel):
    """能力维度得分"""
    category: str = Field(..., description="能力维度")
    score: int = Field(..., ge=0, le=100, description="得分(0-100)")


class StudentAnalysisPayload(BaseModel):
    """学生能力分析结果"""
    strengths: List[str] = Field(default_factory=list, description="优势")
    weaknesses: List[str] = Field(default_factory=list, description="待补足")
    recommendations: List[str] = Field(default_factory=list, description="推荐活动")
    career_fit_score: int = Field(..., ge=0, le=100, description="职业匹配度(0-100)")
    skill_scores: List[SkillScore] = Field(default_factory=list, description="能力维度得分")
    suitable_jobs: List[str] = Field(default_factory=list, description="适合岗位")
    missing_skills: List[str] = Field(default_factory=list, description="欠缺技能")
    summary: str = Field(..., description="综合评价")


class JobMatch(BaseModel):
    """单个岗位匹配结果"""
    job_title: str = Field(..., description="岗位名称")
    match_rate: int = Field(..., ge=0, le=100, description="匹配度(0-100)")
    reasons: List[str] = Field(default_factory=list, description="匹配依据")
    student_has: List[str] = Field(default_factory=list, description="已具备技能")
    student_lacks: List[str] = Field(default_factory=list, description="欠缺技能")
    preparation_tips: Optional[str] = Field(None, description="准备建议")


class JobMatchingPayload(BaseModel):
    """岗位匹配结果"""
    matches: List[JobMatch] = Field(default_factory=list, description="岗位匹配列表")
    overall_readiness: int = Field(..., ge=0, le=100, description="整体就业准备度(0-100)")
    top_recommendation: str = Field(..., description="首推岗位")
    growth_plan: str = Field(..., description="成长计划")


class CounselingSuggestionPayload(BaseModel):
    """辅导建议结果"""
    suggested_topics: List[str] = Field(default_factory=list, description="建议辅导主题")
    priority_areas: List[str] = Field(default_factory=list, description="优先改进领域")
    talking_points: List[str] = Field(default_factory=list, description="谈话要点")
    overall_assessment: str = Field(..., description="综合评价与辅导方向")


REVIEW_SCHEMAS: Dict[ReviewKind, Type[BaseModel]] = {
    ReviewKind.RESUME: DocumentReviewPayload,
    ReviewKind.COVER_LETTER: DocumentReviewPayload,
    ReviewKind.STUDENT_ANALYSIS: StudentAnalysisPayload,
    ReviewKind.JOB_MATCHING: JobMatchingPayload,
    ReviewKind.COUNSELING_SUGGESTION: CounselingSuggestionPayload,
}

DOCUMENT_REVIEW_KINDS: Dict[DocumentType, ReviewKind] = {
    DocumentType.RESUME: ReviewKind.RESUME,
    DocumentType.COVER_LETTER: ReviewKind.COVER_LETTER,
}

ANALYSIS_REVIEW_KINDS: Dict[AnalysisType, ReviewKind] = {
    AnalysisType.COMPETENCY: ReviewKind.STUDENT_ANALYSIS,
    AnalysisType.JOB_MATCHING: ReviewKind.JOB_MATCHING,
    AnalysisType.COUNSELING: ReviewKind.COUNSELING_SUGGESTION,
}


# ==================== 调用结果 ====================

class TokenUsage(BaseModel):
    """Token用量"""
    input_tokens: int = Field(0, ge=0, description="输入Token数")
    output_tokens: int = Field(0, ge=0, description="输出Token数")


class ModelResponse(BaseModel):
    """一次成功的模型调用结果"""
    model_config = ConfigDict(protected_namespaces=())

    data: Dict[str, Any] = Field(..., description="解析后的JSON对象")
    usage: TokenUsage = Field(default_factory=TokenUsage, description="Token用量")
    model_name: str = Field(..., description="使用的模型")
    attempts: int = Field(1, ge=1, description="实际尝试次数")
    payload: Optional[Any] = Field(None, description="按结构校验后的对象")


# ==================== 持久化记录 ====================

class ReviewResultCreate(BaseModel):
    """创建审阅结果模型"""
    model_config = ConfigDict(protected_namespaces=())

    document_id: int = Field(..., description="文档ID")
    user_id: str = Field(..., description="所属学生ID")
    document_type: DocumentType = Field(..., description="文档类型")
    overall_score: int = Field(..., ge=0, le=100, description="综合得分(0-100)")
    sections: List[SectionScore] = Field(default_factory=list, description="分项评分")
    improvement_points: List[str] = Field(default_factory=list, description="改进建议")
    reviewer_comment: Optional[str] = Field(None, description="总评")
    raw_result: Dict[str, Any] = Field(default_factory=dict, description="模型原始输出")
    input_tokens: int = Field(0, ge=0, description="输入Token数")
    output_tokens: int = Field(0, ge=0, description="输出Token数")
    model_name: str = Field(..., description="使用的模型")


class ReviewResult(ReviewResultCreate):
    """完整审阅结果模型"""
    model_config = ConfigDict(from_attributes=True)

    id: int = Field(..., description="审阅结果ID")
    created_at: datetime = Field(..., description="创建时间")


class StudentAnalysisCreate(BaseModel):
    """创建学生分析记录模型"""
    model_config = ConfigDict(protected_namespaces=())

    user_id: str = Field(..., description="学生ID")
    analysis_type: AnalysisType = Field(..., description="分析类型")
    result: Dict[str, Any] = Field(..., description="分析结果")
    input_tokens: int = Field(0, ge=0, description="输入Token数")
    output_tokens: int = Field(0, ge=0, description="输出Token数")
    model_name: str = Field(..., description="使用的模型")


class StudentAnalysis(StudentAnalysisCreate):
    """完整学生分析记录模型"""
    model_config = ConfigDict(from_attributes=True)

    id: int = Field(..., description="分析记录ID")
    created_at: datetime = Field(..., description="创建时间")
