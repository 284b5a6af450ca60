"""学生档案数据模型"""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class RoadmapGoal(BaseModel):
    """路线图目标"""
    model_config = ConfigDict(frozen=True)

    title: str = Field(..., description="目标名称")
    category: str = Field(..., description="目标分类")
    status: str = Field(..., description="进行状态")


class SkillItem(BaseModel):
    """技能"""
    model_config = ConfigDict(frozen=True)

    name: str = Field(..., description="技能名称")
    level: int = Field(..., ge=0, description="熟练等级")
    category: Optional[str] = Field(None, description="技能分类")


class ProjectItem(BaseModel):
    """项目经历"""
    model_config = ConfigDict(frozen=True)

    title: str = Field(..., description="项目名称")
    tech_stack: List[str] = Field(default_factory=list, description="技术栈")
    status: str = Field(..., description="进行状态")


class CertificateItem(BaseModel):
    """证书/获奖"""
    model_config = ConfigDict(frozen=True)

    name: str = Field(..., description="名称")
    type: Optional[str] = Field(None, description="类型")
    issuer: Optional[str] = Field(None, description="颁发机构")


class ActivityLog(BaseModel):
    """每日学习记录"""
    model_config = ConfigDict(frozen=True)

    log_date: str = Field(..., description="日期")
    daily_goal: Optional[str] = Field(None, description="当日目标")
    study_hours: float = Field(0, ge=0, description="学习时长(小时)")


class StudentProfile(BaseModel):
    """学生档案(结构化审阅对象)，构建后不可修改"""
    model_config = ConfigDict(frozen=True)

    name: str = Field(..., description="姓名")
    school: Optional[str] = Field(None, description="学校")
    department: Optional[str] = Field(None, description="专业")
    grade: Optional[int] = Field(None, description="年级")
    target_field: Optional[str] = Field(None, description="意向领域")
    target_company: Optional[str] = Field(None, description="目标企业")
    bio: Optional[str] = Field(None, description="自我介绍")

    # 有序列表
    goals: List[RoadmapGoal] = Field(default_factory=list, description="路线图目标")
    skills: List[SkillItem] = Field(default_factory=list, description="技能")
    projects: List[ProjectItem] = Field(default_factory=list, description="项目")
    certificates: List[CertificateItem] = Field(default_factory=list, description="证书/获奖")
    recent_logs: List[ActivityLog] = Field(default_factory=list, description="最近学习记录")


class MatchingOptions(BaseModel):
    """岗位匹配依据选项"""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    skill_based: bool = Field(True, alias="skillBased", description="基于技能")
    cert_based: bool = Field(True, alias="certBased", description="基于证书")
    portfolio_based: bool = Field(True, alias="portfolioBased", description="基于作品集")
    personality_based: bool = Field(False, alias="personalityBased", description="基于性格/自我介绍")
