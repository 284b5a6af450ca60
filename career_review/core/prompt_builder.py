"""
提示词构建模块

每种审阅类型对应一个纯函数：嵌入审阅对象原文、给出评估标准，
并以"只返回指定结构的JSON"的硬性要求结尾。缺失的可选字段统一渲染为占位文本。
"""

from typing import Callable, Dict, Optional, Union

from ..models.profile import MatchingOptions, StudentProfile
from ..models.review import ReviewKind
from ..utils.helpers import or_placeholder, render_list

ReviewSubject = Union[str, StudentProfile]

JSON_INSTRUCTION = "## 请严格按照以下JSON格式输出，只返回JSON对象，不要包含任何其他内容:"

DOCUMENT_REVIEW_SCHEMA = """{
  "overall_score": 0-100之间的整数,
  "sections": [
    {
      "name": "分项名称",
      "score": 0-100之间的整数,
      "feedback": "针对该分项的具体反馈"
    }
  ],
  "improvement_points": ["改进点1", "改进点2", "改进点3"],
  "reviewer_comment": "整体综合评语"
}"""

STUDENT_ANALYSIS_SCHEMA = """{
  "strengths": ["优势1", "优势2", "优势3"],
  "weaknesses": ["待补足1", "待补足2", "待补足3"],
  "recommendations": ["推荐活动1", "推荐活动2", "推荐活动3"],
  "career_fit_score": 0-100之间的整数,
  "skill_scores": [
    {"category": "能力维度", "score": 0-100之间的整数}
  ],
  "suitable_jobs": ["适合岗位1", "适合岗位2"],
  "missing_skills": ["欠缺技能1", "欠缺技能2"],
  "summary": "整体综合评价(2~3句话)"
}"""

JOB_MATCHING_SCHEMA = """{
  "matches": [
    {
      "job_title": "岗位名称",
      "match_rate": 0-100之间的整数,
      "reasons": ["匹配依据1", "匹配依据2"],
      "student_has": ["已具备的技能"],
      "student_lacks": ["欠缺的技能"],
      "preparation_tips": "针对该岗位的准备建议"
    }
  ],
  "overall_readiness": 0-100之间的整数,
  "top_recommendation": "最推荐的岗位及理由",
  "growth_plan": "未来3~6个月的成长计划"
}"""

COUNSELING_SUGGESTION_SCHEMA = """{
  "suggested_topics": ["辅导主题1", "辅导主题2", "辅导主题3"],
  "priority_areas": ["优先改进领域1", "优先改进领域2"],
  "talking_points": ["谈话要点1", "谈话要点2", "谈话要点3"],
  "overall_assessment": "综合评价及辅导方向建议(2~3句话)"
}"""


def _with_json_instruction(body: str, schema: str) -> str:
    return f"{body}\n\n{JSON_INSTRUCTION}\n{schema}"


def _render_profile_header(profile: StudentProfile, include_bio: bool = True) -> str:
    lines = [
        f"- 姓名: {profile.name}",
        f"- 学校: {or_placeholder(profile.school)}",
        f"- 专业: {or_placeholder(profile.department)}",
        f"- 年级: {or_placeholder(profile.grade)}",
        f"- 意向领域: {or_placeholder(profile.target_field)}",
        f"- 目标企业: {or_placeholder(profile.target_company)}",
    ]
    if include_bio:
        lines.append(f"- 自我介绍: {or_placeholder(profile.bio)}")
    return "\n".join(lines)


def _render_goals(profile: StudentProfile) -> str:
    return render_list(f"[{g.status}] {g.title} ({g.category})" for g in profile.goals)


def _render_skills(profile: StudentProfile, with_category: bool = True) -> str:
    def fmt(skill):
        if with_category and skill.category:
            return f"{skill.name} (Lv.{skill.level}, {skill.category})"
        return f"{skill.name} (Lv.{skill.level})"

    return render_list(fmt(s) for s in profile.skills)


def _render_projects(profile: StudentProfile, with_stack: bool = True) -> str:
    def fmt(project):
        if with_stack:
            return f"[{project.status}] {project.title} ({', '.join(project.tech_stack) or '未填写'})"
        return f"[{project.status}] {project.title}"

    return render_list(fmt(p) for p in profile.projects)


def _render_certificates(profile: StudentProfile, with_detail: bool = True) -> str:
    def fmt(cert):
        if not with_detail:
            return cert.name
        detail = ", ".join(part for part in (cert.type, cert.issuer) if part)
        return f"{cert.name} ({detail})" if detail else cert.name

    return render_list(fmt(c) for c in profile.certificates)


def build_resume_review_prompt(text: str) -> str:
    """构建简历审阅提示词"""
    body = f"""你是一名熟悉求职市场的专业简历顾问。
请分析下面的简历并给出详细反馈。

## 简历内容:
{text}

## 评估标准:
1. 工作/实习经历 - 是否以成果为导向，是否包含具体数据
2. 教育背景/证书 - 相关性及书写方式
3. 技术栈 - 与目标岗位的匹配度及先进性
4. 个人简介 - 差异化亮点，是否简洁
5. 整体结构 - 可读性与逻辑性"""
    return _with_json_instruction(body, DOCUMENT_REVIEW_SCHEMA)


def build_cover_letter_review_prompt(text: str) -> str:
    """构建求职信审阅提示词"""
    body = f"""你是一名拥有10年以上企业招聘经验的求职信顾问。
请分析下面的求职信并给出详细反馈。

## 求职信内容:
{text}

## 评估标准:
1. 成长经历 - 真实性及与岗位的关联
2. 性格/优缺点 - 是否有具体事例，是否契合岗位
3. 求职动机 - 对企业的了解程度与热情
4. 入职后规划 - 具体性与可行性
5. 整体结构 - 逻辑、文笔与拼写"""
    return _with_json_instruction(body, DOCUMENT_REVIEW_SCHEMA)


def build_student_analysis_prompt(profile: StudentProfile) -> str:
    """构建学生能力分析提示词"""
    body = f"""你是一名大学生职业规划专家。
请综合分析下面学生的档案与活动数据，评估其职业能力。

## 学生档案:
{_render_profile_header(profile)}

## 路线图目标:
{_render_goals(profile)}

## 已掌握技能:
{_render_skills(profile)}

## 项目经历:
{_render_projects(profile)}

## 证书/获奖:
{_render_certificates(profile)}

## 评估标准:
1. 技能深度与广度 - 与意向领域的契合程度
2. 实践经验 - 项目的完成度与技术含量
3. 资质证明 - 证书/获奖的相关性
4. 目标执行 - 路线图目标的推进情况
5. 职业匹配度 - 综合给出0-100的评分"""
    return _with_json_instruction(body, STUDENT_ANALYSIS_SCHEMA)


def build_job_matching_prompt(profile: StudentProfile, options: Optional[MatchingOptions] = None) -> str:
    """构建岗位匹配提示词"""
    options = options or MatchingOptions()

    criteria = []
    if options.skill_based:
        criteria.append("技能匹配 - 已掌握技能与岗位要求的重合程度")
    if options.cert_based:
        criteria.append("资质匹配 - 证书/获奖与岗位的相关性")
    if options.portfolio_based:
        criteria.append("作品集匹配 - 项目经历与岗位实际工作的相似度")
    if options.personality_based:
        criteria.append("性格匹配 - 自我介绍体现的性格与岗位特点的契合度")
    if not criteria:
        criteria.append("综合匹配 - 根据全部档案信息综合判断")
    rubric = "\n".join(f"{i}. {c}" for i, c in enumerate(criteria, start=1))

    body = f"""你是一名熟悉各行业招聘需求的就业匹配顾问。
请根据下面学生的档案，推荐3~5个最适合的岗位并给出匹配分析。

## 学生档案:
{_render_profile_header(profile, include_bio=options.personality_based)}

## 路线图目标:
{_render_goals(profile)}

## 已掌握技能:
{_render_skills(profile)}

## 项目经历:
{_render_projects(profile)}

## 证书/获奖:
{_render_certificates(profile)}

## 匹配标准:
{rubric}"""
    return _with_json_instruction(body, JOB_MATCHING_SCHEMA)


def build_counseling_suggestion_prompt(profile: StudentProfile) -> str:
    """构建辅导建议提示词"""
    logs = render_list(
        f"{log.log_date}: {log.daily_goal or '未设定目标'} ({log.study_hours:g}小时)"
        for log in profile.recent_logs
    )

    body = f"""你是一名大学生就业辅导专家。
请根据下面学生的数据，为接下来的辅导面谈提出建议。

## 学生信息:
{_render_profile_header(profile, include_bio=False)}

## 路线图目标:
{_render_goals(profile)}

## 已掌握技能:
{_render_skills(profile, with_category=False)}

## 项目经历:
{_render_projects(profile, with_stack=False)}

## 证书:
{_render_certificates(profile, with_detail=False)}

## 最近学习记录:
{logs}

## 评估标准:
1. 目标进度 - 路线图目标是否停滞
2. 学习投入 - 最近学习记录的连续性与时长
3. 能力缺口 - 与意向领域相比欠缺的部分
4. 辅导重点 - 最需要优先讨论的话题"""
    return _with_json_instruction(body, COUNSELING_SUGGESTION_SCHEMA)


_TEXT_BUILDERS: Dict[ReviewKind, Callable[[str], str]] = {
    ReviewKind.RESUME: build_resume_review_prompt,
    ReviewKind.COVER_LETTER: build_cover_letter_review_prompt,
}

_PROFILE_BUILDERS: Dict[ReviewKind, Callable[[StudentProfile], str]] = {
    ReviewKind.STUDENT_ANALYSIS: build_student_analysis_prompt,
    ReviewKind.COUNSELING_SUGGESTION: build_counseling_suggestion_prompt,
}


def build_prompt(kind: ReviewKind, subject: ReviewSubject, options: Optional[MatchingOptions] = None) -> str:
    """按审阅类型构建提示词"""
    kind = ReviewKind(kind)

    if kind in _TEXT_BUILDERS:
        if not isinstance(subject, str):
            raise TypeError(f"{kind.value} 审阅需要文本内容")
        return _TEXT_BUILDERS[kind](subject)

    if not isinstance(subject, StudentProfile):
        raise TypeError(f"{kind.value} 审阅需要学生档案")

    if kind == ReviewKind.JOB_MATCHING:
        return build_job_matching_prompt(subject, options)
    return _PROFILE_BUILDERS[kind](subject)
