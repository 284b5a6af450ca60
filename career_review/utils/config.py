"""配置管理模块"""

from functools import lru_cache

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# 加载环境变量
load_dotenv()


class GeminiConfig(BaseSettings):
    """Gemini API配置"""
    model_config = SettingsConfigDict(env_prefix="GEMINI_", extra="ignore")

    api_key: str = Field("", description="API密钥")
    base_url: str = Field("https://generativelanguage.googleapis.com/v1beta", description="API地址")
    model: str = Field("gemini-2.5-flash", description="模型名称")
    timeout: float = Field(30.0, description="单次请求超时(秒)")
    max_retries: int = Field(2, ge=0, description="最大重试次数")
    retry_delay: float = Field(1.0, ge=0, description="重试间隔(秒)")
    temperature: float = Field(0.2, ge=0, le=2, description="采样温度")


class ReviewConfig(BaseSettings):
    """文档审阅配置"""
    model_config = SettingsConfigDict(env_prefix="REVIEW_", extra="ignore")

    max_document_size_mb: int = Field(10, description="文档大小上限(MB)")

    @property
    def max_document_size_bytes(self) -> int:
        return self.max_document_size_mb * 1024 * 1024


class DatabaseConfig(BaseSettings):
    """数据库配置"""
    model_config = SettingsConfigDict(env_prefix="DATABASE_", extra="ignore")

    url: str = Field("sqlite:///./career_review.db", description="数据库地址")

    @property
    def sqlite_path(self) -> str:
        return self.url.replace("sqlite:///", "")


class StorageConfig(BaseSettings):
    """文件存储配置"""
    model_config = SettingsConfigDict(env_prefix="STORAGE_", extra="ignore")

    root_dir: str = Field("./data/documents", description="文件存储根目录")


class AppConfig(BaseSettings):
    """应用配置"""
    model_config = SettingsConfigDict(env_prefix="APP_", extra="ignore")

    name: str = Field("Career Review Pipeline", description="应用名称")
    version: str = Field("1.0.0", description="应用版本")
    debug: bool = Field(False, description="调试模式")
    log_level: str = Field("INFO", description="日志级别")
    log_dir: str = Field("logs", description="日志目录")


class Settings:
    """全局配置类"""

    def __init__(self):
        self.app = AppConfig()
        self.gemini = GeminiConfig()
        self.review = ReviewConfig()
        self.database = DatabaseConfig()
        self.storage = StorageConfig()


@lru_cache()
def get_settings() -> Settings:
    """获取配置实例"""
    return Settings()
