"""工具模块"""

from .config import Settings, get_settings
from .logger import app_logger, ai_logger, db_logger, get_logger

__all__ = [
    "Settings",
    "get_settings",
    "app_logger",
    "ai_logger",
    "db_logger",
    "get_logger",
]
