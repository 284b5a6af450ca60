"""外部服务集成模块"""

from .gemini_api import GeminiAPI

__all__ = ["GeminiAPI"]
