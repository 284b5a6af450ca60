"""AI文档审阅系统"""

__version__ = "1.0.0"
