"""核心模块"""

from .blob_store import BlobStore, LocalBlobStore
from .data_manager import DataManager
from .prompt_builder import build_prompt
from .text_extractor import TextExtractor, extract_text

__all__ = [
    "BlobStore",
    "LocalBlobStore",
    "DataManager",
    "build_prompt",
    "TextExtractor",
    "extract_text",
]
