"""文件存储模块"""

import uuid
from pathlib import Path
from typing import Protocol
from urllib.parse import unquote, urlparse
from urllib.request import url2pathname

from ..utils.errors import BlobNotFound, InvalidStoragePath, StorageError
from ..utils.logger import app_logger


class BlobStore(Protocol):
    """文件存储接口"""

    def put_bytes(self, owner: str, file_name: str, blob: bytes) -> str: ...

    def get_bytes(self, uri: str) -> bytes: ...


class LocalBlobStore:
    """本地文件系统存储，返回 file:// 地址，所有读写限制在根目录内"""

    def __init__(self, root_dir: str):
        self.root = Path(root_dir).resolve()
        self.root.mkdir(parents=True, exist_ok=True)

    def _contained(self, path: Path, label: str) -> Path:
        resolved = path.resolve()
        if resolved == self.root or not resolved.is_relative_to(self.root):
            raise InvalidStoragePath(f"存储路径超出根目录: {label}")
        return resolved

    def _owner_dir(self, owner: str) -> Path:
        return self._contained(self.root / owner, owner)

    def put_bytes(self, owner: str, file_name: str, blob: bytes) -> str:
        """保存文件，文件名加随机前缀避免覆盖"""
        safe_name = Path(file_name).name or "document"
        path = self._owner_dir(owner) / f"{uuid.uuid4().hex}_{safe_name}"
        path.parent.mkdir(parents=True, exist_ok=True)

        tmp = path.with_suffix(path.suffix + ".tmp")
        try:
            tmp.write_bytes(blob)
            tmp.replace(path)
        except OSError as e:
            app_logger.error(f"文件保存失败: {path} - {str(e)}")
            raise StorageError(f"文件保存失败: {safe_name}", {"reason": str(e)}) from e

        app_logger.info(f"文件已保存: {path} ({len(blob)} 字节)")
        return path.as_uri()

    def get_bytes(self, uri: str) -> bytes:
        """按 file:// 地址读取文件"""
        parsed = urlparse(uri)
        if parsed.scheme != "file":
            raise StorageError(f"不支持的存储地址: {uri}")

        path = self._contained(Path(url2pathname(unquote(parsed.path))), uri)
        if not path.is_file():
            raise BlobNotFound(f"文件不存在: {uri}")

        return path.read_bytes()
