"""内容来源抽象与本地文件系统实现。"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Protocol, Union

from context_core.domain.models import FILE_SCHEME, file_uri


class ContentSource(Protocol):
    """按 uri 提供原始内容，ResourceStore 与 ContextCompactor 都依赖它。"""

    def read_bytes(self, uri: str) -> bytes:
        ...

    def size(self, uri: str) -> Optional[int]:
        ...

    def is_directory(self, uri: str) -> bool:
        ...

    def list_children(self, uri: str) -> List[str]:
        ...


def uri_to_path(uri: str) -> str:
    raw = uri[len(FILE_SCHEME):] if uri.startswith(FILE_SCHEME) else uri
    return raw.split("#", 1)[0]


@dataclass
class LocalFileContentSource:
    """读取本地文件系统；相对路径以 project_root 为基准。"""

    project_root: Union[str, Path, None] = None

    def __post_init__(self) -> None:
        root = self.project_root or Path.cwd()
        self.project_root = Path(root).expanduser().resolve()

    # ---- helpers -------------------------------------------------

    def _resolve(self, uri: str) -> Path:
        if not uri.startswith(FILE_SCHEME):
            raise ValueError(f"unsupported uri scheme: {uri}")
        base = Path(uri_to_path(uri)).expanduser()
        if base.is_absolute():
            return base
        return self.project_root / base

    # ---- read ops ------------------------------------------------

    def read_bytes(self, uri: str) -> bytes:
        path = self._resolve(uri)
        if not path.is_file():
            raise FileNotFoundError(f"file not found: {path}")
        return path.read_bytes()

    def size(self, uri: str) -> Optional[int]:
        try:
            path = self._resolve(uri)
            return path.stat().st_size if path.is_file() else None
        except (OSError, ValueError):
            return None

    def is_directory(self, uri: str) -> bool:
        try:
            return self._resolve(uri).is_dir()
        except (OSError, ValueError):
            return False

    def list_children(self, uri: str) -> List[str]:
        path = self._resolve(uri)
        if not path.is_dir():
            raise NotADirectoryError(f"not a directory: {path}")
        return [file_uri(child.as_posix()) for child in sorted(path.iterdir(), key=lambda p: p.name)]
