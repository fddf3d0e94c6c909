import threading
from typing import Dict, List, Optional

from context_core.domain.exceptions import ResourceNotFoundError, ResourceUnavailableError
from context_core.domain.models import ContextResource
from context_core.infrastructure.storage.content_source import ContentSource, LocalFileContentSource


class ResourceStore:
    """按 uri 索引的内存资源表，生命周期与所属会话一致，不做持久化。"""

    def __init__(self, content_source: Optional[ContentSource] = None):
        self._resources: Dict[str, ContextResource] = {}
        self._content_source = content_source or LocalFileContentSource()
        self._lock = threading.RLock()

    @property
    def content_source(self) -> ContentSource:
        return self._content_source

    def add(self, resource: ContextResource) -> bool:
        with self._lock:
            self._resources[resource.uri] = resource
        return True

    def remove(self, uri: str) -> bool:
        with self._lock:
            return self._resources.pop(uri, None) is not None

    def contains(self, uri: str) -> bool:
        with self._lock:
            return uri in self._resources

    def get(self, uri: str) -> Optional[ContextResource]:
        with self._lock:
            return self._resources.get(uri)

    def list(self) -> List[ContextResource]:
        with self._lock:
            return list(self._resources.values())

    def uris(self) -> List[str]:
        with self._lock:
            return list(self._resources.keys())

    def clear(self) -> None:
        with self._lock:
            self._resources.clear()

    def read(self, uri: str) -> str:
        with self._lock:
            resource = self._resources.get(uri)
            if resource is None:
                raise ResourceNotFoundError(uri)
            if resource.content is not None:
                return resource.content
            try:
                raw = self._content_source.read_bytes(uri)
            except Exception as exc:  # noqa: BLE001 - 任何解析失败都转换为 ResourceUnavailableError
                raise ResourceUnavailableError(uri, str(exc) or type(exc).__name__) from exc
        return raw.decode("utf-8", errors="replace")

    def __contains__(self, uri: object) -> bool:
        return isinstance(uri, str) and self.contains(uri)

    def __len__(self) -> int:
        with self._lock:
            return len(self._resources)
