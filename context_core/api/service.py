"""对外 API 服务模块。

提供 ContextSession 供上层应用（IDE 插件、CLI 等）调用。每个会话自带独立的
资源表、协议处理器、压缩器、补全客户端与远程客户端，不使用进程级单例。
"""

from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Union

from context_core.agents.context_agent import ContextAgent
from context_core.config.settings import settings
from context_core.context.compactor import ContextCompactor
from context_core.context.extraction import PythonStructureExtractor, StructureExtractor
from context_core.context.resources import resource_from_path, selection_resource, structure_resources
from context_core.domain.models import ContextResource
from context_core.infrastructure.logging.logger import logger
from context_core.infrastructure.storage.content_source import ContentSource, LocalFileContentSource
from context_core.infrastructure.storage.resource_store import ResourceStore
from context_core.protocol.client import RemoteProtocolClient
from context_core.protocol.dispatcher import ProtocolDispatcher
from context_core.providers.base import CompletionProvider
from context_core.providers.completion_client import CompletionClient


class ContextSession:
    """一个上下文会话。

    Attributes:
        store: 本会话的资源表
        dispatcher: 基于 store 的本地协议处理器
        compactor: 上下文压缩器
        agent: 问答 Agent
        remote: 远程协议客户端
    """

    def __init__(
        self,
        cfg=settings,
        content_source: Optional[ContentSource] = None,
        transport: Optional[CompletionProvider] = None,
        remote_client: Optional[RemoteProtocolClient] = None,
        extractor: Optional[StructureExtractor] = None,
    ):
        self.settings = cfg
        self.store = ResourceStore(content_source or LocalFileContentSource(cfg.workspace_root))
        self.dispatcher = ProtocolDispatcher(self.store)
        self._extractor = extractor or PythonStructureExtractor()
        self.compactor = ContextCompactor(self.store, self._extractor)
        self.transport = transport or CompletionClient(cfg)
        self.remote = remote_client or RemoteProtocolClient(cfg)
        self.agent = ContextAgent(self.compactor, self.transport)

    # ---- resources ----

    def add_path(self, path: Union[str, Path]) -> ContextResource:
        """把文件或目录加入上下文（内容按需读取）。"""

        resource = resource_from_path(path)
        self.store.add(resource)
        return resource

    def add_selection(self, path: str, text: str, start_line: int, end_line: int) -> ContextResource:
        resource = selection_resource(path, text, start_line, end_line)
        self.store.add(resource)
        return resource

    def add_structure(self, path: str, source: str) -> List[ContextResource]:
        """把文件中的类 / 方法 / 字段定义逐个加入上下文。"""

        resources = structure_resources(path, source, self._extractor)
        for resource in resources:
            self.store.add(resource)
        return resources

    def remove(self, uri: str) -> bool:
        return self.store.remove(uri)

    def clear(self) -> None:
        self.store.clear()

    def list_resources(self) -> List[Dict[str, Any]]:
        return [r.to_dict() for r in self.store.list()]

    def import_remote(self, url: str) -> bool:
        return self.remote.import_remote_resources_to_local(url, self.store)

    # ---- completion ----

    def compact(self) -> str:
        return self.compactor.compact()

    def ask(
        self,
        user_input: str,
        task: str = "chat",
        code: Optional[str] = None,
        on_chunk: Optional[Callable[[str], None]] = None,
    ) -> str:
        try:
            return self.agent.ask(user_input, task=task, code=code, on_chunk=on_chunk)
        except Exception as e:
            logger.error(f"Ask failed: {e}", extra={"extra": {"task": task, "error": str(e)}})
            raise

    # ---- lifecycle ----

    def close(self) -> None:
        close = getattr(self.transport, "close", None)
        try:
            if callable(close):
                close()
        finally:
            self.remote.close()

    def __enter__(self) -> "ContextSession":
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()


def create_session(cfg=None, **kwargs: Any) -> ContextSession:
    """创建新会话，cfg 缺省时使用模块级配置。"""

    return ContextSession(cfg or settings, **kwargs)
