"""LLM 补全集成层。

该包下的模块负责：
- 定义补全 Provider 抽象接口 (base)。
- 提供 OpenAI 兼容 chat-completion 的具体实现 (completion_client)。
"""

from context_core.config.settings import settings
from context_core.providers.base import CompletionProvider
from context_core.providers.completion_client import CompletionClient, CompletionResult


def create_completion_client(cfg=None) -> CompletionClient:
    """根据配置创建补全客户端，默认取模块级配置。"""

    return CompletionClient(cfg or settings)


__all__ = ["CompletionClient", "CompletionProvider", "CompletionResult", "create_completion_client"]
