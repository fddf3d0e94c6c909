"""Context Core 顶层包。

该包提供 IDE 助手的上下文管理核心实现，
包括配置加载、资源模型、资源协议（本地处理器与远程客户端）、
上下文压缩、补全客户端与问答会话等能力。
"""

from context_core.api.service import ContextSession, create_session

__all__ = ["ContextSession", "create_session"]
