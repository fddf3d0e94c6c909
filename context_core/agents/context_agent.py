"""上下文感知的问答 Agent。

把「任务提示词 + 压缩后的上下文」放进 system 消息，用户输入（以及可选的代码片段）
放进 user 消息，然后交给补全客户端。传入 on_chunk 时走流式。
"""

from typing import Callable, List, Optional

from context_core.context.compactor import ContextCompactor, context_reference_message
from context_core.domain.models import ChatMessage, validate_prompt
from context_core.infrastructure.logging.logger import logger
from context_core.prompts import load_system_prompt
from context_core.providers.base import CompletionProvider


class ContextAgent:
    """带上下文的问答 Agent。

    只依赖 ContextCompactor 与 CompletionProvider，两者都由调用方注入，
    因此同一进程里可以并存多个互不干扰的会话。
    """

    def __init__(self, compactor: ContextCompactor, transport: CompletionProvider):
        self._compactor = compactor
        self._transport = transport

    def build_messages(self, user_input: str, task: str = "chat", code: Optional[str] = None) -> List[ChatMessage]:
        """构造 [system, user] 两条消息。

        Args:
            user_input: 用户输入（指令或问题）
            task: chat / explain / refactor / unit-test，未知任务抛出 ValidationError
            code: 选中的代码（可选），附在用户输入之后
        """

        prompt = load_system_prompt(task)
        context = self._compactor.compact()
        system = f"{prompt}\n\n{context}" if context else prompt
        return [
            ChatMessage(role="system", content=system),
            ChatMessage(role="user", content=_user_content(user_input, code)),
        ]

    def ask(
        self,
        user_input: str,
        task: str = "chat",
        code: Optional[str] = None,
        on_chunk: Optional[Callable[[str], None]] = None,
    ) -> str:
        messages = validate_prompt(self.build_messages(user_input, task=task, code=code))
        logger.info(
            "Context agent ask",
            extra={"extra": {"task": task, "stream": on_chunk is not None, "provider": _provider_name(self._transport)}},
        )
        return self._transport.complete(messages, on_chunk)

    def ask_with_references(self, user_input: str, on_chunk: Optional[Callable[[str], None]] = None) -> str:
        """只把资源引用列表放进 system 消息，不内联内容。"""

        messages = validate_prompt([
            ChatMessage(role="system", content=context_reference_message(self._compactor.store.list())),
            ChatMessage(role="user", content=user_input),
        ])
        return self._transport.complete(messages, on_chunk)


def _user_content(user_input: str, code: Optional[str]) -> str:
    if not code:
        return user_input
    block = f"```\n{code}\n```"
    return f"{user_input}\n\n{block}" if user_input else block


def _provider_name(transport: object) -> str:
    return getattr(transport, "name", None) or type(transport).__name__
