"""补全 Provider 抽象接口。

上层 ContextAgent 不直接依赖具体的 HTTP 实现，而是依赖此协议，
测试中可以用简单的假对象替换。
"""

from typing import Callable, Optional, Protocol, Sequence

from context_core.domain.models import ChatMessage


class CompletionProvider(Protocol):
    """补全客户端协议。

    实现者需要提供：
    - name: Provider 名称，用于日志。
    - complete(messages, on_chunk): 返回完整回答文本；传入 on_chunk 时走流式，
      每个增量片段按顺序回调一次。失败时返回哨兵字符串而不是抛出。
    """

    name: str

    def complete(
        self,
        messages: Sequence[ChatMessage],
        on_chunk: Optional[Callable[[str], None]] = None,
    ) -> str:
        ...
