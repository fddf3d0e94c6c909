"""OpenAI 兼容的 chat-completion 客户端。

本模块负责：

1. 把有序的 ChatMessage 列表转换为 ``{base_url}/v1/chat/completions`` 的请求体。
2. 非流式：解析整段 JSON 响应。
3. 流式：逐行读取 ``data: <json>`` 帧，每个非空增量立即回调 on_chunk，
   遇到 ``data: [DONE]`` 或连接关闭时结束。
4. 内部使用 CompletionResult 表达成功 / 失败；``complete()`` 在兼容边界上
   把失败转换为哨兵字符串（"API Error: ..."、"Network error: ..." 等），从不抛出。

同一份响应内容，非流式返回的文本与流式回调片段拼接后的文本一致。
"""

import json
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Sequence

import httpx

from context_core.config.settings import settings
from context_core.domain.exceptions import ApiError, BusinessError, NetworkError
from context_core.domain.models import ChatMessage
from context_core.infrastructure.logging.logger import logger


ChunkCallback = Callable[[str], None]

COMPLETION_PATH = "/v1/chat/completions"
TEMPERATURE = 0.2
STREAM_PREFIX = "data:"
STREAM_DONE = "[DONE]"


@dataclass
class CompletionResult:
    """一次补全调用的结果。

    - ok: 是否成功。
    - text: 成功时为完整回答；流式中途失败时为已收到的部分文本。
    - error: 失败原因，error.message 即兼容层使用的哨兵字符串。
    - chunks: 流式模式下回调 on_chunk 的次数。
    """

    ok: bool
    text: str
    error: Optional[BusinessError] = None
    chunks: int = 0

    def as_text(self) -> str:
        if self.ok or self.error is None:
            return self.text
        return self.error.message


def _failed(error: BusinessError, text: str = "", chunks: int = 0) -> CompletionResult:
    return CompletionResult(ok=False, text=text, error=error, chunks=chunks)


def _shape_error(code: str, message: str) -> CompletionResult:
    return _failed(ApiError(code=code, message=message, http_status=502))


class CompletionClient:
    """chat-completion 传输层，内部持有一个带连接池的 httpx.Client。"""

    name = "openai-compatible"

    def __init__(self, cfg=settings, http_client: Optional[httpx.Client] = None):
        # Settings 里包含 base_url、model、api_key、超时等配置
        self._settings = cfg
        self._client = http_client or httpx.Client(
            timeout=httpx.Timeout(
                connect=cfg.connect_timeout,
                read=cfg.read_timeout,
                write=cfg.write_timeout,
                pool=cfg.connect_timeout,
            ),
            trust_env=False,
        )
        self._closed = False

    @property
    def endpoint(self) -> str:
        return f"{self._settings.llm_base_url.rstrip('/')}{COMPLETION_PATH}"

    def complete(self, messages: Sequence[ChatMessage], on_chunk: Optional[ChunkCallback] = None) -> str:
        """兼容入口：失败时返回哨兵字符串而不是抛异常。"""

        return self.complete_result(messages, on_chunk).as_text()

    def complete_result(
        self,
        messages: Sequence[ChatMessage],
        on_chunk: Optional[ChunkCallback] = None,
    ) -> CompletionResult:
        stream = on_chunk is not None
        payload = self._build_payload(messages, stream=stream)
        headers = self._headers()
        started = time.time()
        if on_chunk is None:
            result = self._complete_buffered(payload, headers)
        else:
            result = self._complete_streaming(payload, headers, on_chunk)
        log_ctx = {
            "stream": stream,
            "ok": result.ok,
            "chars": len(result.text),
            "chunks": result.chunks,
            "elapsed_ms": int((time.time() - started) * 1000),
        }
        if result.ok:
            logger.info("Completion finished", extra={"extra": log_ctx})
        else:
            log_ctx["error_code"] = result.error.code if result.error else None
            logger.warning("Completion failed", extra={"extra": log_ctx})
        return result

    # ---- 非流式 ----

    def _complete_buffered(self, payload: Dict[str, Any], headers: Dict[str, str]) -> CompletionResult:
        try:
            resp = self._client.post(self.endpoint, json=payload, headers=headers)
        except httpx.RequestError as e:
            # 网络错误：DNS 失败、连接超时、读超时等
            return _failed(NetworkError(code="NETWORK_ERROR", message=f"Network error: {e}", http_status=502))
        if not 200 <= resp.status_code < 300:
            return _failed(_http_error(resp))
        return self._parse_body(resp.text)

    def _parse_body(self, body: Optional[str]) -> CompletionResult:
        if not body or not body.strip():
            return _shape_error("EMPTY_RESPONSE", "Empty response body")
        try:
            data = json.loads(body)
        except ValueError as e:
            return _shape_error("INVALID_JSON", f"JSON parsing error: {e}")
        if not isinstance(data, dict):
            return _shape_error("INVALID_JSON", "JSON parsing error: response is not an object")

        error = data.get("error")
        if error is not None:
            message = error.get("message") if isinstance(error, dict) else error
            return _shape_error("API_ERROR", f"API Error: {message or 'Unknown error'}")

        choices = data.get("choices")
        if not isinstance(choices, list) or not choices:
            return _shape_error("NO_CHOICES", "No choices in response")
        first = choices[0]
        message = first.get("message") if isinstance(first, dict) else None
        if not isinstance(message, dict):
            return _shape_error("NO_MESSAGE", "No message in choice")
        content = message.get("content")
        if not isinstance(content, str):
            return _shape_error("NO_CONTENT", "No content in message")
        return CompletionResult(ok=True, text=content)

    # ---- 流式 ----

    def _complete_streaming(
        self,
        payload: Dict[str, Any],
        headers: Dict[str, str],
        on_chunk: ChunkCallback,
    ) -> CompletionResult:
        parts: List[str] = []
        try:
            with self._client.stream("POST", self.endpoint, json=payload, headers=headers) as resp:
                if not 200 <= resp.status_code < 300:
                    # 状态码失败时不读取流式 body
                    return _failed(_http_error(resp))
                for line in resp.iter_lines():
                    if not line or not line.startswith(STREAM_PREFIX):
                        continue
                    data_str = line[len(STREAM_PREFIX):].strip()
                    if data_str == STREAM_DONE:
                        break
                    fragment = _delta_content(data_str)
                    if fragment:
                        parts.append(fragment)
                        on_chunk(fragment)
        except httpx.RequestError as e:
            return _failed(
                NetworkError(code="NETWORK_ERROR", message=f"Network error: {e}", http_status=502),
                text="".join(parts),
                chunks=len(parts),
            )
        return CompletionResult(ok=True, text="".join(parts), chunks=len(parts))

    # ---- helpers ----

    def _build_payload(self, messages: Sequence[ChatMessage], stream: bool) -> Dict[str, Any]:
        return {
            "model": self._settings.llm_model,
            "messages": [m.to_dict() for m in messages],
            "temperature": TEMPERATURE,
            "stream": stream,
        }

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        api_key = getattr(self._settings, "llm_api_key", None)
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"
        return headers

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._client.close()

    def __enter__(self) -> "CompletionClient":
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()


def _http_error(resp: Any) -> ApiError:
    reason = getattr(resp, "reason_phrase", "") or ""
    return ApiError(
        code="HTTP_ERROR",
        message=f"Error: HTTP {resp.status_code} - {reason}".rstrip(" -"),
        http_status=resp.status_code,
    )


def _delta_content(data_str: str) -> Optional[str]:
    """解析单个流式帧，返回 choices[0].delta.content；帧无效时返回 None。"""

    try:
        frame = json.loads(data_str)
    except ValueError:
        return None
    if not isinstance(frame, dict):
        return None
    choices = frame.get("choices")
    if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
        return None
    delta = choices[0].get("delta")
    if not isinstance(delta, dict):
        return None
    content = delta.get("content")
    return content if isinstance(content, str) else None
