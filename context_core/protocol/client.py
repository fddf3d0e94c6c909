"""远程资源协议客户端。

通过 HTTP+JSON 调用实现了同一方法表的远端（例如另一个进程里的 ProtocolDispatcher）：

1. ``call`` 负责序列化请求、POST、反序列化响应，从不向调用方抛异常，
   所有失败都转换为带错误码的 ProtocolResponse。
2. 其余便捷方法在 ``call`` 之上解析 result，失败一律折叠为 None / False / 缺省。
3. 批量拉取内容时并发发起请求，单个失败只会从结果中缺席，不影响其它请求。
"""

import json
import random
import threading
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Any, Dict, Iterable, List, Mapping, Optional

import httpx

from context_core.config.settings import settings
from context_core.domain.exceptions import BusinessError
from context_core.domain.models import ContextResource
from context_core.domain.protocol import (
    ProtocolErrorKind,
    ProtocolRequest,
    ProtocolResponse,
    ResourceContent,
)
from context_core.infrastructure.logging.logger import logger
from context_core.infrastructure.storage.resource_store import ResourceStore


class RemoteProtocolClient:
    """远程协议客户端，内部持有一个带连接池的 httpx.Client。"""

    def __init__(self, cfg=settings, http_client: Optional[httpx.Client] = None, max_workers: Optional[int] = None):
        self._settings = cfg
        self._max_workers = max_workers or getattr(cfg, "remote_max_workers", None)
        self._client = http_client or httpx.Client(
            timeout=httpx.Timeout(
                connect=cfg.connect_timeout,
                read=cfg.remote_read_timeout,
                write=cfg.write_timeout,
                pool=cfg.connect_timeout,
            ),
            trust_env=False,
        )
        self._closed = False
        self._close_lock = threading.Lock()

    # ---- transport ----

    def call(self, url: str, request: ProtocolRequest) -> ProtocolResponse:
        """发送一次协议请求，总是返回 ProtocolResponse。"""

        try:
            resp = self._client.post(
                url,
                json=request.to_dict(),
                headers={"Content-Type": "application/json"},
            )
        except httpx.RequestError as e:
            # 网络错误：DNS 失败、连接超时、读超时等
            return _failure(ProtocolErrorKind.INTERNAL_ERROR, f"Network error: {e}", request.id)
        except Exception as e:  # noqa: BLE001 - 客户端已关闭等情况同样转换为错误响应
            return _failure(ProtocolErrorKind.INTERNAL_ERROR, f"Error processing request: {e}", request.id)

        if not 200 <= resp.status_code < 300:
            reason = getattr(resp, "reason_phrase", "") or ""
            return _failure(
                ProtocolErrorKind.INVALID_REQUEST,
                f"HTTP {resp.status_code}: {reason}".rstrip(),
                request.id,
            )
        body = resp.text
        if not body or not body.strip():
            return _failure(ProtocolErrorKind.INTERNAL_ERROR, "Empty response body", request.id)
        try:
            return ProtocolResponse.from_dict(json.loads(body), fallback_id=request.id)
        except (ValueError, BusinessError) as e:
            return _failure(ProtocolErrorKind.INTERNAL_ERROR, f"Failed to parse response: {e}", request.id)

    # ---- methods ----

    def list_resources(self, url: str) -> Optional[List[ContextResource]]:
        response = self.call(url, ProtocolRequest(method="resources/list", id=_request_id()))
        if not response.ok:
            return None
        result = response.result
        raw = result.get("resources") if isinstance(result, Mapping) else None
        if not isinstance(raw, list):
            logger.warning("Malformed resources/list result", extra={"extra": {"url": url}})
            return None
        try:
            return [ContextResource.from_dict(item) for item in raw]
        except (BusinessError, TypeError):
            return None

    def get_resource_content(self, url: str, uri: str) -> Optional[ResourceContent]:
        request = ProtocolRequest(method="resources/read", params={"uri": uri}, id=_request_id())
        response = self.call(url, request)
        if not response.ok:
            return None
        try:
            return ResourceContent.from_dict(response.result)
        except BusinessError:
            return None

    def add_resource(self, url: str, resource: ContextResource) -> bool:
        request = ProtocolRequest(method="context/add", params=resource.to_dict(), id=_request_id())
        return _success_flag(self.call(url, request))

    def remove_resource(self, url: str, uri: str) -> bool:
        request = ProtocolRequest(method="context/remove", params={"uri": uri}, id=_request_id())
        return _success_flag(self.call(url, request))

    def clear_resources(self, url: str) -> bool:
        return _success_flag(self.call(url, ProtocolRequest(method="context/clear", id=_request_id())))

    def fetch_resource_contents_batch(self, url: str, uris: Iterable[str]) -> Dict[str, str]:
        """并发拉取多个资源的内容。

        每个 uri 一次 resources/read；失败的 uri 不出现在结果中；
        所有请求都结束（成功或失败）后才返回。
        """

        unique = list(dict.fromkeys(uris))
        if not unique:
            return {}
        workers = min(self._max_workers or len(unique), len(unique))
        contents: Dict[str, str] = {}
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="remote-fetch") as pool:
            futures = {pool.submit(self.get_resource_content, url, uri): uri for uri in unique}
            for future in as_completed(futures):
                uri = futures[future]
                try:
                    content = future.result()
                except Exception as e:  # noqa: BLE001 - 单个失败不影响其它请求
                    logger.warning("Remote fetch failed", extra={"extra": {"url": url, "uri": uri, "error": str(e)}})
                    continue
                if content is not None:
                    contents[uri] = content.text
        return contents

    def import_remote_resources_to_local(self, url: str, local_store: ResourceStore) -> bool:
        """把远端全部资源导入本地 store，缺内容的资源先尝试拉取内容。"""

        remote = self.list_resources(url)
        if not remote:
            return False
        missing = [r.uri for r in remote if r.content is None]
        fetched = self.fetch_resource_contents_batch(url, missing) if missing else {}
        added = 0
        for resource in remote:
            if resource.content is None and resource.uri in fetched:
                resource = resource.with_content(fetched[resource.uri])
            if local_store.add(resource):
                added += 1
        logger.info(
            "Imported remote resources",
            extra={"extra": {"url": url, "added": added, "with_content": len(fetched)}},
        )
        return added > 0

    def remote_context_summary(self, url: str) -> str:
        resources = self.list_resources(url)
        if not resources:
            return "Remote context is empty or unavailable"
        lines = ["Remote context contains the following resources:"]
        for index, resource in enumerate(resources, 1):
            lines.append(f"{index}. {resource.name} ({resource.kind})")
            lines.append(f"   URI: {resource.uri}")
            if resource.description is not None:
                lines.append(f"   Description: {resource.description}")
        return "\n".join(lines)

    # ---- lifecycle ----

    def close(self) -> None:
        with self._close_lock:
            if self._closed:
                return
            self._closed = True
        self._client.close()

    def __enter__(self) -> "RemoteProtocolClient":
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()


def _request_id() -> str:
    return f"req_{int(time.time() * 1000)}_{random.randint(0, 9999)}"


def _failure(kind: ProtocolErrorKind, message: str, request_id: Optional[str]) -> ProtocolResponse:
    logger.warning("Remote protocol call failed", extra={"extra": {"error": message, "id": request_id}})
    return ProtocolResponse.failure(kind, message, request_id)


def _success_flag(response: ProtocolResponse) -> bool:
    if not response.ok or not isinstance(response.result, Mapping):
        return False
    success = response.result.get("success")
    return success if isinstance(success, bool) else False
