"""资源管理协议的本地处理器。

ProtocolDispatcher 本身无状态，只把请求路由到 ResourceStore 的操作上，
并且从不抛出异常：所有失败都转换为带错误码的 ProtocolResponse。
"""

import json
from typing import Any, Callable, Dict, Mapping, Optional

from context_core.domain.exceptions import (
    BusinessError,
    ResourceNotFoundError,
    ResourceUnavailableError,
    ValidationError,
)
from context_core.domain.models import ContextResource
from context_core.domain.protocol import (
    ProtocolErrorKind,
    ProtocolRequest,
    ProtocolResponse,
    ResourceContent,
)
from context_core.infrastructure.logging.logger import logger
from context_core.infrastructure.storage.resource_store import ResourceStore


Handler = Callable[[ProtocolRequest], ProtocolResponse]


class ProtocolDispatcher:
    """方法表：

    - resources/list
    - resources/read
    - context/add
    - context/remove
    - context/clear
    """

    def __init__(self, store: ResourceStore):
        self._store = store
        self._methods: Dict[str, Handler] = {
            "resources/list": self._list_resources,
            "resources/read": self._read_resource,
            "context/add": self._add_resource,
            "context/remove": self._remove_resource,
            "context/clear": self._clear_resources,
        }

    @property
    def methods(self) -> tuple:
        return tuple(self._methods)

    def handle(self, request: ProtocolRequest) -> ProtocolResponse:
        handler = self._methods.get(request.method)
        if handler is None:
            return ProtocolResponse.failure(
                ProtocolErrorKind.METHOD_NOT_FOUND,
                f"Method not supported: {request.method}",
                request.id,
            )
        try:
            return handler(request)
        except Exception as exc:  # noqa: BLE001 - 协议层不向外抛异常
            logger.warning(
                "Protocol handler failed",
                extra={"extra": {"method": request.method, "error": str(exc)}},
            )
            return ProtocolResponse.failure(
                ProtocolErrorKind.INTERNAL_ERROR,
                str(exc) or "Internal error",
                request.id,
            )

    # ---- wire entry points -------------------------------------------

    def handle_payload(self, payload: Any) -> Dict[str, Any]:
        """处理已解析的 JSON 请求体，返回可直接序列化的响应 dict。"""

        try:
            request = ProtocolRequest.from_dict(payload)
        except ValidationError as exc:
            request_id = payload.get("id") if isinstance(payload, Mapping) else None
            return ProtocolResponse.failure(
                ProtocolErrorKind.INVALID_REQUEST,
                exc.message,
                None if request_id is None else str(request_id),
            ).to_dict()
        return self.handle(request).to_dict()

    def handle_json(self, body: str) -> str:
        try:
            payload = json.loads(body)
        except (TypeError, ValueError) as exc:
            response = ProtocolResponse.failure(
                ProtocolErrorKind.INVALID_REQUEST, f"Invalid JSON: {exc}", None
            ).to_dict()
        else:
            response = self.handle_payload(payload)
        return json.dumps(response, ensure_ascii=False, default=str)

    # ---- methods -----------------------------------------------------

    def _list_resources(self, request: ProtocolRequest) -> ProtocolResponse:
        result = {
            "resources": [r.to_dict() for r in self._store.list()],
            "hasMore": False,
            "nextCursor": None,
        }
        return ProtocolResponse.success(result, request.id)

    def _read_resource(self, request: ProtocolRequest) -> ProtocolResponse:
        uri = _uri_param(request.params)
        if uri is None:
            return _invalid_params("Missing uri parameter", request.id)
        try:
            text = self._store.read(uri)
        except ResourceNotFoundError as exc:
            return ProtocolResponse.failure(ProtocolErrorKind.RESOURCE_NOT_FOUND, exc.message, request.id)
        except ResourceUnavailableError as exc:
            return ProtocolResponse.failure(ProtocolErrorKind.INTERNAL_ERROR, exc.message, request.id)
        resource = self._store.get(uri)
        metadata = dict(resource.metadata) if resource is not None else {}
        content = ResourceContent(uri=uri, text=text, metadata=metadata)
        return ProtocolResponse.success(content.to_dict(), request.id)

    def _add_resource(self, request: ProtocolRequest) -> ProtocolResponse:
        if request.params is None:
            return _invalid_params("Invalid resource parameter", request.id)
        try:
            resource = ContextResource.from_dict(request.params)
        except BusinessError as exc:
            return _invalid_params(f"Invalid resource parameter: {exc.message}", request.id)
        success = self._store.add(resource)
        return ProtocolResponse.success({"success": success}, request.id)

    def _remove_resource(self, request: ProtocolRequest) -> ProtocolResponse:
        uri = _uri_param(request.params)
        if uri is None:
            return _invalid_params("Missing uri parameter", request.id)
        return ProtocolResponse.success({"success": self._store.remove(uri)}, request.id)

    def _clear_resources(self, request: ProtocolRequest) -> ProtocolResponse:
        self._store.clear()
        return ProtocolResponse.success({"success": True}, request.id)


def _uri_param(params: Optional[Mapping[str, Any]]) -> Optional[str]:
    if not params:
        return None
    uri = params.get("uri")
    if not isinstance(uri, str) or not uri:
        return None
    return uri


def _invalid_params(message: str, request_id: Optional[str]) -> ProtocolResponse:
    return ProtocolResponse.failure(ProtocolErrorKind.INVALID_PARAMS, message, request_id)
