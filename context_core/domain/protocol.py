"""资源管理协议的请求 / 响应模型。

线上格式::

    Request:  {"method": str, "params"?: object, "id"?: str}
    Response: {"result": any, "id": ...}
           or {"error": {"code": int, "message": str}, "id": ...}

内部使用封闭的 ProtocolErrorKind 表示错误类型，只在序列化时映射为线上整数。
注意 RESOURCE_NOT_FOUND 使用 HTTP 风格的 404，与其余负数错误码混排，
对外保持不变。
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Mapping, Optional

from context_core.domain.exceptions import ValidationError


class ProtocolErrorKind(Enum):
    INVALID_REQUEST = "invalid_request"
    METHOD_NOT_FOUND = "method_not_found"
    INVALID_PARAMS = "invalid_params"
    INTERNAL_ERROR = "internal_error"
    RESOURCE_NOT_FOUND = "resource_not_found"

    @property
    def wire_code(self) -> int:
        return _WIRE_CODES[self]

    @classmethod
    def from_wire(cls, code: int) -> "ProtocolErrorKind":
        for kind, value in _WIRE_CODES.items():
            if value == code:
                return kind
        return cls.INTERNAL_ERROR


_WIRE_CODES: Dict[ProtocolErrorKind, int] = {
    ProtocolErrorKind.INVALID_REQUEST: -32600,
    ProtocolErrorKind.METHOD_NOT_FOUND: -32601,
    ProtocolErrorKind.INVALID_PARAMS: -32602,
    ProtocolErrorKind.INTERNAL_ERROR: -32603,
    ProtocolErrorKind.RESOURCE_NOT_FOUND: 404,
}

INVALID_REQUEST = _WIRE_CODES[ProtocolErrorKind.INVALID_REQUEST]
METHOD_NOT_FOUND = _WIRE_CODES[ProtocolErrorKind.METHOD_NOT_FOUND]
INVALID_PARAMS = _WIRE_CODES[ProtocolErrorKind.INVALID_PARAMS]
INTERNAL_ERROR = _WIRE_CODES[ProtocolErrorKind.INTERNAL_ERROR]
RESOURCE_NOT_FOUND = _WIRE_CODES[ProtocolErrorKind.RESOURCE_NOT_FOUND]


@dataclass
class ProtocolError:
    """协议错误。

    ``raw_code`` 只在解码远端未知错误码时设置，保证原样转发。
    """

    kind: ProtocolErrorKind
    message: str
    raw_code: Optional[int] = None

    @property
    def code(self) -> int:
        if self.raw_code is not None:
            return self.raw_code
        return self.kind.wire_code

    def to_dict(self) -> Dict[str, Any]:
        return {"code": self.code, "message": self.message}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ProtocolError":
        code = data.get("code")
        if isinstance(code, bool) or not isinstance(code, int):
            raise ValidationError(code="INVALID_ERROR", message="error code must be an integer")
        message = data.get("message")
        kind = ProtocolErrorKind.from_wire(code)
        raw = None if kind.wire_code == code else code
        return cls(kind=kind, message="" if message is None else str(message), raw_code=raw)


@dataclass
class ProtocolRequest:
    method: str
    params: Optional[Dict[str, Any]] = None
    id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"method": self.method}
        if self.params is not None:
            payload["params"] = self.params
        if self.id is not None:
            payload["id"] = self.id
        return payload

    @classmethod
    def from_dict(cls, data: Any) -> "ProtocolRequest":
        if not isinstance(data, Mapping):
            raise ValidationError(code="INVALID_REQUEST", message="request must be a JSON object")
        method = data.get("method")
        if not isinstance(method, str) or not method:
            raise ValidationError(code="INVALID_REQUEST", message="request method must be a non-empty string")
        params = data.get("params")
        if params is not None and not isinstance(params, Mapping):
            raise ValidationError(code="INVALID_REQUEST", message="request params must be an object")
        req_id = data.get("id")
        return cls(
            method=method,
            params=dict(params) if params is not None else None,
            id=None if req_id is None else str(req_id),
        )


@dataclass
class ProtocolResponse:
    """协议响应，result 与 error 二选一。"""

    result: Any = None
    error: Optional[ProtocolError] = None
    id: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, result: Any, request_id: Optional[str]) -> "ProtocolResponse":
        return cls(result=result, id=request_id)

    @classmethod
    def failure(cls, kind: ProtocolErrorKind, message: str, request_id: Optional[str]) -> "ProtocolResponse":
        return cls(error=ProtocolError(kind=kind, message=message), id=request_id)

    def to_dict(self) -> Dict[str, Any]:
        if self.error is not None:
            return {"error": self.error.to_dict(), "id": self.id}
        return {"result": self.result, "id": self.id}

    @classmethod
    def from_dict(cls, data: Any, fallback_id: Optional[str] = None) -> "ProtocolResponse":
        if not isinstance(data, Mapping):
            raise ValidationError(code="INVALID_RESPONSE", message="response must be a JSON object")
        raw_id = data.get("id")
        resp_id = fallback_id if raw_id is None else str(raw_id)
        error = data.get("error")
        if error is not None:
            if not isinstance(error, Mapping):
                raise ValidationError(code="INVALID_RESPONSE", message="response error must be an object")
            return cls(error=ProtocolError.from_dict(error), id=resp_id)
        return cls(result=data.get("result"), id=resp_id)


@dataclass
class ResourceContent:
    """resources/read 的结果。"""

    uri: str
    text: str
    metadata: Dict[str, Any] = field(default_factory=dict)
    mime_type: str = "text/plain"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "uri": self.uri,
            "mimeType": self.mime_type,
            "text": self.text,
            "metadata": dict(self.metadata),
        }

    @classmethod
    def from_dict(cls, data: Any) -> "ResourceContent":
        if not isinstance(data, Mapping):
            raise ValidationError(code="INVALID_RESPONSE", message="resource content must be an object")
        uri = data.get("uri")
        text = data.get("text")
        if not isinstance(uri, str) or not isinstance(text, str):
            raise ValidationError(code="INVALID_RESPONSE", message="resource content needs uri and text")
        metadata = data.get("metadata") or {}
        if not isinstance(metadata, Mapping):
            metadata = {}
        return cls(
            uri=uri,
            text=text,
            metadata=dict(metadata),
            mime_type=str(data.get("mimeType") or "text/plain"),
        )
