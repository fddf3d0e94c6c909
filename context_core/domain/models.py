"""统一的上下文与对话数据模型。

本模块定义了各组件之间共享的标准数据结构：

- ContextResource: 一个可寻址的上下文单元（文件、目录、类/方法定义、选区等）。
- ResourceKind: 资源类型的常见取值，未知类型统一落到 OTHER。
- ChatMessage: 一条对话消息（system/user/assistant）。

协议层（dispatcher / remote client）与补全层都只依赖这些模型，
dict <-> 模型的转换集中在 ``to_dict`` / ``from_dict`` 中完成。
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, List, Literal, Mapping, Optional, Sequence

from context_core.domain.exceptions import ValidationError


FILE_SCHEME = "file://"

# LLM 消息角色类型（与 OpenAI 兼容接口的 role 字段对应）
Role = Literal["system", "user", "assistant"]
ROLES = ("system", "user", "assistant")


class ResourceKind(str, Enum):
    """资源类型的已知取值。

    ContextResource.kind 本身是开放的字符串标签，这里只收录常见值，
    其它任何标签都映射为 OTHER，原始字符串仍保留在资源上。
    """

    FILE = "file"
    DIRECTORY = "directory"
    CLASS_DEFINITION = "class-definition"
    METHOD_DEFINITION = "method-definition"
    FIELD_DEFINITION = "field-definition"
    CODE_SELECTION = "code-selection"
    SYNTAX_CONTEXT = "syntax-context"
    OTHER = "other"

    @classmethod
    def of(cls, tag: Optional[str]) -> "ResourceKind":
        for member in cls:
            if member is not cls.OTHER and member.value == tag:
                return member
        return cls.OTHER


@dataclass
class ContextResource:
    """上下文资源。

    - uri: 唯一键，形如 ``file://path[#fragment]``。
    - name: 展示用名称，通常是文件名。
    - kind: 资源类型标签，见 ResourceKind。
    - description: 可选描述。
    - content: 可选内容；为空时由 ContentSource 按 uri 懒加载。
    - metadata: 标量元数据（path、size、startLine 等）。
    """

    uri: str
    name: str
    kind: str = ResourceKind.FILE.value
    description: Optional[str] = None
    content: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def kind_tag(self) -> ResourceKind:
        return ResourceKind.of(self.kind)

    @property
    def path(self) -> str:
        """去掉 scheme 和 fragment 后的路径。"""

        raw = self.uri[len(FILE_SCHEME):] if self.uri.startswith(FILE_SCHEME) else self.uri
        return raw.split("#", 1)[0]

    @property
    def fragment(self) -> Optional[str]:
        if "#" not in self.uri:
            return None
        return self.uri.split("#", 1)[1]

    @property
    def file_name(self) -> str:
        path = self.path.rstrip("/")
        return path.rsplit("/", 1)[-1] or self.name

    def with_content(self, content: Optional[str]) -> "ContextResource":
        return replace(self, content=content)

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "uri": self.uri,
            "name": self.name,
            "kind": self.kind,
        }
        if self.description is not None:
            payload["description"] = self.description
        if self.content is not None:
            payload["content"] = self.content
        payload["metadata"] = dict(self.metadata)
        return payload

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ContextResource":
        """从协议 JSON 构造资源，字段类型不对时抛出 ValidationError。"""

        if not isinstance(data, Mapping):
            raise ValidationError(code="INVALID_RESOURCE", message="resource must be an object")
        uri = data.get("uri")
        if not isinstance(uri, str) or not uri:
            raise ValidationError(code="INVALID_RESOURCE", message="resource uri must be a non-empty string")
        name = data.get("name")
        if name is None:
            name = default_name(uri)
        kind = data.get("kind")
        if kind is None:
            kind = ResourceKind.FILE.value
        metadata = data.get("metadata")
        if metadata is None:
            metadata = {}
        description = data.get("description")
        content = data.get("content")
        for key, value in (("name", name), ("kind", kind)):
            if not isinstance(value, str):
                raise ValidationError(code="INVALID_RESOURCE", message=f"resource {key} must be a string")
        for key, value in (("description", description), ("content", content)):
            if value is not None and not isinstance(value, str):
                raise ValidationError(code="INVALID_RESOURCE", message=f"resource {key} must be a string")
        if not isinstance(metadata, Mapping):
            raise ValidationError(code="INVALID_RESOURCE", message="resource metadata must be an object")
        return cls(
            uri=uri,
            name=name,
            kind=kind,
            description=description,
            content=content,
            metadata=dict(metadata),
        )


def default_name(uri: str) -> str:
    """uri 最后一个 ``/`` 之后的部分。"""

    return uri.rsplit("/", 1)[-1]


def file_uri(path: str) -> str:
    return f"{FILE_SCHEME}{path}"


@dataclass
class ChatMessage:
    """一条对话消息。"""

    role: Role
    content: str

    def to_dict(self) -> Dict[str, str]:
        return {"role": self.role, "content": self.content}


def validate_prompt(messages: Sequence[ChatMessage]) -> List[ChatMessage]:
    """校验消息顺序：system 消息只能出现在最前面。

    返回原顺序的列表副本，不做任何重排。
    """

    seen_other = False
    for msg in messages:
        if msg.role not in ROLES:
            raise ValidationError(code="INVALID_ROLE", message=f"unknown role: {msg.role!r}")
        if msg.role == "system":
            if seen_other:
                raise ValidationError(
                    code="INVALID_MESSAGE_ORDER",
                    message="system message must precede all other messages",
                )
        else:
            seen_other = True
    return list(messages)
