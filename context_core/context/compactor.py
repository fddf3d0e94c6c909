"""上下文压缩。

把当前资源集合转换为一段有长度上限、可以直接放进 prompt 的文本。
每个顶层资源按以下优先级处理：

1. 目录：先输出目录标记行，再深度优先递归子节点。
2. 二进制文件（按扩展名判断）：输出一行占位，不读取内容。
3. 可结构化的代码文件：使用 StructureExtractor 的结构摘要，跳过 4、5。
4. 超过 200 行的文件：按 200 行分片，每片带 start/end 标记，片内再走第 5 步。
5. 过滤：去掉空行；去掉纯注释行（注释前缀按扩展名判断，去空白后长度超过 5 的保留）；每个文件最多保留 800 行，
   达到上限后追加一次截断标记。
6. 超过 100KB 且没有结构摘要的文件：跳过 4、5，只保留前 50 行和后 20 行。

同样的资源集合与同样的提取器输出，得到逐字节相同的结果。
"""

from __future__ import annotations

from typing import Iterable, List, Optional, Tuple

from context_core.context.extraction import StructureExtractor
from context_core.context.resources import extension_of
from context_core.domain.models import ContextResource, ResourceKind, default_name
from context_core.infrastructure.logging.logger import logger
from context_core.infrastructure.storage.content_source import ContentSource
from context_core.infrastructure.storage.resource_store import ResourceStore


BINARY_EXTENSIONS = frozenset({
    "jpg", "jpeg", "png", "gif", "bmp", "ico", "svg", "webp",  # 图片
    "mp3", "wav", "flac", "aac", "ogg", "m4a",  # 音频
    "mp4", "avi", "mov", "wmv", "flv", "webm",  # 视频
    "zip", "rar", "7z", "tar", "gz", "jar", "war", "exe", "dll", "so",  # 压缩/可执行文件
    "pdf", "doc", "docx", "xls", "xlsx", "ppt", "pptx",  # 办公文档
    "class", "o", "obj", "bin",  # 编译产物
})

CHUNK_LINES = 200
MAX_RETAINED_LINES = 800
LARGE_FILE_BYTES = 100 * 1024
HEAD_LINES = 50
TAIL_LINES = 20
# 注释行去空白后长度超过该值才保留
MIN_COMMENT_LENGTH = 5

# 按扩展名决定哪些前缀算注释；未知扩展名只认 "//"
C_STYLE_PREFIXES = ("//", "/*", "*/", "* ")
HASH_PREFIXES = ("#",)
DASH_PREFIXES = ("--",)
DEFAULT_COMMENT_PREFIXES = ("//",)

COMMENT_PREFIXES = {
    **dict.fromkeys(
        ("c", "h", "cpp", "hpp", "cc", "cs", "java", "kt", "kts", "scala", "groovy",
         "js", "jsx", "ts", "tsx", "go", "rs", "swift", "dart", "css", "fs"),
        C_STYLE_PREFIXES,
    ),
    **dict.fromkeys(("py", "pyi", "rb", "sh", "bash", "yaml", "yml", "toml", "pl", "r"), HASH_PREFIXES),
    **dict.fromkeys(("sql", "lua", "hs"), DASH_PREFIXES),
    "php": C_STYLE_PREFIXES + HASH_PREFIXES,
}

TRUNCATION_MARKER = "// ... file content truncated ..."

KIND_LABELS = {
    ResourceKind.CLASS_DEFINITION: "Class",
    ResourceKind.METHOD_DEFINITION: "Method",
    ResourceKind.FIELD_DEFINITION: "Field",
    ResourceKind.CODE_SELECTION: "Selection",
    ResourceKind.SYNTAX_CONTEXT: "Syntax Context",
}

DEFAULT_SYSTEM_PROMPT = "You are a professional programming assistant that helps users with coding questions."


def is_binary_name(name: str) -> bool:
    return extension_of(name) in BINARY_EXTENSIONS


def comment_prefixes(name: str) -> Tuple[str, ...]:
    return COMMENT_PREFIXES.get(extension_of(name), DEFAULT_COMMENT_PREFIXES)


def is_comment_line(trimmed: str, prefixes: Tuple[str, ...] = DEFAULT_COMMENT_PREFIXES) -> bool:
    if trimmed.startswith(prefixes):
        return True
    # 块注释中间只有一个 "*" 的行
    return "* " in prefixes and trimmed == "*"


class ContextCompactor:
    def __init__(
        self,
        store: ResourceStore,
        extractor: Optional[StructureExtractor] = None,
        content_source: Optional[ContentSource] = None,
    ):
        self._store = store
        self._extractor = extractor
        self._source = content_source or store.content_source

    @property
    def store(self) -> ResourceStore:
        return self._store

    def compact(self, resources: Optional[Iterable[ContextResource]] = None) -> str:
        """压缩资源集合，默认使用 store 中的全部资源（按 store 的迭代顺序）。"""

        items = self._store.list() if resources is None else list(resources)
        blocks: List[str] = []
        for resource in items:
            blocks.extend(self._compact_resource(resource))
        text = "\n".join(blocks)
        logger.info("Compacted context", extra={"extra": {"resources": len(items), "chars": len(text)}})
        return text

    # ---- per resource ----------------------------------------------

    def _compact_resource(self, resource: ContextResource) -> List[str]:
        kind = resource.kind_tag
        if kind is ResourceKind.DIRECTORY or (
            resource.content is None and resource.fragment is None and self._source.is_directory(resource.uri)
        ):
            return self._compact_directory(resource.uri, resource.file_name)
        if kind in KIND_LABELS or (kind is ResourceKind.OTHER and resource.content is not None):
            # 类/方法定义、选区等本身已经是有限的摘录，只做第 5 步过滤
            header = f"[{KIND_LABELS.get(kind, 'Resource')}: {resource.name}]"
            if resource.content is None:
                return [_render([header, f"// Content not available: {resource.uri}"])]
            return [_render([header, *self._filter_lines(resource.content.splitlines(), resource.file_name)])]
        if resource.fragment is not None and resource.content is not None:
            header = f"[File: {resource.file_name}#{resource.fragment}]"
            return [_render([header, *self._filter_lines(resource.content.splitlines(), resource.file_name)])]
        return [self._compact_file(resource.uri, resource.file_name, resource.content, _metadata_size(resource))]

    def _compact_directory(self, uri: str, name: str) -> List[str]:
        header = f"[Directory: {name}]"
        try:
            children = self._source.list_children(uri)
        except Exception as exc:  # noqa: BLE001 - 列目录失败时在输出中说明
            logger.warning("Failed to list directory", extra={"extra": {"uri": uri, "error": str(exc)}})
            return [_render([header, f"// Failed to list directory: {name} - {exc}"])]
        blocks = [_render([header])]
        for child in children:
            child_name = default_name(child)
            if self._source.is_directory(child):
                blocks.extend(self._compact_directory(child, child_name))
            else:
                blocks.append(self._compact_file(child, child_name, None, None))
        return blocks

    def _compact_file(self, uri: str, name: str, content: Optional[str], size: Optional[int]) -> str:
        lines = [f"[File: {name}]"]

        if is_binary_name(name):
            if size is None:
                size = len(content.encode("utf-8")) if content is not None else (self._source.size(uri) or 0)
            lines.append(f"// Binary file: {name} ({size} bytes)")
            return _render(lines)

        if content is None:
            try:
                content = self._source.read_bytes(uri).decode("utf-8", errors="replace")
            except Exception as exc:  # noqa: BLE001 - 读取失败写进上下文而不是中断整个压缩
                logger.warning("Failed to read file for context", extra={"extra": {"uri": uri, "error": str(exc)}})
                lines.append(f"// Failed to read file: {name} - {exc}")
                return _render(lines)

        summary = self._structure_summary(name, content)
        if summary is not None:
            lines.append(summary)
            return _render(lines)

        raw_lines = content.splitlines()
        if len(content.encode("utf-8")) > LARGE_FILE_BYTES:
            lines.extend(_head_tail(raw_lines))
        elif len(raw_lines) > CHUNK_LINES:
            lines.extend(self._chunked(raw_lines, name))
        else:
            lines.extend(self._filter_lines(raw_lines, name))
        return _render(lines)

    def _structure_summary(self, name: str, content: str) -> Optional[str]:
        if self._extractor is None or not self._extractor.supports(name):
            return None
        structure = self._extractor.extract(name, content)
        if structure is None or structure.is_empty():
            return None
        return structure.summary()

    # ---- line rules ------------------------------------------------

    def _chunked(self, raw_lines: List[str], name: str) -> List[str]:
        out: List[str] = []
        retained = 0
        for index, start in enumerate(range(0, len(raw_lines), CHUNK_LINES), 1):
            chunk = raw_lines[start:start + CHUNK_LINES]
            kept = _filter(chunk, MAX_RETAINED_LINES - retained, comment_prefixes(name))
            retained += len(kept)
            out.append(f"// Chunk {index} of {name} start")
            out.extend(kept)
            out.append(f"// Chunk {index} of {name} end")
            if retained >= MAX_RETAINED_LINES:
                out.append(TRUNCATION_MARKER)
                break
        return out

    def _filter_lines(self, raw_lines: List[str], name: str) -> List[str]:
        kept = _filter(raw_lines, MAX_RETAINED_LINES, comment_prefixes(name))
        if len(kept) >= MAX_RETAINED_LINES:
            kept.append(TRUNCATION_MARKER)
        return kept


def _filter(raw_lines: List[str], budget: int, prefixes: Tuple[str, ...]) -> List[str]:
    kept: List[str] = []
    for line in raw_lines:
        if len(kept) >= budget:
            break
        trimmed = line.strip()
        if not trimmed:
            continue
        if is_comment_line(trimmed, prefixes) and len(trimmed) <= MIN_COMMENT_LENGTH:
            continue
        kept.append(line.rstrip())
    return kept


def _head_tail(raw_lines: List[str]) -> List[str]:
    total = len(raw_lines)
    head = raw_lines[:HEAD_LINES]
    tail = raw_lines[max(HEAD_LINES, total - TAIL_LINES):]
    omitted = total - len(head) - len(tail)
    return [*head, f"// ... [{omitted} lines omitted] ...", *tail]


def _metadata_size(resource: ContextResource) -> Optional[int]:
    size = resource.metadata.get("size")
    if isinstance(size, bool) or not isinstance(size, int):
        return None
    return size


def _render(lines: List[str]) -> str:
    return "\n".join(lines) + "\n"


def context_reference_message(resources: Iterable[ContextResource]) -> str:
    """只列出资源引用（名称 / 类型 / URI / 描述），不内联内容。"""

    items = list(resources)
    if not items:
        return DEFAULT_SYSTEM_PROMPT
    parts = ["The current context contains the following resources; request a resource by URI if its content is needed:\n"]
    for index, resource in enumerate(items, 1):
        parts.append(f"{index}. {resource.name} ({resource.kind})")
        parts.append(f"   URI: {resource.uri}")
        if resource.description is not None:
            parts.append(f"   Description: {resource.description}")
        parts.append("")
    return "\n".join(parts)


