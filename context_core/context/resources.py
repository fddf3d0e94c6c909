"""资源工厂：把文件、选区、代码结构转换为 ContextResource。"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Sequence, Union

from context_core.context.extraction import CodeElement, StructureExtractor
from context_core.domain.models import ContextResource, ResourceKind, file_uri


CODE_EXTENSIONS = frozenset({
    "java", "kt", "kts", "scala", "groovy", "js", "ts", "jsx", "tsx",
    "py", "rb", "php", "go", "rs", "cpp", "c", "h", "hpp", "swift",
    "dart", "cs", "vb", "fs", "ml", "mli", "sql", "xml", "html", "css",
    "json", "yaml", "yml", "toml", "md", "txt",
})

_ELEMENT_KINDS = {
    "class": (ResourceKind.CLASS_DEFINITION, "Class"),
    "method": (ResourceKind.METHOD_DEFINITION, "Method"),
    "field": (ResourceKind.FIELD_DEFINITION, "Field"),
}


def extension_of(name: str) -> str:
    if "." not in name:
        return ""
    return name.rsplit(".", 1)[-1].lower()


def is_code_file(name: str) -> bool:
    return extension_of(name) in CODE_EXTENSIONS


def resource_from_path(path: Union[str, Path]) -> ContextResource:
    """描述一个文件或目录；content 留空，由 ContentSource 按需读取。"""

    p = Path(path).expanduser().resolve()
    is_dir = p.is_dir()
    code = is_code_file(p.name)
    metadata: Dict[str, Any] = {
        "path": p.as_posix(),
        "size": 0 if is_dir else p.stat().st_size,
        "extension": extension_of(p.name),
        "isDirectory": is_dir,
        "type": "code" if code else "non-code",
    }
    if not is_dir:
        metadata["lineCount"] = _line_count(p)
    return ContextResource(
        uri=file_uri(p.as_posix()),
        name=p.name,
        kind=ResourceKind.DIRECTORY.value if is_dir else ResourceKind.FILE.value,
        description=f"{'Code' if code else 'Non-code'} file in project: {p.as_posix()}",
        content=None,
        metadata=metadata,
    )


def selection_resource(path: str, text: str, start_line: int, end_line: int) -> ContextResource:
    name = path.rstrip("/").rsplit("/", 1)[-1]
    return ContextResource(
        uri=f"{file_uri(path)}#L{start_line}-{end_line}",
        name=f"{name}:{start_line}-{end_line}",
        kind=ResourceKind.CODE_SELECTION.value,
        description=f"Selected code from line {start_line} to {end_line}",
        content=text,
        metadata={
            "fileName": name,
            "filePath": path,
            "startLine": start_line,
            "endLine": end_line,
            "selectionLength": len(text),
        },
    )


def structure_resources(path: str, source: str, extractor: StructureExtractor) -> List[ContextResource]:
    """提取器找到的每个类 / 方法 / 字段各生成一个资源。"""

    name = path.rstrip("/").rsplit("/", 1)[-1]
    if not extractor.supports(name):
        return []
    structure = extractor.extract(name, source)
    if structure is None:
        return []
    lines = source.splitlines()
    resources: List[ContextResource] = []
    for element in [*structure.classes, *structure.methods, *structure.fields]:
        resources.append(_element_resource(path, name, element, lines))
    return resources


def _element_resource(path: str, file_name: str, element: CodeElement, lines: Sequence[str]) -> ContextResource:
    kind, label = _ELEMENT_KINDS[element.kind]
    end = min(element.end_line, len(lines))
    body = "\n".join(lines[element.start_line - 1:end])
    return ContextResource(
        uri=f"{file_uri(path)}#{element.kind}:{element.qualified_name}",
        name=f"{label}: {element.qualified_name}",
        kind=kind.value,
        description=f"{label} {element.qualified_name} in {file_name}",
        content=body,
        metadata={
            "fileName": file_name,
            "filePath": path,
            "elementType": element.kind,
            "startLine": element.start_line,
            "endLine": element.end_line,
        },
    )


def syntax_context_resource(path: str, offset: int, context_path: Sequence[str]) -> ContextResource:
    name = path.rstrip("/").rsplit("/", 1)[-1]
    chain = " -> ".join(context_path)
    return ContextResource(
        uri=f"{file_uri(path)}#context:{offset}",
        name=f"Syntax Context at Offset {offset}",
        kind=ResourceKind.SYNTAX_CONTEXT.value,
        description=f"Current syntax context: {chain}",
        content=f"File: {name}\nPath: {path}\nCurrent Context: {chain}",
        metadata={
            "fileName": name,
            "filePath": path,
            "offset": offset,
            "contextPath": chain,
        },
    )


def _line_count(path: Path) -> int:
    try:
        return path.read_bytes().count(b"\n") + 1
    except OSError:
        return 0
