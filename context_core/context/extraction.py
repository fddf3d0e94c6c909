"""代码结构提取。

ContextCompactor 对“可结构化”的代码文件只输出结构摘要（类 / 方法 / 字段及其行号范围），
而不是原始代码行。提取器是一个外部协作者，这里给出协议定义以及基于 ``ast`` 的
Python 实现；其它语言可以按同样的协议接入。
"""

from __future__ import annotations

import ast
from dataclasses import dataclass, field
from typing import List, Optional, Protocol


@dataclass
class CodeElement:
    """一个结构元素，行号从 1 开始，闭区间。"""

    name: str
    kind: str  # class / method / field
    start_line: int
    end_line: int
    signature: str = ""
    parent: Optional[str] = None

    @property
    def qualified_name(self) -> str:
        return f"{self.parent}.{self.name}" if self.parent else self.name


@dataclass
class CodeStructure:
    file_name: str
    classes: List[CodeElement] = field(default_factory=list)
    methods: List[CodeElement] = field(default_factory=list)
    fields: List[CodeElement] = field(default_factory=list)

    def is_empty(self) -> bool:
        return not (self.classes or self.methods or self.fields)

    def summary(self) -> str:
        lines = [f"// Structure of {self.file_name}"]
        for title, items in (("Classes", self.classes), ("Methods", self.methods), ("Fields", self.fields)):
            if not items:
                continue
            lines.append(f"// {title}:")
            for item in items:
                label = item.signature or item.qualified_name
                lines.append(f"{label} [lines {item.start_line}-{item.end_line}]")
        return "\n".join(lines)


class StructureExtractor(Protocol):
    def supports(self, file_name: str) -> bool:
        ...

    def extract(self, file_name: str, source: str) -> Optional[CodeStructure]:
        """返回结构摘要；无法解析时返回 None，由调用方回退到按行处理。"""

        ...


class PythonStructureExtractor:
    """基于标准库 ast 的 Python 结构提取器。"""

    extensions = (".py", ".pyi")

    def supports(self, file_name: str) -> bool:
        return file_name.lower().endswith(self.extensions)

    def extract(self, file_name: str, source: str) -> Optional[CodeStructure]:
        try:
            tree = ast.parse(source)
        except (SyntaxError, ValueError):
            return None
        structure = CodeStructure(file_name=file_name)
        self._visit_body(tree.body, structure, parent=None)
        return structure

    def _visit_body(self, body: List[ast.stmt], structure: CodeStructure, parent: Optional[str]) -> None:
        for node in body:
            if isinstance(node, ast.ClassDef):
                qualified = f"{parent}.{node.name}" if parent else node.name
                bases = ", ".join(ast.unparse(b) for b in node.bases)
                structure.classes.append(
                    CodeElement(
                        name=node.name,
                        kind="class",
                        start_line=node.lineno,
                        end_line=node.end_lineno or node.lineno,
                        signature=f"class {qualified}({bases})" if bases else f"class {qualified}",
                        parent=parent,
                    )
                )
                self._visit_body(node.body, structure, parent=qualified)
            elif isinstance(node, (ast.FunctionDef, ast.AsyncFunctionDef)):
                prefix = "async def" if isinstance(node, ast.AsyncFunctionDef) else "def"
                qualified = f"{parent}.{node.name}" if parent else node.name
                returns = f" -> {ast.unparse(node.returns)}" if node.returns is not None else ""
                structure.methods.append(
                    CodeElement(
                        name=node.name,
                        kind="method",
                        start_line=node.lineno,
                        end_line=node.end_lineno or node.lineno,
                        signature=f"{prefix} {qualified}({ast.unparse(node.args)}){returns}",
                        parent=parent,
                    )
                )
            elif isinstance(node, (ast.Assign, ast.AnnAssign)):
                for name in _assigned_names(node):
                    qualified = f"{parent}.{name}" if parent else name
                    structure.fields.append(
                        CodeElement(
                            name=name,
                            kind="field",
                            start_line=node.lineno,
                            end_line=node.end_lineno or node.lineno,
                            signature=qualified,
                            parent=parent,
                        )
                    )


def _assigned_names(node: ast.stmt) -> List[str]:
    targets = node.targets if isinstance(node, ast.Assign) else [node.target]
    names: List[str] = []
    for target in targets:
        if isinstance(target, ast.Name):
            names.append(target.id)
        elif isinstance(target, ast.Tuple):
            names.extend(elt.id for elt in target.elts if isinstance(elt, ast.Name))
    return names
