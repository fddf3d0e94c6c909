"""测试上下文压缩规则。"""

from context_core.context.compactor import (
    TRUNCATION_MARKER,
    ContextCompactor,
    DEFAULT_SYSTEM_PROMPT,
    context_reference_message,
)
from context_core.context.extraction import PythonStructureExtractor
from context_core.domain.models import ContextResource, file_uri
from context_core.infrastructure.storage.content_source import LocalFileContentSource
from context_core.infrastructure.storage.resource_store import ResourceStore


def _inline(name, content):
    return ContextResource(uri=f"file:///proj/{name}", name=name, content=content)


def _lines(n, prefix="value"):
    return "\n".join(f"{prefix}_{i} = {i}" for i in range(1, n + 1))


def _chunk_sizes(output):
    sizes = []
    current = None
    for line in output.splitlines():
        if line.startswith("// Chunk ") and line.endswith(" start"):
            current = 0
        elif line.startswith("// Chunk ") and line.endswith(" end"):
            sizes.append(current)
            current = None
        elif current is not None:
            current += 1
    return sizes


def test_compaction_is_deterministic():
    store = ResourceStore()
    store.add(_inline("a.txt", "alpha\n\n// x\nbeta"))
    store.add(_inline("b.txt", _lines(450)))
    compactor = ContextCompactor(store)

    assert compactor.compact() == compactor.compact()


def test_filtering_drops_blank_and_short_comment_lines():
    store = ResourceStore()
    content = "\n".join([
        "function f() {",
        "",
        "    // ok",
        "    // a longer comment survives",
        "    return 1   ",
        "*/",
    ])
    store.add(_inline("a.js", content))

    out = ContextCompactor(store).compact()

    assert out == (
        "[File: a.js]\n"
        "function f() {\n"
        "    // a longer comment survives\n"
        "    return 1\n"
    )


def test_thousand_line_file_keeps_800_lines_and_one_marker():
    store = ResourceStore()
    store.add(_inline("big.txt", _lines(1000)))

    out = ContextCompactor(store).compact()
    lines = out.splitlines()

    assert sum(1 for line in lines if line.startswith("value_")) == 800
    assert lines.count(TRUNCATION_MARKER) == 1
    assert "value_800 = 800" in lines
    assert "value_801 = 801" not in lines


def test_450_line_file_is_split_into_three_chunks():
    store = ResourceStore()
    store.add(_inline("mid.txt", _lines(450)))

    out = ContextCompactor(store).compact()

    assert _chunk_sizes(out) == [200, 200, 50]
    assert "// Chunk 1 of mid.txt start" in out
    assert "// Chunk 3 of mid.txt end" in out
    assert TRUNCATION_MARKER not in out


def test_binary_file_gets_placeholder_without_reading():
    store = ResourceStore()
    store.add(ContextResource(uri="file:///proj/logo.png", name="logo.png", metadata={"size": 2048}))

    out = ContextCompactor(store).compact()

    assert out == "[File: logo.png]\n// Binary file: logo.png (2048 bytes)\n"


def test_large_file_keeps_head_and_tail():
    store = ResourceStore()
    content = "\n".join(f"line {i} " + "x" * 60 for i in range(1, 2001))
    store.add(_inline("huge.log", content))

    lines = ContextCompactor(store).compact().splitlines()

    assert lines[0] == "[File: huge.log]"
    assert lines[1].startswith("line 1 ")
    assert lines[50].startswith("line 50 ")
    assert lines[51] == "// ... [1930 lines omitted] ..."
    assert lines[52].startswith("line 1981 ")
    assert lines[-1].startswith("line 2000 ")


def test_python_file_uses_structure_summary():
    store = ResourceStore()
    source = "\n".join([
        "import os",
        "",
        "LIMIT = 3",
        "",
        "class Greeter:",
        "    def greet(self, name):",
        "        return 'hi ' + name",
    ])
    store.add(_inline("greet.py", source))

    out = ContextCompactor(store, PythonStructureExtractor()).compact()

    assert out.startswith("[File: greet.py]\n// Structure of greet.py\n")
    assert "class Greeter [lines 5-7]" in out
    assert "def Greeter.greet(self, name) [lines 6-7]" in out
    assert "LIMIT [lines 3-3]" in out
    assert "import os" not in out


def test_unparsable_python_falls_back_to_line_rules():
    store = ResourceStore()
    store.add(_inline("broken.py", "def oops(:\n    pass"))

    out = ContextCompactor(store, PythonStructureExtractor()).compact()

    assert out == "[File: broken.py]\ndef oops(:\n    pass\n"


def test_selection_is_labelled_and_filtered_only():
    store = ResourceStore()
    store.add(ContextResource(
        uri="file:///proj/a.py#L3-5",
        name="a.py:3-5",
        kind="code-selection",
        content="x = 1\n\n# c\ny = 2",
    ))

    out = ContextCompactor(store, PythonStructureExtractor()).compact()

    assert out == "[Selection: a.py:3-5]\nx = 1\ny = 2\n"


def test_directory_is_walked_depth_first(tmp_path):
    root = tmp_path / "pkg"
    (root / "sub").mkdir(parents=True)
    (root / "b.txt").write_text("bee", encoding="utf-8")
    (root / "sub" / "a.txt").write_text("ay", encoding="utf-8")

    store = ResourceStore(LocalFileContentSource(tmp_path))
    store.add(ContextResource(uri=file_uri(root.as_posix()), name="pkg", kind="directory"))

    out = ContextCompactor(store).compact()

    assert out == (
        "[Directory: pkg]\n"
        "\n[File: b.txt]\nbee\n"
        "\n[Directory: sub]\n"
        "\n[File: a.txt]\nay\n"
    )


def test_unreadable_file_is_reported_inline(tmp_path):
    store = ResourceStore(LocalFileContentSource(tmp_path))
    store.add(ContextResource(uri=file_uri((tmp_path / "missing.txt").as_posix()), name="missing.txt"))

    out = ContextCompactor(store).compact()

    assert out.startswith("[File: missing.txt]\n// Failed to read file: missing.txt - ")


def test_reference_message_lists_resources():
    assert context_reference_message([]) == DEFAULT_SYSTEM_PROMPT

    msg = context_reference_message([
        ContextResource(uri="file:///p/a.py", name="a.py", description="entry point"),
        ContextResource(uri="file:///p/b.py", name="b.py"),
    ])
    assert "1. a.py (file)" in msg
    assert "   URI: file:///p/a.py" in msg
    assert "   Description: entry point" in msg
    assert "2. b.py (file)" in msg


def test_file_fragment_with_content_keeps_file_header():
    store = ResourceStore()
    store.add(ContextResource(uri="file:///proj/a.py#part", name="a.py", content="x = 1\n\n# y"))

    out = ContextCompactor(store, PythonStructureExtractor()).compact()

    assert out == "[File: a.py#part]\nx = 1\n"


def test_c_preprocessor_and_short_statements_are_not_comments():
    store = ResourceStore()
    store.add(_inline("a.c", "#ifdef X\nint a = 1;\n#else\nint a = 2;\n#endif\n--i;\n// x"))

    out = ContextCompactor(store).compact()

    assert out == "[File: a.c]\n#ifdef X\nint a = 1;\n#else\nint a = 2;\n#endif\n--i;\n"


def test_unparsable_python_keeps_short_code_lines():
    store = ResourceStore()
    store.add(_inline("broken.py", "def f(:\n    **kw\n    # c"))

    out = ContextCompactor(store, PythonStructureExtractor()).compact()

    assert out == "[File: broken.py]\ndef f(:\n    **kw\n"


def test_unknown_extension_only_drops_double_slash_comments():
    store = ResourceStore()
    store.add(_inline("notes.txt", "# a\n* b\n-- c\n// d"))

    out = ContextCompactor(store).compact()

    assert out == "[File: notes.txt]\n# a\n* b\n-- c\n"


def test_labelled_resource_without_content_is_reported_unavailable():
    store = ResourceStore()
    store.add(ContextResource(uri="file:///proj/a.py#L3-5", name="a.py:3-5", kind="code-selection"))
    store.add(ContextResource(uri="file:///proj/a.py#run", name="run", kind="method-definition"))

    out = ContextCompactor(store, PythonStructureExtractor()).compact()

    assert out == (
        "[Selection: a.py:3-5]\n"
        "// Content not available: file:///proj/a.py#L3-5\n"
        "\n"
        "[Method: run]\n"
        "// Content not available: file:///proj/a.py#run\n"
    )
