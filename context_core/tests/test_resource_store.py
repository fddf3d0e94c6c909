"""测试 ResourceStore 与 ContextResource 模型。"""

import pytest

from context_core.domain.exceptions import ResourceNotFoundError, ResourceUnavailableError, ValidationError
from context_core.domain.models import ContextResource, ResourceKind, file_uri
from context_core.infrastructure.storage.content_source import LocalFileContentSource
from context_core.infrastructure.storage.resource_store import ResourceStore


def _resource(uri, content=None, name="a.txt"):
    return ContextResource(uri=uri, name=name, content=content)


def test_add_same_uri_last_write_wins():
    store = ResourceStore()
    assert store.add(_resource("file:///p/a.txt", "v1"))
    assert store.add(_resource("file:///p/a.txt", "v2"))

    assert len(store) == 1
    assert store.get("file:///p/a.txt").content == "v2"
    assert store.read("file:///p/a.txt") == "v2"


def test_remove_is_idempotent():
    store = ResourceStore()
    store.add(_resource("file:///p/a.txt", "x"))

    assert store.remove("file:///p/a.txt") is True
    assert store.remove("file:///p/a.txt") is False
    assert "file:///p/a.txt" not in store


def test_list_keeps_insertion_order_and_clear():
    store = ResourceStore()
    for name in ("b", "a", "c"):
        store.add(_resource(f"file:///p/{name}.txt", name))
    assert store.uris() == ["file:///p/b.txt", "file:///p/a.txt", "file:///p/c.txt"]

    store.clear()
    assert store.list() == []


def test_read_loads_content_lazily(tmp_path):
    f = tmp_path / "hello.txt"
    f.write_text("hello\nworld\n", encoding="utf-8")
    store = ResourceStore(LocalFileContentSource(tmp_path))
    store.add(ContextResource(uri=file_uri(f.as_posix()), name="hello.txt"))

    assert store.read(file_uri(f.as_posix())) == "hello\nworld\n"


def test_read_relative_uri_against_project_root(tmp_path):
    (tmp_path / "rel.txt").write_text("relative", encoding="utf-8")
    store = ResourceStore(LocalFileContentSource(tmp_path))
    store.add(ContextResource(uri="file://rel.txt", name="rel.txt"))

    assert store.read("file://rel.txt") == "relative"


def test_read_unknown_uri_raises_not_found():
    store = ResourceStore()
    with pytest.raises(ResourceNotFoundError) as ei:
        store.read("file:///nope.txt")
    assert ei.value.code == "RESOURCE_NOT_FOUND"
    assert ei.value.message == "Resource not found: file:///nope.txt"


def test_read_missing_file_raises_unavailable(tmp_path):
    store = ResourceStore(LocalFileContentSource(tmp_path))
    uri = file_uri((tmp_path / "gone.txt").as_posix())
    store.add(ContextResource(uri=uri, name="gone.txt"))

    with pytest.raises(ResourceUnavailableError) as ei:
        store.read(uri)
    assert ei.value.message.startswith("Failed to read resource content:")
    assert isinstance(ei.value.__cause__, FileNotFoundError)


def test_resource_from_dict_defaults_and_validation():
    res = ContextResource.from_dict({"uri": "file:///src/main.py"})
    assert res.name == "main.py"
    assert res.kind == "file"
    assert res.metadata == {}

    other = ContextResource.from_dict({"uri": "file:///x", "name": "x", "kind": "custom-kind"})
    assert other.kind_tag is ResourceKind.OTHER
    assert other.kind == "custom-kind"

    with pytest.raises(ValidationError):
        ContextResource.from_dict({"name": "no uri"})
    with pytest.raises(ValidationError):
        ContextResource.from_dict({"uri": "file:///x", "metadata": ["not", "a", "map"]})


def test_resource_to_dict_omits_empty_optionals():
    res = ContextResource(uri="file:///p/a.py#L1-2", name="a.py:1-2", kind="code-selection")
    data = res.to_dict()

    assert "description" not in data
    assert "content" not in data
    assert res.fragment == "L1-2"
    assert res.file_name == "a.py"
