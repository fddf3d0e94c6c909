"""测试 ContextAgent 的消息构造与调用。"""

import pytest

from context_core.agents.context_agent import ContextAgent
from context_core.context.compactor import ContextCompactor
from context_core.domain.exceptions import ValidationError
from context_core.domain.models import ContextResource
from context_core.infrastructure.storage.resource_store import ResourceStore
from context_core.prompts import load_system_prompt


class FakeTransport:
    """模拟的补全客户端，记录收到的消息。"""

    name = "fake"

    def __init__(self, reply="这是测试回复", chunks=()):
        self.reply = reply
        self.chunks = list(chunks)
        self.calls = []

    def complete(self, messages, on_chunk=None):
        self.calls.append(list(messages))
        if on_chunk is not None:
            for chunk in self.chunks:
                on_chunk(chunk)
        return self.reply


def _agent(resources=(), transport=None):
    store = ResourceStore()
    for res in resources:
        store.add(res)
    return ContextAgent(ContextCompactor(store), transport or FakeTransport())


def test_build_messages_includes_prompt_and_context():
    agent = _agent([ContextResource(uri="file:///p/a.txt", name="a.txt", content="alpha")])

    system, user = agent.build_messages("what is alpha?")

    assert system.role == "system"
    assert system.content.startswith(load_system_prompt("chat"))
    assert system.content.endswith("[File: a.txt]\nalpha\n")
    assert user.role == "user"
    assert user.content == "what is alpha?"


def test_build_messages_without_context_uses_prompt_only():
    system, _ = _agent().build_messages("hi", task="explain")

    assert system.content == load_system_prompt("explain")


def test_build_messages_appends_code_block():
    _, user = _agent().build_messages("Add logging", task="refactor", code="def f():\n    pass")

    assert user.content == "Add logging\n\n```\ndef f():\n    pass\n```"


def test_unknown_task_raises():
    with pytest.raises(ValidationError) as ei:
        _agent().build_messages("hi", task="translate")
    assert ei.value.code == "UNKNOWN_TASK"


def test_ask_streams_through_transport():
    transport = FakeTransport(reply="Hello", chunks=["He", "llo"])
    agent = _agent(transport=transport)

    received = []
    answer = agent.ask("hi", task="unit-test", code="x = 1", on_chunk=received.append)

    assert answer == "Hello"
    assert received == ["He", "llo"]
    sent = transport.calls[0]
    assert [m.role for m in sent] == ["system", "user"]
    assert sent[0].content == load_system_prompt("unit-test")


def test_ask_with_references_lists_uris_without_content():
    transport = FakeTransport()
    agent = _agent(
        [ContextResource(uri="file:///p/secret.txt", name="secret.txt", content="TOP SECRET")],
        transport=transport,
    )

    assert agent.ask_with_references("summarise") == "这是测试回复"
    system = transport.calls[0][0].content
    assert "URI: file:///p/secret.txt" in system
    assert "TOP SECRET" not in system
