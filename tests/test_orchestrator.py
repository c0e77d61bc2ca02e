import asyncio

import pytest

from common.events import (
    AssistantDeltaEvent,
    AssistantMessageEvent,
    ErrorEvent,
    EventEmitter,
    StreamFailedEvent,
    TurnStateEvent,
)
from seekchat.client.context import ChatContext, TurnState
from seekchat.client.local import LocalBackend
from seekchat.client.orchestrator import (
    CONTEXT_LOAD_FAILED,
    SAVE_FAILED_AFTER_STREAM,
    SAVE_FAILED_BEFORE_STREAM,
    TurnOrchestrator,
    build_outbound_messages,
)
from seekchat.config import STREAM_ERROR_MESSAGE, ClientConfig
from seekchat.errors import StorageError, TurnInProgressError
from seekchat.store.schema import Attachment, Message, Role


def _user(text):
    return Message(role=Role.USER, content=text)


def _assistant(text):
    return Message(role=Role.ASSISTANT, content=text)


class FlakyBackend(LocalBackend):
    """Fails the save_chat calls whose 1-based index is listed in `fail_on`."""

    def __init__(self, data_dir, fail_on=()):
        super().__init__(data_dir)
        self.fail_on = set(fail_on)
        self.save_calls = 0

    async def save_chat(self, chat_id, name, messages):
        self.save_calls += 1
        if self.save_calls in self.fail_on:
            raise StorageError("disk unavailable")
        await super().save_chat(chat_id, name, messages)


class UnreadableFilesBackend(LocalBackend):
    async def load_files(self, chat_id):
        raise StorageError("attachments unreadable")


def _orchestrator(backend, events=None):
    emitter = EventEmitter(events.append if events is not None else None)
    return TurnOrchestrator(backend, config=ClientConfig(model="test-model"), emitter=emitter)


async def _session(orchestrator, ctx):
    record = await orchestrator.directory.create_session("test")
    ctx.adopt(record)
    return ctx


async def _wait_for(predicate):
    for _ in range(1000):
        if predicate():
            return
        await asyncio.sleep(0)
    raise AssertionError("condition never became true")


def test_completed_turn_persists_both_messages(backend, fake_llm):
    fake_llm.script = ["Hi", " there"]
    events = []
    orchestrator = _orchestrator(backend, events)
    ctx = ChatContext(model="test-model")

    async def scenario():
        await _session(orchestrator, ctx)
        return await orchestrator.submit(ctx, "hello")

    result = asyncio.run(scenario())

    assert result.state is TurnState.COMPLETED
    assert result.content == "Hi there"
    assert result.saved
    expected = [_user("hello"), _assistant("Hi there")]
    assert ctx.messages == expected
    assert backend.sessions.load(ctx.session_id) == expected
    assert ctx.state is TurnState.IDLE
    assert ctx.live == ""
    assert ctx.cancel_token is None

    deltas = [e for e in events if isinstance(e, AssistantDeltaEvent)]
    assert [(d.text, d.partial) for d in deltas] == [("Hi", "Hi"), (" there", "Hi there")]
    assert [e.content for e in events if isinstance(e, AssistantMessageEvent)] == ["Hi there"]
    states = [e.state for e in events if isinstance(e, TurnStateEvent)]
    assert states == ["awaiting_stream_start", "streaming", "completed", "idle"]


def test_outbound_request_carries_model_prompt_and_attachments(backend, fake_llm):
    fake_llm.script = ["ok"]
    orchestrator = _orchestrator(backend)
    ctx = ChatContext(model="deepseek/deepseek-reasoner")
    backend.prompt.save("Be brief.")

    async def scenario():
        await _session(orchestrator, ctx)
        await backend.save_files(
            ctx.session_id,
            [Attachment(name="a.txt", content="alpha"), Attachment(name="b.py", content="beta")],
        )
        await orchestrator.submit(ctx, "summarise")

    asyncio.run(scenario())

    assert len(fake_llm.calls) == 1
    call = fake_llm.calls[0]
    assert call["model"] == "deepseek/deepseek-reasoner"
    assert call["stream"] is True
    assert call["messages"] == [
        {"role": "system", "content": "Be brief."},
        {"role": "user", "content": "summarise"},
        {"role": "system", "content": "alpha\nbeta"},
    ]
    assert [a.name for a in ctx.attachments] == ["a.txt", "b.py"]


def test_blank_prompt_without_attachments_is_noop(backend, fake_llm):
    orchestrator = _orchestrator(backend)
    ctx = ChatContext(model="m")

    result = asyncio.run(orchestrator.submit(ctx, "   "))

    assert result is None
    assert not ctx.has_session
    assert fake_llm.calls == []
    assert backend.sessions.list_all() == []


def test_blank_prompt_with_attachments_is_sent(backend, fake_llm):
    fake_llm.script = ["read it"]
    orchestrator = _orchestrator(backend)
    ctx = ChatContext(model="m")

    async def scenario():
        await _session(orchestrator, ctx)
        ctx.attachments = [Attachment(name="a.txt", content="alpha")]
        await backend.save_files(ctx.session_id, ctx.attachments)
        return await orchestrator.submit(ctx, "")

    result = asyncio.run(scenario())

    assert result.state is TurnState.COMPLETED
    assert ctx.messages == [_user(""), _assistant("read it")]


def test_submit_without_session_creates_one(backend, fake_llm):
    fake_llm.script = ["Hi"]
    orchestrator = _orchestrator(backend)
    ctx = ChatContext(model="m")

    result = asyncio.run(orchestrator.submit(ctx, "hello"))

    assert result.state is TurnState.COMPLETED
    assert ctx.has_session
    assert ctx.name.startswith("Session-")
    records = backend.sessions.list_all()
    assert [r.id for r in records] == [ctx.session_id]
    assert records[0].messages == [_user("hello"), _assistant("Hi")]


def test_submit_while_busy_is_rejected(backend, fake_llm):
    orchestrator = _orchestrator(backend)
    ctx = ChatContext(model="m", session_id="1", name="n")
    ctx.state = TurnState.STREAMING

    with pytest.raises(TurnInProgressError):
        asyncio.run(orchestrator.submit(ctx, "again"))
    assert ctx.messages == []
    assert fake_llm.calls == []


def test_cancel_before_first_fragment_keeps_only_user_turn(backend, fake_llm):
    events = []
    orchestrator = _orchestrator(backend, events)
    ctx = ChatContext(model="m")

    async def scenario():
        gate = asyncio.Event()
        fake_llm.script = [gate, "too late"]
        await _session(orchestrator, ctx)
        task = asyncio.create_task(orchestrator.submit(ctx, "hello"))
        await _wait_for(lambda: ctx.state is TurnState.STREAMING)
        assert orchestrator.cancel(ctx) is True
        gate.set()
        return await task

    result = asyncio.run(scenario())

    assert result.state is TurnState.CANCELLED
    assert ctx.messages == [_user("hello")]
    assert backend.sessions.load(ctx.session_id) == [_user("hello")]
    assert ctx.state is TurnState.IDLE
    assert ctx.live == ""
    assert not any(isinstance(e, ErrorEvent) for e in events)
    assert not any(isinstance(e, AssistantDeltaEvent) for e in events)


def test_cancel_mid_stream_discards_partial_answer(backend, fake_llm):
    orchestrator = _orchestrator(backend)
    ctx = ChatContext(model="m")

    async def scenario():
        gate = asyncio.Event()
        fake_llm.script = ["Hi", gate, " there"]
        await _session(orchestrator, ctx)
        task = asyncio.create_task(orchestrator.submit(ctx, "hello"))
        await _wait_for(lambda: ctx.live == "Hi")
        orchestrator.cancel(ctx)
        gate.set()
        return await task

    result = asyncio.run(scenario())

    assert result.state is TurnState.CANCELLED
    assert ctx.messages == [_user("hello")]
    assert backend.sessions.load(ctx.session_id) == [_user("hello")]
    assert ctx.notices == []


def test_fragments_after_cancel_are_not_applied(backend, fake_llm):
    events = []
    orchestrator = _orchestrator(backend, events)
    ctx = ChatContext(model="m")

    def cancel_now():
        orchestrator.cancel(ctx)

    fake_llm.script = ["Hi", cancel_now, " late", " later"]

    async def scenario():
        await _session(orchestrator, ctx)
        return await orchestrator.submit(ctx, "hello")

    result = asyncio.run(scenario())

    assert result.state is TurnState.CANCELLED
    partials = [e.partial for e in events if isinstance(e, AssistantDeltaEvent)]
    assert partials == ["Hi"]
    assert ctx.messages == [_user("hello")]


def test_cancel_without_turn_returns_false(backend):
    orchestrator = _orchestrator(backend)
    assert orchestrator.cancel(ChatContext(model="m")) is False


def test_stream_failure_persists_synthetic_error(backend, fake_llm):
    fake_llm.script = ["partial", RuntimeError("connection reset")]
    events = []
    orchestrator = _orchestrator(backend, events)
    ctx = ChatContext(model="m")

    async def scenario():
        await _session(orchestrator, ctx)
        return await orchestrator.submit(ctx, "hello")

    result = asyncio.run(scenario())

    assert result.state is TurnState.FAILED
    assert result.content == STREAM_ERROR_MESSAGE
    assert "connection reset" in result.error
    expected = [_user("hello"), _assistant(STREAM_ERROR_MESSAGE)]
    assert ctx.messages == expected
    assert backend.sessions.load(ctx.session_id) == expected
    failures = [e for e in events if isinstance(e, StreamFailedEvent)]
    assert [f.content for f in failures] == [STREAM_ERROR_MESSAGE]
    assert "connection reset" in failures[0].error


def test_stream_open_failure_is_failed_turn(backend, fake_llm):
    fake_llm.open_error = ConnectionError("no route to host")
    orchestrator = _orchestrator(backend)
    ctx = ChatContext(model="m")

    async def scenario():
        await _session(orchestrator, ctx)
        return await orchestrator.submit(ctx, "hello")

    result = asyncio.run(scenario())

    assert result.state is TurnState.FAILED
    assert ctx.messages[-1] == _assistant(STREAM_ERROR_MESSAGE)


def test_pre_turn_save_failure_never_starts_stream(data_dir, fake_llm):
    backend = FlakyBackend(data_dir, fail_on={1})
    orchestrator = _orchestrator(backend)
    ctx = ChatContext(model="m")

    async def scenario():
        await _session(orchestrator, ctx)
        return await orchestrator.submit(ctx, "hello")

    result = asyncio.run(scenario())

    assert result.state is TurnState.FAILED
    assert result.saved is False
    assert fake_llm.calls == []
    assert backend.sessions.load(ctx.session_id) == []
    assert len(ctx.notices) == 1
    assert ctx.notices[0].content.startswith(SAVE_FAILED_BEFORE_STREAM)
    assert ctx.state is TurnState.IDLE


def test_post_turn_save_failure_keeps_answer_visible(data_dir, fake_llm):
    fake_llm.script = ["Hi", " there"]
    backend = FlakyBackend(data_dir, fail_on={2})
    orchestrator = _orchestrator(backend)
    ctx = ChatContext(model="m")

    async def scenario():
        await _session(orchestrator, ctx)
        return await orchestrator.submit(ctx, "hello")

    result = asyncio.run(scenario())

    assert result.state is TurnState.COMPLETED
    assert result.saved is False
    assert ctx.messages == [_user("hello"), _assistant("Hi there")]
    assert backend.sessions.load(ctx.session_id) == [_user("hello")]
    assert ctx.notices[0].content.startswith(SAVE_FAILED_AFTER_STREAM)


def test_notices_are_never_persisted(data_dir, fake_llm):
    fake_llm.script = ["one"]
    backend = FlakyBackend(data_dir, fail_on={1})
    orchestrator = _orchestrator(backend)
    ctx = ChatContext(model="m")

    async def scenario():
        await _session(orchestrator, ctx)
        await orchestrator.submit(ctx, "first")
        return await orchestrator.submit(ctx, "second")

    result = asyncio.run(scenario())

    assert result.state is TurnState.COMPLETED
    stored = backend.sessions.load(ctx.session_id)
    assert all(m.role is not Role.SYSTEM for m in stored)
    assert stored[-1] == _assistant("one")


def test_build_outbound_messages_order():
    transcript = [_user("a"), _assistant("b"), _user("c")]
    outbound = build_outbound_messages(
        transcript,
        system_prompt="sys",
        attachments=[Attachment(name="x.txt", content="1"), Attachment(name="y.txt", content="2")],
    )
    assert outbound == [
        {"role": "system", "content": "sys"},
        {"role": "user", "content": "a"},
        {"role": "assistant", "content": "b"},
        {"role": "user", "content": "c"},
        {"role": "system", "content": "1\n2"},
    ]


def test_build_outbound_messages_skips_empty_context():
    outbound = build_outbound_messages([_user("a")], system_prompt="", attachments=[])
    assert outbound == [{"role": "user", "content": "a"}]


def test_context_load_failure_keeps_user_turn_and_skips_stream(data_dir, fake_llm):
    backend = UnreadableFilesBackend(data_dir)
    orchestrator = _orchestrator(backend)
    ctx = ChatContext(model="m")

    async def scenario():
        await _session(orchestrator, ctx)
        return await orchestrator.submit(ctx, "hello")

    result = asyncio.run(scenario())

    assert result.state is TurnState.FAILED
    assert result.saved is True
    assert fake_llm.calls == []
    assert backend.sessions.load(ctx.session_id) == [_user("hello")]
    assert len(ctx.notices) == 1
    assert ctx.notices[0].content.startswith(CONTEXT_LOAD_FAILED)
    assert ctx.state is TurnState.IDLE


def test_second_submit_during_stream_is_rejected(backend, fake_llm):
    orchestrator = _orchestrator(backend)
    ctx = ChatContext(model="m")

    async def scenario():
        gate = asyncio.Event()
        fake_llm.script = ["Hi", gate, " there"]
        await _session(orchestrator, ctx)
        first = asyncio.create_task(orchestrator.submit(ctx, "first"))
        await _wait_for(lambda: ctx.live == "Hi")

        second = asyncio.create_task(orchestrator.submit(ctx, "second"))
        with pytest.raises(TurnInProgressError):
            await second

        gate.set()
        return await first

    result = asyncio.run(scenario())

    assert result.state is TurnState.COMPLETED
    expected = [_user("first"), _assistant("Hi there")]
    assert ctx.messages == expected
    assert backend.sessions.load(ctx.session_id) == expected
    assert len(fake_llm.calls) == 1
