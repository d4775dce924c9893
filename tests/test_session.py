"""Tests for the conversation session state machine."""

import asyncio
from unittest.mock import AsyncMock

import httpx
import pytest

from quest_guide.errors import (
    AssistantError,
    AssistantUnavailable,
    EmptyMessage,
    HandshakeFailed,
    SessionBusy,
    SessionClosed,
    SessionError,
    SessionLost,
    UnknownMessage,
)
from quest_guide.harness import RequestHarness
from quest_guide.models import BusinessIntent, Failure, RequestSpec, Success
from quest_guide.session import ConversationSession, summarize_outcome

DIRECTIVE_REPLY = (
    "Run this:\n```json\n"
    '{"ready": true, "url": "https://api.example.com/pay", "method": "POST", "payload": {"amount": 1}}'
    "\n```"
)


class StubAssistant:
    """Assistant double returning queued replies; a reply may be an exception."""

    def __init__(self, replies: list | None = None, greeting: str = "Hello!") -> None:
        self.replies = list(replies or [])
        self.greeting = greeting
        self.received: list[str] = []
        self.gate: asyncio.Event | None = None
        self.fail_handshake = False
        self.intent = None

    async def create_session(self) -> str:
        if self.fail_handshake:
            raise AssistantError("Cannot connect to assistant")
        return "sess-1"

    async def start(self, session_id: str, quest, intent=None) -> str:
        self.intent = intent
        return self.greeting

    async def reply(self, session_id: str, text: str) -> str:
        self.received.append(text)
        if self.gate is not None:
            await self.gate.wait()
        reply = self.replies.pop(0) if self.replies else "ok"
        if isinstance(reply, Exception):
            raise reply
        return reply


class StubHarness(RequestHarness):
    def __init__(self, outcome) -> None:
        super().__init__()
        self.execute = AsyncMock(return_value=outcome)


async def _open(quest, assistant, harness=None, **kwargs) -> ConversationSession:
    session = ConversationSession(quest, assistant, harness or StubHarness(Success(status=200)), **kwargs)
    await session.open()
    return session


# ---------------------------------------------------------------------------
# Handshake
# ---------------------------------------------------------------------------

class TestOpen:
    async def test_open_assigns_id_and_greeting(self, quest) -> None:
        session = ConversationSession(quest, StubAssistant(greeting="Welcome"), StubHarness(None))
        assert session.state == "uninitialized"
        assert session.id is None
        greeting = await session.open()
        assert session.id == "sess-1"
        assert session.state == "active"
        assert greeting.sender == "assistant"
        assert [m.content for m in session.messages] == ["Welcome"]

    async def test_intent_passed_on_handshake(self, quest) -> None:
        assistant = StubAssistant()
        intent = BusinessIntent(goal="Refund orders", payment_methods=["upi"])
        await _open(quest, assistant, intent=intent)
        assert assistant.intent == intent

    async def test_greeting_directive_is_extracted(self, quest) -> None:
        session = await _open(quest, StubAssistant(greeting=DIRECTIVE_REPLY))
        assert session.messages[0].directive.url == "https://api.example.com/pay"

    async def test_pending_during_handshake(self, quest) -> None:
        gate = asyncio.Event()
        assistant = StubAssistant()

        async def slow_start(session_id, q, intent=None):
            await gate.wait()
            return "hi"

        assistant.start = slow_start
        session = ConversationSession(quest, assistant, StubHarness(None))
        task = asyncio.create_task(session.open())
        await asyncio.sleep(0)
        assert session.pending
        gate.set()
        await task
        assert session.state == "active"

    async def test_handshake_failure(self, quest) -> None:
        assistant = StubAssistant()
        assistant.fail_handshake = True
        session = ConversationSession(quest, assistant, StubHarness(None))
        with pytest.raises(HandshakeFailed):
            await session.open()
        assert session.state == "active"
        assert session.id is None
        assert session.messages == ()

    async def test_submit_after_failed_handshake_is_session_lost(self, quest) -> None:
        assistant = StubAssistant()
        assistant.fail_handshake = True
        session = ConversationSession(quest, assistant, StubHarness(None))
        with pytest.raises(HandshakeFailed):
            await session.open()
        with pytest.raises(SessionLost):
            await session.submit("hello")
        assert assistant.received == []
        assert session.messages == ()

    async def test_cannot_open_twice(self, quest) -> None:
        session = await _open(quest, StubAssistant())
        with pytest.raises(SessionError):
            await session.open()

    async def test_capabilities(self, quest, plain_quest) -> None:
        assert ConversationSession(quest, StubAssistant(), StubHarness(None)).capabilities == {
            "dynamic-directive", "static-directive",
        }
        assert ConversationSession(plain_quest, StubAssistant(), StubHarness(None)).capabilities == {
            "dynamic-directive",
        }


# ---------------------------------------------------------------------------
# Turns
# ---------------------------------------------------------------------------

class TestSubmit:
    async def test_user_message_precedes_reply(self, quest) -> None:
        session = await _open(quest, StubAssistant(replies=["first", DIRECTIVE_REPLY]))
        await session.submit("one")
        reply = await session.submit("two")
        assert [(m.sender, m.content) for m in session.messages] == [
            ("assistant", "Hello!"),
            ("user", "one"),
            ("assistant", "first"),
            ("user", "two"),
            ("assistant", DIRECTIVE_REPLY),
        ]
        assert reply.directive is not None
        assert session.messages[1].directive is None

    async def test_user_message_appended_before_reply_arrives(self, quest) -> None:
        assistant = StubAssistant(replies=["answer"])
        session = await _open(quest, assistant)
        assistant.gate = asyncio.Event()
        task = asyncio.create_task(session.submit("question"))
        await asyncio.sleep(0)
        assert session.pending
        assert session.messages[-1].content == "question"
        assistant.gate.set()
        await task
        assert not session.pending
        assert session.messages[-1].content == "answer"

    async def test_submission_while_pending_rejected(self, quest) -> None:
        assistant = StubAssistant(replies=["answer"])
        session = await _open(quest, assistant)
        assistant.gate = asyncio.Event()
        task = asyncio.create_task(session.submit("first"))
        await asyncio.sleep(0)
        length = len(session.messages)

        for text in ("second", "third"):
            with pytest.raises(SessionBusy):
                await session.submit(text)
        assert len(session.messages) == length
        assert assistant.received == ["first"]

        assistant.gate.set()
        await task
        await session.submit("after")
        assert assistant.received == ["first", "after"]

    async def test_blank_submission_rejected(self, quest) -> None:
        session = await _open(quest, StubAssistant())
        for text in ("", "   \n"):
            with pytest.raises(EmptyMessage):
                await session.submit(text)
        assert len(session.messages) == 1

    async def test_assistant_failure_returns_to_active(self, quest) -> None:
        session = await _open(quest, StubAssistant(replies=[AssistantError("down"), "back"]))
        with pytest.raises(AssistantUnavailable):
            await session.submit("hello")
        assert session.state == "active"
        assert [m.sender for m in session.messages] == ["assistant", "user"]
        await session.submit("retry")
        assert session.messages[-1].content == "back"


# ---------------------------------------------------------------------------
# Close
# ---------------------------------------------------------------------------

class TestClose:
    async def test_close_discards_log_and_id(self, quest) -> None:
        session = await _open(quest, StubAssistant())
        session.close()
        assert session.state == "closed"
        assert session.id is None
        assert session.messages == ()
        with pytest.raises(SessionClosed):
            await session.submit("hi")

    async def test_late_reply_ignored_after_close(self, quest) -> None:
        assistant = StubAssistant(replies=["late"])
        session = await _open(quest, assistant)
        assistant.gate = asyncio.Event()
        task = asyncio.create_task(session.submit("question"))
        await asyncio.sleep(0)
        session.close()
        assistant.gate.set()
        with pytest.raises(SessionClosed):
            await task
        assert session.messages == ()
        assert session.state == "closed"


# ---------------------------------------------------------------------------
# Directives
# ---------------------------------------------------------------------------

class TestRunDirective:
    async def test_outcome_attached_to_message(self, quest) -> None:
        harness = StubHarness(Success(status=200, body={"id": 1}))
        session = await _open(quest, StubAssistant(replies=[DIRECTIVE_REPLY]), harness, forward_outcomes=False)
        await session.submit("code")
        outcome = await session.run_directive(2)
        assert outcome == Success(status=200, body={"id": 1})
        assert session.messages[2].outcome == outcome
        spec = harness.execute.call_args[0][0]
        assert spec.url == "https://api.example.com/pay"
        assert spec.method == "POST"

    async def test_learner_overrides_applied(self, quest) -> None:
        harness = StubHarness(Success(status=200))
        session = await _open(quest, StubAssistant(replies=[DIRECTIVE_REPLY]), harness, forward_outcomes=False)
        await session.submit("code")
        await session.run_directive(2, url="https://other.example.com", body='{"amount": 2}')
        spec = harness.execute.call_args[0][0]
        assert spec.url == "https://other.example.com"
        assert spec.body == '{"amount": 2}'

    async def test_invalid_method_override_is_malformed_failure(self, quest) -> None:
        harness = StubHarness(Success(status=200))
        session = await _open(quest, StubAssistant(replies=[DIRECTIVE_REPLY]), harness, forward_outcomes=False)
        await session.submit("code")
        outcome = await session.run_directive(2, method="BREW")
        assert isinstance(outcome, Failure)
        assert outcome.reason == "malformed_input"
        harness.execute.assert_not_called()

    async def test_rerun_overwrites_and_notes(self, quest) -> None:
        harness = StubHarness(Failure(status=500, message="HTTP 500"))
        session = await _open(quest, StubAssistant(replies=[DIRECTIVE_REPLY]), harness, forward_outcomes=False)
        await session.submit("code")
        await session.run_directive(2)
        harness.execute.return_value = Success(status=200)
        await session.run_directive(2)
        message = session.messages[2]
        assert isinstance(message.outcome, Success)
        assert message.notes == ["replayed: previous outcome was failure"]

    async def test_static_validation_request(self, quest) -> None:
        harness = StubHarness(Success(status=200))
        session = await _open(quest, StubAssistant(), harness, forward_outcomes=False)
        await session.run_directive(None)
        spec = harness.execute.call_args[0][0]
        assert spec.url == quest.validation.endpoint

    async def test_static_request_missing(self, plain_quest) -> None:
        session = await _open(plain_quest, StubAssistant())
        with pytest.raises(UnknownMessage):
            await session.run_directive(None)

    async def test_message_without_directive(self, quest) -> None:
        session = await _open(quest, StubAssistant())
        with pytest.raises(UnknownMessage):
            await session.run_directive(0)
        with pytest.raises(UnknownMessage):
            await session.run_directive(7)

    async def test_outcome_forwarded_to_assistant(self, quest) -> None:
        assistant = StubAssistant(replies=[DIRECTIVE_REPLY, "Nice work!"])
        session = await _open(quest, assistant, StubHarness(Success(status=201)))
        await session.submit("code")
        await session.run_directive(2)
        assert "succeeded with HTTP 201" in assistant.received[-1]
        assert [m.sender for m in session.messages][-2:] == ["user", "assistant"]
        assert session.messages[-1].content == "Nice work!"
        assert session.state == "active"

    async def test_forwarding_failure_does_not_break_session(self, quest) -> None:
        assistant = StubAssistant(replies=[DIRECTIVE_REPLY, AssistantError("down")])
        session = await _open(quest, assistant, StubHarness(Failure(message="Cannot connect")))
        await session.submit("code")
        outcome = await session.run_directive(2)
        assert isinstance(outcome, Failure)
        assert session.state == "active"
        assert session.messages[2].outcome == outcome

    async def test_unreachable_host_leaves_session_active(self, quest) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("unreachable", request=request)

        harness = RequestHarness(transport=httpx.MockTransport(handler))
        reply = '```json\n{"ready": true, "url": "https://bad.invalid", "method": "GET"}\n```'
        session = await _open(quest, StubAssistant(replies=[reply]), harness, forward_outcomes=False)
        await session.submit("go")
        outcome = await session.run_directive(2)
        assert isinstance(outcome, Failure)
        assert outcome.status is None
        assert session.state == "active"

    async def test_outcome_dropped_when_closed_mid_request(self, quest) -> None:
        gate = asyncio.Event()
        harness = StubHarness(None)

        async def slow_execute(spec):
            await gate.wait()
            return Success(status=200)

        harness.execute = slow_execute
        session = await _open(quest, StubAssistant(replies=[DIRECTIVE_REPLY]), harness)
        await session.submit("code")
        task = asyncio.create_task(session.run_directive(2))
        await asyncio.sleep(0)
        session.close()
        gate.set()
        outcome = await task
        assert isinstance(outcome, Success)
        assert session.messages == ()


def test_summarize_failure_includes_status_and_body():
    spec = RequestSpec(url="https://x", method="GET")
    text = summarize_outcome(spec, Failure(status=404, message="HTTP 404", body={"error": "nope"}))
    assert "failed with HTTP 404" in text
    assert '"error": "nope"' in text
