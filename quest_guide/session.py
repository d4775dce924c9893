"""Conversation session — one quest's dialogue with the assistant.

State machine:

    uninitialized ──open()──▶ pending ──▶ active ⇄ pending ──close()──▶ closed

  open()          Handshake: obtain a session id and the first assistant
                  message. On failure the session is active without an id and
                  every later submit() raises SessionLost.
  submit(text)    Append the user message, call the assistant, append the reply
                  with its extracted directive. Rejected while pending.
  run_directive() Execute a message's directive (or the quest's static
                  validation request) through the harness, record the outcome
                  and forward a summary to the assistant.
  close()         Discard the log and id. Calls still in flight are ignored
                  when they resolve.

The log is append-only: messages are never removed or reordered, and a user
message always precedes the reply it provoked.
"""

from __future__ import annotations

import json
import logging
from typing import Literal

from pydantic import ValidationError

from quest_guide.assistant import Assistant
from quest_guide.directives import extract_directive
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
from quest_guide.models import BusinessIntent, Failure, Message, Quest, RequestSpec, Success

logger = logging.getLogger(__name__)

SessionState = Literal["uninitialized", "active", "pending", "closed"]
Capability = Literal["dynamic-directive", "static-directive"]

_SUMMARY_BODY_LIMIT = 2000


def summarize_outcome(spec: RequestSpec, outcome: Success | Failure) -> str:
    """Describe an outcome in one user-originated message for the assistant."""
    if isinstance(outcome, Success):
        text = f"I ran {spec.method} {spec.url} and it succeeded with HTTP {outcome.status}."
    elif outcome.status is not None:
        text = f"I ran {spec.method} {spec.url} and it failed with HTTP {outcome.status}."
        if outcome.message != f"HTTP {outcome.status}":
            text += f" {outcome.message}."
    else:
        text = f"I ran {spec.method} {spec.url} and it failed: {outcome.message}."
    if outcome.body is not None:
        body = outcome.body if isinstance(outcome.body, str) else json.dumps(outcome.body, indent=2)
        if len(body) > _SUMMARY_BODY_LIMIT:
            body = body[:_SUMMARY_BODY_LIMIT] + "\n…"
        text += f"\n\nResponse body:\n{body}"
    return text


class ConversationSession:
    """Owns the ordered message log for one open quest.

    Args:
        quest:            The quest being played.
        assistant:        Assistant implementation (HttpAssistant or ScriptedAssistant).
        harness:          Harness used to run directives.
        forward_outcomes: Send a summary of each outcome back to the assistant.
        intent:           Learner goal passed to the assistant on the handshake.
    """

    def __init__(
        self,
        quest: Quest,
        assistant: Assistant,
        harness: RequestHarness,
        *,
        forward_outcomes: bool = True,
        intent: BusinessIntent | None = None,
    ) -> None:
        self.quest = quest
        self.intent = intent
        self.id: str | None = None
        self._assistant = assistant
        self._harness = harness
        self._forward_outcomes = forward_outcomes
        self._messages: list[Message] = []
        self._state: SessionState = "uninitialized"

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def pending(self) -> bool:
        return self._state == "pending"

    @property
    def closed(self) -> bool:
        return self._state == "closed"

    @property
    def messages(self) -> tuple[Message, ...]:
        return tuple(self._messages)

    @property
    def capabilities(self) -> frozenset[Capability]:
        caps: set[Capability] = {"dynamic-directive"}
        if self.quest.validation is not None:
            caps.add("static-directive")
        return frozenset(caps)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def open(self) -> Message:
        """Run the handshake and return the first assistant message."""
        if self._state != "uninitialized":
            raise SessionError(f"Session cannot be opened from state {self._state!r}")

        self._state = "pending"
        try:
            session_id = await self._assistant.create_session()
            greeting = await self._assistant.start(session_id, self.quest, intent=self.intent)
        except AssistantError as e:
            logger.warning("Handshake failed for quest %s: %s", self.quest.id, e)
            raise HandshakeFailed(str(e)) from e
        finally:
            if self._state == "pending":
                self._state = "active"

        if self.closed:
            raise SessionClosed("Session was closed during the handshake")
        self.id = session_id
        logger.debug("session opened id=%s quest=%s", session_id, self.quest.id)
        return self._append_assistant(greeting)

    def close(self) -> None:
        """Discard the log and id; late results are dropped."""
        if self.closed:
            return
        logger.debug("session closed id=%s quest=%s messages=%d", self.id, self.quest.id, len(self._messages))
        self._state = "closed"
        self.id = None
        self._messages = []

    # ------------------------------------------------------------------
    # Turns
    # ------------------------------------------------------------------

    async def submit(self, text: str) -> Message:
        """Send one user message and return the assistant's reply."""
        if self.closed:
            raise SessionClosed("Session is closed")
        if self.pending:
            raise SessionBusy("Wait for the assistant to answer before sending another message")
        if not text or not text.strip():
            raise EmptyMessage("Message is empty")
        if self.id is None:
            raise SessionLost("No assistant session is established; reopen the quest to reconnect")

        self._messages.append(Message(sender="user", content=text))
        reply = await self._exchange(text)
        if self.closed:
            raise SessionClosed("Session was closed while waiting for the assistant")
        return self._append_assistant(reply)

    async def _exchange(self, text: str) -> str:
        self._state = "pending"
        try:
            return await self._assistant.reply(self.id, text)
        except AssistantError as e:
            logger.warning("Assistant call failed for session %s: %s", self.id, e)
            raise AssistantUnavailable(str(e)) from e
        finally:
            if self._state == "pending":
                self._state = "active"

    def _append_assistant(self, text: str) -> Message:
        message = Message(sender="assistant", content=text, directive=extract_directive(text))
        self._messages.append(message)
        return message

    # ------------------------------------------------------------------
    # Directives
    # ------------------------------------------------------------------

    def request_spec(self, index: int | None = None) -> RequestSpec:
        """Build the editable request for message ``index``.

        ``index=None`` selects the quest's static validation request.
        """
        if index is None:
            if self.quest.validation is None:
                raise UnknownMessage(f"Quest {self.quest.id} has no static validation request")
            return RequestSpec.from_validation(self.quest.validation)
        if not 0 <= index < len(self._messages):
            raise UnknownMessage(f"Message index {index} out of range")
        directive = self._messages[index].directive
        if directive is None:
            raise UnknownMessage(f"Message {index} carries no directive")
        return RequestSpec.from_directive(directive)

    async def run_directive(
        self,
        index: int | None = None,
        *,
        url: str | None = None,
        method: str | None = None,
        headers: str | None = None,
        body: str | None = None,
    ) -> Success | Failure:
        """Execute a directive with optional learner edits and record the outcome."""
        if self.closed:
            raise SessionClosed("Session is closed")
        spec = self.request_spec(index)
        try:
            spec = spec.with_overrides(url=url, method=method, headers=headers, body=body)
        except ValidationError as e:
            return Failure(message=f"Invalid request: {e.errors()[0]['msg']}", reason="malformed_input")

        target = self._messages[index] if index is not None else None
        outcome = await self._harness.execute(spec)
        if self.closed:
            logger.debug("Dropping outcome for closed session quest=%s", self.quest.id)
            return outcome

        if target is not None:
            if target.outcome is not None:
                target.notes.append(f"replayed: previous outcome was {target.outcome.kind}")
            target.outcome = outcome

        if self._forward_outcomes:
            await self._forward(spec, outcome)
        return outcome

    async def _forward(self, spec: RequestSpec, outcome: Success | Failure) -> None:
        """Best-effort: tell the assistant what happened. Never raises."""
        if self.pending or self.id is None:
            logger.debug("Skipping outcome forwarding (pending=%s id=%s)", self.pending, self.id)
            return
        summary = summarize_outcome(spec, outcome)
        self._messages.append(Message(sender="user", content=summary))
        try:
            reply = await self._exchange(summary)
        except AssistantUnavailable as e:
            logger.warning("Could not forward outcome to assistant: %s", e)
            return
        if not self.closed:
            self._append_assistant(reply)
