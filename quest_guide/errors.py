"""Exception hierarchy and user-facing notices.

Every failure the core can surface maps to a Notice so the presentation layer
can show a distinct banner for "could not reach assistant", "request failed"
and "malformed input" without parsing exception text.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel

from quest_guide.models import Failure

NoticeKind = Literal[
    "assistant_unreachable",
    "handshake_failed",
    "session_lost",
    "request_failed",
    "malformed_input",
    "busy",
    "not_validated",
]


class QuestGuideError(RuntimeError):
    """Base class for every error raised by quest_guide."""


# ---------------------------------------------------------------------------
# Assistant client
# ---------------------------------------------------------------------------

class AssistantError(QuestGuideError):
    """Raised when the assistant service cannot be reached or answers badly."""


# ---------------------------------------------------------------------------
# Conversation session
# ---------------------------------------------------------------------------

class SessionError(QuestGuideError):
    """A submission or handshake was refused by the session."""


class SessionBusy(SessionError):
    """A submission arrived while the assistant call was still pending."""


class SessionLost(SessionError):
    """No session id is established; the quest must be reopened."""


class SessionClosed(SessionError):
    """The session was closed; it accepts nothing further."""


class HandshakeFailed(SessionError):
    """The assistant service refused to open a session."""


class AssistantUnavailable(SessionError):
    """The assistant call for a user turn failed; no reply was appended."""


class EmptyMessage(SessionError, ValueError):
    """The submitted text was blank."""


class UnknownMessage(SessionError, LookupError):
    """A message index is out of range or carries no directive."""


# ---------------------------------------------------------------------------
# Harness / progression
# ---------------------------------------------------------------------------

class RequestInFlight(QuestGuideError):
    """A validation request is already outstanding on this harness."""


class ProgressionError(QuestGuideError):
    """A completion was confirmed for a quest that cannot be completed now."""


# ---------------------------------------------------------------------------
# Notices
# ---------------------------------------------------------------------------

class Notice(BaseModel):
    """A human-readable banner describing one failure."""

    kind: NoticeKind
    title: str
    detail: str = ""


def notice_for(exc: Exception) -> Notice:
    """Translate an exception raised by the core into a Notice."""
    detail = str(exc)
    if isinstance(exc, HandshakeFailed):
        return Notice(kind="handshake_failed", title="Could not start the quest guide", detail=detail)
    if isinstance(exc, SessionLost):
        return Notice(kind="session_lost", title="Session lost, please reconnect", detail=detail)
    if isinstance(exc, (SessionBusy, RequestInFlight)):
        return Notice(kind="busy", title="Still working on the previous request", detail=detail)
    if isinstance(exc, (AssistantUnavailable, AssistantError)):
        return Notice(kind="assistant_unreachable", title="Could not reach the assistant", detail=detail)
    if isinstance(exc, ProgressionError):
        return Notice(kind="not_validated", title="Quest not complete yet", detail=detail)
    if isinstance(exc, (ValueError, LookupError)):
        return Notice(kind="malformed_input", title="Malformed input", detail=detail)
    return Notice(kind="request_failed", title="Request failed", detail=detail)


def notice_for_failure(failure: Failure) -> Notice:
    """Translate a Failure outcome into a Notice."""
    if failure.reason == "malformed_input":
        return Notice(kind="malformed_input", title="Malformed input", detail=failure.message)
    detail = failure.message
    if failure.status is not None and str(failure.status) not in detail:
        detail = f"HTTP {failure.status}: {detail}"
    return Notice(kind="request_failed", title="Request failed", detail=detail)
