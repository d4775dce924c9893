"""Pydantic request bodies and shared helpers for API endpoints."""

from typing import Any

from fastapi import HTTPException, Request
from pydantic import BaseModel

from quest_guide.errors import (
    AssistantUnavailable,
    EmptyMessage,
    HandshakeFailed,
    ProgressionError,
    RequestInFlight,
    SessionBusy,
    SessionLost,
    UnknownMessage,
    notice_for,
)
from quest_guide.tutor import Tutor


class IntentBody(BaseModel):
    goal: str
    payment_methods: list[str]


class ChatBody(BaseModel):
    message: str


class RunBody(BaseModel):
    index: int | None = None
    url: str | None = None
    method: str | None = None
    headers: str | None = None
    body: str | None = None


class ValidateBody(BaseModel):
    passed: bool


def get_tutor(request: Request) -> Tutor:
    return request.app.state.tutor


_STATUS = (
    (LookupError, 404),
    (UnknownMessage, 404),
    (SessionBusy, 409),
    (RequestInFlight, 409),
    (ProgressionError, 409),
    (HandshakeFailed, 502),
    (AssistantUnavailable, 502),
    (SessionLost, 400),
    (EmptyMessage, 400),
)


def http_error(exc: Exception) -> HTTPException:
    """Map a core exception to an HTTPException carrying its Notice."""
    status = 400
    for exc_type, code in _STATUS:
        if isinstance(exc, exc_type):
            status = code
            break
    detail: Any = notice_for(exc).model_dump()
    return HTTPException(status, detail)
