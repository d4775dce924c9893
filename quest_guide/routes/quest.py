"""Open-quest endpoints: conversation, request runs, validation, confirmation."""

from fastapi import APIRouter, Depends

from quest_guide.directives import strip_directive_blocks
from quest_guide.errors import QuestGuideError, notice_for_failure
from quest_guide.models import Failure
from quest_guide.tutor import Tutor

from .models import ChatBody, RunBody, ValidateBody, get_tutor, http_error
from .tracks import progress_view

router = APIRouter()


def _dump_messages(tutor: Tutor) -> list[dict]:
    if tutor.session is None:
        return []
    return [
        {**m.model_dump(by_alias=True), "prose": strip_directive_blocks(m.content)}
        for m in tutor.session.messages
    ]


@router.post("/quest/open")
async def open_quest(tutor: Tutor = Depends(get_tutor)):
    """Open the current quest in a new session (discarding any previous one)."""
    try:
        await tutor.open_quest()
    except (QuestGuideError, LookupError) as e:
        raise http_error(e)
    session = tutor.session
    return {
        "sessionId": session.id,
        "capabilities": sorted(session.capabilities),
        "messages": _dump_messages(tutor),
    }


@router.post("/quest/close")
async def close_quest(tutor: Tutor = Depends(get_tutor)):
    """Exit the open quest; its log is discarded."""
    tutor.close_quest()
    return {"ok": True}


@router.get("/quest/messages")
async def get_messages(tutor: Tutor = Depends(get_tutor)):
    """Message log of the open quest."""
    return _dump_messages(tutor)


@router.post("/quest/messages")
async def send_message(body: ChatBody, tutor: Tutor = Depends(get_tutor)):
    """Send a user message and wait for the assistant's reply."""
    try:
        await tutor.send(body.message)
    except QuestGuideError as e:
        raise http_error(e)
    return _dump_messages(tutor)


@router.get("/quest/request")
async def get_request(index: int | None = None, tutor: Tutor = Depends(get_tutor)):
    """Prefill the request editor from a directive or the static request."""
    try:
        session = tutor.require_session()
        return session.request_spec(index).model_dump()
    except QuestGuideError as e:
        raise http_error(e)


@router.post("/quest/run")
async def run_request(body: RunBody, tutor: Tutor = Depends(get_tutor)):
    """Execute a directive (or the static request) with optional edits."""
    try:
        outcome = await tutor.run(
            body.index,
            url=body.url, method=body.method, headers=body.headers, body=body.body,
        )
    except QuestGuideError as e:
        raise http_error(e)
    notice = notice_for_failure(outcome).model_dump() if isinstance(outcome, Failure) else None
    return {"outcome": outcome.model_dump(), "notice": notice, "messages": _dump_messages(tutor)}


@router.post("/quest/validate")
async def validate(body: ValidateBody, tutor: Tutor = Depends(get_tutor)):
    """Record an externally decided pass/fail validation."""
    try:
        passed = tutor.validate(body.passed)
    except LookupError as e:
        raise http_error(e)
    return {"validated": passed}


@router.post("/quest/confirm")
async def confirm(tutor: Tutor = Depends(get_tutor)):
    """Confirm completion of the current quest ("Continue")."""
    try:
        event = tutor.confirm()
    except (QuestGuideError, LookupError) as e:
        raise http_error(e)
    return {
        "event": event.model_dump() if event else None,
        "progress": progress_view(tutor),
    }
